"""
ship-local deploys a helm chart with a kustomize overlay, and keeps it up to date.

The lifecycle of a release is driven from `ship_local.ship`:

- `init` resolves a chart reference, records it in a state file, renders the
  chart with `helm template` and builds a kustomize overlay on top of it.
- `update` renders the latest content of the recorded chart.
- `watch` waits until the recorded chart has changed upstream.
"""

__all__ = [
    "config",
    "exceptions",
    "helm",
    "kustomize",
    "manifest",
    "release",
    "resolver",
    "ship",
    "state",
    "values",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
