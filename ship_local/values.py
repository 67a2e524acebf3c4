"""Module for evaluating value expressions passed to helm.

Helm asset values may contain expressions of the form `{{repl Func args...}}`
that are evaluated against the configured options and the template context:

```python
from ship_local.values import TemplateValueBuilder, new_config_context

builder = TemplateValueBuilder(new_config_context(config_groups, {"app_name": "demo"}))
builder.render('{{repl ConfigOption "app_name"}}-svc')  # "demo-svc"
```

Text outside of an expression is copied verbatim and a value may hold any
number of expressions.
"""

import base64
from collections.abc import Callable, Iterable
import logging
import re
import shlex
from typing import Any

from .exceptions import TemplateValueException
from .manifest import ConfigGroup

__all__ = [
    "new_config_context",
    "TemplateValueBuilder",
]

_LOGGER = logging.getLogger(__name__)

_EXPRESSION_RE = re.compile(r"\{\{repl\s+(.*?)\s*\}\}", re.DOTALL)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def new_config_context(
    config_groups: Iterable[ConfigGroup], template_context: dict[str, Any]
) -> dict[str, str]:
    """Return the value of every config option.

    An entry in the template context takes precedence over the value set on the
    option, which takes precedence over the option default.
    """
    context: dict[str, str] = {}
    for group in config_groups:
        for item in group.items:
            if item.value is not None:
                context[item.name] = item.value
            elif item.default is not None:
                context[item.name] = item.default
    for key, value in template_context.items():
        context[key] = _format_value(value)
    return context


def _b64decode(value: str) -> str:
    try:
        return base64.b64decode(value).decode("utf-8")
    except ValueError as err:
        raise TemplateValueException(
            f"Unable to base64 decode '{value}': {err}"
        ) from err


class TemplateValueBuilder:
    """Evaluates value expressions against a config context."""

    def __init__(self, config_context: dict[str, str]) -> None:
        """Initialize TemplateValueBuilder."""
        self._config_context = config_context
        self._funcs: dict[str, Callable[..., str]] = {
            "ConfigOption": self._config_option,
            "ConfigOptionEquals": self._config_option_equals,
            "ConfigOptionNotEquals": self._config_option_not_equals,
            "ToLower": lambda value: value.lower(),
            "ToUpper": lambda value: value.upper(),
            "TrimSpace": lambda value: value.strip(),
            "Base64Encode": lambda value: base64.b64encode(value.encode()).decode(),
            "Base64Decode": _b64decode,
        }

    def _config_option(self, name: str) -> str:
        if (value := self._config_context.get(name)) is None:
            _LOGGER.warning("Config option '%s' is not set", name)
            return ""
        return value

    def _config_option_equals(self, name: str, expected: str) -> str:
        return _format_value(self._config_option(name) == expected)

    def _config_option_not_equals(self, name: str, expected: str) -> str:
        return _format_value(self._config_option(name) != expected)

    def _evaluate(self, expression: str) -> str:
        try:
            tokens = shlex.split(expression)
        except ValueError as err:
            raise TemplateValueException(
                f"Unable to parse expression '{expression}': {err}"
            ) from err
        if not tokens:
            raise TemplateValueException("Empty expression")
        name, args = tokens[0], tokens[1:]
        if not (func := self._funcs.get(name)):
            raise TemplateValueException(
                f"Unknown function '{name}' in expression '{expression}'"
            )
        try:
            return func(*args)
        except TypeError as err:
            raise TemplateValueException(
                f"Invalid arguments in expression '{expression}': {err}"
            ) from err

    def render(self, value: str) -> str:
        """Return the value with every expression replaced by its result."""
        return _EXPRESSION_RE.sub(lambda match: self._evaluate(match.group(1)), value)
