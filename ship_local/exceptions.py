"""Exceptions related to ship-local."""

__all__ = [
    "ShipException",
    "InputException",
    "MissingStateException",
    "StateException",
    "ResolveException",
    "CommandException",
    "HelmException",
    "KustomizeException",
    "TemplateValueException",
    "UseUpdateException",
    "WatchStoppedException",
]


class ShipException(Exception):
    """Generic base exception used for this library."""


class InputException(ShipException):
    """Raised when the input files or values are not formatted as expected."""


class MissingStateException(ShipException):
    """Raised when a prerequisite from a previous `init` is not present."""


class StateException(ShipException):
    """Raised when the state file could not be read or written."""


class ResolveException(ShipException):
    """Raised when chart metadata could not be resolved."""


class CommandException(ShipException):
    """Raised when there is a failure running a subcommand."""

    def __init__(
        self, message: str, stdout: bytes | None = None, stderr: bytes | None = None
    ) -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class HelmException(CommandException):
    """Raised when there is a failure running a helm command."""


class KustomizeException(CommandException):
    """Raised when there is a failure running a kustomize command."""


class TemplateValueException(ShipException):
    """Raised when a value expression could not be evaluated."""


class UseUpdateException(ShipException):
    """Raised when the operator declined to discard existing state during init.

    This is not a failure, it signals the operator should run `update` instead.
    """

    def __init__(self) -> None:
        super().__init__('To build on your progress, run "ship-local update"')


class WatchStoppedException(ShipException):
    """Raised when a watch was stopped before a new chart version was found."""
