"""Exceptions raised by pin operations."""


class PinNotFoundError(ValueError):
    """Raised when a pin id is not part of the published pin set."""


class PinLocationError(ValueError):
    """Raised when a pin cannot be traced back to a line of its source file."""


class OutsideRootError(ValueError):
    """Raised when a file path does not lie under any org directory."""
