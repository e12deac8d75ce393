"""Exceptions raised by the conversion pipeline."""


class TileForgeError(Exception):
    """Base class for every error raised by tilemapforge."""


class InvalidInputError(TileForgeError, ValueError):
    """The input is the wrong size or shape for the requested operation."""


class UnsupportedFormatError(TileForgeError, ValueError):
    """The input uses a format or color the pipeline cannot represent."""

    def __init__(self, message, color=None, position=None):
        super().__init__(message)
        self.color = color
        self.position = position


class CapacityExceededError(TileForgeError, ValueError):
    """The data does not fit the limits of the requested encoding."""

    def __init__(self, message, colors=None, limit=None):
        super().__init__(message)
        self.colors = colors
        self.limit = limit


class StateViolationError(TileForgeError, RuntimeError):
    """An operation was attempted in the wrong lock state."""
