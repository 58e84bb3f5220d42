"""Errors raised by the floor plan engine."""


class FloorplanError(Exception):
    """Base class for floor plan engine errors."""


class InvalidGeometry(FloorplanError):
    """Degenerate segment or shape, or non-finite coordinates."""


class PersistenceFailure(FloorplanError):
    """A mutation could not be committed to the store."""
