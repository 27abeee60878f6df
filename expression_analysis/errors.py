"""Exception types raised by the expression analysis engine."""


class ExpressionAnalysisError(Exception):
    """Base class for all expression analysis errors."""


class InvalidInputError(ExpressionAnalysisError, ValueError):
    """A frame's input cannot be used.

    The frame must be skipped. Engine state is never mutated for a frame
    that raises this error.
    """


class InvalidLandmarksError(InvalidInputError):
    """Landmark frame is too short, malformed, or contains non-finite values."""


class LandmarkSourceError(ExpressionAnalysisError):
    """The external landmark detector failed to initialize or run."""
