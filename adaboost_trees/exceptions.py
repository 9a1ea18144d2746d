"""Exceptions raised by the boosted tree classifier."""


class BoostError(Exception):
    """Base class for all classifier errors."""
    pass


class ConfigurationError(BoostError, ValueError):
    """Raised for invalid option values or data/response shape mismatches."""
    pass


class DataError(BoostError, ValueError):
    """Raised for unusable training or prediction data."""
    pass


class StateError(BoostError, RuntimeError):
    """Raised when an operation needs a trained model and there is none."""
    pass


class ModelIOError(BoostError, OSError):
    """Raised when a model snapshot cannot be read, written or decoded."""
    pass


class RangeError(BoostError, IndexError):
    """Raised when a slice or feature index falls outside its valid range."""
    pass
