class BiasDetectError(Exception):
    """Base class for errors raised by biasdetect."""


class ConfigurationError(BiasDetectError, ValueError):
    """Invalid or missing arguments, e.g. an unknown batch column."""


class ShapeError(BiasDetectError, TypeError):
    """Input does not expose the counts layer or metadata that is required."""


class ComputationError(BiasDetectError, RuntimeError):
    """Deviance could not be computed for the given matrix."""


class StatisticalDegeneracyWarning(RuntimeWarning):
    """Difference scores contain non-finite values (zero denominator or variance)."""


__all__ = [
    "BiasDetectError",
    "ConfigurationError",
    "ShapeError",
    "ComputationError",
    "StatisticalDegeneracyWarning",
]
