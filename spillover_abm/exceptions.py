"""Error taxonomy for the simulation and spillover core."""


class SpilloverABMError(Exception):
    """Base class for every error raised by the package."""


class ConfigurationError(SpilloverABMError, ValueError):
    """Invalid parameter: unknown mode, non-positive count, oversized window."""


class DataShapeError(SpilloverABMError, ValueError):
    """Input array has the wrong shape or contains non-finite values."""


class NumericalError(SpilloverABMError, ArithmeticError):
    """Degenerate statistic inside a single rolling window."""
