"""Project-wide exception types."""

class WorkbenchError(Exception):
    """Base exception for all engine errors."""


class PricingError(WorkbenchError):
    """Raised when option pricing fails or inputs are invalid."""


class ConfigError(WorkbenchError):
    """Raised when configuration is missing or malformed."""


class ConfigValidationError(ConfigError):
    """Raised when validation fails for supplied configuration."""


class SchemaError(WorkbenchError):
    """Raised when a leg, quote or strategy payload fails schema checks."""


class DependencyError(WorkbenchError):
    """Raised when required dependencies are missing or incompatible."""


class PositionError(WorkbenchError):
    """Raised when a position edit would break ledger invariants."""


class CostBasisLockedError(PositionError):
    """Raised when a locked cost basis is edited without clearing the lock."""
