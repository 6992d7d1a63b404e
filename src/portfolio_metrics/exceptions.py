"""
Exception hierarchy for the Portfolio Metrics engine.

The metrics computation itself never raises for missing or malformed
product data (those fields degrade to "absent"). Exceptions here cover
the caller contract, configuration, persistence and the LLM boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorSeverity(Enum):
    WARNING = "warning"
    """Row was rejected; the rest of the catalog still loads"""

    INFO = "info"
    """Row was skipped as expected (e.g. a blank separator line)"""


@dataclass
class ProcessingError:
    """A catalog row that was skipped, with the reason and its row number."""

    file_name: str
    error_type: str
    """MISSING_ID, INVALID_ID or ROW_VALIDATION_ERROR"""
    message: str
    severity: ErrorSeverity = ErrorSeverity.WARNING
    row: Optional[int] = None

# ============================================================================
# BASE EXCEPTION CLASSES
# ============================================================================

class PortfolioMetricsError(Exception):
    """
    Base exception for all Portfolio Metrics errors.

    Inheriting from this allows catching all engine errors:
        try:
            ...
        except PortfolioMetricsError as e:
            ...
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__


class ValidationError(PortfolioMetricsError):
    """Base class for caller-level input validation failures."""
    pass


class ConfigurationError(PortfolioMetricsError):
    """Base class for configuration/setup issues."""
    pass


class PersistenceError(PortfolioMetricsError):
    """
    Raised when saving or loading a model portfolio fails.

    The enclosing transaction has already been rolled back when this
    propagates, so no partially written portfolio is observable.

    Example:
        raise PersistenceError("Failed to insert allocation rows for 'Balanced'")
    """
    pass


# ============================================================================
# SPECIFIC EXCEPTIONS
# ============================================================================

class AllocationValidationError(ValidationError):
    """
    Raised when an allocation payload cannot be turned into allocation lines.

    Example:
        raise AllocationValidationError("Allocation item 2 has no productId")
    """
    pass


class CatalogReadError(ValidationError):
    """
    Raised when a product catalog file cannot be opened at all.

    Example:
        raise CatalogReadError("Unsupported catalog format: products.pdf")
    """
    pass


class PortfolioNotFoundError(PersistenceError):
    """
    Raised when a model portfolio id does not exist (or is not owned by the caller).

    Example:
        raise PortfolioNotFoundError("Model portfolio 42 not found")
    """
    pass


class EnvConfigError(ConfigurationError):
    """
    Raised when required environment variables are missing.

    Example:
        raise EnvConfigError("Missing required env var: ANTHROPIC_API_KEY")
    """
    pass


class ProposalError(PortfolioMetricsError):
    """
    Raised when the LLM allocation proposer returns nothing usable.

    Example:
        raise ProposalError("LLM response did not contain a JSON array")
    """
    pass


# ============================================================================
# CATALOG ROW ERRORS
# ============================================================================

def row_error_from_exception(
    exception: Exception,
    file_name: str,
    error_type: str,
    row: Optional[int] = None,
) -> ProcessingError:
    """Record a row rejected by validation; only the first message line is kept."""
    lines = str(exception).strip().splitlines()
    return ProcessingError(
        file_name=file_name,
        error_type=error_type,
        message=lines[0] if lines else exception.__class__.__name__,
        row=row,
    )
