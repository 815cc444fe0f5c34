"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.country import (
    CountryStatus,
    CountryCreate,
    CountryUpdate,
    CountryResponse,
)
from models.country_import import (
    ImportMode,
    IssueSeverity,
    ImportStage,
    ImportOutcome,
    FileFormat,
    CommitAction,
    ImportOptions,
    ValidationIssue,
    ParsedCountryRow,
    ProcessedCountry,
    CommitResult,
    ImportStatistics,
    ImportProgress,
    ImportReport,
    CancellationToken,
    ImportRun,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Country
    "CountryStatus",
    "CountryCreate",
    "CountryUpdate",
    "CountryResponse",

    # Import
    "ImportMode",
    "IssueSeverity",
    "ImportStage",
    "ImportOutcome",
    "FileFormat",
    "CommitAction",
    "ImportOptions",
    "ValidationIssue",
    "ParsedCountryRow",
    "ProcessedCountry",
    "CommitResult",
    "ImportStatistics",
    "ImportProgress",
    "ImportReport",
    "CancellationToken",
    "ImportRun",
]
