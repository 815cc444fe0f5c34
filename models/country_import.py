"""
Schemas for the country bulk import pipeline.

Covers run options, per-row validation issues, classified records,
statistics, progress and the final run report.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from config.settings import settings
from models.base import BaseSchema
from models.country import CountryCreate, CountryStatus, CountryUpdate


class ImportMode(str, Enum):
    """How classified rows are written to the store."""
    CREATE_ONLY = "create_only"
    UPDATE_ONLY = "update_only"
    CREATE_AND_UPDATE = "create_and_update"
    PREVIEW_ONLY = "preview_only"


class IssueSeverity(str, Enum):
    """Validation issue severity. Only ERROR blocks a row."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ImportStage(str, Enum):
    """Pipeline stage, as reported in progress updates."""
    IDLE = "idle"
    PARSING = "parsing"
    VALIDATING = "validating"
    PROCESSING = "processing"
    SAVING = "saving"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


class ImportOutcome(str, Enum):
    """Terminal result of a run."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


class FileFormat(str, Enum):
    """Declared format of an uploaded file."""
    DELIMITED = "delimited"
    SPREADSHEET = "spreadsheet"


class CommitAction(str, Enum):
    """Write issued for a committed row."""
    CREATE = "create"
    UPDATE = "update"


# ===================
# OPTIONS
# ===================

class ImportOptions(BaseSchema):
    """
    Configuration for one import run. Immutable once the run starts.
    """
    model_config = ConfigDict(frozen=True)

    mode: ImportMode = Field(
        ImportMode.CREATE_AND_UPDATE,
        description="Create/update policy"
    )
    skip_duplicates: bool = Field(
        False,
        description="Skip rows that already exist instead of updating them"
    )
    validate_only: bool = Field(
        False,
        description="Classify rows but never commit"
    )
    batch_size: int = Field(
        default_factory=lambda: settings.import_batch_size,
        ge=1,
        le=100,
        description="Records committed per batch"
    )
    allow_partial_import: bool = Field(
        default_factory=lambda: settings.import_allow_partial,
        description="Skip rows with errors instead of aborting the commit"
    )
    auto_fix_minor_errors: bool = Field(
        True,
        description="Reserved policy flag"
    )

    @property
    def commits_enabled(self) -> bool:
        """True if this run may write to the store."""
        return self.mode != ImportMode.PREVIEW_ONLY and not self.validate_only


# ===================
# VALIDATION
# ===================

class ValidationIssue(BaseSchema):
    """Single row-level finding. Row is 0 until stamped by the classifier."""

    row: int = Field(0, ge=0, description="1-based source row")
    field: str
    value: Any = None
    message: str
    severity: IssueSeverity = IssueSeverity.ERROR
    suggestion: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == IssueSeverity.ERROR

    def at_row(self, row: int) -> "ValidationIssue":
        """Return a copy stamped with the source row number."""
        return self.model_copy(update={"row": row})


# ===================
# PARSED AND CLASSIFIED ROWS
# ===================

@dataclass
class ParsedCountryRow:
    """One source row, header-normalized, values still raw."""
    row_index: int
    name: Any = None
    code: Any = None
    continent: Any = None
    region: Any = None
    currency: Any = None
    currency_symbol: Any = None
    status: Any = None
    flag_url: Any = None
    is_popular: Any = None
    visa_required: Any = None
    pricing_currency_override: Any = None
    pricing_currency: Any = None
    pricing_currency_symbol: Any = None
    extra: dict[str, Any] = field(default_factory=dict)


class ProcessedCountry(BaseSchema):
    """
    Fully classified import row.

    Optional fields stay None when absent from the file; commit-time
    defaults are applied only by to_country_create()/to_country_update().
    """

    name: str = ""
    code: str = ""
    continent: str = ""
    region: str = ""
    currency: str = ""
    currency_symbol: str = ""
    status: str = ""
    flag_url: Optional[str] = None
    is_popular: Optional[bool] = None
    visa_required: Optional[bool] = None
    pricing_currency_override: Optional[bool] = None
    pricing_currency: Optional[str] = None
    pricing_currency_symbol: Optional[str] = None

    is_new: bool = False
    is_update: bool = False
    is_duplicate: bool = False
    is_duplicate_code: bool = False
    is_duplicate_name: bool = False
    is_existing_code: bool = False
    is_existing_name: bool = False
    existing_id: Optional[str] = None

    validation_errors: list[ValidationIssue] = Field(default_factory=list)
    original_row_index: int = 0

    @property
    def has_errors(self) -> bool:
        return any(issue.is_error for issue in self.validation_errors)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.validation_errors if issue.is_error)

    @property
    def warning_count(self) -> int:
        return sum(
            1 for issue in self.validation_errors
            if issue.severity == IssueSeverity.WARNING
        )

    def _commit_status(self) -> CountryStatus:
        try:
            return CountryStatus(self.status)
        except ValueError:
            return CountryStatus.ACTIVE

    def to_country_create(self) -> CountryCreate:
        """Build the insert payload, applying commit-time defaults."""
        return CountryCreate(
            name=self.name,
            code=self.code,
            continent=self.continent,
            region=self.region,
            currency=self.currency,
            currency_symbol=self.currency_symbol,
            status=self._commit_status(),
            flag_url=self.flag_url,
            is_popular=bool(self.is_popular),
            visa_required=bool(self.visa_required),
            pricing_currency_override=bool(self.pricing_currency_override),
            pricing_currency=self.pricing_currency,
            pricing_currency_symbol=self.pricing_currency_symbol,
        )

    def to_country_update(self) -> CountryUpdate:
        """Build the update payload, applying commit-time defaults."""
        return CountryUpdate(
            name=self.name,
            continent=self.continent,
            region=self.region,
            currency=self.currency,
            currency_symbol=self.currency_symbol,
            status=self._commit_status(),
            flag_url=self.flag_url,
            is_popular=bool(self.is_popular),
            visa_required=bool(self.visa_required),
            pricing_currency_override=bool(self.pricing_currency_override),
            pricing_currency=self.pricing_currency,
            pricing_currency_symbol=self.pricing_currency_symbol,
        )


# ===================
# RESULTS AND REPORTING
# ===================

class CommitResult(BaseModel):
    """Outcome of writing one row."""
    record: ProcessedCountry
    success: bool
    action: CommitAction
    error: Optional[str] = None
    country_id: Optional[str] = None


class ImportStatistics(BaseModel):
    """Aggregate counts over classified records."""
    total_records: int = 0
    valid_records: int = 0
    invalid_records: int = 0
    duplicate_records: int = 0
    new_records: int = 0
    update_records: int = 0
    skipped_records: int = 0
    processed_records: int = 0


class ImportProgress(BaseModel):
    """Progress snapshot published by the pipeline controller."""
    stage: ImportStage = ImportStage.IDLE
    percentage: int = Field(0, ge=0, le=100)
    current_step: str = "Ready to import"
    records_processed: int = 0
    total_records: int = 0


class ImportReport(BaseModel):
    """Final artifact of a run, suitable for rendering or an audit log."""
    run_id: str
    outcome: ImportOutcome
    error: Optional[str] = None
    error_code: Optional[str] = None
    statistics: ImportStatistics = Field(default_factory=ImportStatistics)
    issues: list[ValidationIssue] = Field(default_factory=list)
    commit_results: list[CommitResult] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime

    def to_dict(self) -> dict:
        """Convert to a JSON-safe dict. Commit results are condensed."""
        return {
            "run_id": self.run_id,
            "outcome": self.outcome.value,
            "error": self.error,
            "error_code": self.error_code,
            "statistics": self.statistics.model_dump(),
            "issues": [issue.model_dump(mode="json") for issue in self.issues],
            "commit_results": [
                {
                    "row": r.record.original_row_index,
                    "code": r.record.code,
                    "action": r.action.value,
                    "success": r.success,
                    "error": r.error,
                    "country_id": r.country_id,
                }
                for r in self.commit_results
            ],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
        }


# ===================
# RUN CONTEXT
# ===================

class CancellationToken:
    """Cooperative cancel flag, safe to set from another thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class ImportRun:
    """Per-run state owned by one ImportPipeline."""
    options: ImportOptions
    file_name: Optional[str] = None
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    progress: ImportProgress = field(default_factory=ImportProgress)
    records: list[ProcessedCountry] = field(default_factory=list)
    issues: list[ValidationIssue] = field(default_factory=list)
    statistics: ImportStatistics = field(default_factory=ImportStatistics)
    commit_results: list[CommitResult] = field(default_factory=list)
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    awaiting_confirmation: bool = False
    outcome: Optional[ImportOutcome] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    finished_at: Optional[datetime] = None

    @property
    def stage(self) -> ImportStage:
        return self.progress.stage

    def to_report(self) -> ImportReport:
        """Snapshot the run as an ImportReport."""
        return ImportReport(
            run_id=self.run_id,
            outcome=self.outcome or ImportOutcome.COMPLETED,
            error=self.error,
            error_code=self.error_code,
            statistics=self.statistics,
            issues=list(self.issues),
            commit_results=list(self.commit_results),
            started_at=self.started_at,
            finished_at=self.finished_at or datetime.now(timezone.utc),
        )
