"""
Record classifier for country imports.

Combines field validation with duplicate detection (within the file and
against the existing store) to produce ProcessedCountry records.

Eligibility rules here are shared with the batch committer so that the
preview shown to the user and the actual commit never disagree.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable
import structlog

from models.country import CountryResponse
from models.country_import import (
    ImportMode,
    ImportOptions,
    IssueSeverity,
    ParsedCountryRow,
    ProcessedCountry,
    ValidationIssue,
)
from services.country_validators import (
    normalize_boolean,
    validate_boolean,
    validate_country_code,
    validate_country_name,
    validate_currency_code,
    validate_optional_currency_code,
    validate_required,
    validate_status,
    validate_url,
)

logger = structlog.get_logger(__name__)

BOOLEAN_FIELDS = ("is_popular", "visa_required", "pricing_currency_override")


@dataclass
class ExistingCountryIndex:
    """Lookup tables over the existing-store snapshot. Built once per run."""
    by_code: dict[str, CountryResponse] = field(default_factory=dict)
    by_name: dict[str, CountryResponse] = field(default_factory=dict)

    @classmethod
    def from_countries(cls, countries: Iterable[CountryResponse]) -> "ExistingCountryIndex":
        index = cls()
        for country in countries:
            if country.code:
                index.by_code[country.code.strip().upper()] = country
            if country.name:
                index.by_name[country.name.strip().lower()] = country
        return index

    def __len__(self) -> int:
        return len(self.by_code)


def classify_rows(
    rows: Iterable[ParsedCountryRow],
    existing: ExistingCountryIndex,
    options: ImportOptions,
) -> list[ProcessedCountry]:
    """
    Validate and classify every parsed row.

    Deterministic: the same inputs always produce equal output.

    Args:
        rows: Parsed rows in file order
        existing: Index over the stored countries
        options: Run options (mode policy)

    Returns:
        ProcessedCountry per row, in input order
    """
    processed: list[ProcessedCountry] = []
    seen_codes: dict[str, int] = {}
    seen_names: dict[str, int] = {}

    for row in rows:
        record = _classify_row(row, existing, options, seen_codes, seen_names)
        processed.append(record)

    logger.info(
        "country_rows_classified",
        total=len(processed),
        with_errors=sum(1 for r in processed if r.has_errors),
        errors=sum(r.error_count for r in processed),
        warnings=sum(r.warning_count for r in processed),
        duplicates=sum(1 for r in processed if r.is_duplicate),
        mode=options.mode.value
    )

    return processed


def _classify_row(
    row: ParsedCountryRow,
    existing: ExistingCountryIndex,
    options: ImportOptions,
    seen_codes: dict[str, int],
    seen_names: dict[str, int],
) -> ProcessedCountry:
    row_index = row.row_index

    # Extract and coerce
    name = _clean(row.name)
    code = _clean(row.code).upper()
    name_key = name.lower()

    # Field validation
    issues: list[ValidationIssue] = []
    issues += validate_country_name(row.name)
    issues += validate_country_code(row.code)
    issues += validate_currency_code(row.currency)
    issues += validate_status(row.status)
    issues += validate_required(_clean(row.continent), "continent")
    issues += validate_required(_clean(row.region), "region")
    issues += validate_required(_clean(row.currency_symbol), "currency_symbol")
    issues += validate_url(row.flag_url, "flag_url")
    issues += validate_optional_currency_code(row.pricing_currency, "pricing_currency")
    for field_name in BOOLEAN_FIELDS:
        issues += validate_boolean(getattr(row, field_name), field_name)

    # Duplicates within this file (first occurrence is not a duplicate)
    is_duplicate_code = bool(code) and code in seen_codes
    is_duplicate_name = bool(name_key) and name_key in seen_names

    if is_duplicate_code:
        issues.append(ValidationIssue(
            field="code",
            value=code,
            message="Duplicate country code in file",
            severity=IssueSeverity.WARNING,
            suggestion=f"First occurrence at row {seen_codes[code]} will be imported",
        ))
    if is_duplicate_name:
        issues.append(ValidationIssue(
            field="name",
            value=name,
            message="Duplicate country name in file",
            severity=IssueSeverity.WARNING,
            suggestion=f"First occurrence at row {seen_names[name_key]} will be imported",
        ))

    # Existing store
    existing_by_code = existing.by_code.get(code) if code else None
    existing_by_name = existing.by_name.get(name_key) if name_key else None
    is_existing_code = existing_by_code is not None
    is_existing_name = existing_by_name is not None

    if (
        existing_by_name is not None
        and existing_by_name.code.upper() != code
        and code
    ):
        issues.append(ValidationIssue(
            field="name",
            value=name,
            message=f"Country name already exists under code {existing_by_name.code.upper()}",
            severity=IssueSeverity.WARNING,
        ))

    # Mode policy
    if options.mode == ImportMode.CREATE_ONLY and is_existing_code:
        issues.append(ValidationIssue(
            field="code",
            value=code,
            message="Country code already exists (create-only mode)",
            severity=IssueSeverity.ERROR,
        ))
    if options.mode == ImportMode.UPDATE_ONLY and not is_existing_code:
        issues.append(ValidationIssue(
            field="code",
            value=code,
            message="Country code does not exist (update-only mode)",
            severity=IssueSeverity.ERROR,
        ))

    # Register after checks so only later repeats are flagged
    if code:
        seen_codes.setdefault(code, row_index)
    if name_key:
        seen_names.setdefault(name_key, row_index)

    # Classification
    return ProcessedCountry(
        name=name,
        code=code,
        continent=_clean(row.continent),
        region=_clean(row.region),
        currency=_clean(row.currency).upper(),
        currency_symbol=_clean(row.currency_symbol),
        status=_clean(row.status).lower(),
        flag_url=_clean(row.flag_url) or None,
        is_popular=normalize_boolean(row.is_popular),
        visa_required=normalize_boolean(row.visa_required),
        pricing_currency_override=normalize_boolean(row.pricing_currency_override),
        pricing_currency=_clean(row.pricing_currency).upper() or None,
        pricing_currency_symbol=_clean(row.pricing_currency_symbol) or None,
        is_new=not is_existing_code,
        is_update=is_existing_code,
        is_duplicate=is_duplicate_code or is_duplicate_name,
        is_duplicate_code=is_duplicate_code,
        is_duplicate_name=is_duplicate_name,
        is_existing_code=is_existing_code,
        is_existing_name=is_existing_name,
        existing_id=existing_by_code.id if existing_by_code is not None else None,
        validation_errors=[issue.at_row(row_index) for issue in issues],
        original_row_index=row_index,
    )


# ===================
# ELIGIBILITY
# ===================

def is_commit_candidate(record: ProcessedCountry, options: ImportOptions) -> bool:
    """
    True if the record would be written, ignoring its validation errors.

    Rules:
    - preview_only never writes
    - create_only needs a new code; update_only needs an existing one
    - later in-file repeats are never written (first occurrence wins)
    - skip_duplicates under create_and_update leaves existing codes alone
    """
    if options.mode == ImportMode.PREVIEW_ONLY:
        return False
    if options.mode == ImportMode.CREATE_ONLY and not record.is_new:
        return False
    if options.mode == ImportMode.UPDATE_ONLY and not record.is_update:
        return False
    if record.is_duplicate:
        return False
    if (
        options.skip_duplicates
        and options.mode == ImportMode.CREATE_AND_UPDATE
        and record.is_update
    ):
        return False
    return True


def is_eligible(record: ProcessedCountry, options: ImportOptions) -> bool:
    """True if the record is a commit candidate with no error-severity issue."""
    return is_commit_candidate(record, options) and not record.has_errors


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
