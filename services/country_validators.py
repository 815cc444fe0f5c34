"""
Field validators for country import rows.

Each validator is a pure function: raw value in, list of ValidationIssue out.
Issues carry row=0; the classifier stamps the source row number.
"""

import re
from typing import Any, Optional

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from models.country_import import IssueSeverity, ValidationIssue

VALID_STATUSES = ("active", "inactive")
BOOLEAN_TOKENS = ("true", "false", "1", "0", "yes", "no")

_TRUE_VALUES = {"true", "1", "yes", "y"}
_FALSE_VALUES = {"false", "0", "no", "n"}

_COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2}$")
_CURRENCY_CODE_RE = re.compile(r"^[A-Z]{3}$")

_url_adapter = TypeAdapter(AnyUrl)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _issue(
    field: str,
    value: Any,
    message: str,
    severity: IssueSeverity = IssueSeverity.ERROR,
    suggestion: Optional[str] = None,
) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        value=value,
        message=message,
        severity=severity,
        suggestion=suggestion,
    )


# ===================
# REQUIRED FIELDS
# ===================

def validate_required(value: Any, field: str) -> list[ValidationIssue]:
    """Error if the value is empty."""
    if _is_blank(value):
        return [_issue(field, value, f"{field} is required")]
    return []


def validate_country_code(value: Any) -> list[ValidationIssue]:
    """2-letter ISO 3166-1 alpha-2 style code."""
    if _is_blank(value):
        return validate_required(value, "code")

    issues = []
    code = _text(value).upper()

    if len(code) != 2:
        issues.append(_issue(
            "code", value,
            "Country code must be exactly 2 characters",
            suggestion="Use ISO 3166-1 alpha-2 format (e.g., US, GB, FR)",
        ))

    if not _COUNTRY_CODE_RE.match(code):
        issues.append(_issue(
            "code", value,
            "Country code must contain only letters",
            suggestion="Use only letters (A-Z)",
        ))

    return issues


def validate_country_name(value: Any) -> list[ValidationIssue]:
    """Display name, 2 to 100 characters."""
    if _is_blank(value):
        return validate_required(value, "name")

    issues = []
    name = _text(value)

    if len(name) < 2:
        issues.append(_issue("name", value, "Country name must be at least 2 characters"))
    if len(name) > 100:
        issues.append(_issue("name", value, "Country name must be at most 100 characters"))

    return issues


def validate_currency_code(value: Any, field: str = "currency") -> list[ValidationIssue]:
    """3-letter ISO 4217 code."""
    if _is_blank(value):
        return validate_required(value, field)

    issues = []
    currency = _text(value).upper()

    if len(currency) != 3:
        issues.append(_issue(
            field, value,
            "Currency code must be exactly 3 characters",
            suggestion="Use ISO 4217 format (e.g., USD, EUR, GBP)",
        ))

    if not _CURRENCY_CODE_RE.match(currency):
        issues.append(_issue(field, value, "Currency code must contain only letters"))

    return issues


def validate_status(value: Any) -> list[ValidationIssue]:
    """Must be one of VALID_STATUSES, case-insensitive."""
    if _is_blank(value):
        return validate_required(value, "status")

    if _text(value).lower() not in VALID_STATUSES:
        allowed = " or ".join(f'"{s}"' for s in VALID_STATUSES)
        return [_issue(
            "status", value,
            f"Status must be either {allowed}",
            suggestion=f"Use {allowed}",
        )]

    return []


# ===================
# OPTIONAL FIELDS
# ===================

def validate_url(value: Any, field: str) -> list[ValidationIssue]:
    """Optional URL. Malformed values are warnings."""
    if _is_blank(value):
        return []

    try:
        _url_adapter.validate_python(_text(value))
    except PydanticValidationError:
        return [_issue(
            field, value,
            "Invalid URL format",
            severity=IssueSeverity.WARNING,
            suggestion="Ensure URL starts with http:// or https://",
        )]

    return []


def validate_boolean(value: Any, field: str) -> list[ValidationIssue]:
    """Optional boolean token. Unrecognized values are warnings."""
    if isinstance(value, bool) or _is_blank(value):
        return []

    if _text(value).lower() not in BOOLEAN_TOKENS:
        return [_issue(
            field, value,
            "Invalid boolean value",
            severity=IssueSeverity.WARNING,
            suggestion="Use true/false, 1/0, or yes/no",
        )]

    return []


def validate_optional_currency_code(value: Any, field: str) -> list[ValidationIssue]:
    """Optional 3-letter code; anything else is a warning."""
    if _is_blank(value):
        return []

    if not _CURRENCY_CODE_RE.match(_text(value).upper()):
        return [_issue(
            field, value,
            "Currency code should be 3 letters",
            severity=IssueSeverity.WARNING,
            suggestion="Use ISO 4217 format (e.g., USD, EUR, GBP)",
        )]

    return []


def normalize_boolean(value: Any) -> Optional[bool]:
    """Coerce a boolean token; None when absent or unrecognized."""
    if isinstance(value, bool):
        return value
    if _is_blank(value):
        return None

    token = _text(value).lower()
    if token in _TRUE_VALUES:
        return True
    if token in _FALSE_VALUES:
        return False
    return None
