"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DuplicateError,
    ExternalServiceError,
    DatabaseError,

    # Countries
    CountryNotFoundError,
    CountryCodeExistsError,

    # Import pipeline
    ImportParseError,
    SnapshotFetchError,
    ImportAbortedError,
    ImportCommitDisabledError,
    ImportCancelledError,
    InvalidImportStateError,

    # Notifications
    TelegramError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DuplicateError",
    "ExternalServiceError",
    "DatabaseError",

    # Countries
    "CountryNotFoundError",
    "CountryCodeExistsError",

    # Import pipeline
    "ImportParseError",
    "SnapshotFetchError",
    "ImportAbortedError",
    "ImportCommitDisabledError",
    "ImportCancelledError",
    "InvalidImportStateError",

    # Notifications
    "TelegramError",
]
