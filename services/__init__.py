"""
Business logic services.

Each service handles one stage of the country import pipeline.
"""

from services.country_service import CountryService, CountryStore, get_country_service
from services.country_import_classifier import (
    ExistingCountryIndex,
    classify_rows,
    is_commit_candidate,
    is_eligible,
)
from services.import_statistics import compute_statistics
from services.batch_committer import BatchCommitter, BatchReport, CommitOutcome, chunk_records
from services.import_pipeline import ImportPipeline, ImportNotifier, ProgressSink

__all__ = [
    "CountryService",
    "CountryStore",
    "get_country_service",
    "ExistingCountryIndex",
    "classify_rows",
    "is_commit_candidate",
    "is_eligible",
    "compute_statistics",
    "BatchCommitter",
    "BatchReport",
    "CommitOutcome",
    "chunk_records",
    "ImportPipeline",
    "ImportNotifier",
    "ProgressSink",
]
