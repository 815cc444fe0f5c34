"""
Statistics aggregation for import runs.

Pure reduction over classified records. Called once before the commit
(estimate) and once after it (actuals).
"""

from typing import Optional, Sequence

from models.country_import import CommitResult, ImportStatistics, ProcessedCountry


def compute_statistics(
    records: Sequence[ProcessedCountry],
    commit_results: Optional[Sequence[CommitResult]] = None,
) -> ImportStatistics:
    """
    Count records by classification.

    Invalid and duplicate are independent axes: a row with an error that is
    also an in-file repeat counts toward both.

    Args:
        records: Classified records for the run
        commit_results: Results from the committer, or None before commit

    Returns:
        ImportStatistics
    """
    total = len(records)
    invalid = sum(1 for r in records if r.has_errors)
    clean = [r for r in records if not r.has_errors and not r.is_duplicate]

    processed = 0
    skipped = 0
    if commit_results is not None:
        processed = sum(1 for result in commit_results if result.success)
        skipped = total - processed

    return ImportStatistics(
        total_records=total,
        valid_records=total - invalid,
        invalid_records=invalid,
        duplicate_records=sum(1 for r in records if r.is_duplicate),
        new_records=sum(1 for r in clean if r.is_new),
        update_records=sum(1 for r in clean if r.is_update),
        skipped_records=skipped,
        processed_records=processed,
    )
