"""
Batch committer for country imports.

Writes eligible records to the country store in fixed-size batches,
strictly sequentially and in input order. One row failing never aborts
its batch; cancellation is checked between batches.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence
import structlog

from config.settings import settings
from exceptions import ImportAbortedError, ImportCommitDisabledError
from models.country_import import (
    CancellationToken,
    CommitAction,
    CommitResult,
    ImportOptions,
    ProcessedCountry,
)
from services.country_import_classifier import is_commit_candidate, is_eligible
from services.country_service import CountryStore

logger = structlog.get_logger(__name__)


@dataclass
class BatchReport:
    """Facts about one finished batch, passed to the on_batch callback."""
    batch_number: int
    batch_count: int
    records_committed: int
    records_total: int
    succeeded: int
    failed: int


@dataclass
class CommitOutcome:
    """Everything the committer produced for one run."""
    results: list[CommitResult] = field(default_factory=list)
    cancelled: bool = False
    batch_count: int = 0
    batches_run: int = 0
    eligible_count: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)


def chunk_records(
    records: Sequence[ProcessedCountry],
    batch_size: int,
) -> list[list[ProcessedCountry]]:
    """Split records into order-preserving batches of batch_size."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [
        list(records[start:start + batch_size])
        for start in range(0, len(records), batch_size)
    ]


class BatchCommitter:
    """
    Sequential batch writer over a CountryStore.

    Usage:
        committer = BatchCommitter(get_country_service())
        outcome = committer.commit(records, options, cancel_token=token)
    """

    def __init__(self, store: CountryStore, pause_seconds: Optional[float] = None):
        self.store = store
        self.pause_seconds = (
            settings.import_batch_pause_seconds if pause_seconds is None else pause_seconds
        )

    # ===================
    # PRE-FLIGHT
    # ===================

    def select_eligible(
        self,
        records: Sequence[ProcessedCountry],
        options: ImportOptions,
    ) -> list[ProcessedCountry]:
        """
        Filter records down to those that will be written.

        Raises:
            ImportAbortedError: If a candidate has errors and partial import
                is disabled, or if nothing is left to write
        """
        candidates = [r for r in records if is_commit_candidate(r, options)]
        blocked = [r for r in candidates if r.has_errors]

        if blocked and not options.allow_partial_import:
            logger.warning(
                "import_commit_blocked",
                blocked=len(blocked),
                candidates=len(candidates)
            )
            raise ImportAbortedError(
                message=(
                    f"{len(blocked)} records have errors and partial import is disabled"
                ),
                errors=[
                    {
                        "row": r.original_row_index,
                        "code": r.code,
                        "errors": [i.message for i in r.validation_errors if i.is_error],
                    }
                    for r in blocked
                ],
            )

        eligible = [r for r in candidates if is_eligible(r, options)]
        if not eligible:
            raise ImportAbortedError(message="No valid records to import")

        return eligible

    # ===================
    # COMMIT
    # ===================

    def commit(
        self,
        records: Sequence[ProcessedCountry],
        options: ImportOptions,
        cancel_token: Optional[CancellationToken] = None,
        on_batch: Optional[Callable[[BatchReport], None]] = None,
    ) -> CommitOutcome:
        """
        Write eligible records batch by batch.

        Args:
            records: All classified records for the run
            options: Run options (mode, batch size, partial policy)
            cancel_token: Checked before every batch
            on_batch: Called with a BatchReport after every batch

        Returns:
            CommitOutcome with one CommitResult per attempted row

        Raises:
            ImportCommitDisabledError: If the run is preview/validate only
            ImportAbortedError: From the pre-flight check, before any write
        """
        if not options.commits_enabled:
            raise ImportCommitDisabledError(options.mode.value)

        eligible = self.select_eligible(records, options)
        batches = chunk_records(eligible, options.batch_size)
        outcome = CommitOutcome(batch_count=len(batches), eligible_count=len(eligible))

        logger.info(
            "import_commit_started",
            eligible=len(eligible),
            batch_size=options.batch_size,
            batch_count=len(batches),
            mode=options.mode.value
        )

        for number, batch in enumerate(batches, start=1):
            if cancel_token is not None and cancel_token.is_cancelled:
                outcome.cancelled = True
                logger.warning(
                    "import_commit_cancelled",
                    batches_run=outcome.batches_run,
                    committed=len(outcome.results),
                    eligible=len(eligible)
                )
                return outcome

            batch_results = [self._commit_record(record) for record in batch]
            outcome.results.extend(batch_results)
            outcome.batches_run += 1

            succeeded = sum(1 for r in batch_results if r.success)
            logger.info(
                "import_batch_committed",
                batch=number,
                batch_count=len(batches),
                succeeded=succeeded,
                failed=len(batch_results) - succeeded
            )

            if on_batch is not None:
                on_batch(BatchReport(
                    batch_number=number,
                    batch_count=len(batches),
                    records_committed=len(outcome.results),
                    records_total=len(eligible),
                    succeeded=succeeded,
                    failed=len(batch_results) - succeeded,
                ))

            # Pause between batches, not after the last one
            if number < len(batches) and self.pause_seconds > 0:
                time.sleep(self.pause_seconds)

        logger.info(
            "import_commit_complete",
            succeeded=outcome.succeeded,
            failed=outcome.failed
        )
        return outcome

    def _commit_record(self, record: ProcessedCountry) -> CommitResult:
        """Create or update one record. Failures become unsuccessful results."""
        action = CommitAction.CREATE if record.is_new else CommitAction.UPDATE

        try:
            if action == CommitAction.CREATE:
                country = self.store.create(record.to_country_create())
            else:
                if not record.existing_id:
                    raise LookupError(f"No stored country with code {record.code}")
                country = self.store.update(record.existing_id, record.to_country_update())

            return CommitResult(
                record=record,
                success=True,
                action=action,
                country_id=country.id,
            )

        except Exception as e:
            logger.error(
                "import_record_commit_failed",
                row=record.original_row_index,
                code=record.code,
                action=action.value,
                error=str(e),
                error_type=type(e).__name__
            )
            return CommitResult(
                record=record,
                success=False,
                action=action,
                error=str(e),
            )
