"""
Import pipeline controller.

State machine driving one country import run:

    idle -> parsing -> validating -> completed (awaiting confirmation)
         -> processing -> saving -> completed

error is reachable from every working stage, cancelled from processing
and saving. Validation completing never triggers a commit; the caller
must call confirm().

Usage:
    pipeline = ImportPipeline(get_country_service(), progress_sink=print)
    run = pipeline.validate_file(content, "countries.csv")
    report = pipeline.confirm()
"""

from datetime import datetime, timezone
from typing import Optional, Protocol
import structlog

from exceptions import (
    AppError,
    ImportAbortedError,
    ImportCancelledError,
    ImportCommitDisabledError,
    InvalidImportStateError,
    SnapshotFetchError,
)
from integrations.telegram import LoggingNotifier
from models.country_import import (
    CancellationToken,
    FileFormat,
    ImportOptions,
    ImportOutcome,
    ImportProgress,
    ImportReport,
    ImportRun,
    ImportStage,
)
from parsers.country_file_parser import parse_country_file
from services.batch_committer import BatchCommitter, BatchReport
from services.country_import_classifier import ExistingCountryIndex, classify_rows
from services.country_service import CountryStore
from services.import_statistics import compute_statistics

logger = structlog.get_logger(__name__)


# Allowed stage transitions
STAGE_TRANSITIONS = {
    ImportStage.IDLE: {ImportStage.PARSING},
    ImportStage.PARSING: {ImportStage.VALIDATING, ImportStage.ERROR},
    ImportStage.VALIDATING: {ImportStage.COMPLETED, ImportStage.ERROR},
    ImportStage.COMPLETED: {ImportStage.PROCESSING},
    ImportStage.PROCESSING: {ImportStage.SAVING, ImportStage.CANCELLED, ImportStage.ERROR},
    ImportStage.SAVING: {ImportStage.COMPLETED, ImportStage.CANCELLED, ImportStage.ERROR},
    ImportStage.CANCELLED: set(),
    ImportStage.ERROR: set(),
}

# Commit progress is scaled into this band
PROCESSING_START = 10
PROCESSING_END = 90


class ProgressSink(Protocol):
    """Receives every progress update published by the controller."""

    def __call__(self, progress: ImportProgress) -> None: ...


class ImportNotifier(Protocol):
    """Receives human-readable summaries. Failures are ignored."""

    def notify(self, title: str, message: str, level: str = "info") -> None: ...


class ImportPipeline:
    """
    Orchestrates parse, validate and commit for one run at a time.

    Not safe for overlapping runs; use one instance per concurrent import.
    """

    def __init__(
        self,
        store: CountryStore,
        options: Optional[ImportOptions] = None,
        progress_sink: Optional[ProgressSink] = None,
        notifier: Optional[ImportNotifier] = None,
        committer: Optional[BatchCommitter] = None,
    ):
        self.store = store
        self.options = options or ImportOptions()
        self.progress_sink = progress_sink
        self.notifier = notifier or LoggingNotifier()
        self.committer = committer or BatchCommitter(store)
        self._run: Optional[ImportRun] = None

    # ===================
    # STATE
    # ===================

    @property
    def run(self) -> Optional[ImportRun]:
        return self._run

    @property
    def state(self) -> ImportStage:
        if self._run is None:
            return ImportStage.IDLE
        return self._run.stage

    @property
    def progress(self) -> ImportProgress:
        if self._run is None:
            return ImportProgress()
        return self._run.progress

    # ===================
    # VALIDATION RUN
    # ===================

    def validate_file(
        self,
        content: bytes,
        file_name: str,
        file_format: Optional[FileFormat] = None,
        options: Optional[ImportOptions] = None,
        delimiter: str = ",",
    ) -> ImportRun:
        """
        Parse and classify a file, then wait for confirmation.

        Args:
            content: Raw file bytes
            file_name: Original file name (format detection, logging)
            file_format: Explicit format, overrides detection
            options: Options for this run (defaults to the pipeline's)
            delimiter: Field separator for delimited text

        Returns:
            The ImportRun, stage completed and awaiting confirmation

        Raises:
            InvalidImportStateError: If a run is already in progress
            ImportParseError: If the file cannot be parsed
            SnapshotFetchError: If existing countries cannot be loaded
        """
        if self._run is not None:
            raise InvalidImportStateError(self.state.value, "start a new import")

        run = ImportRun(options=options or self.options, file_name=file_name)
        self._run = run

        logger.info(
            "import_run_started",
            run_id=run.run_id,
            file_name=file_name,
            mode=run.options.mode.value
        )

        self._transition(ImportStage.PARSING, 10, "Parsing file content...")
        try:
            rows = parse_country_file(content, file_name, file_format, delimiter)
        except Exception as e:
            self._fail(e)
            raise

        self._transition(
            ImportStage.VALIDATING, 30, "Validating data...",
            total_records=len(rows)
        )
        try:
            existing = self.store.list_all()
        except Exception as e:
            fault = SnapshotFetchError(str(e))
            self._fail(fault)
            raise fault from e

        try:
            index = ExistingCountryIndex.from_countries(existing)
            run.records = classify_rows(rows, index, run.options)
        except Exception as e:
            self._fail(e)
            raise

        run.issues = [issue for record in run.records for issue in record.validation_errors]
        run.statistics = compute_statistics(run.records)
        run.awaiting_confirmation = True

        self._transition(
            ImportStage.COMPLETED, 100, "Validation completed",
            records_processed=len(run.records),
            total_records=len(run.records)
        )

        stats = run.statistics
        logger.info(
            "import_validation_complete",
            run_id=run.run_id,
            **stats.model_dump()
        )
        self._notify(
            "File Processed",
            f"Processed {stats.total_records} records. "
            f"{stats.valid_records} valid, {stats.invalid_records} with errors.",
            "warning" if stats.invalid_records else "info",
        )

        return run

    # ===================
    # COMMIT RUN
    # ===================

    def confirm(self, cancel_token: Optional[CancellationToken] = None) -> ImportReport:
        """
        Commit the validated run.

        Args:
            cancel_token: Token to use instead of the run's own one

        Returns:
            ImportReport with outcome completed, cancelled or error

        Raises:
            InvalidImportStateError: If no validated run awaits confirmation
            ImportCommitDisabledError: If the run is preview/validate only
        """
        run = self._run
        if run is None or not run.awaiting_confirmation:
            raise InvalidImportStateError(self.state.value, "confirm import")
        if not run.options.commits_enabled:
            raise ImportCommitDisabledError(run.options.mode.value)

        if cancel_token is not None:
            run.cancel_token = cancel_token
        run.awaiting_confirmation = False

        self._transition(ImportStage.PROCESSING, PROCESSING_START, "Processing records...")

        try:
            outcome = self.committer.commit(
                run.records,
                run.options,
                cancel_token=run.cancel_token,
                on_batch=self._on_batch,
            )
        except ImportAbortedError as e:
            self._fail(e)
            return run.to_report()
        except Exception as e:
            self._fail(e)
            raise

        run.commit_results = outcome.results
        run.statistics = compute_statistics(run.records, outcome.results)

        if outcome.cancelled:
            fault = ImportCancelledError(len(outcome.results), outcome.eligible_count)
            run.outcome = ImportOutcome.CANCELLED
            run.error = fault.message
            run.error_code = fault.code
            run.finished_at = datetime.now(timezone.utc)
            self._transition(
                ImportStage.CANCELLED, run.progress.percentage, "Import cancelled",
                records_processed=len(outcome.results),
                total_records=outcome.eligible_count
            )
            self._notify("Import Cancelled", fault.message, "warning")
            return run.to_report()

        self._transition(
            ImportStage.SAVING, 95, "Finalizing import...",
            records_processed=len(outcome.results),
            total_records=outcome.eligible_count
        )

        run.outcome = ImportOutcome.COMPLETED
        run.finished_at = datetime.now(timezone.utc)
        step = "Import completed successfully"
        if outcome.failed:
            step = f"Import completed with {outcome.failed} failed records"
        self._transition(
            ImportStage.COMPLETED, 100, step,
            records_processed=len(outcome.results),
            total_records=outcome.eligible_count
        )

        stats = run.statistics
        logger.info(
            "import_run_complete",
            run_id=run.run_id,
            succeeded=outcome.succeeded,
            failed=outcome.failed
        )
        self._notify(
            "Import Completed",
            f"Successfully imported {stats.processed_records} of {stats.total_records} records.",
            "warning" if outcome.failed else "success",
        )
        return run.to_report()

    def cancel(self) -> None:
        """Request cancellation. Takes effect at the next batch boundary."""
        if self._run is None:
            return
        logger.info("import_cancel_requested", run_id=self._run.run_id, stage=self.state.value)
        self._run.cancel_token.cancel()

    def reset(self) -> None:
        """Discard the current run and return to idle."""
        if self._run is not None:
            logger.info("import_run_reset", run_id=self._run.run_id, stage=self.state.value)
        self._run = None
        self._publish(ImportProgress())

    def report(self) -> ImportReport:
        """
        Report for the current run.

        Raises:
            InvalidImportStateError: If there is no run
        """
        if self._run is None:
            raise InvalidImportStateError(self.state.value, "build a report")
        return self._run.to_report()

    # ===================
    # HELPERS
    # ===================

    def _on_batch(self, batch: BatchReport) -> None:
        band = PROCESSING_END - PROCESSING_START
        percentage = PROCESSING_START + round(batch.records_committed / batch.records_total * band)
        self._publish(ImportProgress(
            stage=ImportStage.PROCESSING,
            percentage=percentage,
            current_step=f"Processed batch {batch.batch_number} of {batch.batch_count}",
            records_processed=batch.records_committed,
            total_records=batch.records_total,
        ))

    def _transition(
        self,
        stage: ImportStage,
        percentage: int,
        current_step: str,
        records_processed: int = 0,
        total_records: Optional[int] = None,
    ) -> None:
        current = self.state
        if stage not in STAGE_TRANSITIONS[current]:
            raise InvalidImportStateError(current.value, f"move to {stage.value}")

        if total_records is None:
            total_records = self.progress.total_records

        logger.debug("import_stage_changed", from_stage=current.value, to_stage=stage.value)
        self._publish(ImportProgress(
            stage=stage,
            percentage=percentage,
            current_step=current_step,
            records_processed=records_processed,
            total_records=total_records,
        ))

    def _publish(self, progress: ImportProgress) -> None:
        if self._run is not None:
            self._run.progress = progress
        if self.progress_sink is not None:
            self.progress_sink(progress)

    def _fail(self, error: Exception) -> None:
        run = self._run
        message = error.message if isinstance(error, AppError) else str(error)

        run.outcome = ImportOutcome.ERROR
        run.error = message
        run.error_code = error.code if isinstance(error, AppError) else type(error).__name__
        run.finished_at = datetime.now(timezone.utc)

        logger.error(
            "import_run_failed",
            run_id=run.run_id,
            stage=self.state.value,
            error=message,
            error_type=type(error).__name__
        )

        self._transition(ImportStage.ERROR, 0, "Import failed")
        self._notify("Import Failed", message, "error")

    def _notify(self, title: str, message: str, level: str) -> None:
        try:
            self.notifier.notify(title, message, level)
        except Exception as e:
            logger.warning("import_notification_failed", title=title, error=str(e))
