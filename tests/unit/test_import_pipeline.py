"""
Unit tests for the import pipeline controller.

Run: pytest tests/unit/test_import_pipeline.py -v
"""

import json

import pytest

from exceptions import (
    ImportCommitDisabledError,
    ImportParseError,
    InvalidImportStateError,
    SnapshotFetchError,
)
from models.country_import import (
    CancellationToken,
    ImportMode,
    ImportOptions,
    ImportOutcome,
    ImportStage,
)
from services.batch_committer import BatchCommitter
from services.import_pipeline import ImportPipeline
from tests.factories import ImportRowFactory


def make_pipeline(store, progress_recorder=None, notifier=None, **options) -> ImportPipeline:
    return ImportPipeline(
        store,
        options=ImportOptions(**options),
        progress_sink=progress_recorder,
        notifier=notifier,
        committer=BatchCommitter(store, pause_seconds=0),
    )


def csv_file(*rows: dict) -> bytes:
    return ImportRowFactory.csv_bytes(list(rows))


@pytest.fixture
def us_and_canada():
    return csv_file(
        ImportRowFactory.values(code="US", name="United States"),
        ImportRowFactory.values(code="CA", name="Canada"),
    )


@pytest.fixture
def seven_rows():
    return csv_file(*[ImportRowFactory.values() for _ in range(7)])


# ===================
# VALIDATION RUN
# ===================

class TestValidateFile:
    """Tests for ImportPipeline.validate_file()"""

    def test_starts_idle(self, empty_store):
        pipeline = make_pipeline(empty_store)

        assert pipeline.state == ImportStage.IDLE
        assert pipeline.run is None
        assert pipeline.progress.percentage == 0

    def test_validation_completes_and_waits(self, empty_store, us_and_canada, progress_recorder):
        pipeline = make_pipeline(empty_store, progress_recorder)

        run = pipeline.validate_file(us_and_canada, "countries.csv")

        assert pipeline.state == ImportStage.COMPLETED
        assert run.awaiting_confirmation is True
        assert run.statistics.total_records == 2
        assert run.statistics.new_records == 2
        assert progress_recorder.stages == ["parsing", "validating", "completed"]
        assert [p.percentage for p in progress_recorder.updates] == [10, 30, 100]
        assert progress_recorder.updates[-1].current_step == "Validation completed"

    def test_validation_never_writes(self, store_with_us, us_and_canada):
        pipeline = make_pipeline(store_with_us)

        pipeline.validate_file(us_and_canada, "countries.csv")

        assert store_with_us.write_count == 0

    def test_issues_are_collected(self, empty_store):
        content = csv_file(
            ImportRowFactory.values(code="IT", name="Italy"),
            ImportRowFactory.values(code="FRA", name="France"),
        )
        pipeline = make_pipeline(empty_store)

        run = pipeline.validate_file(content, "countries.csv")

        assert run.statistics.invalid_records == 1
        assert run.issues
        assert all(issue.row == 3 for issue in run.issues)

    def test_notifies_file_processed(self, empty_store, us_and_canada, notifier):
        pipeline = make_pipeline(empty_store, notifier=notifier)

        pipeline.validate_file(us_and_canada, "countries.csv")

        title, message, level = notifier.messages[-1]
        assert title == "File Processed"
        assert "Processed 2 records" in message
        assert level == "info"

    def test_notifier_failure_is_ignored(self, empty_store, us_and_canada):
        class BrokenNotifier:
            def notify(self, title, message, level="info"):
                raise RuntimeError("telegram down")

        pipeline = make_pipeline(empty_store, notifier=BrokenNotifier())

        run = pipeline.validate_file(us_and_canada, "countries.csv")

        assert run.awaiting_confirmation is True

    def test_per_run_options_override(self, store_with_us, us_and_canada):
        pipeline = make_pipeline(store_with_us)

        run = pipeline.validate_file(
            us_and_canada, "countries.csv",
            options=ImportOptions(mode=ImportMode.CREATE_ONLY)
        )

        assert run.options.mode == ImportMode.CREATE_ONLY
        assert run.statistics.invalid_records == 1

    def test_new_run_requires_reset(self, empty_store, us_and_canada):
        pipeline = make_pipeline(empty_store)
        pipeline.validate_file(us_and_canada, "countries.csv")

        with pytest.raises(InvalidImportStateError):
            pipeline.validate_file(us_and_canada, "countries.csv")

        pipeline.reset()
        run = pipeline.validate_file(us_and_canada, "countries.csv")

        assert run.awaiting_confirmation is True


class TestValidateFileFaults:
    """Run-level faults during validation."""

    def test_parse_fault(self, empty_store, progress_recorder, notifier):
        pipeline = make_pipeline(empty_store, progress_recorder, notifier)

        with pytest.raises(ImportParseError):
            pipeline.validate_file(b"name,code\n", "countries.csv")

        assert pipeline.state == ImportStage.ERROR
        assert progress_recorder.stages == ["parsing", "error"]
        assert notifier.messages[-1][0] == "Import Failed"

        report = pipeline.report()
        assert report.outcome == ImportOutcome.ERROR
        assert report.error_code == "IMPORT_PARSE_ERROR"

    def test_snapshot_fault(self, empty_store, us_and_canada):
        empty_store.list_error = RuntimeError("connection refused")
        pipeline = make_pipeline(empty_store)

        with pytest.raises(SnapshotFetchError) as exc_info:
            pipeline.validate_file(us_and_canada, "countries.csv")

        assert "connection refused" in exc_info.value.message
        assert pipeline.state == ImportStage.ERROR
        assert pipeline.report().error_code == "COUNTRY_STORE_ERROR"

    def test_unsupported_file_type(self, empty_store):
        pipeline = make_pipeline(empty_store)

        with pytest.raises(ImportParseError):
            pipeline.validate_file(b"%PDF-1.4", "countries.pdf")

        assert pipeline.state == ImportStage.ERROR


# ===================
# COMMIT RUN
# ===================

class TestConfirm:
    """Tests for ImportPipeline.confirm()"""

    def test_create_only_skips_existing(self, store_with_us, us_and_canada, notifier):
        pipeline = make_pipeline(store_with_us, notifier=notifier, mode=ImportMode.CREATE_ONLY)
        run = pipeline.validate_file(us_and_canada, "countries.csv")

        us = run.records[0]
        assert us.validation_errors[0].message == "Country code already exists (create-only mode)"

        report = pipeline.confirm()

        assert store_with_us.calls == [("create", "CA")]
        assert report.outcome == ImportOutcome.COMPLETED
        assert report.statistics.processed_records == 1
        assert report.statistics.skipped_records == 1
        assert pipeline.state == ImportStage.COMPLETED
        assert notifier.messages[-1][0] == "Import Completed"

    def test_create_only_existing_code_ignores_partial_gate(self, store_with_us, us_and_canada):
        pipeline = make_pipeline(
            store_with_us, mode=ImportMode.CREATE_ONLY, allow_partial_import=False
        )
        run = pipeline.validate_file(us_and_canada, "countries.csv")

        assert run.statistics.new_records == 1

        report = pipeline.confirm()

        assert report.outcome == ImportOutcome.COMPLETED
        assert store_with_us.calls == [("create", "CA")]

    def test_progress_through_commit(self, empty_store, seven_rows, progress_recorder):
        pipeline = make_pipeline(empty_store, progress_recorder, batch_size=3)
        pipeline.validate_file(seven_rows, "countries.csv")
        progress_recorder.updates.clear()

        pipeline.confirm()

        stages = progress_recorder.stages
        assert stages[0] == "processing"
        assert stages[-2:] == ["saving", "completed"]

        processing = [p for p in progress_recorder.updates if p.stage == ImportStage.PROCESSING]
        percentages = [p.percentage for p in processing]
        assert percentages == sorted(percentages)
        assert all(10 <= p <= 90 for p in percentages)
        assert processing[-1].percentage == 90
        assert processing[-1].current_step == "Processed batch 3 of 3"
        assert progress_recorder.updates[-1].percentage == 100

    def test_row_failure_completes_with_warning(self, empty_store, seven_rows, notifier):
        pipeline = make_pipeline(empty_store, notifier=notifier, batch_size=3)
        run = pipeline.validate_file(seven_rows, "countries.csv")
        empty_store.fail_codes.add(run.records[4].code)

        report = pipeline.confirm()

        assert report.outcome == ImportOutcome.COMPLETED
        assert report.statistics.processed_records == 6
        assert len(report.commit_results) == 7
        assert pipeline.progress.current_step == "Import completed with 1 failed records"
        assert notifier.messages[-1][2] == "warning"

    def test_cancel_after_first_batch(self, empty_store, seven_rows, notifier):
        token = CancellationToken()

        def cancel_after_first_batch(progress):
            if progress.stage == ImportStage.PROCESSING and progress.records_processed >= 3:
                token.cancel()

        pipeline = make_pipeline(empty_store, cancel_after_first_batch, notifier, batch_size=3)
        pipeline.validate_file(seven_rows, "countries.csv")

        report = pipeline.confirm(cancel_token=token)

        assert report.outcome == ImportOutcome.CANCELLED
        assert len(report.commit_results) == 3
        assert empty_store.write_count == 3
        assert report.error == "Import cancelled after 3 of 7 records"
        assert report.error_code == "IMPORT_CANCELLED"
        assert pipeline.state == ImportStage.CANCELLED
        assert notifier.messages[-1][0] == "Import Cancelled"

    def test_cancel_via_pipeline(self, empty_store, seven_rows):
        pipeline = make_pipeline(empty_store, batch_size=3)
        pipeline.validate_file(seven_rows, "countries.csv")

        pipeline.cancel()
        report = pipeline.confirm()

        assert report.outcome == ImportOutcome.CANCELLED
        assert empty_store.write_count == 0

    def test_partial_disabled_aborts(self, empty_store):
        content = csv_file(
            ImportRowFactory.values(code="IT", name="Italy"),
            ImportRowFactory.values(code="FRA", name="France"),
        )
        pipeline = make_pipeline(empty_store, allow_partial_import=False)
        pipeline.validate_file(content, "countries.csv")

        report = pipeline.confirm()

        assert report.outcome == ImportOutcome.ERROR
        assert report.error_code == "IMPORT_ABORTED"
        assert empty_store.write_count == 0
        assert pipeline.state == ImportStage.ERROR

    def test_nothing_to_import(self, empty_store):
        content = csv_file(ImportRowFactory.values(code="FRA", name="France"))
        pipeline = make_pipeline(empty_store)
        pipeline.validate_file(content, "countries.csv")

        report = pipeline.confirm()

        assert report.outcome == ImportOutcome.ERROR
        assert report.error == "No valid records to import"


class TestConfirmGuards:
    """confirm() only runs from a validated, committable run."""

    def test_confirm_without_validation(self, empty_store):
        pipeline = make_pipeline(empty_store)

        with pytest.raises(InvalidImportStateError):
            pipeline.confirm()

    def test_confirm_twice(self, empty_store, us_and_canada):
        pipeline = make_pipeline(empty_store)
        pipeline.validate_file(us_and_canada, "countries.csv")
        pipeline.confirm()

        with pytest.raises(InvalidImportStateError):
            pipeline.confirm()

        assert empty_store.write_count == 2

    def test_confirm_after_parse_fault(self, empty_store):
        pipeline = make_pipeline(empty_store)
        with pytest.raises(ImportParseError):
            pipeline.validate_file(b"", "countries.csv")

        with pytest.raises(InvalidImportStateError):
            pipeline.confirm()

    @pytest.mark.parametrize("options", [
        {"validate_only": True},
        {"mode": ImportMode.PREVIEW_ONLY},
    ])
    def test_validation_only_runs_cannot_commit(self, empty_store, us_and_canada, options):
        pipeline = make_pipeline(empty_store, **options)
        run = pipeline.validate_file(us_and_canada, "countries.csv")

        with pytest.raises(ImportCommitDisabledError):
            pipeline.confirm()

        assert run.awaiting_confirmation is True
        assert empty_store.write_count == 0


# ===================
# RESET AND REPORT
# ===================

class TestResetAndReport:
    """Tests for reset() and report()"""

    def test_reset_returns_to_idle(self, empty_store, us_and_canada, progress_recorder):
        pipeline = make_pipeline(empty_store, progress_recorder)
        pipeline.validate_file(us_and_canada, "countries.csv")

        pipeline.reset()

        assert pipeline.state == ImportStage.IDLE
        assert pipeline.run is None
        assert progress_recorder.updates[-1].stage == ImportStage.IDLE
        assert progress_recorder.updates[-1].current_step == "Ready to import"

    def test_report_without_run(self, empty_store):
        pipeline = make_pipeline(empty_store)

        with pytest.raises(InvalidImportStateError):
            pipeline.report()

    def test_report_is_json_serializable(self, empty_store, us_and_canada):
        pipeline = make_pipeline(empty_store)
        pipeline.validate_file(us_and_canada, "countries.csv")
        report = pipeline.confirm()

        data = json.loads(json.dumps(report.to_dict()))

        assert data["outcome"] == "completed"
        assert data["statistics"]["processed_records"] == 2
        assert [r["code"] for r in data["commit_results"]] == ["US", "CA"]
        assert all(r["action"] == "create" for r in data["commit_results"])
