"""
Tests for the bulk feed importer: run accounting, idempotence, error
isolation, directory mode, cancellation and the CLI.
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError

sys.path.insert(0, str(Path(__file__).parent.parent))

import importer as importer_module
from config_manager import IngestionConfig
from importer import IngestionError, RegistryImporter, main
from registry_db.models import CorporateEntity, EntityCategory, SyncStatus, SyncType
from registry_db.repositories import EntityRecordRepository, IngestionRunRepository, RunStateError


def make_config(**ingestion):
    settings = dict(batch_size=2, retry_attempts=1, retry_min_wait=0, retry_max_wait=0)
    settings.update(ingestion)
    return SimpleNamespace(ingestion=IngestionConfig(**settings), feeds={})


def stored_runs(db_provider):
    with db_provider.get_unit_of_work() as uow:
        return IngestionRunRepository(uow.session).list_recent(limit=100)


def stored_count(db_provider, category=EntityCategory.CORPORATE):
    with db_provider.get_unit_of_work() as uow:
        return EntityRecordRepository(uow.session, category).count()


@pytest.fixture
def importer(db_provider):
    return RegistryImporter(db_provider, make_config())


@pytest.fixture
def corporate_feed(corporate_line, write_feed):
    """Write a corporate feed with `count` valid lines."""
    def build(filename="cordata0.txt", count=3, directory=None):
        lines = [
            corporate_line(f"L{i:011d}", f"Sunrise Consulting {i} LLC", filing_type="FLAL",
                           filing_date="20190315")
            for i in range(count)
        ]
        return write_feed(filename, lines, directory)
    return build


class TestSingleFile:
    """One file is one ingestion run."""

    def test_ingest_file(self, importer, db_provider, corporate_feed):
        path = corporate_feed(count=3)
        summary = importer.ingest_file(path, EntityCategory.CORPORATE)

        assert summary.status is SyncStatus.COMPLETED
        assert summary.records_processed == 3
        assert summary.records_added == 3
        assert summary.records_updated == 0
        assert summary.error_count == 0
        assert summary.error_message is None
        assert summary.completed_at is not None
        assert summary.source_file == str(path)

        runs = stored_runs(db_provider)
        assert len(runs) == 1
        assert runs[0].id == summary.run_id
        assert runs[0].status == "completed"
        assert runs[0].records_added == 3
        assert runs[0].file_size_bytes == path.stat().st_size

        with db_provider.get_unit_of_work() as uow:
            stored = uow.session.execute(
                select(CorporateEntity).where(CorporateEntity.document_number == "L00000000001")
            ).scalar_one()
            assert stored.normalized_name == "sunrise consulting 1"
            assert stored.entity_type == "LLC"

    def test_reingest_is_idempotent(self, importer, db_provider, corporate_feed):
        path = corporate_feed(count=3)
        importer.ingest_file(path, "corporate")
        second = importer.ingest_file(path, "corporate", SyncType.INCREMENTAL)

        assert second.records_added == 0
        assert second.records_updated == 3
        assert second.sync_type is SyncType.INCREMENTAL
        assert stored_count(db_provider) == 3
        assert len(stored_runs(db_provider)) == 2

    def test_malformed_line_counted_and_skipped(self, importer, db_provider, corporate_line, write_feed):
        path = write_feed("cordata0.txt", [
            corporate_line("P00000000001", "Acme One"),
            corporate_line("P00000000002", "Acme Two", length=900),
            corporate_line("P00000000003", "Acme Three"),
        ])
        summary = importer.ingest_file(path, "corporate")

        assert summary.status is SyncStatus.COMPLETED
        assert summary.records_processed == 3
        assert summary.records_added == 2
        assert summary.error_count == 1
        assert stored_count(db_provider) == 2

    def test_blank_lines_counted_as_errors(self, importer, corporate_line, write_feed):
        path = write_feed("cordata0.txt", [
            corporate_line("P00000000001", "Acme One"),
            "",
            "      ",
            corporate_line("P00000000002", "Acme Two"),
        ])
        summary = importer.ingest_file(path, "corporate")
        assert summary.status is SyncStatus.COMPLETED
        assert summary.records_processed == 4
        assert summary.records_added == 2
        assert summary.error_count == 2

    def test_non_ascii_digits_do_not_abort(self, importer, db_provider, fictitious_line, write_feed):
        path = write_feed("ficdata.txt", [
            fictitious_line("G19000000001", "Sunny Side Cafe", party_count="000001"),
            fictitious_line("G19000000002", "Moonlight Diner", party_count="²"),
            fictitious_line("G19000000003", "Harbor Bakery", party_count="000003"),
        ])
        summary = importer.ingest_file(path, "fictitious")

        assert summary.status is SyncStatus.COMPLETED
        assert summary.records_processed == 3
        assert summary.records_added == 3
        assert summary.error_count == 0
        assert stored_runs(db_provider)[0].completed_at is not None

    def test_unexpected_parse_failure_counted(self, importer, corporate_line, write_feed):
        path = write_feed("cordata0.txt", [
            corporate_line("P00000000001", "Acme One"),
            corporate_line("P00000000002", "Acme Two"),
            corporate_line("P00000000003", "Acme Three"),
        ])
        original = importer_module.parse_line

        def parse(line, layout, line_number=None):
            if line_number == 2:
                raise TypeError("unexpected field value")
            return original(line, layout, line_number)

        with patch.object(importer_module, "parse_line", side_effect=parse):
            summary = importer.ingest_file(path, "corporate")

        assert summary.status is SyncStatus.COMPLETED
        assert summary.records_processed == 3
        assert summary.records_added == 2
        assert summary.error_count == 1

    def test_unexpected_error_fails_run(self, importer, db_provider, corporate_feed):
        with patch.object(IngestionRunRepository, "record_progress",
                          side_effect=RuntimeError("progress write failed")):
            summary = importer.ingest_file(corporate_feed(count=3), "corporate")

        assert summary.status is SyncStatus.FAILED
        assert "progress write failed" in summary.error_message
        run = stored_runs(db_provider)[0]
        assert run.status == "failed"
        assert run.completed_at is not None

    def test_counters_add_up(self, importer, corporate_line, write_feed):
        lines = [corporate_line(f"P{i:011d}", f"Acme {i}") for i in range(4)]
        lines.insert(2, "garbage")
        summary = importer.ingest_file(write_feed("cordata0.txt", lines), "corporate")
        assert summary.records_processed == (
            summary.records_added + summary.records_updated + summary.error_count
        )

    def test_progress_committed_every_batch(self, importer, corporate_feed):
        original = IngestionRunRepository.record_progress
        with patch.object(IngestionRunRepository, "record_progress", autospec=True,
                          side_effect=original) as spy:
            importer.ingest_file(corporate_feed(count=5), "corporate")
        processed = [call.kwargs["records_processed"] for call in spy.call_args_list]
        assert processed == [2, 4, 5]

    def test_missing_file_fails_run(self, importer, db_provider, tmp_path):
        summary = importer.ingest_file(tmp_path / "cordata9.txt", "corporate")

        assert summary.status is SyncStatus.FAILED
        assert "unreadable" in summary.error_message
        assert summary.records_processed == 0
        assert stored_runs(db_provider)[0].completed_at is not None

    def test_storage_error_counted(self, importer, db_provider, corporate_feed):
        original = EntityRecordRepository.upsert

        def reject_second(repo, record, *args, **kwargs):
            if record.document_number == "L00000000001":
                raise IntegrityError("INSERT", {}, Exception("constraint failed"))
            return original(repo, record, *args, **kwargs)

        with patch.object(EntityRecordRepository, "upsert", autospec=True, side_effect=reject_second):
            summary = importer.ingest_file(corporate_feed(count=3), "corporate")

        assert summary.status is SyncStatus.COMPLETED
        assert summary.error_count == 1
        assert summary.records_added == 2
        assert stored_count(db_provider) == 2


class TestStoreLoss:
    """Connection loss past the retry budget fails the run."""

    def test_store_lost_mid_file(self, importer, db_provider, corporate_feed):
        original = EntityRecordRepository.upsert
        calls = []

        def flaky(repo, *args, **kwargs):
            calls.append(1)
            if len(calls) > 3:
                raise OperationalError("INSERT", {}, Exception("server closed the connection"))
            return original(repo, *args, **kwargs)

        with patch.object(EntityRecordRepository, "upsert", autospec=True, side_effect=flaky):
            summary = importer.ingest_file(corporate_feed(count=5), "corporate")

        assert summary.status is SyncStatus.FAILED
        assert summary.error_message.startswith("Store unavailable")
        # Only the first committed batch counts
        assert summary.records_processed == 2
        assert summary.records_added == 2
        assert stored_count(db_provider) == 2

        run = stored_runs(db_provider)[0]
        assert run.status == "failed"
        assert run.records_processed == 2

    def test_operational_error_retried(self, db_provider, corporate_feed):
        importer = RegistryImporter(db_provider, make_config(retry_attempts=3))
        original = EntityRecordRepository.upsert
        calls = []

        def fail_once(repo, *args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("INSERT", {}, Exception("database is locked"))
            return original(repo, *args, **kwargs)

        with patch.object(EntityRecordRepository, "upsert", autospec=True, side_effect=fail_once):
            summary = importer.ingest_file(corporate_feed(count=2), "corporate")

        assert summary.status is SyncStatus.COMPLETED
        assert summary.records_added == 2
        assert len(calls) == 3

    def test_finalize_failure_raises_with_summary(self, importer, corporate_feed):
        failure = RunStateError("run already finished")
        with patch.object(IngestionRunRepository, "finish_run", side_effect=failure):
            with pytest.raises(IngestionError) as exc_info:
                importer.ingest_file(corporate_feed(count=3), "corporate")

        summary = exc_info.value.summary
        assert summary.status is SyncStatus.FAILED
        assert summary.records_processed == 3
        assert "could not be finalized" in summary.error_message


class TestDirectoryMode:
    """Directory ingestion processes matching files in name order."""

    def test_discover_files(self, importer, tmp_path, corporate_feed, write_feed):
        corporate_feed("cordata1.txt", count=1)
        corporate_feed("cordata0.txt", count=1)
        write_feed("cordata.txt", [])
        write_feed("notes.txt", [])
        (tmp_path / "cordata2.txt").mkdir()

        names = [p.name for p in importer.discover_files(tmp_path, "corporate")]
        assert names == ["cordata0.txt", "cordata1.txt"]

    def test_ingest_directory(self, importer, db_provider, tmp_path, corporate_feed):
        corporate_feed("cordata1.txt", count=2)
        corporate_feed("cordata0.txt", count=3)

        summaries = importer.ingest(tmp_path, EntityCategory.CORPORATE)

        assert [Path(s.source_file).name for s in summaries] == ["cordata0.txt", "cordata1.txt"]
        assert all(s.status is SyncStatus.COMPLETED for s in summaries)
        assert summaries[1].records_updated == 2
        assert len(stored_runs(db_provider)) == 2

    def test_bad_file_does_not_stop_the_rest(self, db_provider, tmp_path, corporate_feed):
        importer = RegistryImporter(db_provider, make_config(encoding="utf-8"))
        (tmp_path / "cordata0.txt").write_bytes(b"\xff\xfe\xfa not utf-8\n")
        corporate_feed("cordata1.txt", count=2)

        summaries = importer.ingest(tmp_path, "corporate")

        assert [s.status for s in summaries] == [SyncStatus.FAILED, SyncStatus.COMPLETED]
        assert "unreadable" in summaries[0].error_message
        assert summaries[1].records_added == 2

    def test_finalize_failure_does_not_stop_the_rest(self, importer, tmp_path, corporate_feed):
        corporate_feed("cordata0.txt", count=1)
        corporate_feed("cordata1.txt", count=1)
        original = IngestionRunRepository.finish_run
        calls = []

        def fail_first(repo, *args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise RunStateError("cannot finalize")
            return original(repo, *args, **kwargs)

        with patch.object(IngestionRunRepository, "finish_run", autospec=True, side_effect=fail_first):
            summaries = importer.ingest(tmp_path, "corporate")

        assert [s.status for s in summaries] == [SyncStatus.FAILED, SyncStatus.COMPLETED]


class TestCancellation:
    """cancel() stops between lines and marks the run cancelled."""

    def cancel_after(self, importer, lines):
        original = importer._process_line

        def process(*args):
            original(*args)
            if args[4].processed == lines:
                importer.cancel()

        importer._process_line = process

    def test_cancel_mid_file(self, importer, db_provider, corporate_feed):
        self.cancel_after(importer, 3)
        summary = importer.ingest_file(corporate_feed(count=6), "corporate")

        assert summary.status is SyncStatus.CANCELLED
        assert summary.records_processed == 3
        assert summary.completed_at is not None
        assert stored_count(db_provider) == 3
        assert stored_runs(db_provider)[0].status == "cancelled"

    def test_cancel_skips_remaining_files(self, importer, tmp_path, corporate_feed):
        corporate_feed("cordata0.txt", count=3)
        corporate_feed("cordata1.txt", count=3)
        self.cancel_after(importer, 1)

        summaries = importer.ingest(tmp_path, "corporate")
        assert len(summaries) == 1
        assert summaries[0].status is SyncStatus.CANCELLED

    def test_cancel_flag_cleared_after_run(self, importer, corporate_feed):
        importer.cancel()
        first = importer.ingest_file(corporate_feed("cordata0.txt", count=2), "corporate")
        second = importer.ingest_file(corporate_feed("cordata1.txt", count=2), "corporate")

        assert first.status is SyncStatus.CANCELLED
        assert first.records_processed == 0
        assert second.status is SyncStatus.COMPLETED

    def test_keyboard_interrupt(self, importer, db_provider, corporate_feed):
        original = importer._process_line

        def process(*args):
            if args[4].processed == 3:
                raise KeyboardInterrupt
            original(*args)

        importer._process_line = process
        with pytest.raises(KeyboardInterrupt):
            importer.ingest_file(corporate_feed(count=5), "corporate")

        run = stored_runs(db_provider)[0]
        assert run.status == "cancelled"
        assert run.records_processed == 2
        assert run.completed_at is not None

    def test_keyboard_interrupt_survives_finalize_failure(self, importer, corporate_feed):
        def process(*args):
            raise KeyboardInterrupt

        importer._process_line = process
        with patch.object(IngestionRunRepository, "finish_run",
                          side_effect=RunStateError("cannot finalize")):
            with pytest.raises(KeyboardInterrupt):
                importer.ingest_file(corporate_feed(count=2), "corporate")


class TestCli:
    """importer.main exit codes."""

    @pytest.fixture
    def cli_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setattr(importer_module, "setup_logging", lambda *args, **kwargs: None)
        db_path = tmp_path / "registry.db"
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            f"database:\n  url: sqlite:///{db_path.as_posix()}\n"
            "ingestion:\n  retry_min_wait: 0\n  retry_max_wait: 0\n"
            "logging:\n  file: null\n  console: false\n",
            encoding="utf-8",
        )
        return str(config_path)

    def test_success(self, cli_config, corporate_feed, tmp_path):
        feed_dir = tmp_path / "feeds"
        corporate_feed("cordata0.txt", count=2, directory=feed_dir)
        code = main([str(feed_dir), "--category", "corporate", "--config", cli_config, "--create-tables"])
        assert code == 0

    def test_failed_run(self, cli_config, tmp_path):
        code = main([str(tmp_path / "cordata0.txt"), "-c", "corporate",
                     "--config", cli_config, "--create-tables"])
        assert code == 1

    def test_empty_directory(self, cli_config, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        assert main([str(empty), "-c", "fictitious", "--config", cli_config, "--create-tables"]) == 1

    def test_invalid_config(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("ingestion:\n  batch_size: 0\n", encoding="utf-8")
        assert main([str(tmp_path), "-c", "corporate", "--config", str(config_path)]) == 2
