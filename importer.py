#!/usr/bin/env python3
"""
Bulk Registry Feed Importer

Loads Sunbiz-style fixed-width feed files into the registry tables:
- One IngestionRun per file, created before the first line is read
- Line-by-line streaming, so multi-hundred-thousand-line feeds never sit in memory
- Per-line parse and storage errors are counted and skipped
- Upserts by document number inside a savepoint, committed every batch_size lines
- Directory mode processes matching files sequentially, in name order

Usage:
    python importer.py data/cordata0.txt --category corporate
    python importer.py data/ --category fictitious --create-tables -v
"""

import sys
import argparse
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from config_manager import ConfigManager, ConfigurationError, IngestionConfig, get_config
from log_utils import setup_logging, sanitize_for_logging
from name_normalizer import normalize_business_name
from record_parser import FeedLayout, RecordParseError, build_layout, describe_filing_type, parse_line
from registry_db.connection import DatabaseSessionProvider, DatabaseSettings, create_retry_decorator
from registry_db.models import EntityCategory, IngestionRun, SyncStatus, SyncType
from registry_db.repositories import (
    EntityRecordRepository,
    IngestionRunRepository,
    RepositoryError,
    UpsertOutcome,
)

logger = logging.getLogger(__name__)


class IngestionError(Exception):
    """Raised when an ingestion run cannot be started or finalized

    Attributes:
        summary: Best-known state of the run, when one was started
    """
    def __init__(self, message: str, summary: Optional['IngestionRunSummary'] = None):
        self.summary = summary
        super().__init__(message)


@dataclass
class IngestionRunSummary:
    """Outcome of one file's ingestion run"""
    run_id: Optional[UUID]
    source_file: str
    category: EntityCategory
    sync_type: SyncType
    status: SyncStatus
    records_processed: int = 0
    records_added: int = 0
    records_updated: int = 0
    error_count: int = 0
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_run(cls, run: IngestionRun) -> 'IngestionRunSummary':
        return cls(
            run_id=run.id,
            source_file=run.source_file or "",
            category=EntityCategory(run.data_category),
            sync_type=SyncType(run.sync_type),
            status=SyncStatus(run.status),
            records_processed=run.records_processed,
            records_added=run.records_added,
            records_updated=run.records_updated,
            error_count=run.error_count,
            error_message=run.error_message,
            started_at=run.started_at,
            completed_at=run.completed_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": str(self.run_id) if self.run_id else None,
            "source_file": self.source_file,
            "category": self.category.value,
            "sync_type": self.sync_type.value,
            "status": self.status.value,
            "records_processed": self.records_processed,
            "records_added": self.records_added,
            "records_updated": self.records_updated,
            "error_count": self.error_count,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class _RunCounters:
    processed: int = 0
    added: int = 0
    updated: int = 0
    errors: int = 0

    def as_columns(self) -> Dict[str, int]:
        return {
            "records_processed": self.processed,
            "records_added": self.added,
            "records_updated": self.updated,
            "error_count": self.errors,
        }


@dataclass
class _RunProgress:
    counters: _RunCounters = field(default_factory=_RunCounters)
    committed: _RunCounters = field(default_factory=_RunCounters)


class _StoreLost(Exception):
    """The store connection failed past the retry budget."""


class RegistryImporter:
    """
    Imports registry feed files through an injected session provider.

    Usage:
        importer = RegistryImporter(db_provider, config)
        summaries = importer.ingest("data/", EntityCategory.CORPORATE)
    """

    def __init__(self, db_provider: DatabaseSessionProvider, config: Optional[Any] = None):
        """
        Args:
            db_provider: Initialized DatabaseSessionProvider
            config: Optional ConfigManager (ingestion and feeds sections)
        """
        self.db_provider = db_provider
        self.config = config
        self.settings: IngestionConfig = (
            config.ingestion if config is not None and hasattr(config, 'ingestion')
            else IngestionConfig()
        )
        self._cancel_event = threading.Event()
        retry = create_retry_decorator(
            max_attempts=self.settings.retry_attempts,
            min_wait=self.settings.retry_min_wait,
            max_wait=self.settings.retry_max_wait
        )
        self._upsert_with_retry = retry(self._upsert_in_savepoint)

    # ============================================
    # PUBLIC API
    # ============================================

    def cancel(self) -> None:
        """Request cancellation; honoured between lines of the current file."""
        self._cancel_event.set()

    def layout_for(self, category: Union[EntityCategory, str]) -> FeedLayout:
        """Feed layout for a category with config overrides applied."""
        category = EntityCategory(category)
        feed_config = None
        if self.config is not None and hasattr(self.config, 'feeds'):
            feed_config = self.config.feeds.get(category.value)
        return build_layout(category, feed_config)

    def discover_files(self, directory: Union[str, Path], category: Union[EntityCategory, str]) -> List[Path]:
        """Files in a directory matching the category's naming convention, sorted by name."""
        layout = self.layout_for(category)
        return sorted(
            (p for p in Path(directory).iterdir() if p.is_file() and layout.matches_file(p.name)),
            key=lambda p: p.name
        )

    def ingest(
        self,
        path: Union[str, Path],
        category: Union[EntityCategory, str],
        sync_type: Union[SyncType, str] = SyncType.FULL
    ) -> List[IngestionRunSummary]:
        """
        Ingest a feed file, or every matching file in a directory.

        A failure in one file never stops the files after it; a
        cancellation does.

        Args:
            path: Feed file or directory
            category: Registry category of the feed
            sync_type: full or incremental

        Returns:
            One IngestionRunSummary per file attempted
        """
        path = Path(path)
        category = EntityCategory(category)
        files = self.discover_files(path, category) if path.is_dir() else [path]
        if path.is_dir():
            logger.info("Found %d %s feed file(s) in %s", len(files), category.value, path)

        summaries: List[IngestionRunSummary] = []
        try:
            for file_path in files:
                if self._cancel_event.is_set():
                    logger.warning("Cancellation requested, skipping remaining files")
                    break
                try:
                    summaries.append(self._run_file(file_path, category, SyncType(sync_type)))
                except IngestionError as e:
                    logger.error("✗ %s", e)
                    if e.summary is not None:
                        summaries.append(e.summary)
        finally:
            self._cancel_event.clear()
        return summaries

    def ingest_file(
        self,
        path: Union[str, Path],
        category: Union[EntityCategory, str],
        sync_type: Union[SyncType, str] = SyncType.FULL
    ) -> IngestionRunSummary:
        """
        Ingest a single feed file as one run.

        Raises:
            IngestionError: If the run could not be started or finalized
        """
        try:
            return self._run_file(Path(path), EntityCategory(category), SyncType(sync_type))
        finally:
            self._cancel_event.clear()

    # ============================================
    # RUN LIFECYCLE
    # ============================================

    def _start_run(self, path: Path, category: EntityCategory, sync_type: SyncType) -> IngestionRun:
        try:
            file_size = path.stat().st_size
        except OSError:
            file_size = None

        try:
            with self.db_provider.get_unit_of_work() as uow:
                run = IngestionRunRepository(uow.session).start_run(
                    category, source_file=str(path), sync_type=sync_type, file_size_bytes=file_size
                )
                uow.commit()
                return run
        except SQLAlchemyError as e:
            raise IngestionError(f"Could not start ingestion run for {path}: {e}") from e

    def _finish_run(
        self,
        run: IngestionRun,
        status: SyncStatus,
        error_message: Optional[str],
        counters: _RunCounters
    ) -> IngestionRunSummary:
        try:
            with self.db_provider.get_unit_of_work() as uow:
                finished = IngestionRunRepository(uow.session).finish_run(
                    run.id, status, error_message, **counters.as_columns()
                )
                uow.commit()
                return IngestionRunSummary.from_run(finished)
        except (SQLAlchemyError, RepositoryError) as e:
            summary = IngestionRunSummary(
                run_id=run.id,
                source_file=run.source_file or "",
                category=EntityCategory(run.data_category),
                sync_type=SyncType(run.sync_type),
                status=SyncStatus.FAILED,
                error_message=f"Run could not be finalized: {e}",
                started_at=run.started_at,
                **counters.as_columns()
            )
            raise IngestionError(f"Could not finalize ingestion run {run.id}: {e}", summary) from e

    def _run_file(self, path: Path, category: EntityCategory, sync_type: SyncType) -> IngestionRunSummary:
        layout = self.layout_for(category)
        logger.info("Ingesting %s feed %s (%s)", category.value, path, sync_type.value)

        run = self._start_run(path, category, sync_type)

        progress = _RunProgress()
        try:
            with self.db_provider.get_unit_of_work() as uow:
                status, error_message = self._stream_file(uow, run.id, path, layout, progress)
        except _StoreLost as e:
            status = SyncStatus.FAILED
            error_message = f"Store unavailable: {e}"
        except KeyboardInterrupt:
            logger.warning("Interrupted, marking run %s cancelled", run.id)
            try:
                self._finish_run(run, SyncStatus.CANCELLED, "Interrupted by operator", progress.committed)
            except IngestionError as e:
                logger.error("✗ %s", e)
            raise
        except Exception as e:
            logger.exception("✗ Unexpected error ingesting %s", path)
            status = SyncStatus.FAILED
            error_message = f"Unexpected error: {e}"

        # Only durably committed counts are reported
        summary = self._finish_run(run, status, error_message, progress.committed)
        self._log_summary(summary)
        return summary

    def _stream_file(self, uow, run_id: UUID, path: Path, layout: FeedLayout,
                     progress: '_RunProgress'):
        """Read the file line by line inside one unit of work.

        Returns the terminal (status, error_message). Pending work is
        committed before returning.
        """
        session = uow.session
        records = EntityRecordRepository(session, layout.category)
        runs = IngestionRunRepository(session)
        counters = progress.counters
        status, error_message = SyncStatus.COMPLETED, None

        def commit_progress() -> None:
            try:
                runs.record_progress(run_id, **counters.as_columns())
                uow.commit()
            except SQLAlchemyError as e:
                raise _StoreLost(e) from e
            progress.committed = replace(counters)

        try:
            with open(path, 'r', encoding=self.settings.encoding, newline='') as handle:
                for line_number, line in enumerate(handle, start=1):
                    if self._cancel_event.is_set():
                        status, error_message = SyncStatus.CANCELLED, "Cancelled by request"
                        logger.warning("Cancellation requested at line %d of %s", line_number, path.name)
                        break
                    line = line.rstrip('\r\n')

                    self._process_line(records, layout, line, line_number, counters, path.name)

                    if counters.processed % self.settings.batch_size == 0:
                        commit_progress()
                    if counters.processed % self.settings.progress_interval == 0:
                        logger.info(
                            "  %s: %d lines (%d added, %d updated, %d errors)",
                            path.name, counters.processed, counters.added,
                            counters.updated, counters.errors
                        )
        except (OSError, UnicodeDecodeError) as e:
            logger.error("✗ Source file unreadable: %s: %s", path, e)
            status, error_message = SyncStatus.FAILED, f"Source file unreadable: {e}"

        commit_progress()
        return status, error_message

    # ============================================
    # PER-LINE PROCESSING
    # ============================================

    def _upsert_in_savepoint(self, records: EntityRecordRepository, record, normalized: str,
                             entity_type: Optional[str]) -> UpsertOutcome:
        with records.session.begin_nested():
            return records.upsert(record, normalized, entity_type)

    def _process_line(self, records: EntityRecordRepository, layout: FeedLayout, line: str,
                      line_number: int, counters: _RunCounters, source_name: str) -> None:
        counters.processed += 1
        try:
            record = parse_line(line, layout, line_number)
        except RecordParseError as e:
            self._count_error(counters, source_name, line_number, f"{e.code}: {e}")
            return
        except Exception as e:
            self._count_error(counters, source_name, line_number, f"unparseable record: {e!r}")
            return

        normalized = normalize_business_name(record.legal_name)
        entity_type = describe_filing_type(record.filing_type, layout.default_entity_type)

        try:
            outcome = self._upsert_with_retry(records, record, normalized, entity_type)
        except OperationalError as e:
            raise _StoreLost(e) from e
        except SQLAlchemyError as e:
            self._count_error(counters, source_name, line_number,
                              f"storage error for {record.document_number}: {e}")
            return

        if outcome is UpsertOutcome.ADDED:
            counters.added += 1
        else:
            counters.updated += 1

    def _count_error(self, counters: _RunCounters, source_name: str, line_number: int, message: str) -> None:
        counters.errors += 1
        limit = self.settings.max_logged_errors
        if counters.errors <= limit:
            logger.warning("  %s line %d: %s", source_name, line_number, sanitize_for_logging(message))
        if counters.errors == limit:
            logger.warning("  %s: further line errors will only be counted", source_name)

    def _log_summary(self, summary: IngestionRunSummary) -> None:
        mark = "✓" if summary.status is SyncStatus.COMPLETED else "✗"
        logger.info(
            "%s %s %s: %d processed, %d added, %d updated, %d errors",
            mark, Path(summary.source_file).name, summary.status.value,
            summary.records_processed, summary.records_added,
            summary.records_updated, summary.error_count
        )
        if summary.error_message:
            logger.info("  %s", summary.error_message)


# ============================================
# CLI
# ============================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import registry bulk feed files")
    parser.add_argument("paths", nargs="+", help="Feed file(s) or directory")
    parser.add_argument("--category", "-c", required=True,
                        choices=[c.value for c in EntityCategory], help="Feed category")
    parser.add_argument("--sync-type", default=SyncType.FULL.value,
                        choices=[t.value for t in SyncType], help="Kind of run to record")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    args = parser.parse_args(argv)

    try:
        config = ConfigManager(args.config) if args.config else get_config()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error("✗ Invalid configuration: %s", e)
        return 2

    setup_logging(config.logging, verbose=args.verbose)

    logger.info("=" * 50)
    logger.info("Registry feed import (%s)", args.category)
    logger.info("=" * 50)

    db_provider = DatabaseSessionProvider(DatabaseSettings.from_config(config.database))
    summaries: List[IngestionRunSummary] = []
    try:
        db_provider.init()
        if args.create_tables:
            db_provider.create_tables()

        importer = RegistryImporter(db_provider, config)
        for path in args.paths:
            summaries.extend(importer.ingest(path, args.category, args.sync_type))
    except KeyboardInterrupt:
        logger.warning("✗ Import interrupted")
        return 130
    except SQLAlchemyError as e:
        logger.error("✗ Database unavailable: %s", e)
        return 1
    finally:
        db_provider.close()

    failed = [s for s in summaries if s.status is not SyncStatus.COMPLETED]
    logger.info("=" * 50)
    logger.info("%d file(s) imported, %d not completed", len(summaries) - len(failed), len(failed))
    logger.info("=" * 50)
    return 1 if failed or not summaries else 0


if __name__ == "__main__":
    sys.exit(main())
