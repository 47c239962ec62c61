"""
Repository Pattern for Registry Database Operations

Provides clean data access layer with proper typing and error handling.
Implements the Repository pattern for separation of concerns.
"""

import logging
from enum import Enum as PyEnum
from typing import List, Optional, Dict, Any, Union
from uuid import UUID
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from registry_db.models import (
    EntityCategory,
    EntityRecordMixin,
    IngestionRun,
    MODEL_BY_CATEGORY,
    SyncStatus,
    SyncType,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class EntityNotFoundError(RepositoryError):
    """Raised when an entity is not found."""
    pass


class RunStateError(RepositoryError):
    """Raised on an illegal ingestion run transition or a decreasing counter."""
    pass


class UpsertOutcome(str, PyEnum):
    """Whether an upsert inserted a new row or overwrote an existing one"""
    ADDED = "added"
    UPDATED = "updated"


# Columns copied from a parsed record on every upsert
_RECORD_FIELDS = (
    'legal_name',
    'status',
    'status_code',
    'filing_type',
    'principal_address',
    'mailing_address',
    'registered_agent_name',
    'county',
    'party_count',
    'filing_date',
    'effective_date',
    'cancellation_date',
    'expiration_date',
)


# ============================================
# ENTITY RECORD REPOSITORY
# ============================================

class EntityRecordRepository:
    """Repository for one registry category (corporate, fictitious, partnership)."""

    def __init__(self, session: Session, category: Union[EntityCategory, str]):
        self.session = session
        self.category = EntityCategory(category)
        self.model = MODEL_BY_CATEGORY[self.category]

    def get_by_document_number(self, document_number: str) -> Optional[EntityRecordMixin]:
        """Get a record by its registry document number."""
        query = select(self.model).where(self.model.document_number == document_number)
        result = self.session.execute(query)
        return result.scalar_one_or_none()

    def upsert(
        self,
        record: Any,
        normalized_name: str,
        entity_type: Optional[str] = None
    ) -> UpsertOutcome:
        """
        Insert or overwrite a record keyed by document number.

        Every field is replaced and last_updated is refreshed; nothing is
        ever deleted.

        Args:
            record: ParsedRecord from the feed parser
            normalized_name: Normalized form of record.legal_name
            entity_type: Human-readable entity type label

        Returns:
            UpsertOutcome.ADDED or UpsertOutcome.UPDATED
        """
        entity = self.get_by_document_number(record.document_number)
        outcome = UpsertOutcome.UPDATED
        if entity is None:
            entity = self.model(document_number=record.document_number)
            self.session.add(entity)
            outcome = UpsertOutcome.ADDED

        for key in _RECORD_FIELDS:
            setattr(entity, key, getattr(record, key))
        entity.normalized_name = normalized_name
        entity.entity_type = entity_type
        entity.last_updated = datetime.now(timezone.utc)

        self.session.flush()
        return outcome

    def search_by_normalized_name(self, normalized_key: str, limit: int = 30) -> List[EntityRecordMixin]:
        """
        Find records whose normalized name contains the key.

        An empty key only matches records whose stored key is empty too.

        Args:
            normalized_key: Output of normalize_business_name
            limit: Maximum rows to return

        Returns:
            Records, most recent filing first (missing dates last)
        """
        if normalized_key:
            condition = self.model.normalized_name.contains(normalized_key, autoescape=True)
        else:
            condition = self.model.normalized_name == ""

        query = select(self.model).where(condition).order_by(
            self.model.filing_date.desc().nulls_last(),
            self.model.last_updated.desc()
        ).limit(limit)

        result = self.session.execute(query)
        return list(result.scalars().all())

    def count(self) -> int:
        """Number of records stored for this category."""
        result = self.session.execute(select(func.count(self.model.id)))
        return result.scalar_one()


# ============================================
# INGESTION RUN REPOSITORY
# ============================================

_COUNTER_FIELDS = ('records_processed', 'records_added', 'records_updated', 'error_count')


class IngestionRunRepository:
    """Repository for ingestion run accounting."""

    def __init__(self, session: Session):
        self.session = session

    def start_run(
        self,
        category: Union[EntityCategory, str],
        source_file: Optional[str] = None,
        sync_type: Union[SyncType, str] = SyncType.FULL,
        file_size_bytes: Optional[int] = None
    ) -> IngestionRun:
        """
        Record the start of an ingestion run.

        Args:
            category: Registry category being loaded
            source_file: Path of the feed file
            sync_type: full or incremental
            file_size_bytes: Size of the feed file

        Returns:
            Created IngestionRun in status in_progress
        """
        run = IngestionRun(
            sync_type=SyncType(sync_type).value,
            data_category=EntityCategory(category).value,
            source_file=source_file,
            file_size_bytes=file_size_bytes,
            started_at=datetime.now(timezone.utc),
            status=SyncStatus.IN_PROGRESS.value,
            records_processed=0,
            records_added=0,
            records_updated=0,
            error_count=0
        )
        self.session.add(run)
        self.session.flush()
        return run

    def get_by_id(self, run_id: UUID) -> Optional[IngestionRun]:
        """Get an ingestion run by ID."""
        query = select(IngestionRun).where(IngestionRun.id == run_id)
        result = self.session.execute(query)
        return result.scalar_one_or_none()

    def _get_open_run(self, run_id: UUID) -> IngestionRun:
        run = self.get_by_id(run_id)
        if not run:
            raise EntityNotFoundError(f"Ingestion run not found: {run_id}")
        if SyncStatus(run.status).is_terminal:
            raise RunStateError(f"Ingestion run {run_id} is already {run.status}")
        return run

    def _apply_counters(self, run: IngestionRun, counters: Dict[str, int]) -> None:
        for key, value in counters.items():
            if key not in _COUNTER_FIELDS:
                raise RunStateError(f"Unknown run counter: {key}")
            if value < getattr(run, key):
                raise RunStateError(
                    f"Counter {key} cannot decrease ({getattr(run, key)} -> {value})"
                )
        for key, value in counters.items():
            setattr(run, key, value)

    def record_progress(self, run_id: UUID, **counters: int) -> IngestionRun:
        """
        Update the counters of an in-progress run.

        Args:
            run_id: UUID of the run
            **counters: records_processed, records_added, records_updated, error_count

        Raises:
            EntityNotFoundError: If the run does not exist
            RunStateError: If the run is finished or a counter would decrease
        """
        run = self._get_open_run(run_id)
        self._apply_counters(run, counters)
        self.session.flush()
        return run

    def finish_run(
        self,
        run_id: UUID,
        status: Union[SyncStatus, str],
        error_message: Optional[str] = None,
        **counters: int
    ) -> IngestionRun:
        """
        Move a run to its terminal state.

        completed_at is written here and nowhere else, so it is set once.

        Args:
            run_id: UUID of the run
            status: completed, failed or cancelled
            error_message: Reason, kept for failed and cancelled runs
            **counters: Final counter values

        Raises:
            RunStateError: If the status is not terminal or the run already finished
        """
        status = SyncStatus(status)
        if not status.is_terminal:
            raise RunStateError(f"Cannot finish a run with status {status.value}")

        run = self._get_open_run(run_id)
        self._apply_counters(run, counters)
        run.status = status.value
        run.completed_at = datetime.now(timezone.utc)
        run.error_message = error_message if status is not SyncStatus.COMPLETED else None

        self.session.flush()
        return run

    def list_recent(
        self,
        limit: int = 20,
        category: Optional[Union[EntityCategory, str]] = None
    ) -> List[IngestionRun]:
        """List ingestion runs, newest first."""
        query = select(IngestionRun)
        if category:
            query = query.where(IngestionRun.data_category == EntityCategory(category).value)
        query = query.order_by(IngestionRun.started_at.desc()).limit(limit)
        result = self.session.execute(query)
        return list(result.scalars().all())

    def latest_completed(self, category: Union[EntityCategory, str]) -> Optional[IngestionRun]:
        """Most recent completed run for a category."""
        query = select(IngestionRun).where(
            IngestionRun.data_category == EntityCategory(category).value,
            IngestionRun.status == SyncStatus.COMPLETED.value
        ).order_by(IngestionRun.completed_at.desc()).limit(1)
        result = self.session.execute(query)
        return result.scalar_one_or_none()
