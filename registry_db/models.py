"""
SQLAlchemy ORM Models for the Business Name Availability System

Tables:
1. corporate_entities - Corporations, LLCs and limited partnerships (cordata feed)
2. fictitious_names - Assumed / DBA names (ficdata feed)
3. general_partnerships - General partnerships (genfile feed)
4. ingestion_runs - One row per bulk feed file processed

The three entity tables share one column layout (EntityRecordMixin) so the
availability search can treat them as a single surface.
"""

import uuid
from datetime import date, datetime
from enum import Enum as PyEnum
from typing import Dict, Optional, Type

from sqlalchemy import String, Integer, Date, DateTime, Text, Enum, Index, Uuid
from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy.sql import func

# Base class for all models
Base = declarative_base()


# ============================================
# ENUMS
# ============================================

class EntityCategory(str, PyEnum):
    """Registry record type, one per source feed"""
    CORPORATE = "corporate"
    FICTITIOUS = "fictitious"
    PARTNERSHIP = "partnership"


class RegistryStatus(str, PyEnum):
    """Registry status of an entity record"""
    ACTIVE = "ACTIVE"
    INACTIVE_HELD = "INACTIVE_HELD"  # inactive, name still reserved
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_label(cls, label: Optional[str]) -> 'RegistryStatus':
        """Map a registry status label to a status.

        Accepts the enum values as well as the labels printed on the
        registry's own search pages (ACT, INACT/UA, ...). Anything
        unrecognized maps to UNKNOWN.
        """
        if not label:
            return cls.UNKNOWN
        key = label.strip().upper()
        try:
            return cls(key)
        except ValueError:
            return _STATUS_LABEL_ALIASES.get(key, cls.UNKNOWN)


_STATUS_LABEL_ALIASES: Dict[str, RegistryStatus] = {
    "ACT": RegistryStatus.ACTIVE,
    "INACTIVE/UA": RegistryStatus.INACTIVE_HELD,
    "INACT/UA": RegistryStatus.INACTIVE_HELD,
    "INACT": RegistryStatus.INACTIVE,
    "EXP": RegistryStatus.EXPIRED,
    "CANCELED": RegistryStatus.CANCELLED,
    "CANC": RegistryStatus.CANCELLED,
}


class SyncStatus(str, PyEnum):
    """Status of an ingestion run"""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not SyncStatus.IN_PROGRESS


class SyncType(str, PyEnum):
    """Kind of ingestion run"""
    FULL = "full"
    INCREMENTAL = "incremental"


# ============================================
# MIXIN CLASSES
# ============================================

class TimestampMixin:
    """Mixin for created_at timestamp"""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )


class EntityRecordMixin(TimestampMixin):
    """Columns shared by every registry entity table"""
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    document_number: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
        unique=True,
        index=True
    )
    legal_name: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True
    )

    status: Mapped[RegistryStatus] = mapped_column(
        Enum(RegistryStatus, native_enum=False, length=20),
        nullable=False,
        default=RegistryStatus.UNKNOWN,
        index=True
    )
    status_code: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)

    filing_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    entity_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Denormalized display strings
    principal_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mailing_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    registered_agent_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    county: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    party_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    filing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    effective_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    cancellation_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expiration_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}({self.document_number}: {self.legal_name})>"


# ============================================
# ENTITY TABLES
# ============================================

class CorporateEntity(Base, EntityRecordMixin):
    """Corporation, LLC or limited partnership from the corporate feed"""
    __tablename__ = "corporate_entities"


class FictitiousName(Base, EntityRecordMixin):
    """Registered fictitious (assumed / DBA) name"""
    __tablename__ = "fictitious_names"


class GeneralPartnership(Base, EntityRecordMixin):
    """General partnership from the partnership feed"""
    __tablename__ = "general_partnerships"


MODEL_BY_CATEGORY: Dict[EntityCategory, Type[EntityRecordMixin]] = {
    EntityCategory.CORPORATE: CorporateEntity,
    EntityCategory.FICTITIOUS: FictitiousName,
    EntityCategory.PARTNERSHIP: GeneralPartnership,
}


# ============================================
# SYNC ACCOUNTING
# ============================================

class IngestionRun(Base, TimestampMixin):
    """
    Log of bulk feed ingestion runs.

    One row per source file. Counters only grow while the run is
    in progress and completed_at is written once, on the terminal
    transition.
    """
    __tablename__ = "ingestion_runs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    sync_type: Mapped[str] = mapped_column(String(20), nullable=False, default=SyncType.FULL.value)
    data_category: Mapped[str] = mapped_column(String(20), nullable=False)
    source_file: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    file_size_bytes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Run timing
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    # Status
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SyncStatus.IN_PROGRESS.value)

    # Statistics
    records_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_added: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Error information
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index('ix_ingestion_run_category_date', 'data_category', 'started_at'),
        Index('ix_ingestion_run_status', 'status'),
    )

    def __repr__(self) -> str:
        return f"<IngestionRun({self.data_category}, {self.status}, {self.source_file})>"
