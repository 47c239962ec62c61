"""
Database Package for the Business Name Availability System

This package provides:
- SQLAlchemy ORM models for the three registry tables and ingestion runs
- An explicitly constructed session provider with Unit of Work support
- Repository pattern for data access
- The database-backed availability resolver
"""

from registry_db.models import (
    Base,
    EntityCategory,
    RegistryStatus,
    SyncStatus,
    SyncType,
    CorporateEntity,
    FictitiousName,
    GeneralPartnership,
    IngestionRun,
    MODEL_BY_CATEGORY,
)
from registry_db.connection import (
    DatabaseSessionProvider,
    DatabaseSettings,
    UnitOfWork,
    create_retry_decorator,
    db_retry,
    # Testing support
    create_test_provider,
)
from registry_db.repositories import (
    RepositoryError,
    EntityNotFoundError,
    RunStateError,
    UpsertOutcome,
    EntityRecordRepository,
    IngestionRunRepository,
)
from registry_db.availability_service import (
    AvailabilityResolver,
    AvailabilityVerdict,
    AvailabilityCheckError,
    ConflictSummary,
    NAME_HOLDING_STATUSES,
    configure_availability_service,
    get_availability_service,
)

__all__ = [
    # Base
    'Base',
    # Enums
    'EntityCategory',
    'RegistryStatus',
    'SyncStatus',
    'SyncType',
    # Models
    'CorporateEntity',
    'FictitiousName',
    'GeneralPartnership',
    'IngestionRun',
    'MODEL_BY_CATEGORY',
    # Database provider
    'DatabaseSessionProvider',
    'DatabaseSettings',
    'UnitOfWork',
    'create_retry_decorator',
    'db_retry',
    # Testing support
    'create_test_provider',
    # Repositories
    'RepositoryError',
    'EntityNotFoundError',
    'RunStateError',
    'UpsertOutcome',
    'EntityRecordRepository',
    'IngestionRunRepository',
    # Availability
    'AvailabilityResolver',
    'AvailabilityVerdict',
    'AvailabilityCheckError',
    'ConflictSummary',
    'NAME_HOLDING_STATUSES',
    'configure_availability_service',
    'get_availability_service',
]
