"""
FastAPI Business Name Availability API Server

Provides REST API endpoints for name availability checks, name
normalization, DBA suffix validation and ingestion run status.

Usage:
    uvicorn registry_api.server:app --reload --port 8000
"""

import os
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Query
from sqlalchemy.exc import SQLAlchemyError

from registry_api.models import (
    CheckNameRequest,
    CheckNameResponse,
    NormalizeResponse,
    SuffixValidationRequest,
    SuffixValidationResponse,
    SyncRunResponse,
    SyncRunListResponse,
    HealthResponse,
    ErrorResponse,
)
from registry_api.middleware import (
    setup_cors,
    setup_exception_handlers,
    RequestLoggingMiddleware,
)
from config_manager import get_config, ConfigManager, ConfigurationError
from log_utils import setup_logging
from name_normalizer import normalize_business_name
from name_validation import validate_business_name_format, validate_dba_name_suffixes
from registry_db.availability_service import (
    AvailabilityResolver,
    configure_availability_service,
    get_availability_service,
)
from registry_db.connection import DatabaseSessionProvider, DatabaseSettings
from registry_db.models import EntityCategory, IngestionRun
from registry_db.repositories import EntityRecordRepository, IngestionRunRepository

logger = logging.getLogger(__name__)

# Environment variables with defaults
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))
CONFIG_PATH = os.getenv("CONFIG_PATH", "config.yaml")

# Global state
_db_provider: Optional[DatabaseSessionProvider] = None
_config: Optional[ConfigManager] = None
_startup_time: Optional[datetime] = None


def get_db_provider() -> DatabaseSessionProvider:
    """Dependency to get the database session provider."""
    if _db_provider is None:
        raise HTTPException(
            status_code=503, detail="Database not initialized. Service is starting up."
        )
    return _db_provider


def get_config_instance() -> ConfigManager:
    """Dependency to get the config instance."""
    global _config
    if _config is None:
        _config = get_config(CONFIG_PATH)
    return _config


# Create FastAPI application
app = FastAPI(
    title="Business Name Availability API",
    description="Check proposed business names against the state registry",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# Setup middleware
setup_cors(app)
app.add_middleware(RequestLoggingMiddleware)
setup_exception_handlers(app)


@app.on_event("startup")
async def startup():
    """Load configuration and connect to the registry store."""
    global _db_provider, _config, _startup_time

    try:
        _config = get_config(CONFIG_PATH)
        setup_logging(_config.logging)
        logger.info("🚀 Starting Business Name Availability API...")
        logger.info(f"✓ Configuration loaded from {CONFIG_PATH}")

        _db_provider = DatabaseSessionProvider(DatabaseSettings.from_config(_config.database))
        _db_provider.init()
        configure_availability_service(_db_provider, _config)

        _startup_time = datetime.now(timezone.utc)
        logger.info("✓ API ready")

    except ConfigurationError as e:
        logger.error(f"✗ Configuration error: {e}")
        raise
    except SQLAlchemyError as e:
        logger.error(f"✗ Database connection failed: {e}")
        raise


@app.on_event("shutdown")
async def shutdown():
    """Cleanup on shutdown."""
    logger.info("Shutting down Business Name Availability API...")
    if _db_provider is not None:
        _db_provider.close()


def _run_to_response(run: IngestionRun) -> SyncRunResponse:
    return SyncRunResponse(
        id=str(run.id),
        sync_type=run.sync_type,
        data_category=run.data_category,
        source_file=run.source_file,
        file_size_bytes=run.file_size_bytes,
        status=run.status,
        records_processed=run.records_processed,
        records_added=run.records_added,
        records_updated=run.records_updated,
        error_count=run.error_count,
        error_message=run.error_message,
        started_at=run.started_at.isoformat(),
        completed_at=run.completed_at.isoformat() if run.completed_at else None,
    )


@app.post(
    "/api/v1/check-name",
    response_model=CheckNameResponse,
    response_model_exclude_none=True,
    responses={
        200: {"model": CheckNameResponse, "description": "Check completed"},
        422: {"model": ErrorResponse, "description": "Name format violation"},
        503: {"model": ErrorResponse, "description": "Registry store unavailable"},
    },
    summary="Check name availability",
    description="Check whether a business name is distinguishable from names on record",
)
def check_name(
    request: CheckNameRequest,
    resolver: AvailabilityResolver = Depends(get_availability_service),
    config: ConfigManager = Depends(get_config_instance),
):
    """Validate the name format, then run the availability check."""
    business_name = validate_business_name_format(request.business_name, config)
    verdict = resolver.check_availability(business_name, request.entity_type)
    return verdict.to_dict()


@app.get(
    "/api/v1/check-name/normalize",
    response_model=NormalizeResponse,
    summary="Normalize a name",
    description="Show the comparison key a business name reduces to",
)
async def normalize_name(name: str = Query(..., max_length=500)):
    return NormalizeResponse(original=name, normalized=normalize_business_name(name))


@app.post(
    "/api/v1/dba/validate-suffix",
    response_model=SuffixValidationResponse,
    response_model_exclude_none=True,
    summary="Validate DBA suffix",
    description="Check a fictitious name against the entity suffix rules",
)
async def validate_suffix(request: SuffixValidationRequest):
    result = validate_dba_name_suffixes(
        request.dba_name, request.owner_type, request.business_entity_name
    )
    return result.to_dict()


@app.get(
    "/api/v1/sync-runs",
    response_model=SyncRunListResponse,
    responses={503: {"model": ErrorResponse, "description": "Registry store unavailable"}},
    summary="List ingestion runs",
    description="Most recent ingestion runs, optionally for one category",
)
def list_sync_runs(
    category: Optional[EntityCategory] = None,
    limit: int = Query(20, ge=1, le=200),
    db_provider: DatabaseSessionProvider = Depends(get_db_provider),
):
    try:
        with db_provider.session_scope() as session:
            runs = IngestionRunRepository(session).list_recent(limit=limit, category=category)
            items = [_run_to_response(run) for run in runs]
    except SQLAlchemyError as e:
        logger.error(f"✗ Could not list ingestion runs: {e}")
        raise HTTPException(status_code=503, detail="Registry store unavailable")
    return SyncRunListResponse(runs=items, count=len(items))


@app.get(
    "/api/v1/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check store connectivity and data freshness",
)
def health_check():
    """Return health status including record counts and last sync. Always returns HTTP 200."""
    uptime_seconds = None
    if _startup_time:
        uptime_seconds = int((datetime.now(timezone.utc) - _startup_time).total_seconds())

    if _db_provider is None or not _db_provider.health_check():
        return HealthResponse(
            status="degraded",
            database_connected=False,
            uptime_seconds=uptime_seconds,
        )

    record_counts = {}
    last_sync = {}
    try:
        with _db_provider.session_scope() as session:
            runs = IngestionRunRepository(session)
            for category in EntityCategory:
                record_counts[category.value] = EntityRecordRepository(session, category).count()
                latest = runs.latest_completed(category)
                last_sync[category.value] = (
                    latest.completed_at.isoformat() if latest and latest.completed_at else None
                )
    except SQLAlchemyError as e:
        logger.error(f"✗ Health statistics unavailable: {e}")
        return HealthResponse(
            status="degraded",
            database_connected=False,
            uptime_seconds=uptime_seconds,
        )

    return HealthResponse(
        status="healthy",
        database_connected=True,
        record_counts=record_counts,
        last_sync=last_sync,
        uptime_seconds=uptime_seconds,
    )


# Root redirect to docs
@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to API documentation."""
    from fastapi.responses import RedirectResponse

    return RedirectResponse(url="/api/docs")


def main():
    import uvicorn

    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    main()
