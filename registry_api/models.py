"""
Pydantic request/response schemas for the Business Name Availability API

Mirrors the to_dict() output of AvailabilityVerdict, SuffixValidationResult
and the ingestion run records.
"""

from typing import List, Optional, Dict

from pydantic import BaseModel, Field

from name_validation import OwnerType


class CheckNameRequest(BaseModel):
    """Request schema for a name availability check.

    Length and character rules are applied by validate_business_name_format
    so that violations carry their specific error codes.
    """
    business_name: str = Field(
        ...,
        max_length=500,
        description="Proposed business name"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Entity type being formed (e.g. 'LLC', 'Corporation')"
    )


class ConflictDetail(BaseModel):
    """Stored record that blocks the requested name."""
    document_number: str = Field(..., description="Registry document number")
    legal_name: str = Field(..., description="Name as published by the registry")
    normalized_name: str = Field(..., description="Normalized comparison key")
    status: str = Field(..., description="Registry status (ACTIVE, INACTIVE_HELD, ...)")
    category: str = Field(..., description="corporate, fictitious or partnership")
    entity_type: Optional[str] = Field(default=None, description="Entity type label")
    filing_date: Optional[str] = Field(default=None, description="Filing date (ISO 8601)")


class CheckNameResponse(BaseModel):
    """Response schema for a name availability check."""
    searched_name: str = Field(..., description="Name as submitted")
    normalized_name: str = Field(..., description="Normalized comparison key")
    available: bool = Field(..., description="Whether the name can be registered")
    conflicts: List[ConflictDetail] = Field(default_factory=list, description="Blocking records")
    suggestions: Optional[List[str]] = Field(
        default=None,
        description="Alternative names, only when unavailable"
    )
    message: str = Field(..., description="Human-readable summary")


class NormalizeResponse(BaseModel):
    """Response schema for the normalization endpoint."""
    original: str
    normalized: str


class SuffixValidationRequest(BaseModel):
    """Request schema for DBA suffix validation."""
    dba_name: str = Field(..., min_length=1, max_length=500, description="Fictitious name to register")
    owner_type: OwnerType = Field(..., description="INDIVIDUAL or BUSINESS_ENTITY")
    business_entity_name: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Legal name of the owning entity (business owners only)"
    )


class SuffixValidationResponse(BaseModel):
    """Response schema for DBA suffix validation."""
    valid: bool
    error: Optional[str] = None


class SyncRunResponse(BaseModel):
    """One ingestion run."""
    id: str
    sync_type: str
    data_category: str
    source_file: Optional[str] = None
    file_size_bytes: Optional[int] = None
    status: str
    records_processed: int = Field(..., ge=0)
    records_added: int = Field(..., ge=0)
    records_updated: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0)
    error_message: Optional[str] = None
    started_at: str
    completed_at: Optional[str] = None


class SyncRunListResponse(BaseModel):
    """Response schema for the sync run listing."""
    runs: List[SyncRunResponse] = Field(default_factory=list)
    count: int = Field(..., ge=0)


class HealthResponse(BaseModel):
    """Response schema for health check endpoint."""
    status: str = Field(default="healthy", description="healthy or degraded")
    database_connected: bool = Field(..., description="Whether the store answered")
    record_counts: Dict[str, int] = Field(
        default_factory=dict,
        description="Stored records per category"
    )
    last_sync: Dict[str, Optional[str]] = Field(
        default_factory=dict,
        description="Completion time of the latest completed run per category"
    )
    uptime_seconds: Optional[int] = Field(default=None, description="Server uptime in seconds")


class ErrorDetail(BaseModel):
    """Detailed error information."""
    code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    field: Optional[str] = Field(default=None, description="Field that caused error")
    suggestion: Optional[str] = Field(default=None, description="How to fix the error")
    timestamp: str = Field(..., description="Error timestamp (ISO 8601)")


class ErrorResponse(BaseModel):
    """Standardized error response format."""
    error: ErrorDetail
