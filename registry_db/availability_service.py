"""
Database-backed Availability Service for business names

Decides whether a proposed business name can be registered by searching the
three registry tables for records whose normalized name contains the
candidate's key, then keeping only records that are not distinguishable from
the candidate and whose status still holds the name.

Usage:
    # With FastAPI
    @app.post("/check-name")
    def check_name(
        body: CheckNameRequest,
        resolver: AvailabilityResolver = Depends(get_availability_service)
    ):
        return resolver.check_availability(body.business_name, body.entity_type).to_dict()

    # Standalone
    with db_provider.session_scope() as session:
        resolver = AvailabilityResolver(session, config)
        verdict = resolver.check_availability("Sunrise Consulting LLC", "LLC")
"""

import logging
from datetime import date
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from log_utils import sanitize_for_logging
from name_normalizer import normalize_business_name, are_names_distinguishable
from registry_db.models import EntityCategory, EntityRecordMixin, RegistryStatus
from registry_db.repositories import EntityRecordRepository, RepositoryError
from suggestions import generate_name_suggestions

logger = logging.getLogger(__name__)


# Whether a record in each status still blocks its name
NAME_HOLDING_STATUSES: Dict[RegistryStatus, bool] = {
    RegistryStatus.ACTIVE: True,
    RegistryStatus.INACTIVE_HELD: True,
    RegistryStatus.UNKNOWN: True,
    RegistryStatus.INACTIVE: False,
    RegistryStatus.EXPIRED: False,
    RegistryStatus.CANCELLED: False,
}

DEFAULT_CATEGORY_LIMITS: Dict[EntityCategory, int] = {
    EntityCategory.CORPORATE: 30,
    EntityCategory.FICTITIOUS: 10,
    EntityCategory.PARTNERSHIP: 10,
}
DEFAULT_MERGED_LIMIT = 50


class AvailabilityCheckError(RepositoryError):
    """Raised when the registry store cannot answer an availability query."""
    pass


@dataclass
class ConflictSummary:
    """A stored record that blocks the candidate name"""
    document_number: str
    legal_name: str
    normalized_name: str
    status: RegistryStatus
    category: EntityCategory
    entity_type: Optional[str] = None
    filing_date: Optional[date] = None

    @classmethod
    def from_record(cls, record: EntityRecordMixin, category: EntityCategory) -> 'ConflictSummary':
        return cls(
            document_number=record.document_number,
            legal_name=record.legal_name,
            normalized_name=record.normalized_name,
            status=RegistryStatus(record.status),
            category=category,
            entity_type=record.entity_type,
            filing_date=record.filing_date,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_number": self.document_number,
            "legal_name": self.legal_name,
            "normalized_name": self.normalized_name,
            "status": self.status.value,
            "category": self.category.value,
            "entity_type": self.entity_type,
            "filing_date": self.filing_date.isoformat() if self.filing_date else None,
        }


@dataclass
class AvailabilityVerdict:
    """Result of an availability check"""
    searched_name: str
    normalized_name: str
    available: bool
    conflicts: List[ConflictSummary] = field(default_factory=list)
    suggestions: Optional[List[str]] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "searched_name": self.searched_name,
            "normalized_name": self.normalized_name,
            "available": self.available,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "message": self.message,
        }
        if self.suggestions is not None:
            result["suggestions"] = self.suggestions
        return result


def _verdict_message(name: str, conflict_count: int) -> str:
    if conflict_count == 0:
        return f"{name} appears to be available!"
    noun = "entity" if conflict_count == 1 else "entities"
    return f"{name} is not available. {conflict_count} similar {noun} found."


class AvailabilityResolver:
    """
    Database-backed business name availability checks.

    Follows the dependency injection pattern: the session is supplied by
    the caller and lives for one request.
    """

    def __init__(self, session: Session, config: Optional[Any] = None):
        """
        Initialize the resolver.

        Args:
            session: SQLAlchemy database session
            config: Optional ConfigManager instance
        """
        self.session = session
        self.config = config
        self._category_limits = dict(DEFAULT_CATEGORY_LIMITS)
        self._merged_limit = DEFAULT_MERGED_LIMIT
        self._holds_name = dict(NAME_HOLDING_STATUSES)

        if config:
            self._apply_config(config)

    def _apply_config(self, config) -> None:
        """Apply configuration settings."""
        if not hasattr(config, 'availability'):
            return
        availability = config.availability
        for category, limit in (availability.category_limits or {}).items():
            self._category_limits[EntityCategory(category)] = limit
        self._merged_limit = availability.merged_limit
        for status, holds in (availability.status_holds_name or {}).items():
            self._holds_name[RegistryStatus.from_label(status)] = bool(holds)

    def holds_name(self, status: RegistryStatus) -> bool:
        """Whether a record with this status blocks its name."""
        return self._holds_name.get(RegistryStatus(status), True)

    def find_candidates(self, normalized_key: str) -> List[tuple]:
        """
        Search every category for records containing the key.

        Returns:
            (category, record) pairs, most recent filing first, capped at
            the merged limit

        Raises:
            AvailabilityCheckError: If the store query fails
        """
        candidates = []
        try:
            for category in EntityCategory:
                repo = EntityRecordRepository(self.session, category)
                limit = self._category_limits.get(category, DEFAULT_CATEGORY_LIMITS[category])
                for record in repo.search_by_normalized_name(normalized_key, limit=limit):
                    candidates.append((category, record))
        except SQLAlchemyError as e:
            logger.error("✗ Availability query failed: %s", e)
            raise AvailabilityCheckError(f"Registry store unavailable: {e}") from e

        # Stable sort keeps the per-category order for equal dates
        candidates.sort(key=lambda pair: (
            pair[1].filing_date is None,
            -pair[1].filing_date.toordinal() if pair[1].filing_date else 0
        ))
        return candidates[:self._merged_limit]

    def check_availability(
        self,
        candidate_name: str,
        entity_type_hint: Optional[str] = None
    ) -> AvailabilityVerdict:
        """
        Check whether a business name can be registered.

        Args:
            candidate_name: Proposed business name
            entity_type_hint: Entity type being formed (LLC, Corporation, ...)

        Returns:
            AvailabilityVerdict; suggestions are only filled when unavailable

        Raises:
            AvailabilityCheckError: If the store cannot be queried
        """
        normalized_key = normalize_business_name(candidate_name)
        candidates = self.find_candidates(normalized_key)

        conflicts = [
            ConflictSummary.from_record(record, category)
            for category, record in candidates
            if not are_names_distinguishable(candidate_name, record.legal_name)
            and self.holds_name(record.status)
        ]
        available = not conflicts

        suggestions = None
        if not available:
            suggestions = generate_name_suggestions(candidate_name, entity_type_hint, self.config)

        logger.info(
            "Availability check '%s' -> %s (%d candidates, %d conflicts)",
            sanitize_for_logging(candidate_name),
            "available" if available else "taken",
            len(candidates),
            len(conflicts)
        )

        return AvailabilityVerdict(
            searched_name=candidate_name,
            normalized_name=normalized_key,
            available=available,
            conflicts=conflicts,
            suggestions=suggestions,
            message=_verdict_message(candidate_name, len(conflicts)),
        )


# FastAPI Dependency Injection Support
_availability_service_factory = None


def configure_availability_service(db_provider, config=None):
    """
    Configure the availability resolver factory for dependency injection.

    Call this during application startup.

    Args:
        db_provider: DatabaseSessionProvider instance
        config: Optional ConfigManager instance
    """
    global _availability_service_factory
    _availability_service_factory = (db_provider, config)


def get_availability_service():
    """
    FastAPI dependency for getting an AvailabilityResolver.

    Yields:
        AvailabilityResolver bound to a request-scoped session

    Raises:
        RuntimeError: If the service is not configured
    """
    if _availability_service_factory is None:
        raise RuntimeError(
            "Availability service not configured. Call configure_availability_service() first."
        )

    db_provider, config = _availability_service_factory

    with db_provider.session_scope() as session:
        yield AvailabilityResolver(session, config)
