"""
Tests for the availability resolver against an in-memory registry store.
"""

import sys
from datetime import date
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

sys.path.insert(0, str(Path(__file__).parent.parent))

from config_manager import AvailabilityConfig, SuggestionConfig
from name_normalizer import normalize_business_name
from record_parser import ParsedRecord
from registry_db import availability_service
from registry_db.availability_service import (
    AvailabilityCheckError,
    AvailabilityResolver,
    NAME_HOLDING_STATUSES,
    configure_availability_service,
    get_availability_service,
)
from registry_db.models import EntityCategory, RegistryStatus
from registry_db.repositories import EntityRecordRepository


@pytest.fixture
def store(session):
    """Add records: store("corporate", "P1", "Acme LLC", RegistryStatus.ACTIVE)."""
    def add(category, document_number, legal_name, status=RegistryStatus.ACTIVE,
            filing_date=None, entity_type=None):
        record = ParsedRecord(
            document_number=document_number,
            legal_name=legal_name,
            status=status,
            filing_date=filing_date,
        )
        EntityRecordRepository(session, category).upsert(
            record, normalize_business_name(legal_name), entity_type
        )
    return add


def make_config(**availability):
    return SimpleNamespace(
        availability=AvailabilityConfig(**availability),
        suggestions=SuggestionConfig(),
    )


class TestAvailabilityVerdicts:
    """Conflicts are indistinguishable names whose status holds the name."""

    def test_active_record_blocks(self, session, store):
        store("corporate", "L19000012345", "Sunrise Consulting LLC", entity_type="LLC")
        verdict = AvailabilityResolver(session).check_availability("Sunrise Consulting", "LLC")

        assert verdict.available is False
        assert verdict.normalized_name == "sunrise consulting"
        assert [c.document_number for c in verdict.conflicts] == ["L19000012345"]
        assert verdict.conflicts[0].category is EntityCategory.CORPORATE
        assert verdict.message == "Sunrise Consulting is not available. 1 similar entity found."
        assert verdict.suggestions
        assert all(s.startswith("Sunrise Consulting ") for s in verdict.suggestions)

    def test_inactive_held_blocks(self, session, store):
        store("corporate", "L19000012345", "Sunrise Consulting LLC", RegistryStatus.INACTIVE_HELD)
        verdict = AvailabilityResolver(session).check_availability("Sunrise Consulting")
        assert verdict.available is False

    def test_inactive_releases(self, session, store):
        store("corporate", "L19000012345", "Sunrise Consulting LLC", RegistryStatus.INACTIVE)
        verdict = AvailabilityResolver(session).check_availability("Sunrise Consulting")

        assert verdict.available is True
        assert verdict.conflicts == []
        assert verdict.suggestions is None
        assert verdict.message == "Sunrise Consulting appears to be available!"
        assert "suggestions" not in verdict.to_dict()

    @pytest.mark.parametrize("status", [
        RegistryStatus.INACTIVE, RegistryStatus.EXPIRED, RegistryStatus.CANCELLED
    ])
    def test_releasing_statuses(self, session, store, status):
        store("fictitious", "G1", "Sunny Side Cafe", status)
        assert AvailabilityResolver(session).check_availability("Sunny Side Cafe").available

    def test_unknown_status_blocks(self, session, store):
        store("partnership", "GP1", "Smith & Jones Partners", RegistryStatus.UNKNOWN)
        verdict = AvailabilityResolver(session).check_availability("The Smith and Jones Partners")
        assert verdict.available is False

    def test_suffix_difference_not_distinguishing(self, session, store):
        store("corporate", "P1", "Bright Horizons Inc")
        store("corporate", "P2", "Bright Horizons Learning")
        verdict = AvailabilityResolver(session).check_availability("Bright Horizons")

        assert [c.legal_name for c in verdict.conflicts] == ["Bright Horizons Inc"]

    def test_distinguishable_candidates_do_not_conflict(self, session, store):
        store("corporate", "P1", "Bright Horizons Learning")
        assert AvailabilityResolver(session).check_availability("Bright Horizons").available

    def test_conflicts_across_categories(self, session, store):
        store("fictitious", "G1", "Sunny Side Cafe")
        store("partnership", "GP1", "Sunny Side Cafe Partners")
        verdict = AvailabilityResolver(session).check_availability("Sunny Side Cafe LLC", "LLC")

        assert [c.category for c in verdict.conflicts] == [EntityCategory.FICTITIOUS]
        assert verdict.message.endswith("1 similar entity found.")

    def test_plural_message(self, session, store):
        store("corporate", "P1", "Acme Widgets Inc")
        store("fictitious", "G1", "Acme Widgets")
        verdict = AvailabilityResolver(session).check_availability("Acme Widgets")
        assert verdict.message == "Acme Widgets is not available. 2 similar entities found."

    def test_empty_key_name(self, session, store):
        store("corporate", "P1", "The Co.")
        verdict = AvailabilityResolver(session).check_availability("LLC")
        assert verdict.normalized_name == ""
        assert verdict.available is False

    def test_releasing_records_never_make_a_name_unavailable(self, session, store):
        resolver = AvailabilityResolver(session)
        store("corporate", "P1", "Sunrise Consulting Inc", RegistryStatus.CANCELLED)
        store("fictitious", "G1", "Sunrise Consulting", RegistryStatus.EXPIRED)
        assert resolver.check_availability("Sunrise Consulting").available

        store("partnership", "GP1", "Sunrise Consulting", RegistryStatus.ACTIVE)
        verdict = resolver.check_availability("Sunrise Consulting")
        assert not verdict.available
        assert [c.document_number for c in verdict.conflicts] == ["GP1"]


class TestCandidateSearch:
    """Per-category caps, merged cap and ordering."""

    def test_category_cap(self, session, store):
        for i in range(12):
            store("fictitious", f"G{i:03d}", f"Cafe {i}")
        candidates = AvailabilityResolver(session).find_candidates("cafe")
        assert len(candidates) == 10

    def test_merged_cap(self, session, store):
        for i in range(8):
            store("corporate", f"P{i:03d}", f"Cafe {i}")
        resolver = AvailabilityResolver(session, make_config(merged_limit=5))
        assert len(resolver.find_candidates("cafe")) == 5

    def test_sorted_by_filing_date_across_categories(self, session, store):
        store("corporate", "P1", "Acme Corp", filing_date=date(2019, 1, 1))
        store("fictitious", "G1", "Acme", filing_date=date(2021, 6, 1))
        store("partnership", "GP1", "Acme Partners")
        candidates = AvailabilityResolver(session).find_candidates("acme")
        assert [record.document_number for _, record in candidates] == ["G1", "P1", "GP1"]

    def test_store_failure(self, session):
        resolver = AvailabilityResolver(session)
        failure = OperationalError("SELECT", {}, Exception("connection lost"))
        with patch.object(EntityRecordRepository, "search_by_normalized_name", side_effect=failure):
            with pytest.raises(AvailabilityCheckError):
                resolver.check_availability("Sunrise Consulting")


class TestEligibilityConfig:
    """Status eligibility is configurable."""

    def test_default_table(self):
        held = {status for status, holds in NAME_HOLDING_STATUSES.items() if holds}
        assert held == {RegistryStatus.ACTIVE, RegistryStatus.INACTIVE_HELD, RegistryStatus.UNKNOWN}

    def test_override(self, session, store):
        store("corporate", "P1", "Sunrise Consulting LLC", RegistryStatus.INACTIVE)
        resolver = AvailabilityResolver(session, make_config(status_holds_name={"INACTIVE": True}))
        assert resolver.holds_name(RegistryStatus.INACTIVE)
        assert resolver.holds_name(RegistryStatus.ACTIVE)
        assert not resolver.check_availability("Sunrise Consulting").available

    def test_override_by_registry_label(self, session):
        resolver = AvailabilityResolver(session, make_config(status_holds_name={"ACT": False}))
        assert not resolver.holds_name(RegistryStatus.ACTIVE)
        assert resolver.holds_name(RegistryStatus.INACTIVE_HELD)


class TestDependencyInjection:
    """configure_availability_service / get_availability_service."""

    def test_unconfigured(self):
        with patch.object(availability_service, "_availability_service_factory", None):
            with pytest.raises(RuntimeError):
                next(get_availability_service())

    def test_yields_resolver(self, db_provider):
        config = make_config()
        with patch.object(availability_service, "_availability_service_factory", None):
            configure_availability_service(db_provider, config)
            generator = get_availability_service()
            resolver = next(generator)
            assert isinstance(resolver, AvailabilityResolver)
            assert resolver.config is config
            assert resolver.check_availability("Sunrise Consulting").available
            generator.close()
