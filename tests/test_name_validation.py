"""
Tests for business name format validation and DBA suffix rules.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from config_manager import InputValidationConfig
from name_validation import (
    InputValidationError,
    OwnerType,
    SuffixType,
    extract_suffix,
    validate_business_name_format,
    validate_dba_name_suffixes,
)


class TestNameFormat:
    """Tests for validate_business_name_format."""

    def test_valid_name_trimmed(self):
        assert validate_business_name_format("  Sunrise Consulting LLC ") == "Sunrise Consulting LLC"

    def test_too_short(self):
        with pytest.raises(InputValidationError) as exc_info:
            validate_business_name_format("  ab  ")
        assert exc_info.value.code == "NAME_TOO_SHORT"
        assert exc_info.value.field == "business_name"
        assert exc_info.value.suggestion

    def test_empty_and_none(self):
        for value in ("", None):
            with pytest.raises(InputValidationError) as exc_info:
                validate_business_name_format(value)
            assert exc_info.value.code == "NAME_TOO_SHORT"

    def test_too_long(self):
        with pytest.raises(InputValidationError) as exc_info:
            validate_business_name_format("x" * 101)
        assert exc_info.value.code == "NAME_TOO_LONG"

    def test_max_length_accepted(self):
        assert validate_business_name_format("x" * 100) == "x" * 100

    @pytest.mark.parametrize("name", [
        "<script>Acme</script>",
        "Acme {Holdings}",
        "Acme [Group]",
        "Acme\\Group",
        "Acme/Group",
    ])
    def test_blocked_characters(self, name):
        with pytest.raises(InputValidationError) as exc_info:
            validate_business_name_format(name)
        assert exc_info.value.code == "INVALID_CHARACTERS"

    def test_control_characters(self):
        with pytest.raises(InputValidationError) as exc_info:
            validate_business_name_format("Acme\x00Group")
        assert exc_info.value.code == "CONTROL_CHARACTER"

    def test_numeric_only(self):
        with pytest.raises(InputValidationError) as exc_info:
            validate_business_name_format("12345")
        assert exc_info.value.code == "NUMERIC_ONLY"

    def test_digits_with_words_allowed(self):
        assert validate_business_name_format("7 Eleven Stores") == "7 Eleven Stores"

    @pytest.mark.parametrize("name", [
        "FBI Consulting",
        "The Treasury Group",
        "Federal Reserve Advisors",
        "United States Trading",
        "cia services",
    ])
    def test_prohibited_words(self, name):
        with pytest.raises(InputValidationError) as exc_info:
            validate_business_name_format(name)
        assert exc_info.value.code == "PROHIBITED_WORD"

    @pytest.mark.parametrize("name", ["Social Media Co", "Financial Partners", "Specialty Foods"])
    def test_prohibited_words_match_whole_words_only(self, name):
        assert validate_business_name_format(name) == name

    def test_config_overrides(self):
        config = type("Config", (), {"input_validation": InputValidationConfig(
            name_min_length=5, name_max_length=10, prohibited_words=["acme"]
        )})()
        with pytest.raises(InputValidationError) as exc_info:
            validate_business_name_format("Abcd", config)
        assert exc_info.value.code == "NAME_TOO_SHORT"
        with pytest.raises(InputValidationError) as exc_info:
            validate_business_name_format("Acme Tools", config)
        assert exc_info.value.code == "PROHIBITED_WORD"

    def test_is_value_error(self):
        assert issubclass(InputValidationError, ValueError)


class TestExtractSuffix:
    """Tests for extract_suffix."""

    @pytest.mark.parametrize("name,suffix_type", [
        ("Acme LLC", SuffixType.LLC),
        ("Acme, L.L.C.", SuffixType.LLC),
        ("Acme Limited Liability Company", SuffixType.LLC),
        ("Acme Inc.", SuffixType.CORPORATION),
        ("Acme Corp", SuffixType.CORPORATION),
        ("Acme Co", SuffixType.COMPANY),
        ("Acme LLP", SuffixType.LIMITED_LIABILITY_PARTNERSHIP),
        ("Acme P.L.L.C.", SuffixType.PROFESSIONAL_LLC),
        ("Acme P.A.", SuffixType.PROFESSIONAL_ASSOCIATION),
    ])
    def test_known_suffixes(self, name, suffix_type):
        assert extract_suffix(name).suffix_type == suffix_type

    def test_no_suffix(self):
        assert extract_suffix("Acme Holdings") is None
        assert extract_suffix("") is None
        assert extract_suffix(None) is None

    def test_suffix_must_be_last_word(self):
        assert extract_suffix("LLC Holdings") is None
        assert extract_suffix("Acme Incorporated").full_name == "Incorporated"


class TestDbaSuffixRules:
    """Tests for validate_dba_name_suffixes."""

    def test_no_suffix_always_valid(self):
        assert validate_dba_name_suffixes("Sunny Side Cafe", OwnerType.INDIVIDUAL).valid

    def test_individual_cannot_use_suffix(self):
        result = validate_dba_name_suffixes("Sunny Side Cafe LLC", OwnerType.INDIVIDUAL)
        assert not result.valid
        assert "Individual owners" in result.error
        assert '"LLC"' in result.error

    def test_entity_name_required(self):
        result = validate_dba_name_suffixes("Sunny Side Cafe LLC", OwnerType.BUSINESS_ENTITY)
        assert not result.valid
        assert "required" in result.error

    def test_entity_without_suffix(self):
        result = validate_dba_name_suffixes("Sunny Side Cafe LLC", OwnerType.BUSINESS_ENTITY, "Acme Holdings")
        assert not result.valid
        assert "does not have an entity suffix" in result.error

    def test_matching_entity_type(self):
        result = validate_dba_name_suffixes(
            "Sunny Side Cafe L.L.C.", OwnerType.BUSINESS_ENTITY, "Acme Holdings LLC"
        )
        assert result.valid
        assert result.to_dict() == {"valid": True}

    def test_mismatched_entity_type(self):
        result = validate_dba_name_suffixes(
            "Sunny Side Cafe Inc", OwnerType.BUSINESS_ENTITY, "Acme Holdings LLC"
        )
        assert not result.valid
        assert "does not match" in result.error
        assert "Limited Liability Company" in result.error

    def test_owner_type_as_string(self):
        result = validate_dba_name_suffixes("Cafe Corp", "INDIVIDUAL")
        assert not result.valid
