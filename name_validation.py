"""
Business name input validation

- Format rules applied to a proposed name before an availability check
  (length, blocked characters, digits-only, prohibited words).
- Fictitious name (DBA) suffix rules: individual owners may not use an
  entity suffix; business-entity owners may only use the suffix of their
  own entity type.
"""

import re
import logging
import unicodedata
from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Optional, Any, List, Tuple, Dict

from log_utils import sanitize_for_logging

logger = logging.getLogger(__name__)

DEFAULT_NAME_MIN_LENGTH = 3
DEFAULT_NAME_MAX_LENGTH = 100
DEFAULT_BLOCKED_CHARACTERS = "<>{}[]\\/"
DEFAULT_PROHIBITED_WORDS = ['fbi', 'cia', 'treasury', 'federal reserve', 'united states']


class InputValidationError(ValueError):
    """Raised when input validation fails

    Attributes:
        field: The field that failed validation
        code: Error code for programmatic handling
        message: Human-readable error message
        suggestion: Optional suggestion for fixing the error
    """
    def __init__(self, message: str, field: str = "unknown", code: str = "VALIDATION_ERROR", suggestion: str = ""):
        self.field = field
        self.code = code
        self.suggestion = suggestion
        super().__init__(message)


def validate_business_name_format(name: Optional[str], config: Optional[Any] = None,
                                  field: str = "business_name") -> str:
    """Validate a proposed business name

    Args:
        name: Proposed business name
        config: Optional configuration manager for validation settings
        field: Field name reported in errors

    Returns:
        The name with surrounding whitespace removed

    Raises:
        InputValidationError: If validation fails with detailed error info
    """
    min_length = DEFAULT_NAME_MIN_LENGTH
    max_length = DEFAULT_NAME_MAX_LENGTH
    blocked = DEFAULT_BLOCKED_CHARACTERS
    prohibited_words = DEFAULT_PROHIBITED_WORDS
    if config is not None and hasattr(config, 'input_validation'):
        iv_config = config.input_validation
        min_length = iv_config.name_min_length
        max_length = iv_config.name_max_length
        blocked = iv_config.blocked_characters
        prohibited_words = iv_config.prohibited_words

    name = name or ""
    name_stripped = name.strip()

    if len(name_stripped) < min_length:
        raise InputValidationError(
            f"Business name must be at least {min_length} characters long",
            field=field,
            code="NAME_TOO_SHORT",
            suggestion=f"Provide a name with at least {min_length} characters"
        )

    if len(name_stripped) > max_length:
        raise InputValidationError(
            f"Business name must be at most {max_length} characters ({len(name_stripped)} given)",
            field=field,
            code="NAME_TOO_LONG",
            suggestion=f"Shorten the name to {max_length} characters or less"
        )

    found_blocked = sorted({c for c in name_stripped if c in blocked})
    if found_blocked:
        logger.warning("Blocked characters in business name input: %s",
                       sanitize_for_logging(name_stripped))
        raise InputValidationError(
            f"Business name contains prohibited characters: {' '.join(found_blocked)}",
            field=field,
            code="INVALID_CHARACTERS",
            suggestion=f"Remove these characters: {' '.join(blocked)}"
        )

    for char in name_stripped:
        if unicodedata.category(char).startswith('C'):
            logger.warning("Control character in business name input: %s",
                           sanitize_for_logging(name_stripped))
            raise InputValidationError(
                f"Business name contains an invalid control character (code: {ord(char)})",
                field=field,
                code="CONTROL_CHARACTER",
                suggestion="Remove invisible or control characters from the name"
            )

    if name_stripped.isdigit():
        raise InputValidationError(
            "Business name cannot consist only of numbers",
            field=field,
            code="NUMERIC_ONLY",
            suggestion="Add at least one word to the name"
        )

    lowered = name_stripped.lower()
    for word in prohibited_words:
        if re.search(r'\b' + re.escape(word.lower()) + r'\b', lowered):
            raise InputValidationError(
                f'Business name cannot contain "{word}"',
                field=field,
                code="PROHIBITED_WORD",
                suggestion=f'Remove "{word}" from the name'
            )

    return name_stripped


# ============================================
# DBA SUFFIX RULES
# ============================================

class SuffixType(str, PyEnum):
    """Entity type implied by a name suffix"""
    LLC = "LLC"
    CORPORATION = "CORPORATION"
    COMPANY = "COMPANY"
    LIMITED = "LIMITED"
    LIMITED_PARTNERSHIP = "LIMITED_PARTNERSHIP"
    LIMITED_LIABILITY_PARTNERSHIP = "LIMITED_LIABILITY_PARTNERSHIP"
    LIMITED_LIABILITY_LIMITED_PARTNERSHIP = "LIMITED_LIABILITY_LIMITED_PARTNERSHIP"
    GENERAL_PARTNERSHIP = "GENERAL_PARTNERSHIP"
    PROFESSIONAL_ASSOCIATION = "PROFESSIONAL_ASSOCIATION"
    PROFESSIONAL_LLC = "PROFESSIONAL_LLC"
    PROFESSIONAL_LIMITED = "PROFESSIONAL_LIMITED"


class OwnerType(str, PyEnum):
    """Who registers a fictitious name"""
    INDIVIDUAL = "INDIVIDUAL"
    BUSINESS_ENTITY = "BUSINESS_ENTITY"


@dataclass(frozen=True)
class EntitySuffix:
    """An entity suffix found at the end of a name"""
    suffix: str
    full_name: str
    suffix_type: SuffixType


# (suffix written without punctuation, full name, type)
_SUFFIX_TABLE: List[Tuple[str, str, SuffixType]] = [
    ('llc', 'Limited Liability Company', SuffixType.LLC),
    ('l l c', 'Limited Liability Company', SuffixType.LLC),
    ('limited liability company', 'Limited Liability Company', SuffixType.LLC),
    ('limited liability co', 'Limited Liability Company', SuffixType.LLC),
    ('inc', 'Incorporated', SuffixType.CORPORATION),
    ('incorporated', 'Incorporated', SuffixType.CORPORATION),
    ('corp', 'Corporation', SuffixType.CORPORATION),
    ('corporation', 'Corporation', SuffixType.CORPORATION),
    ('co', 'Company', SuffixType.COMPANY),
    ('company', 'Company', SuffixType.COMPANY),
    ('ltd', 'Limited', SuffixType.LIMITED),
    ('limited', 'Limited', SuffixType.LIMITED),
    ('lp', 'Limited Partnership', SuffixType.LIMITED_PARTNERSHIP),
    ('limited partnership', 'Limited Partnership', SuffixType.LIMITED_PARTNERSHIP),
    ('llp', 'Limited Liability Partnership', SuffixType.LIMITED_LIABILITY_PARTNERSHIP),
    ('limited liability partnership', 'Limited Liability Partnership',
     SuffixType.LIMITED_LIABILITY_PARTNERSHIP),
    ('lllp', 'Limited Liability Limited Partnership',
     SuffixType.LIMITED_LIABILITY_LIMITED_PARTNERSHIP),
    ('limited liability limited partnership', 'Limited Liability Limited Partnership',
     SuffixType.LIMITED_LIABILITY_LIMITED_PARTNERSHIP),
    ('gp', 'General Partnership', SuffixType.GENERAL_PARTNERSHIP),
    ('general partnership', 'General Partnership', SuffixType.GENERAL_PARTNERSHIP),
    ('pa', 'Professional Association', SuffixType.PROFESSIONAL_ASSOCIATION),
    ('p a', 'Professional Association', SuffixType.PROFESSIONAL_ASSOCIATION),
    ('professional association', 'Professional Association', SuffixType.PROFESSIONAL_ASSOCIATION),
    ('pllc', 'Professional Limited Liability Company', SuffixType.PROFESSIONAL_LLC),
    ('p l l c', 'Professional Limited Liability Company', SuffixType.PROFESSIONAL_LLC),
    ('professional limited liability company', 'Professional Limited Liability Company',
     SuffixType.PROFESSIONAL_LLC),
    ('pl', 'Professional Limited', SuffixType.PROFESSIONAL_LIMITED),
    ('p l', 'Professional Limited', SuffixType.PROFESSIONAL_LIMITED),
    ('professional limited', 'Professional Limited', SuffixType.PROFESSIONAL_LIMITED),
]

# Longest suffix first so "limited liability company" is not read as "company"
_SUFFIXES_BY_LENGTH = sorted(_SUFFIX_TABLE, key=lambda entry: len(entry[0]), reverse=True)


def extract_suffix(name: Optional[str]) -> Optional[EntitySuffix]:
    """Return the entity suffix a name ends with, if any.

    Punctuation is ignored, so "L.L.C." and "LLC" are read the same way.
    """
    if not name:
        return None
    cleaned = " ".join(re.sub(r'[^\w\s]', ' ', name.lower()).split())
    for suffix, full_name, suffix_type in _SUFFIXES_BY_LENGTH:
        if cleaned == suffix or cleaned.endswith(' ' + suffix):
            return EntitySuffix(suffix=suffix, full_name=full_name, suffix_type=suffix_type)
    return None


@dataclass
class SuffixValidationResult:
    """Outcome of a DBA suffix check"""
    valid: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"valid": self.valid}
        if self.error:
            result["error"] = self.error
        return result


def validate_dba_name_suffixes(
    dba_name: str,
    owner_type: OwnerType,
    business_entity_name: Optional[str] = None
) -> SuffixValidationResult:
    """
    Validate a fictitious name against the entity suffix rules.

    Args:
        dba_name: The fictitious name to register
        owner_type: INDIVIDUAL or BUSINESS_ENTITY
        business_entity_name: Legal name of the owning entity (required
            for BUSINESS_ENTITY owners when the DBA carries a suffix)

    Returns:
        SuffixValidationResult with an error message when invalid
    """
    dba_suffix = extract_suffix(dba_name)
    if dba_suffix is None:
        return SuffixValidationResult(valid=True)

    shown = dba_suffix.suffix.replace(' ', '').upper()
    owner_type = OwnerType(owner_type)

    if owner_type is OwnerType.INDIVIDUAL:
        return SuffixValidationResult(
            valid=False,
            error=(
                f'Individual owners cannot use entity suffixes like "{shown}". '
                "Remove the suffix or register as a business entity."
            )
        )

    if not business_entity_name:
        return SuffixValidationResult(
            valid=False,
            error="Business entity name is required to validate DBA name suffix."
        )

    owner_suffix = extract_suffix(business_entity_name)
    if owner_suffix is None:
        return SuffixValidationResult(
            valid=False,
            error=(
                f'Your business entity name "{business_entity_name}" does not have an entity '
                f'suffix, so your DBA name cannot include "{shown}".'
            )
        )

    if owner_suffix.suffix_type is not dba_suffix.suffix_type:
        return SuffixValidationResult(
            valid=False,
            error=(
                f'DBA name suffix "{shown}" does not match your business entity type. '
                f"Your entity is a {owner_suffix.full_name}, so you can only use "
                f'{owner_suffix.suffix.replace(" ", "").upper()} suffix.'
            )
        )

    return SuffixValidationResult(valid=True)
