"""
Alternative business name suggestions for names that are already taken.

Suggestions are advisory: they are produced in a fixed order and are not
themselves checked for availability.
"""

from datetime import datetime
from typing import Dict, List, Optional, Any

from name_normalizer import normalize_business_name

DEFAULT_JURISDICTION_NAME = "Florida"
DEFAULT_JURISDICTION_ABBREVIATION = "FL"
DEFAULT_GENERIC_QUALIFIERS = ["Group", "Solutions", "Services", "Enterprises"]
DEFAULT_TYPE_QUALIFIERS: Dict[str, List[str]] = {
    "LLC": ["Ventures", "Holdings"],
    "CORPORATION": ["Corporation", "International"],
}
DEFAULT_MAX_SUGGESTIONS = 5

# Spellings of an entity type hint that share one qualifier list
_HINT_ALIASES = {
    "LIMITED LIABILITY COMPANY": "LLC",
    "L.L.C.": "LLC",
    "PLLC": "LLC",
    "CORP": "CORPORATION",
    "INC": "CORPORATION",
    "INCORPORATED": "CORPORATION",
}


def canonical_type_hint(entity_type_hint: Optional[str]) -> str:
    """Upper-case a hint and fold its known aliases (Corp, Inc -> CORPORATION)."""
    if not entity_type_hint:
        return ""
    hint = " ".join(entity_type_hint.upper().replace("_", " ").split())
    return _HINT_ALIASES.get(hint, hint)


def presentable_base(taken_name: str) -> str:
    """Title-case the normalized form of a name for display."""
    words = normalize_business_name(taken_name).split()
    return " ".join(w if w == "&" else w[:1].upper() + w[1:] for w in words)


def generate_name_suggestions(
    taken_name: str,
    entity_type_hint: Optional[str] = None,
    config: Optional[Any] = None,
    year: Optional[int] = None
) -> List[str]:
    """
    Generate alternative names for a taken business name.

    Order: jurisdiction name, jurisdiction abbreviation, generic
    qualifiers, current year, then qualifiers for the entity type hint.

    Args:
        taken_name: The unavailable name, as the user typed it
        entity_type_hint: Entity type the user is forming (e.g. "LLC")
        config: Optional ConfigManager; uses its `suggestions` section
        year: Year to append (defaults to the current year)

    Returns:
        Up to max_suggestions candidate names
    """
    jurisdiction_name = DEFAULT_JURISDICTION_NAME
    jurisdiction_abbreviation = DEFAULT_JURISDICTION_ABBREVIATION
    generic_qualifiers = DEFAULT_GENERIC_QUALIFIERS
    type_qualifiers = DEFAULT_TYPE_QUALIFIERS
    include_year = True
    max_suggestions = DEFAULT_MAX_SUGGESTIONS

    if config is not None and hasattr(config, 'suggestions'):
        cfg = config.suggestions
        jurisdiction_name = cfg.jurisdiction_name
        jurisdiction_abbreviation = cfg.jurisdiction_abbreviation
        generic_qualifiers = cfg.generic_qualifiers
        type_qualifiers = cfg.type_qualifiers
        include_year = cfg.include_year
        max_suggestions = cfg.max_suggestions

    base = presentable_base(taken_name)
    if not base:
        return []

    qualifiers: List[str] = [q for q in (jurisdiction_name, jurisdiction_abbreviation) if q]
    qualifiers.extend(generic_qualifiers)
    if include_year:
        qualifiers.append(str(year if year is not None else datetime.now().year))

    hint = canonical_type_hint(entity_type_hint)
    for key, extra in type_qualifiers.items():
        if canonical_type_hint(key) == hint:
            qualifiers.extend(extra)
            break

    suggestions: List[str] = []
    for qualifier in qualifiers:
        candidate = f"{base} {qualifier}"
        if candidate not in suggestions:
            suggestions.append(candidate)
    return suggestions[:max_suggestions]
