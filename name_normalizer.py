"""
Business Name Normalization

Implements the Florida distinguishability rules used to decide whether two
business names are "the same" for registration purposes. The same function
is applied to names stored from the bulk feeds and to names being checked,
so stored and queried keys are always comparable.

Rules, in order:
    1. lowercase
    2. punctuation and symbols become spaces ("&" is kept as a token)
    3. collapse whitespace
    4. drop the articles "the", "a", "an"
    5. "and" becomes "&"
    6. drop a trailing entity suffix (LLC, Inc, Corp, ...)
    7. drop a trailing possessive/plural "s"
    8. collapse whitespace

Step 7 is a plain suffix heuristic; irregular plurals are not folded. It
also trims words that merely end in "s" ("Texas" -> "texa", "Analysis" ->
"analysi"). Both sides of a comparison are trimmed alike, so this only
matters when reading normalized keys directly.
"""

import re
from typing import Optional

# Longest first so "limited liability company" wins over "company".
ENTITY_SUFFIXES = (
    'llc',
    'l l c',
    'limited liability company',
    'limited liability co',
    'inc',
    'incorporated',
    'corp',
    'corporation',
    'co',
    'company',
    'ltd',
    'limited',
    'lp',
    'limited partnership',
    'llp',
    'limited liability partnership',
    'lllp',
    'limited liability limited partnership',
    'gp',
    'general partnership',
    'pa',
    'professional association',
    'pllc',
    'professional limited liability company',
    'pl',
    'professional limited',
)

_PUNCTUATION_RE = re.compile(r'[^\w\s&]')
_AMPERSAND_RE = re.compile(r'\s*&\s*')
_WHITESPACE_RE = re.compile(r'\s+')
_ARTICLE_RE = re.compile(r'\b(?:the|a|an)\b')
_CONJUNCTION_RE = re.compile(r'\band\b')
_SUFFIX_RE = re.compile(
    r'(?:^|\s)(?:'
    + '|'.join(re.escape(s) for s in sorted(ENTITY_SUFFIXES, key=len, reverse=True))
    + r')$'
)
_POSSESSIVE_TOKEN_RE = re.compile(r'(?:^|\s)s$')
_PLURAL_RE = re.compile(r'(?<=[^\s&s])s$')


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(' ', text).strip()


def _normalize_once(name: str) -> str:
    text = name.lower()
    text = _PUNCTUATION_RE.sub(' ', text)
    text = _AMPERSAND_RE.sub(' & ', text)
    text = _collapse(text)
    text = _collapse(_ARTICLE_RE.sub(' ', text))
    text = _CONJUNCTION_RE.sub('&', text)
    text = _SUFFIX_RE.sub('', text).strip()
    if _POSSESSIVE_TOKEN_RE.search(text):
        text = _POSSESSIVE_TOKEN_RE.sub('', text)
    else:
        text = _PLURAL_RE.sub('', text)
    return _collapse(text)


def normalize_business_name(name: Optional[str]) -> str:
    """
    Normalize a business name into its canonical comparison key.

    Args:
        name: Raw business name (can be None)

    Returns:
        Canonical key, or empty string if nothing survives normalization

    Example:
        >>> normalize_business_name("The Smith and Jones Co")
        'smith & jone'
        >>> normalize_business_name("Smith, L.L.C.")
        'smith'
    """
    if not name:
        return ""

    # Passes after the first only ever remove characters, so this terminates.
    current = _normalize_once(name)
    while True:
        following = _normalize_once(current)
        if following == current:
            return current
        current = following


def are_names_distinguishable(name_a: Optional[str], name_b: Optional[str]) -> bool:
    """
    Check whether two business names are distinguishable on the record.

    Two names conflict exactly when they normalize to the same key.

    Args:
        name_a: First business name
        name_b: Second business name

    Returns:
        True if the names differ after normalization
    """
    return normalize_business_name(name_a) != normalize_business_name(name_b)
