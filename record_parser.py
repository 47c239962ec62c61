"""
Fixed-Width Record Parser

Turns one line of a Sunbiz-style bulk data file into a ParsedRecord.
Each feed (corporate, fictitious name, general partnership) has its own
FeedLayout: field offsets, minimum record length, status code table and
file naming convention. The built-in layouts below can be overridden per
category from the `feeds` section of config.yaml.

Offsets are character offsets into the line. Feeds are read as latin-1,
a single-byte encoding, so they line up with the published byte offsets.
"""

import re
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum as PyEnum
from typing import Dict, Optional, Any

from registry_db.models import EntityCategory, RegistryStatus

ADDRESS_SEPARATOR = ", "


class RecordParseError(ValueError):
    """Raised when a feed line cannot be turned into a record

    Attributes:
        code: Error code for programmatic handling
        line_number: 1-based line number in the source file, when known
    """
    def __init__(self, message: str, code: str = "PARSE_ERROR", line_number: Optional[int] = None):
        self.code = code
        self.line_number = line_number
        super().__init__(message)


# ============================================
# FILING TYPES
# ============================================

class FilingType(str, PyEnum):
    """Corporate feed filing type codes"""
    DOMP = "DOMP"
    DOMNP = "DOMNP"
    FORP = "FORP"
    FORNP = "FORNP"
    DOMLP = "DOMLP"
    FORLP = "FORLP"
    FLAL = "FLAL"
    FORL = "FORL"
    NPREG = "NPREG"
    TRUST = "TRUST"
    AGENT = "AGENT"

    @property
    def label(self) -> str:
        return _FILING_TYPE_LABELS[self]


_FILING_TYPE_LABELS: Dict[FilingType, str] = {
    FilingType.DOMP: "Corporation",
    FilingType.DOMNP: "Nonprofit Corporation",
    FilingType.FORP: "Foreign Corporation",
    FilingType.FORNP: "Foreign Nonprofit",
    FilingType.DOMLP: "Limited Partnership",
    FilingType.FORLP: "Foreign LP",
    FilingType.FLAL: "LLC",
    FilingType.FORL: "Foreign LLC",
    FilingType.NPREG: "Nonprofit Registration",
    FilingType.TRUST: "Business Trust",
    FilingType.AGENT: "Registered Agent",
}


def describe_filing_type(code: Optional[str], default_label: Optional[str] = None) -> Optional[str]:
    """Map a raw filing type code to a human-readable entity type label.

    Unknown codes are carried forward unchanged; a blank code falls back
    to the feed's default label.
    """
    if not code:
        return default_label
    try:
        return FilingType(code.upper()).label
    except ValueError:
        return code


# ============================================
# LAYOUTS
# ============================================

@dataclass(frozen=True)
class FieldSpan:
    """Half-open [start, end) character range of one field"""
    start: int
    end: int

    def extract(self, line: str) -> str:
        return line[self.start:self.end].strip()


@dataclass
class FeedLayout:
    """Fixed-width layout of one bulk data feed"""
    category: EntityCategory
    file_pattern: str
    min_record_length: int
    fields: Dict[str, FieldSpan]
    status_codes: Dict[str, RegistryStatus]
    default_status: RegistryStatus
    default_entity_type: Optional[str] = None

    def matches_file(self, filename: str) -> bool:
        return re.match(self.file_pattern, filename, re.IGNORECASE) is not None

    def map_status(self, code: str) -> RegistryStatus:
        return self.status_codes.get(code.upper(), self.default_status)

    def extract(self, line: str, name: str) -> str:
        span = self.fields.get(name)
        return span.extract(line) if span else ""


def _spans(**spans) -> Dict[str, FieldSpan]:
    return {name: FieldSpan(start, end) for name, (start, end) in spans.items()}


DEFAULT_LAYOUTS: Dict[EntityCategory, FeedLayout] = {
    EntityCategory.CORPORATE: FeedLayout(
        category=EntityCategory.CORPORATE,
        file_pattern=r'^cordata\d+\.txt$',
        min_record_length=1440,
        fields=_spans(
            document_number=(0, 12),
            name=(12, 204),
            status=(204, 205),
            filing_type=(205, 220),
            principal_address_1=(220, 262),
            principal_address_2=(262, 304),
            principal_city=(304, 332),
            principal_state=(332, 334),
            principal_zip=(334, 344),
            mailing_address_1=(346, 388),
            mailing_address_2=(388, 430),
            mailing_city=(430, 458),
            mailing_state=(458, 460),
            mailing_zip=(460, 470),
            filing_date=(472, 480),
            registered_agent=(544, 586),
        ),
        status_codes={'A': RegistryStatus.ACTIVE, 'I': RegistryStatus.INACTIVE},
        default_status=RegistryStatus.INACTIVE,
    ),
    EntityCategory.FICTITIOUS: FeedLayout(
        category=EntityCategory.FICTITIOUS,
        file_pattern=r'^ficdata\d*\.txt$',
        min_record_length=2098,
        fields=_spans(
            document_number=(0, 12),
            name=(12, 204),
            county=(204, 216),
            principal_address_1=(216, 256),
            principal_address_2=(256, 296),
            principal_city=(296, 324),
            principal_state=(324, 326),
            principal_zip=(326, 336),
            mailing_address_1=(336, 376),
            mailing_address_2=(376, 416),
            mailing_city=(416, 444),
            mailing_state=(444, 446),
            mailing_zip=(446, 456),
            filing_date=(456, 464),
            status=(464, 465),
            cancellation_date=(465, 473),
            expiration_date=(473, 481),
            party_count=(481, 487),
        ),
        status_codes={
            'A': RegistryStatus.ACTIVE,
            'E': RegistryStatus.EXPIRED,
            'C': RegistryStatus.CANCELLED,
        },
        default_status=RegistryStatus.CANCELLED,
        default_entity_type="Fictitious Name",
    ),
    EntityCategory.PARTNERSHIP: FeedLayout(
        category=EntityCategory.PARTNERSHIP,
        file_pattern=r'^genfile\d*\.txt$',
        min_record_length=759,
        fields=_spans(
            document_number=(0, 12),
            status=(12, 13),
            name=(13, 205),
            filing_date=(205, 213),
            effective_date=(213, 221),
            cancellation_date=(221, 229),
            principal_address_1=(240, 284),
            principal_address_2=(284, 328),
            principal_city=(328, 356),
            principal_state=(356, 358),
            principal_zip=(358, 368),
            mailing_address_1=(370, 414),
            mailing_address_2=(414, 458),
            mailing_city=(458, 486),
            mailing_state=(486, 488),
            mailing_zip=(488, 498),
            party_count=(746, 751),
            expiration_date=(751, 759),
        ),
        status_codes={
            'A': RegistryStatus.ACTIVE,
            'I': RegistryStatus.INACTIVE,
            'C': RegistryStatus.CANCELLED,
            'E': RegistryStatus.EXPIRED,
        },
        default_status=RegistryStatus.INACTIVE,
        default_entity_type="General Partnership",
    ),
}


def build_layout(category: EntityCategory, feed_config: Optional[Any] = None) -> FeedLayout:
    """
    Build the layout for a category, applying config overrides.

    Args:
        category: Feed category
        feed_config: Optional FeedConfig from config_manager

    Returns:
        FeedLayout with overrides applied on top of the built-in layout
    """
    layout = DEFAULT_LAYOUTS[EntityCategory(category)]
    if feed_config is None:
        return layout

    fields = dict(layout.fields)
    for name, (start, end) in feed_config.fields.items():
        fields[name] = FieldSpan(start, end)

    status_codes = dict(layout.status_codes)
    for code, status in feed_config.status_codes.items():
        status_codes[code.upper()] = RegistryStatus.from_label(status)

    return replace(
        layout,
        file_pattern=feed_config.file_pattern or layout.file_pattern,
        min_record_length=feed_config.min_record_length or layout.min_record_length,
        fields=fields,
        status_codes=status_codes,
        default_status=(
            RegistryStatus.from_label(feed_config.default_status)
            if feed_config.default_status else layout.default_status
        ),
        default_entity_type=feed_config.default_entity_type or layout.default_entity_type,
    )


# ============================================
# RECORDS
# ============================================

@dataclass
class ParsedRecord:
    """One entity record cut out of a feed line"""
    document_number: str
    legal_name: str
    status: RegistryStatus
    status_code: Optional[str] = None
    filing_type: Optional[str] = None
    principal_address: Optional[str] = None
    mailing_address: Optional[str] = None
    registered_agent_name: Optional[str] = None
    county: Optional[str] = None
    party_count: Optional[int] = None
    filing_date: Optional[date] = None
    effective_date: Optional[date] = None
    cancellation_date: Optional[date] = None
    expiration_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_number": self.document_number,
            "legal_name": self.legal_name,
            "status": self.status.value,
            "status_code": self.status_code,
            "filing_type": self.filing_type,
            "principal_address": self.principal_address,
            "mailing_address": self.mailing_address,
            "registered_agent_name": self.registered_agent_name,
            "county": self.county,
            "party_count": self.party_count,
            "filing_date": self.filing_date.isoformat() if self.filing_date else None,
            "effective_date": self.effective_date.isoformat() if self.effective_date else None,
            "cancellation_date": self.cancellation_date.isoformat() if self.cancellation_date else None,
            "expiration_date": self.expiration_date.isoformat() if self.expiration_date else None,
        }


def parse_yyyymmdd(value: Optional[str]) -> Optional[date]:
    """Parse a YYYYMMDD field; anything malformed yields None."""
    if not value:
        return None
    value = value.strip()
    if len(value) != 8 or not value.isdigit():
        return None
    try:
        return date(int(value[0:4]), int(value[4:6]), int(value[6:8]))
    except ValueError:
        return None


def join_address(*parts: Optional[str]) -> Optional[str]:
    """Join the non-empty address components into one display string."""
    joined = ADDRESS_SEPARATOR.join(p.strip() for p in parts if p and p.strip())
    return joined or None


def _parse_count(value: str) -> Optional[int]:
    value = value.strip()
    # isdigit() also accepts superscripts and other non-ASCII digits
    return int(value) if value.isascii() and value.isdigit() else None


def _address(line: str, layout: FeedLayout, prefix: str) -> Optional[str]:
    return join_address(
        layout.extract(line, f"{prefix}_address_1"),
        layout.extract(line, f"{prefix}_address_2"),
        layout.extract(line, f"{prefix}_city"),
        layout.extract(line, f"{prefix}_state"),
        layout.extract(line, f"{prefix}_zip"),
    )


def parse_line(line: str, layout: FeedLayout, line_number: Optional[int] = None) -> ParsedRecord:
    """
    Parse one fixed-width feed line.

    Args:
        line: Raw line, without its line terminator
        layout: Layout of the feed the line came from
        line_number: Optional 1-based line number for error reporting

    Returns:
        ParsedRecord

    Raises:
        RecordParseError: If the line is shorter than the layout's record
            length or has a blank document number or name
    """
    line = line.rstrip('\r\n')
    if len(line) < layout.min_record_length:
        raise RecordParseError(
            f"Record too short: {len(line)} < {layout.min_record_length} characters",
            code="RECORD_TOO_SHORT",
            line_number=line_number
        )

    document_number = layout.extract(line, "document_number")
    if not document_number:
        raise RecordParseError("Missing document number", code="MISSING_DOCUMENT_NUMBER",
                               line_number=line_number)

    legal_name = layout.extract(line, "name")
    if not legal_name:
        raise RecordParseError(f"Missing name for {document_number}", code="MISSING_NAME",
                               line_number=line_number)

    status_code = layout.extract(line, "status")

    return ParsedRecord(
        document_number=document_number,
        legal_name=legal_name,
        status=layout.map_status(status_code),
        status_code=status_code or None,
        filing_type=layout.extract(line, "filing_type") or None,
        principal_address=_address(line, layout, "principal"),
        mailing_address=_address(line, layout, "mailing"),
        registered_agent_name=layout.extract(line, "registered_agent") or None,
        county=layout.extract(line, "county") or None,
        party_count=_parse_count(layout.extract(line, "party_count")),
        filing_date=parse_yyyymmdd(layout.extract(line, "filing_date")),
        effective_date=parse_yyyymmdd(layout.extract(line, "effective_date")),
        cancellation_date=parse_yyyymmdd(layout.extract(line, "cancellation_date")),
        expiration_date=parse_yyyymmdd(layout.extract(line, "expiration_date")),
    )
