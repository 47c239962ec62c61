"""
Shared fixtures: an in-memory SQLite registry store and fixed-width feed line builders.
"""

import sys
from pathlib import Path
from typing import Callable, Dict

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

sys.path.insert(0, str(Path(__file__).parent.parent))

from registry_db.connection import create_test_provider, DatabaseSessionProvider
from record_parser import DEFAULT_LAYOUTS
from registry_db.models import EntityCategory


@pytest.fixture
def sqlite_engine():
    """Single shared in-memory SQLite connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def db_provider(sqlite_engine) -> DatabaseSessionProvider:
    """Initialized session provider with all tables created."""
    provider = create_test_provider(engine=sqlite_engine)
    provider.init()
    provider.create_tables()
    yield provider
    provider.close()


@pytest.fixture
def session(db_provider):
    """Plain session; the test decides when to commit."""
    with db_provider.get_unit_of_work() as uow:
        yield uow.session


def _build_line(category: EntityCategory, values: Dict[str, str], length: int = None) -> str:
    layout = DEFAULT_LAYOUTS[category]
    total = length if length is not None else layout.min_record_length
    chars = list(" " * total)
    for name, value in values.items():
        span = layout.fields[name]
        text = str(value)[:span.end - span.start].ljust(span.end - span.start)
        chars[span.start:span.end] = text
    return "".join(chars)[:total]


@pytest.fixture
def corporate_line() -> Callable[..., str]:
    """Build a corporate feed line: corporate_line("P00000000001", "Sunrise Consulting LLC", status="A")."""
    def build(document_number: str, name: str, status: str = "A", length: int = None, **fields) -> str:
        values = {"document_number": document_number, "name": name, "status": status}
        values.update(fields)
        return _build_line(EntityCategory.CORPORATE, values, length)
    return build


@pytest.fixture
def fictitious_line() -> Callable[..., str]:
    def build(document_number: str, name: str, status: str = "A", length: int = None, **fields) -> str:
        values = {"document_number": document_number, "name": name, "status": status}
        values.update(fields)
        return _build_line(EntityCategory.FICTITIOUS, values, length)
    return build


@pytest.fixture
def partnership_line() -> Callable[..., str]:
    def build(document_number: str, name: str, status: str = "A", length: int = None, **fields) -> str:
        values = {"document_number": document_number, "name": name, "status": status}
        values.update(fields)
        return _build_line(EntityCategory.PARTNERSHIP, values, length)
    return build


@pytest.fixture
def write_feed(tmp_path) -> Callable[..., Path]:
    """Write feed lines to tmp_path/<filename> as latin-1."""
    def write(filename: str, lines, directory: Path = None) -> Path:
        target_dir = directory or tmp_path
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / filename
        path.write_text("".join(line + "\n" for line in lines), encoding="latin-1")
        return path
    return write
