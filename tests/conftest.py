"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


SCENARIO_PATTERN = r"TEST_(\d+)_(Initial|Update)\.txt"

TARGET_DDL = """
CREATE TABLE {table} (
  test_id    VARCHAR,
  test_value VARCHAR,
  source_id  INTEGER,
  file_id    BIGINT,
  record_id  BIGINT
)
"""


@pytest.fixture
def store():
    from fileloader.store import LoaderStore

    with LoaderStore(database=":memory:") as s:
        yield s


@pytest.fixture
def ledger(store):
    from fileloader.audit_ledger import AuditLedger

    audit_ledger = AuditLedger()
    with store.transaction() as conn:
        audit_ledger.bootstrap(conn)
    return audit_ledger


@pytest.fixture
def target_table(store) -> str:
    store.connection.execute(TARGET_DDL.format(table="src_test"))
    return "src_test"


@pytest.fixture
def make_mapping() -> Callable[..., Any]:
    from fileloader.config import FileMapping

    def _make(**overrides: Any) -> FileMapping:
        raw: dict[str, Any] = {
            "sourcePattern": SCENARIO_PATTERN,
            "dateGroup": 1,
            "dateFormat": "MMddyyyy",
            "typeGroup": 2,
            "sourceId": 1,
            "parserLine": 1,
            "targetTable": "src_test",
            "targetColumns": ["test_id", "test_value"],
        }
        raw.update(overrides)
        return FileMapping.model_validate(raw)

    return _make


@pytest.fixture
def write_file(tmp_path) -> Callable[..., Path]:
    def _write(name: str, lines: list[str], directory: Path | None = None) -> Path:
        path = (directory or tmp_path) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def count_rows(store) -> Callable[[str], int]:
    def _count(table: str) -> int:
        return store.connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    return _count
