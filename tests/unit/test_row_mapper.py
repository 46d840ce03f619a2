"""Unit tests for insert composition and row mapping."""

from __future__ import annotations

from datetime import datetime

from fileloader.domain import FileMetadata
from fileloader.metrics import LoadSession
from fileloader.row_mapper import RowMapper, build_insert_statement


def _session() -> LoadSession:
    return LoadSession.start(FileMetadata(effective_date=datetime(2024, 1, 1), load_type="I"))


def test_build_insert_statement_with_system_columns() -> None:
    """Kept columns are followed by source_id, file_id and record_id."""
    statement = build_insert_statement("src_test", ["test_id", "test_value"], include_system_columns=True)

    assert statement.sql == (
        "INSERT INTO src_test (test_id, test_value, source_id, file_id, record_id) VALUES (?, ?, ?, ?, ?)"
    )
    assert statement.parameter_count == 5


def test_build_insert_statement_skips_empty_columns() -> None:
    """An empty target name drops that column and one parameter."""
    statement = build_insert_statement("t", ["a", "", "c"], include_system_columns=False)

    assert statement.sql == "INSERT INTO t (a, c) VALUES (?, ?)"
    assert statement.parameter_count == 2


def test_map_drops_skipped_source_fields() -> None:
    """The field under an empty target name is not bound."""
    mapper = RowMapper(["a", "", "c"])

    assert mapper.map(["1", "skip me", "3"], file_id=7, session=_session()) == ("1", "3")
    assert mapper.parameter_count == 2


def test_map_fills_missing_trailing_fields_with_empty_string() -> None:
    """Short rows are padded rather than rejected."""
    mapper = RowMapper(["a", "b", "c"])

    assert mapper.map(["1"], file_id=7, session=_session()) == ("1", "", "")


def test_map_ignores_extra_fields() -> None:
    """Fields beyond the configured columns are not bound."""
    mapper = RowMapper(["a"])

    assert mapper.map(["1", "2", "3"], file_id=7, session=_session()) == ("1",)


def test_map_appends_source_file_and_record_ids() -> None:
    """With a source id, ids are appended and record ids increase by one per row."""
    mapper = RowMapper(["a", "b"], source_id=42)
    session = _session()

    first = mapper.map(["x", "y"], file_id=9, session=session)
    second = mapper.map(["z"], file_id=9, session=session)

    assert first == ("x", "y", 42, 9, 202401010000000001)
    assert second == ("z", "", 42, 9, 202401010000000002)
    assert mapper.parameter_count == 5
