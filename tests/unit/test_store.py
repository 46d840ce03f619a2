"""Unit tests for the store connection and transaction scope."""

from __future__ import annotations

import logging

import pytest

from fileloader.errors import StoreError
from fileloader.store import LoaderStore, store_errors


def test_transaction_commits_on_success(store, target_table, count_rows) -> None:
    """Statements inside a clean scope are kept."""
    with store.transaction() as conn:
        conn.execute("INSERT INTO src_test (test_id) VALUES ('1')")

    assert count_rows(target_table) == 1


def test_transaction_rolls_back_and_reraises(store, target_table, count_rows) -> None:
    """Any exception undoes the scope and propagates unchanged."""
    with pytest.raises(RuntimeError, match="boom"):
        with store.transaction() as conn:
            conn.execute("INSERT INTO src_test (test_id) VALUES ('1')")
            raise RuntimeError("boom")

    assert count_rows(target_table) == 0


def test_failed_rollback_keeps_original_error(store, caplog) -> None:
    """A rollback that fails is logged and does not mask the original failure."""
    with caplog.at_level(logging.ERROR, logger="fileloader.store"):
        with pytest.raises(RuntimeError, match="boom"):
            with store.transaction() as conn:
                conn.execute("ROLLBACK")
                raise RuntimeError("boom")

    assert [r.getMessage() for r in caplog.records] == ["Could not roll back transaction"]
    assert isinstance(caplog.records[0].exc_info[1], StoreError)


def test_store_errors_translates_driver_errors(store) -> None:
    """duckdb errors surface as StoreError."""
    with pytest.raises(StoreError, match="Select failed"):
        with store_errors("Select"):
            store.connection.execute("SELECT * FROM no_such_table")


def test_connection_requires_context() -> None:
    """Using the store outside its context is an error."""
    with pytest.raises(RuntimeError):
        LoaderStore(database=":memory:").connection
