import logging
from contextlib import contextmanager
from typing import Any, Iterator, Protocol, Sequence

import duckdb

from fileloader.errors import StoreError

logger = logging.getLogger(__name__)


class Cursor(Protocol):
    def fetchone(self) -> tuple[Any, ...] | None: ...

    def fetchall(self) -> list[tuple[Any, ...]]: ...


class Connection(Protocol):
    """The slice of a DB-API connection the loader issues statements through."""

    def execute(self, query: str, parameters: Sequence[Any] = ...) -> Cursor: ...

    def executemany(self, query: str, parameters: Sequence[Sequence[Any]]) -> Any: ...


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Translate driver errors raised by a statement into StoreError."""
    try:
        yield
    except duckdb.Error as e:
        raise StoreError(f"{action} failed: {e}") from e


class LoaderStore:
    """
    DuckDB connection shared by the audit ledger and the target tables.

    One database holds both, so an audit write and the rows it describes commit
    or roll back together. Use as a context manager; transactions are opened per
    file with transaction().
    """

    def __init__(self, *, database: str, read_only: bool = False):
        self._database = database
        self._read_only = read_only
        self._connection: duckdb.DuckDBPyConnection | None = None

    def __enter__(self) -> "LoaderStore":
        if self._connection is not None:
            raise RuntimeError("Store connection already open")

        with store_errors(f"Connecting to {self._database}"):
            self._connection = duckdb.connect(self._database, read_only=self._read_only)

        logger.debug("Store connected. database=%s", self._database)
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        if self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            self._connection = None

    @property
    def database(self) -> str:
        return self._database

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            raise RuntimeError("Store is not connected; use it as a context manager")
        return self._connection

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Commit on normal exit; roll back and re-raise on any exception."""
        conn = self.connection
        with store_errors("BEGIN TRANSACTION"):
            conn.execute("BEGIN TRANSACTION")
        try:
            yield conn
        except Exception:
            # the failure that caused the rollback is the one re-raised
            try:
                with store_errors("ROLLBACK"):
                    conn.execute("ROLLBACK")
            except StoreError:
                logger.exception("Could not roll back transaction")
            else:
                logger.debug("Transaction rolled back")
            raise
        else:
            with store_errors("COMMIT"):
                conn.execute("COMMIT")
