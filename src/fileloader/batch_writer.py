import logging
from typing import Any

from fileloader.metrics import format_count
from fileloader.row_mapper import InsertStatement
from fileloader.settings import SYSTEM_COL_FILE_ID
from fileloader.store import Connection, store_errors

logger = logging.getLogger(__name__)


class BatchWriter:
    """
    Buffers insert parameters and writes them with executemany.

    A flush happens whenever the buffer reaches the threshold, and once more
    for the remainder at end of file. All flushes go through the connection of
    the file's transaction.
    """

    def __init__(self, conn: Connection, statement: InsertStatement, threshold: int):
        if threshold < 1:
            raise ValueError(f"Batch threshold must be positive, got {threshold}")
        self._conn = conn
        self.statement = statement
        self.threshold = threshold
        self._buffer: list[tuple[Any, ...]] = []
        self.flushes = 0
        self.rows_written = 0

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def add(self, params: tuple[Any, ...]) -> int:
        """Buffer one row; returns the number of rows flushed as a result (usually 0)."""
        self._buffer.append(params)
        if len(self._buffer) >= self.threshold:
            return self.flush()
        return 0

    def flush(self) -> int:
        if not self._buffer:
            return 0

        count = len(self._buffer)
        with store_errors(f"Batch insert into {self.statement.table}"):
            self._conn.executemany(self.statement.sql, self._buffer)

        self._buffer.clear()
        self.flushes += 1
        self.rows_written += count
        logger.debug("\tInserted %s records into %s", format_count(count), self.statement.table)
        return count


def delete_existing(conn: Connection, table: str, file_id: int | None) -> int:
    """
    Remove rows previously loaded for a file.

    Without a file id the rows cannot be attributed, so the whole table is cleared.
    """
    if file_id is None:
        logger.warning("\tNo source id configured; deleting all existing records from %s", table)
        sql, params = f"DELETE FROM {table}", []
    else:
        sql, params = f"DELETE FROM {table} WHERE {SYSTEM_COL_FILE_ID} = ?", [file_id]

    with store_errors(f"Delete from {table}"):
        row = conn.execute(sql, params).fetchone()

    count = int(row[0]) if row and row[0] is not None else 0
    logger.info("\tDeleted %s existing records from %s", format_count(count), table)
    return count
