import logging
from typing import Protocol

from fileloader.config import LoaderConfig
from fileloader.domain import AuditKey
from fileloader.errors import StoreError
from fileloader.settings import DEFAULT_AUDIT_SEQUENCE, DEFAULT_AUDIT_TABLE, PROCESSED_FLAG_PENDING
from fileloader.store import Connection, store_errors

logger = logging.getLogger(__name__)


class FileIdGenerator(Protocol):
    def bootstrap(self, conn: Connection) -> None:
        ...

    def next_file_id(self, conn: Connection) -> int:
        ...


class SequenceFileIdGenerator:
    def __init__(self, sequence: str = DEFAULT_AUDIT_SEQUENCE):
        self.sequence = sequence

    def bootstrap(self, conn: Connection) -> None:
        schema, _, _ = self.sequence.rpartition(".")
        if schema:
            conn.execute(f"CREATE SCHEMA IF NOT EXISTS {schema}")
        conn.execute(f"CREATE SEQUENCE IF NOT EXISTS {self.sequence} START 1")

    def next_file_id(self, conn: Connection) -> int:
        row = conn.execute(f"SELECT nextval('{self.sequence}')").fetchone()
        if row is None:
            raise StoreError(f"Sequence {self.sequence} returned no value")
        return int(row[0])


class MaxPlusOneFileIdGenerator:
    """For stores without sequences. Only safe with a single writer."""

    def __init__(self, audit_table: str = DEFAULT_AUDIT_TABLE):
        self.audit_table = audit_table

    def bootstrap(self, conn: Connection) -> None:
        pass

    def next_file_id(self, conn: Connection) -> int:
        row = conn.execute(f"SELECT COALESCE(MAX(file_id), 0) + 1 FROM {self.audit_table}").fetchone()
        return int(row[0]) if row else 1


class AuditLedger:
    """
    Record of which (source, file, table, type, date) combinations have been loaded.

    Every method takes the connection of the caller's open transaction, so audit
    writes commit or roll back with the data they describe.

    Table:
      <audit_table>(file_id, source_id, file_name, table_name, etl_type, etl_date, processed_flag)
    """

    def __init__(self, *, table: str = DEFAULT_AUDIT_TABLE, id_generator: FileIdGenerator | None = None):
        self.table = table
        self.id_generator = id_generator or SequenceFileIdGenerator()

    # ----------------------------
    # Public API
    # ----------------------------
    def lookup(self, conn: Connection, key: AuditKey) -> int | None:
        source_clause = "source_id IS NULL" if key.source_id is None else "source_id = ?"
        params: list[object] = [] if key.source_id is None else [key.source_id]
        params += [key.file_name, key.table_name, key.load_type, key.effective_date]

        with store_errors(f"Select from {self.table}"):
            rows = conn.execute(
                f"""
                SELECT file_id FROM {self.table}
                WHERE {source_clause} AND file_name = ? AND table_name = ? AND etl_type = ? AND etl_date = ?
                """,
                params,
            ).fetchall()

        if len(rows) > 1:
            raise StoreError(f"{len(rows)} audit records match {key}; expected at most one")

        file_id = int(rows[0][0]) if rows else None
        logger.debug("\tSelect %s returned %s", self.table, file_id)
        return file_id

    def insert(self, conn: Connection, key: AuditKey) -> int:
        with store_errors(f"Insert into {self.table}"):
            file_id = self.id_generator.next_file_id(conn)
            conn.execute(
                f"""
                INSERT INTO {self.table}
                (file_id, source_id, file_name, table_name, etl_type, etl_date, processed_flag)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    file_id,
                    key.source_id,
                    key.file_name,
                    key.table_name,
                    key.load_type,
                    key.effective_date,
                    PROCESSED_FLAG_PENDING,
                ],
            )

        logger.debug("\tInsert into %s returned fileId %s", self.table, file_id)
        return file_id

    def reset(self, conn: Connection, file_id: int) -> None:
        with store_errors(f"Update {self.table}"):
            conn.execute(
                f"UPDATE {self.table} SET processed_flag = ? WHERE file_id = ?",
                [PROCESSED_FLAG_PENDING, file_id],
            )
        logger.debug("\tReset processed_flag of file %s in %s", file_id, self.table)

    # ----------------------------
    # Bootstrap
    # ----------------------------
    def bootstrap(self, conn: Connection) -> None:
        parts = self.table.split(".")
        with store_errors(f"Bootstrap of {self.table}"):
            if len(parts) > 1:
                conn.execute(f"CREATE SCHEMA IF NOT EXISTS {'.'.join(parts[:-1])}")

            self.id_generator.bootstrap(conn)

            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                  file_id         BIGINT     PRIMARY KEY,
                  source_id       INTEGER,
                  file_name       VARCHAR    NOT NULL,
                  table_name      VARCHAR    NOT NULL,
                  etl_type        VARCHAR(1) NOT NULL,
                  etl_date        TIMESTAMP  NOT NULL,
                  processed_flag  VARCHAR(1) NOT NULL
                );
                """
            )


def build_audit_ledger(config: LoaderConfig) -> AuditLedger:
    id_generator: FileIdGenerator
    if config.file_id_strategy == "max":
        id_generator = MaxPlusOneFileIdGenerator(config.audit_table)
    else:
        id_generator = SequenceFileIdGenerator(config.audit_sequence)
    return AuditLedger(table=config.audit_table, id_generator=id_generator)
