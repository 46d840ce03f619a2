import logging
import time
from pathlib import Path
from typing import Callable

from fileloader.audit_ledger import AuditLedger
from fileloader.batch_writer import BatchWriter, delete_existing
from fileloader.config import FileMapping
from fileloader.delimited_reader import iter_rows
from fileloader.domain import AuditKey, LoadOutcome, LoadStatus
from fileloader.errors import LoadFailedError
from fileloader.metadata import compile_source_pattern, extract_metadata, matches
from fileloader.metrics import LoadSession, format_count
from fileloader.row_mapper import RowMapper, build_insert_statement
from fileloader.store import Connection, LoaderStore

logger = logging.getLogger(__name__)


class FileSpecification:
    """
    Loads files matching one mapping into its target table.

    Each load runs in a single transaction:
      audit lookup -> insert / (delete + reset) / skip -> read -> map -> batch insert -> commit

    Any failure rolls back the audit write together with every batch already
    inserted for the file.
    """

    def __init__(
        self,
        mapping: FileMapping,
        store: LoaderStore,
        ledger: AuditLedger,
        *,
        batch_threshold: int,
        replace_existing: bool = False,
        trace: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.mapping = mapping
        self.store = store
        self.ledger = ledger
        self.batch_threshold = batch_threshold
        self.replace_existing = replace_existing
        self.trace = trace
        self._clock = clock

        self.pattern = compile_source_pattern(mapping.source_pattern)
        self.statement = build_insert_statement(
            mapping.target_table,
            mapping.target_columns,
            include_system_columns=mapping.source_id is not None,
        )
        self.mapper = RowMapper(mapping.target_columns, mapping.source_id)

        if self.mapper.parameter_count != self.statement.parameter_count:
            raise ValueError(
                f"Insert for {mapping.target_table} binds {self.statement.parameter_count} parameters "
                f"but rows map to {self.mapper.parameter_count}"
            )

    @property
    def target_table(self) -> str:
        return self.mapping.target_table

    def matches(self, file_name: str) -> bool:
        return matches(file_name, self.pattern)

    def load(self, source_file: Path) -> LoadOutcome:
        """
        Load one file. The caller has already checked matches().

        Raises LoadFailedError, chaining the original error, when anything fails;
        by then the transaction has been rolled back.
        """
        file_name = source_file.name
        logger.info("Processing source file %s", file_name)

        session: LoadSession | None = None
        try:
            metadata = extract_metadata(
                file_name,
                self.pattern,
                date_group=self.mapping.date_group,
                date_format=self.mapping.date_format,
                type_group=self.mapping.type_group,
            )
            session = LoadSession.start(metadata, clock=self._clock)

            with self.store.transaction() as conn:
                return self._load_in_transaction(conn, source_file, session)

        except Exception as e:
            records = session.records if session else 0
            logger.error(
                "\tAn exception occurred while processing record %s in %s. "
                "All transactions for this file have been rolled back.",
                format_count(records),
                file_name,
            )
            raise LoadFailedError(file_name, self.target_table, records) from e

        finally:
            if session is not None:
                logger.info("\tCompleted processing of %s", session.progress())

    def _load_in_transaction(self, conn: Connection, source_file: Path, session: LoadSession) -> LoadOutcome:
        file_name = source_file.name
        key = AuditKey(
            source_id=self.mapping.source_id,
            file_name=file_name,
            table_name=self.target_table,
            load_type=session.load_type,
            effective_date=session.effective_date,
        )

        replaced = False
        file_id = self.ledger.lookup(conn, key)
        if file_id is None:
            file_id = self.ledger.insert(conn, key)
        elif self.replace_existing:
            delete_existing(conn, self.target_table, file_id if self.mapping.source_id is not None else None)
            self.ledger.reset(conn, file_id)
            replaced = True
        else:
            logger.info("\tSkipping previously loaded file %s (file id %s)", file_name, file_id)
            return LoadOutcome(
                file_name=file_name,
                target_table=self.target_table,
                status=LoadStatus.SKIPPED,
                file_id=file_id,
            )

        writer = BatchWriter(conn, self.statement, self.batch_threshold)
        for values in iter_rows(source_file, self.mapping.syntax):
            writer.add(self.mapper.map(values, file_id, session))
            records = session.count()
            if self.trace > 0 and records % self.trace == 0:
                logger.info("\tProcessed %s", session.progress())
        writer.flush()

        return LoadOutcome(
            file_name=file_name,
            target_table=self.target_table,
            status=LoadStatus.COMMITTED,
            records=session.records,
            file_id=file_id,
            elapsed_seconds=session.elapsed_seconds,
            replaced=replaced,
        )
