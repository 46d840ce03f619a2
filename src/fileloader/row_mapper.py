from dataclasses import dataclass
from typing import Any, Sequence

from fileloader.metrics import LoadSession
from fileloader.settings import SYSTEM_COLUMNS


@dataclass(frozen=True)
class InsertStatement:
    table: str
    columns: tuple[str, ...]
    sql: str

    @property
    def parameter_count(self) -> int:
        return len(self.columns)


def build_insert_statement(table: str, target_columns: Sequence[str], include_system_columns: bool) -> InsertStatement:
    """
    Parameterised insert for the kept target columns.

    With a source id configured, source_id, file_id and record_id are appended.
    """
    columns = [column for column in target_columns if column != ""]
    if include_system_columns:
        columns.extend(SYSTEM_COLUMNS)

    column_list = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    return InsertStatement(
        table=table,
        columns=tuple(columns),
        sql=f"INSERT INTO {table} ({column_list}) VALUES ({placeholders})",
    )


class RowMapper:
    """Projects raw fields into insert-parameter order."""

    def __init__(self, target_columns: Sequence[str], source_id: int | None = None):
        self.source_id = source_id
        self._positions = tuple(i for i, column in enumerate(target_columns) if column != "")

    @property
    def parameter_count(self) -> int:
        return len(self._positions) + (len(SYSTEM_COLUMNS) if self.source_id is not None else 0)

    def map(self, values: Sequence[str], file_id: int, session: LoadSession) -> tuple[Any, ...]:
        # Missing trailing fields become "" rather than failing the row.
        field_count = len(values)
        params: list[Any] = [values[i] if i < field_count else "" for i in self._positions]

        if self.source_id is not None:
            params += [self.source_id, file_id, session.next_record_id()]

        return tuple(params)
