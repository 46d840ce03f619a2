from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class DelimitedSyntax:
    """Tokenising options for a delimited source file."""
    separator: str = ","
    quotechar: str = '"'
    escape: str = "\\"
    skip_lines: int = 0
    strict_quotes: bool = False
    ignore_leading_whitespace: bool = True
    encoding: str = "utf-8"


@dataclass(frozen=True)
class FileMetadata:
    """What a file name says about its contents."""
    effective_date: datetime
    load_type: str


@dataclass(frozen=True)
class AuditKey:
    """
    Lookup identity of an audit record.

    A (source, file, table, type, date) combination is loaded at most once unless
    a replace load is requested.
    """
    source_id: int | None
    file_name: str
    table_name: str
    load_type: str
    effective_date: datetime


class LoadStatus(str, Enum):
    COMMITTED = "COMMITTED"
    SKIPPED = "SKIPPED"
    ROLLED_BACK = "ROLLED_BACK"


@dataclass(frozen=True)
class LoadOutcome:
    """Result of one file against one specification."""
    file_name: str
    target_table: str
    status: LoadStatus
    records: int = 0
    file_id: int | None = None
    elapsed_seconds: float = 0.0
    replaced: bool = False


@dataclass
class RunSummary:
    files_seen: int = 0
    files_unmatched: int = 0
    committed: int = 0
    skipped: int = 0
    failed: int = 0
    records_loaded: int = 0

    def add(self, outcome: LoadOutcome) -> None:
        if outcome.status is LoadStatus.COMMITTED:
            self.committed += 1
            self.records_loaded += outcome.records
        elif outcome.status is LoadStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def ok(self) -> bool:
        return self.failed == 0
