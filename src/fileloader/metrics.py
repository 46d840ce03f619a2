import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from fileloader.domain import FileMetadata
from fileloader.metadata import record_id_seed


@dataclass
class LoadSession:
    """
    Per-file state of one load: metadata, the record id counter and progress.

    Created when a file's load starts and discarded when it ends.
    """
    effective_date: datetime
    load_type: str
    record_id: int  # last id handed out; starts at the seed
    records: int = 0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    started_at: float = field(init=False)

    def __post_init__(self) -> None:
        self.started_at = self.clock()

    @classmethod
    def start(cls, metadata: FileMetadata, clock: Callable[[], float] = time.monotonic) -> "LoadSession":
        return cls(
            effective_date=metadata.effective_date,
            load_type=metadata.load_type,
            record_id=record_id_seed(metadata.effective_date),
            clock=clock,
        )

    def next_record_id(self) -> int:
        self.record_id += 1
        return self.record_id

    def count(self) -> int:
        self.records += 1
        return self.records

    @property
    def elapsed_seconds(self) -> float:
        return max(self.clock() - self.started_at, 0.0)

    def records_per_second(self) -> float:
        elapsed = self.elapsed_seconds
        return self.records / elapsed if elapsed > 0 else 0.0

    def progress(self) -> str:
        return (
            f"{format_count(self.records)} records in {format_duration(self.elapsed_seconds)} "
            f"({self.records_per_second():.2f} rps)"
        )


def format_count(count: int) -> str:
    return f"{count:,}"


def format_duration(seconds: float) -> str:
    """HH:MM:SS.mmm"""
    total_ms = int(round(seconds * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"
