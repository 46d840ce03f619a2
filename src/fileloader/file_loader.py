import logging
import os
from pathlib import Path
from typing import Iterable, Sequence

from fileloader.audit_ledger import build_audit_ledger
from fileloader.config import LoaderConfig
from fileloader.domain import LoadOutcome, LoadStatus, RunSummary
from fileloader.errors import LoadFailedError, ParseError, SourceReadError, StoreError
from fileloader.file_specification import FileSpecification
from fileloader.store import LoaderStore

logger = logging.getLogger(__name__)


class FileLoader:
    """
    Routes candidate files to every FileSpecification whose pattern matches.

    Files and specifications are handled one at a time, in order. A failure in
    one specification is logged and recorded as ROLLED_BACK; the run continues.
    """

    def __init__(self, specs: Sequence[FileSpecification]):
        self.specs = list(specs)

    @classmethod
    def from_config(
        cls,
        config: LoaderConfig,
        store: LoaderStore,
        *,
        replace_existing: bool = False,
        trace: int = 0,
    ) -> "FileLoader":
        ledger = build_audit_ledger(config)
        if config.auto_bootstrap:
            with store.transaction() as conn:
                ledger.bootstrap(conn)

        specs = [
            FileSpecification(
                mapping,
                store,
                ledger,
                batch_threshold=config.threshold_for(mapping),
                replace_existing=replace_existing,
                trace=trace,
            )
            for mapping in config.mappings
        ]
        return cls(specs)

    def load(self, source_file: Path) -> list[LoadOutcome]:
        outcomes: list[LoadOutcome] = []
        for spec in self.specs:
            if not spec.matches(source_file.name):
                continue

            try:
                outcomes.append(spec.load(source_file))
            except LoadFailedError as e:
                logger.exception(
                    "\tThe following %s occurred while attempting to load %s into %s at record %s",
                    _describe_failure(e.__cause__),
                    e.file_name,
                    e.target_table,
                    e.records,
                )
                outcomes.append(
                    LoadOutcome(
                        file_name=e.file_name,
                        target_table=e.target_table,
                        status=LoadStatus.ROLLED_BACK,
                        records=e.records,
                    )
                )
            except Exception:
                logger.exception(
                    "\tThe following error occurred while attempting to load %s into %s",
                    source_file.name,
                    spec.target_table,
                )
                outcomes.append(
                    LoadOutcome(file_name=source_file.name, target_table=spec.target_table, status=LoadStatus.ROLLED_BACK)
                )

        return outcomes

    def load_all(self, files: Iterable[Path]) -> RunSummary:
        summary = RunSummary()
        for source_file in files:
            summary.files_seen += 1
            outcomes = self.load(source_file)
            if not outcomes:
                logger.debug("No file specification matches %s", source_file.name)
                summary.files_unmatched += 1
            for outcome in outcomes:
                summary.add(outcome)

        logger.info(
            "Load run complete. files=%s unmatched=%s committed=%s skipped=%s failed=%s records=%s",
            summary.files_seen,
            summary.files_unmatched,
            summary.committed,
            summary.skipped,
            summary.failed,
            f"{summary.records_loaded:,}",
        )
        return summary


def _describe_failure(cause: BaseException | None) -> str:
    if isinstance(cause, ParseError):
        return "parsing error"
    if isinstance(cause, (SourceReadError, OSError)):
        return "IO error"
    if isinstance(cause, StoreError):
        return "store error"
    return "error"


def discover_files(directory: Path) -> list[Path]:
    """Regular files directly inside directory, sorted by name."""
    if not directory.is_dir():
        raise SourceReadError(f"{directory.absolute()} does not appear to be a directory.")

    discovered: list[Path] = []
    with os.scandir(directory) as it:
        for entry in it:
            if entry.is_file():
                discovered.append(Path(entry.path))

    return sorted(discovered, key=lambda p: p.name)
