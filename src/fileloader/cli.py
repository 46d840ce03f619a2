"""Command-line entry point for loading delimited files.

fileloader -s <specfile>.json (-d <directory> | -f <file>) [-r] [-t <interval>]
"""

import argparse
import logging
from logging.config import dictConfig
from pathlib import Path
from typing import Sequence

from fileloader.config import load_loader_config
from fileloader.errors import ConfigError, SourceReadError, StoreError
from fileloader.file_loader import FileLoader, discover_files
from fileloader.settings import build_logging_config
from fileloader.store import LoaderStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_LOAD_FAILURES = 1
EXIT_USAGE = 2


def _non_negative_int(value: str) -> int:
    parsed = int(value)
    if parsed < 0:
        raise argparse.ArgumentTypeError(f"must be zero or positive, got {value}")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fileloader",
        description="Load delimited files into database tables as described by a mapping definition.",
    )
    parser.add_argument("-s", "--spec", required=True, type=Path, help="Source-to-target specification file (JSON or YAML)")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("-d", "--directory", type=Path, help="Directory containing data files to be loaded")
    source.add_argument("-f", "--file", type=Path, help="Individual file to be loaded")
    parser.add_argument(
        "-r", "--replace", action="store_true", help="Replace data previously loaded from a file with the same name"
    )
    parser.add_argument(
        "-t", "--trace", type=_non_negative_int, default=0, help="Log records processed at the specified interval"
    )
    parser.add_argument("--log-level", default="INFO", help="Console log level (default: INFO)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Returns 0 when every matching load committed or was skipped, 1 if any rolled back, 2 on setup errors."""
    args = build_parser().parse_args(argv)
    dictConfig(build_logging_config(args.log_level))

    try:
        config = load_loader_config(args.spec)
        files = [args.file] if args.file is not None else discover_files(args.directory)
    except (ConfigError, SourceReadError) as e:
        logger.critical("%s", e)
        return EXIT_USAGE

    try:
        with LoaderStore(database=config.target_database) as store:
            loader = FileLoader.from_config(config, store, replace_existing=args.replace, trace=args.trace)
            summary = loader.load_all(files)
    except StoreError:
        logger.critical("Could not prepare the audit store %s", config.target_database, exc_info=True)
        return EXIT_USAGE

    return EXIT_OK if summary.ok else EXIT_LOAD_FAILURES


if __name__ == "__main__":
    raise SystemExit(main())
