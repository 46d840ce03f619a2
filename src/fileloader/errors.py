class FileLoaderError(Exception):
    pass


class ConfigError(FileLoaderError, ValueError):
    """Mapping definition is missing, unreadable or invalid. Fatal at startup."""


class ParseError(FileLoaderError, ValueError):
    """A date captured from a file name does not match the mapping's dateFormat."""


class SourceReadError(FileLoaderError, OSError):
    """A source file could not be opened, decoded or tokenised."""


class StoreError(FileLoaderError):
    """An audit or target statement was rejected by the database."""


class LoadFailedError(FileLoaderError):
    """
    Raised by a FileSpecification after its transaction has been rolled back.

    The original error is chained as __cause__.
    """

    def __init__(self, file_name: str, target_table: str, records: int):
        super().__init__(
            f"Load of {file_name} into {target_table} failed at record {records}; "
            "all work for this file was rolled back"
        )
        self.file_name = file_name
        self.target_table = target_table
        self.records = records
