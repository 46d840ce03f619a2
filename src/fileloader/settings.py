import os
from typing import Any
from pathlib import Path

PROJECT_NAME = "fileloader"

# Paths
PROJECT_ROOT_DIR = Path(__file__).parent.parent.parent.resolve()
LOG_FOLDER = Path(os.getenv("FILELOADER_LOG_DIR", PROJECT_ROOT_DIR / "logs"))

# Audit ledger
DEFAULT_AUDIT_TABLE = "audit_file"
DEFAULT_AUDIT_SEQUENCE = "seq_audit"
DEFAULT_BATCH_THRESHOLD = 1000
DEFAULT_LOAD_TYPE = "I"
PROCESSED_FLAG_PENDING = "N"
PROCESSED_FLAG_DONE = "Y"

# System Columns (appended to every insert when a mapping has a source id)
SYSTEM_COL_SOURCE_ID = "source_id"
SYSTEM_COL_FILE_ID = "file_id"
SYSTEM_COL_RECORD_ID = "record_id"
SYSTEM_COLUMNS = (SYSTEM_COL_SOURCE_ID, SYSTEM_COL_FILE_ID, SYSTEM_COL_RECORD_ID)

# Record ids are YYYYMMDD followed by this many digits of per-file sequence
RECORD_ID_SEQUENCE_DIGITS = 10

# Delimited parser defaults
DEFAULT_SEPARATOR = ","
DEFAULT_QUOTECHAR = '"'
DEFAULT_ESCAPE = "\\"
DEFAULT_ENCODING = "utf-8"


# Logging Configuration

LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(message)s"
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": "INFO",
        },
        "rotating_file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "standard",
            "level": "DEBUG",
            "filename": str(LOG_FOLDER / "fileloader.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "encoding": "utf8",
            "delay": True,
        },
    },
    "loggers": {
        "": {  # root logger
            "handlers": ["console", "rotating_file"],
            "level": "DEBUG",
            "propagate": True
        },
    }

}


def build_logging_config(console_level: str = "INFO") -> dict[str, Any]:
    os.makedirs(LOG_FOLDER, exist_ok=True)
    config = {**LOGGING_CONFIG, "handlers": {k: dict(v) for k, v in LOGGING_CONFIG["handlers"].items()}}
    config["handlers"]["console"]["level"] = console_level.upper()
    return config
