import json
import logging
import os
import re
from pathlib import Path
from typing import Literal, Self

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from fileloader.domain import DelimitedSyntax
from fileloader.errors import ConfigError
from fileloader.metadata import to_strptime_format
from fileloader.settings import (
    DEFAULT_AUDIT_SEQUENCE,
    DEFAULT_AUDIT_TABLE,
    DEFAULT_BATCH_THRESHOLD,
    DEFAULT_ENCODING,
    DEFAULT_ESCAPE,
    DEFAULT_QUOTECHAR,
    DEFAULT_SEPARATOR,
    SYSTEM_COLUMNS,
)

logger = logging.getLogger(__name__)

_IDENTIFIER = r"[A-Za-z_][A-Za-z0-9_]*"
COLUMN_NAME_RE = re.compile(rf"^{_IDENTIFIER}$")
TABLE_NAME_RE = re.compile(rf"^{_IDENTIFIER}(\.{_IDENTIFIER}){{0,2}}$")
IN_MEMORY_DATABASE = ":memory:"


class StrictBaseModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        strict=True,
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FileMapping(StrictBaseModel):
    """One source-pattern-to-target-table mapping."""

    source_pattern: str
    date_group: int | None = Field(default=None, ge=1)
    date_format: str | None = None
    type_group: int | None = Field(default=None, ge=1)
    source_id: int | None = None

    target_table: str
    target_columns: list[str]  # "" skips the source column at that position

    parser_line: int = Field(default=0, ge=0)
    parser_separator: str = DEFAULT_SEPARATOR
    parser_quotechar: str = DEFAULT_QUOTECHAR
    parser_escape: str = DEFAULT_ESCAPE
    parser_strict_quotes: bool = False
    parser_ignore_leading_white_space: bool = True

    encoding: str = DEFAULT_ENCODING
    batch_threshold: int | None = Field(default=None, gt=0)

    @field_validator("source_pattern")
    @classmethod
    def check_pattern_compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"sourcePattern '{value}' is not a valid regular expression: {e}") from e
        return value

    @field_validator("parser_separator", "parser_quotechar", "parser_escape")
    @classmethod
    def check_single_character(cls, value: str) -> str:
        if len(value) != 1:
            raise ValueError(f"Parser characters must be exactly one character, got {value!r}")
        return value

    @field_validator("date_format")
    @classmethod
    def check_date_format(cls, value: str | None) -> str | None:
        if value is not None:
            to_strptime_format(value)
        return value

    @model_validator(mode="after")
    def validate_spec(self) -> Self:
        if self.date_group is not None and not self.date_format:
            raise ValueError("dateFormat must be specified when dateGroup is set")

        if not TABLE_NAME_RE.match(self.target_table):
            raise ValueError(f"Invalid targetTable '{self.target_table}'")

        kept = self.kept_columns
        if not kept:
            raise ValueError("targetColumns must contain at least one non-empty column name")

        for column_name in kept:
            if not COLUMN_NAME_RE.match(column_name):
                raise ValueError(f"Invalid column name '{column_name}'. Must start with a letter or underscore, "
                                 "followed by letters, digits, or underscores.")

        if duplicates := {name for name in kept if kept.count(name) > 1}:
            raise ValueError(f"Duplicate column names found in targetColumns: {sorted(duplicates)}")

        if self.source_id is not None:
            if clashes := {c.lower() for c in kept} & set(SYSTEM_COLUMNS):
                raise ValueError(f"targetColumns may not include system columns when sourceId is set: {sorted(clashes)}")

        return self

    @property
    def kept_columns(self) -> list[str]:
        return [column for column in self.target_columns if column != ""]

    @property
    def syntax(self) -> DelimitedSyntax:
        return DelimitedSyntax(
            separator=self.parser_separator,
            quotechar=self.parser_quotechar,
            escape=self.parser_escape,
            skip_lines=self.parser_line,
            strict_quotes=self.parser_strict_quotes,
            ignore_leading_whitespace=self.parser_ignore_leading_white_space,
            encoding=self.encoding,
        )


class LoaderConfig(StrictBaseModel):
    # auditUrl/targetUrl and the credential keys are accepted from older mapping files
    audit_database: str = Field(default=IN_MEMORY_DATABASE, validation_alias=AliasChoices("auditDatabase", "auditUrl"))
    target_database: str = Field(default=IN_MEMORY_DATABASE, validation_alias=AliasChoices("targetDatabase", "targetUrl"))
    audit_user: str | None = None
    audit_password: str | None = Field(default=None, repr=False)
    target_user: str | None = None
    target_password: str | None = Field(default=None, repr=False)
    audit_table: str = DEFAULT_AUDIT_TABLE
    audit_sequence: str = DEFAULT_AUDIT_SEQUENCE
    file_id_strategy: Literal["sequence", "max"] = "sequence"
    auto_bootstrap: bool = True

    batch_threshold: int = Field(default=DEFAULT_BATCH_THRESHOLD, gt=0)
    mappings: list[FileMapping] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_spec(self) -> Self:
        for database in (self.audit_database, self.target_database):
            if database.lower().startswith("jdbc:"):
                raise ValueError(f"'{database}' is a JDBC URL; auditUrl/targetUrl must name a DuckDB database file")

        # Audit and data writes share one transaction, so they must share one database.
        if _normalise_database(self.audit_database) != _normalise_database(self.target_database):
            raise ValueError(
                f"auditDatabase '{self.audit_database}' and targetDatabase '{self.target_database}' "
                "must be the same database"
            )

        for name in (self.audit_table, self.audit_sequence):
            if not TABLE_NAME_RE.match(name):
                raise ValueError(f"Invalid audit object name '{name}'")

        return self

    @property
    def has_credentials(self) -> bool:
        return any((self.audit_user, self.audit_password, self.target_user, self.target_password))

    def threshold_for(self, mapping: FileMapping) -> int:
        return mapping.batch_threshold or self.batch_threshold


def _normalise_database(database: str) -> str:
    if database == IN_MEMORY_DATABASE:
        return database
    return os.path.normcase(os.path.abspath(database))


def load_loader_config(file_path: str | Path) -> LoaderConfig:
    """Read a JSON (or YAML) mapping definition."""
    path = Path(file_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read mapping definition {path}: {e}") from e

    try:
        if path.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Mapping definition {path} is not valid JSON/YAML: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Mapping definition {path} must contain an object at the top level")

    try:
        config = LoaderConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Error loading mapping definition from {path}: {e}") from e

    if config.has_credentials:
        logger.warning("Ignoring audit/target user and password in %s; DuckDB databases take no credentials", path)

    logger.info("Loaded %s file mappings from %s", len(config.mappings), path)
    return config
