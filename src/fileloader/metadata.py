import logging
import re
from datetime import datetime

from fileloader.domain import FileMetadata
from fileloader.errors import ParseError
from fileloader.settings import DEFAULT_LOAD_TYPE, RECORD_ID_SEQUENCE_DIGITS

logger = logging.getLogger(__name__)

# quoted literal | run of one pattern letter | any other single character
_DATE_PATTERN_TOKEN = re.compile(r"'([^']*)'|([A-Za-z])\2*|.", re.DOTALL)

_DATE_PATTERN_LETTERS = {
    "d": "%d",
    "H": "%H",
    "h": "%I",
    "m": "%M",
    "s": "%S",
    "S": "%f",
    "a": "%p",
}


def compile_source_pattern(source_pattern: str) -> re.Pattern[str]:
    return re.compile(source_pattern, re.IGNORECASE)


def matches(file_name: str, pattern: re.Pattern[str]) -> bool:
    """Routing predicate: the whole file name must match, case-insensitively."""
    return pattern.fullmatch(file_name) is not None


def to_strptime_format(date_format: str) -> str:
    """
    Accepts either a strptime format or a letter pattern such as ``MMddyyyy``.

    Letter patterns are translated token by token; text in single quotes is
    literal and ``''`` is a single quote.
    """
    if "%" in date_format:
        return date_format

    parts: list[str] = []
    for token in _DATE_PATTERN_TOKEN.finditer(date_format):
        quoted, letter = token.group(1), token.group(2)
        if quoted is not None:
            parts.append(quoted.replace("%", "%%") if quoted else "'")
        elif letter is not None:
            parts.append(_translate_letter_run(letter, len(token.group(0))))
        else:
            parts.append(token.group(0))
    return "".join(parts)


def _translate_letter_run(letter: str, width: int) -> str:
    if letter == "y":
        return "%y" if width == 2 else "%Y"
    if letter == "M":
        if width >= 4:
            return "%B"
        return "%b" if width == 3 else "%m"
    if letter == "E":
        return "%A" if width >= 4 else "%a"
    try:
        return _DATE_PATTERN_LETTERS[letter]
    except KeyError:
        raise ValueError(f"Unsupported date pattern letter '{letter}'") from None


def extract_metadata(
    file_name: str,
    pattern: re.Pattern[str],
    *,
    date_group: int | None = None,
    date_format: str | None = None,
    type_group: int | None = None,
    now: datetime | None = None,
) -> FileMetadata:
    """
    Derive the effective date and load type from a file name.

    Uses search rather than fullmatch: a name that does not match at all still
    gets the defaults (now, "I").
    """
    effective_date = now if now is not None else datetime.now()
    load_type = DEFAULT_LOAD_TYPE

    match = pattern.search(file_name)
    if not match:
        logger.debug("File name %s does not contain pattern %s; using defaults", file_name, pattern.pattern)
        return FileMetadata(effective_date=effective_date, load_type=load_type)

    if date_group is not None and date_group <= pattern.groups and date_format:
        captured = match.group(date_group)
        if captured is not None:
            effective_date = parse_effective_date(captured, date_format, file_name)

    if type_group is not None and type_group <= pattern.groups:
        captured = match.group(type_group)
        if captured:
            load_type = captured[0].upper()

    return FileMetadata(effective_date=effective_date, load_type=load_type)


def parse_effective_date(captured: str, date_format: str, file_name: str) -> datetime:
    try:
        return datetime.strptime(captured, to_strptime_format(date_format))
    except ValueError as e:
        raise ParseError(
            f"Date '{captured}' in file name {file_name} does not match format '{date_format}': {e}"
        ) from e


def record_id_seed(effective_date: datetime) -> int:
    """YYYYMMDD followed by ten zero digits; the first row of a file gets seed + 1."""
    return int(effective_date.strftime("%Y%m%d")) * 10 ** RECORD_ID_SEQUENCE_DIGITS
