import logging
from pathlib import Path
from typing import Generator

from fileloader.domain import DelimitedSyntax
from fileloader.errors import SourceReadError

logger = logging.getLogger(__name__)


class LineTokenizer:
    """
    Splits physical lines into fields.

    Rules:
      - the separator ends a field unless it is inside quotes
      - inside a field, the escape character escapes only a quote or another escape
        character; before anything else it is dropped
      - a doubled quote inside a field is a literal quote
      - a quote in the middle of unquoted text is kept as text, unless strict quotes
        is on or only whitespace precedes it (ignore_leading_whitespace)
      - with strict quotes, characters outside quotes are dropped
      - a quoted field may run onto following lines; feed() returns None until the
        record is complete

    Rows are not validated: a short, long or oddly quoted row comes out as parsed.
    """

    def __init__(self, syntax: DelimitedSyntax):
        self.syntax = syntax
        self._fields: list[str] = []
        self._pending: str | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def feed(self, line: str) -> list[str] | None:
        s = self.syntax
        field: list[str] = []
        in_quotes = in_field = False
        if self._pending is not None:
            field.append(self._pending)
            self._pending = None
            in_quotes = in_field = True

        i, n = 0, len(line)
        while i < n:
            c = line[i]
            following = line[i + 1] if i + 1 < n else None
            inside = in_quotes or in_field

            if c == s.escape:
                if inside and following in (s.quotechar, s.escape):
                    field.append(following)
                    i += 1
            elif c == s.quotechar:
                if inside and following == s.quotechar:
                    field.append(following)
                    i += 1
                else:
                    if not s.strict_quotes and self._is_embedded_quote(line, i):
                        if s.ignore_leading_whitespace and "".join(field).isspace():
                            field.clear()
                        else:
                            field.append(c)
                    in_quotes = not in_quotes
                in_field = not in_field
            elif c == s.separator and not in_quotes:
                self._fields.append("".join(field))
                field.clear()
                in_field = False
            elif in_quotes or not s.strict_quotes:
                field.append(c)
                in_field = True

            i += 1

        if in_quotes:
            self._pending = "".join(field) + "\n"
            return None

        return self._complete("".join(field))

    def finish(self) -> list[str] | None:
        """The partial record left by an unterminated quoted field, if any."""
        if self._pending is None:
            return None
        last = self._pending[:-1]
        self._pending = None
        return self._complete(last)

    def _complete(self, last: str) -> list[str]:
        fields, self._fields = self._fields, []
        fields.append(last)
        return fields

    def _is_embedded_quote(self, line: str, i: int) -> bool:
        # neither at the start of the line nor next to a separator
        sep = self.syntax.separator
        return 0 < i < len(line) - 1 and line[i - 1] != sep and line[i + 1] != sep


def iter_rows(file_path: Path, syntax: DelimitedSyntax) -> Generator[list[str], None, None]:
    """
    Yield one list of field strings per record of a delimited file.

    The first ``syntax.skip_lines`` physical lines are discarded. The generator is
    single-use; re-reading means calling this again.
    """
    tokenizer = LineTokenizer(syntax)
    line_number = 0
    try:
        with open(file_path, "r", encoding=syntax.encoding) as f:
            for _ in range(syntax.skip_lines):
                if not f.readline():
                    break
                line_number += 1

            for line in f:
                line_number += 1
                row = tokenizer.feed(line.rstrip("\n"))
                if row is not None:
                    yield row

            row = tokenizer.finish()
            if row is not None:
                logger.warning("\tUnterminated quoted field at end of %s; passing the partial record through",
                               file_path.name)
                yield row

    except UnicodeDecodeError as e:
        raise SourceReadError(f"{file_path.name} is not valid {syntax.encoding} near line {line_number + 1}: {e}") from e
    except OSError as e:
        raise SourceReadError(f"Error reading {file_path}: {e}") from e
