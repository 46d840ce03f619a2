"""Unit tests for the delimited reader."""

from __future__ import annotations

import pytest

from fileloader.delimited_reader import LineTokenizer, iter_rows
from fileloader.domain import DelimitedSyntax
from fileloader.errors import SourceReadError


def test_iter_rows_skips_leading_lines(write_file) -> None:
    """parserLine lines are discarded before tokenising."""
    path = write_file("a.csv", ["id,value", "1,one", "2,two"])

    rows = list(iter_rows(path, DelimitedSyntax(skip_lines=1)))

    assert rows == [["1", "one"], ["2", "two"]]


def test_iter_rows_honours_separator_and_quote(write_file) -> None:
    """Custom separator and quote characters are applied."""
    path = write_file("a.txt", ["1|'a|b'|c"])

    rows = list(iter_rows(path, DelimitedSyntax(separator="|", quotechar="'")))

    assert rows == [["1", "a|b", "c"]]


def test_iter_rows_keeps_newlines_inside_quotes(write_file) -> None:
    """A quoted field may span physical lines."""
    path = write_file("a.csv", ['1,"first', 'second"', "2,plain"])

    rows = list(iter_rows(path, DelimitedSyntax()))

    assert rows == [["1", "first\nsecond"], ["2", "plain"]]


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ('"a\\"b",c', ['a"b', "c"]),
        ('"a\\\\b"', ["a\\b"]),
        ("a\\,b,c", ["a", "b", "c"]),
        ("a\\b", ["ab"]),
    ],
)
def test_escape_applies_only_to_quote_and_escape(line, expected) -> None:
    """Before any other character the escape is dropped and does not protect it."""
    assert LineTokenizer(DelimitedSyntax()).feed(line) == expected


def test_doubled_quote_is_a_literal_quote() -> None:
    """Two quotes inside a quoted field yield one."""
    assert LineTokenizer(DelimitedSyntax()).feed('"say ""hi""",x') == ['say "hi"', "x"]


def test_quote_inside_unquoted_text_is_kept() -> None:
    """A quote in the middle of a field is part of the value."""
    assert LineTokenizer(DelimitedSyntax()).feed('a,bc"d"ef,g') == ["a", 'bc"d"ef', "g"]


@pytest.mark.parametrize(
    ("line", "strict", "expected"),
    [
        ('1,"a"b', True, ["", "a"]),
        ('1,"a"b', False, ["1", 'a"b']),
        ('x,"y"', True, ["", "y"]),
        ('x,"y"', False, ["x", "y"]),
    ],
)
def test_strict_quotes_drops_text_outside_quotes(line, strict, expected) -> None:
    """Strict quoting keeps only quoted content and never rejects the row."""
    assert LineTokenizer(DelimitedSyntax(strict_quotes=strict)).feed(line) == expected


def test_iter_rows_strict_quotes_passes_malformed_rows_through(write_file) -> None:
    """Odd quoting under strict mode does not fail the file."""
    path = write_file("a.csv", ['1,"a"b', '"2","b"'])

    assert list(iter_rows(path, DelimitedSyntax(strict_quotes=True))) == [["", "a"], ["2", "b"]]


def test_leading_whitespace_before_quote() -> None:
    """Whitespace before an opening quote is discarded only when requested."""
    assert LineTokenizer(DelimitedSyntax(ignore_leading_whitespace=True)).feed('1,  "two"') == ["1", "two"]
    assert LineTokenizer(DelimitedSyntax(ignore_leading_whitespace=False)).feed('1,  "two"') == ["1", '  "two']


def test_leading_whitespace_of_unquoted_field_is_kept() -> None:
    """Unquoted values are not trimmed."""
    assert LineTokenizer(DelimitedSyntax(ignore_leading_whitespace=True)).feed("1,  two") == ["1", "  two"]


def test_iter_rows_passes_unterminated_quote_through(write_file) -> None:
    """A quoted field still open at end of file is yielded as read."""
    path = write_file("a.csv", ["0,ok", '1,"abc'])

    assert list(iter_rows(path, DelimitedSyntax())) == [["0", "ok"], ["1", "abc"]]


def test_iter_rows_passes_ragged_rows_through(write_file) -> None:
    """Short and long rows are yielded as read."""
    path = write_file("a.csv", ["1", "1,2,3"])

    assert list(iter_rows(path, DelimitedSyntax())) == [["1"], ["1", "2", "3"]]


def test_iter_rows_missing_file_raises_source_read_error(tmp_path) -> None:
    """Opening happens lazily and fails as SourceReadError."""
    rows = iter_rows(tmp_path / "missing.csv", DelimitedSyntax())

    with pytest.raises(SourceReadError):
        next(rows)


def test_iter_rows_undecodable_bytes_raise_source_read_error(tmp_path) -> None:
    """Bytes that are not valid in the configured encoding fail the read."""
    path = tmp_path / "a.csv"
    path.write_bytes(b"1,\xff\xfe\n")

    with pytest.raises(SourceReadError):
        list(iter_rows(path, DelimitedSyntax(encoding="utf-8")))
