"""Tests for the delimited-text parser."""

from __future__ import annotations

import pytest

from dealflow.errors import StructuralError
from dealflow.pipelines.parser import decode, parse, split_line

# =========================================================================
# split_line
# =========================================================================


class TestSplitLine:
    """Tests for the quote-aware line splitter."""

    def test_plain_fields(self):
        assert split_line("a,b,c") == ["a", "b", "c"]

    def test_quoted_comma_and_doubled_quotes(self):
        line = 'Acme, "Smith, John","Note with ""quotes"""'
        assert split_line(line) == ["Acme", "Smith, John", 'Note with "quotes"']

    def test_fields_are_trimmed(self):
        assert split_line("  a ,  b  ") == ["a", "b"]

    def test_empty_fields_preserved(self):
        assert split_line("a,,c,") == ["a", "", "c", ""]

    def test_quoted_empty_field(self):
        assert split_line('"",x') == ["", "x"]

    def test_single_field(self):
        assert split_line("only") == ["only"]

    def test_custom_delimiter(self):
        assert split_line('a;"b;c"', delimiter=";") == ["a", "b;c"]


# =========================================================================
# decode
# =========================================================================


class TestDecode:
    def test_strips_utf8_bom(self):
        assert decode("\ufeffname".encode("utf-8")) == "name"

    def test_latin1_fallback(self):
        assert decode("Café".encode("latin-1")) == "Café"


# =========================================================================
# parse
# =========================================================================


class TestParse:
    """Tests for whole-file parsing."""

    def test_headers_lowercased_and_trimmed(self):
        parsed = parse(b" Name , EMAIL\nAcme,a@b.com\n")
        assert parsed.headers == ["name", "email"]

    def test_rows_keyed_by_header(self):
        parsed = parse(b"name,email\nAcme,a@b.com\nBeta,b@c.com\n")
        assert parsed.rows == [
            {"name": "Acme", "email": "a@b.com"},
            {"name": "Beta", "email": "b@c.com"},
        ]
        assert parsed.total_rows == 2

    def test_short_rows_padded_with_empty_strings(self):
        parsed = parse(b"a,b,c\n1\n")
        assert parsed.rows == [{"a": "1", "b": "", "c": ""}]

    def test_blank_and_empty_rows_skipped(self):
        parsed = parse(b"a,b\n1,2\n\n   \n,\n3,4\n")
        assert [r["a"] for r in parsed.rows] == ["1", "3"]
        assert parsed.empty_rows_skipped == 1

    def test_windows_line_endings(self):
        parsed = parse(b"a,b\r\n1,2\r\n")
        assert parsed.rows == [{"a": "1", "b": "2"}]

    def test_empty_header_columns_dropped(self):
        parsed = parse(b"a,,c\n1,2,3\n")
        assert parsed.headers == ["a", "c"]
        assert parsed.rows == [{"a": "1", "c": "3"}]

    def test_accepts_text(self):
        parsed = parse("name\nÜber Café\n")
        assert parsed.rows[0]["name"] == "Über Café"

    def test_header_only_is_structural_error(self):
        with pytest.raises(StructuralError, match="at least one data row"):
            parse(b"name,email\n")

    def test_empty_file_is_structural_error(self):
        with pytest.raises(StructuralError):
            parse(b"")

    def test_blank_lines_do_not_count(self):
        with pytest.raises(StructuralError):
            parse(b"\n\nname\n\n")

    def test_only_empty_data_rows_is_structural_error(self):
        with pytest.raises(StructuralError, match="No data rows"):
            parse(b"a,b\n,\n")

    def test_blank_header_is_structural_error(self):
        with pytest.raises(StructuralError, match="headers"):
            parse(b",,\n1,2,3\n")

    def test_oversized_file_is_structural_error(self):
        with pytest.raises(StructuralError, match="byte limit"):
            parse(b"a\n1\n", max_bytes=2)
