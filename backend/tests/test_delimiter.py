"""Tests for CSV delimiter detection."""

from __future__ import annotations

from sheetstore.utils.delimiter import (
    consistency,
    count_outside_quotes,
    detect_delimiter,
    detect_delimiter_from_text,
)


def test_comma_separated() -> None:
    assert detect_delimiter_from_text("a,b,c\n1,2,3\n4,5,6") == ","


def test_semicolon_separated_with_decimal_commas() -> None:
    text = "name;price;qty\nWidget;19,99;5\nGadget;5,00;2"
    assert detect_delimiter_from_text(text) == ";"


def test_tab_separated() -> None:
    assert detect_delimiter_from_text("a\tb\n1\t2\n3\t4") == "\t"


def test_delimiters_inside_quotes_are_ignored() -> None:
    text = 'name;note\n"Widget, large";"a, b, c"\n"Gadget";"x"'
    assert detect_delimiter_from_text(text) == ";"


def test_defaults_to_comma() -> None:
    assert detect_delimiter_from_text("") == ","
    assert detect_delimiter_from_text("single column\nvalue") == ","


def test_count_outside_quotes_handles_escaped_quotes() -> None:
    assert count_outside_quotes('"He said ""hi, there""",2', ",") == 1


def test_consistency() -> None:
    assert consistency([]) == 0.0
    assert consistency([3]) == 1.0
    assert consistency([2, 2, 2, 1]) == 0.75


def test_detect_from_file(tmp_path) -> None:
    path = tmp_path / "data.csv"
    path.write_text("\ufeffa;b\n1;2\n", encoding="utf-8")
    assert detect_delimiter(path) == ";"


def test_unreadable_file_defaults_to_comma(tmp_path) -> None:
    assert detect_delimiter(tmp_path / "missing.csv") == ","
