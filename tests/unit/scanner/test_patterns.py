"""Unit tests for scanner regexes and line heuristics."""

from __future__ import annotations

import pytest

from crategate.scanner.patterns import (
    FUNCTION_DEF,
    UNDERSCORE_PARAM,
    is_attribute_or_trivia,
    is_in_string_literal,
    is_test_path,
    leading_suppressions,
)


@pytest.mark.parametrize(
    "line",
    [
        "fn main() {",
        "    pub fn add(a: i32) -> i32 {",
        "pub(crate) async fn fetch() {",
        "pub const unsafe fn raw() {",
        'extern "C" fn callback() {',
    ],
)
def test_function_headers_match(line: str) -> None:
    assert FUNCTION_DEF.match(line)


@pytest.mark.parametrize("line", ["let f = fn_ptr;", "// fn commented()", "struct Fn;"])
def test_non_headers_do_not_match(line: str) -> None:
    assert FUNCTION_DEF.match(line) is None


def test_underscore_param_matches_any_position() -> None:
    match = UNDERSCORE_PARAM.search("fn handle(ctx: &Ctx, _unused: u8) {")
    assert match is not None
    assert match.group(1) == "_unused"


def test_underscore_param_ignores_paths_and_inner_underscores() -> None:
    assert UNDERSCORE_PARAM.search("fn parse(raw_input: &str) -> io::Result<()> {") is None
    assert UNDERSCORE_PARAM.search("fn build(x: std::_private::T) {") is None


def test_is_in_string_literal_only_inside_quotes() -> None:
    assert is_in_string_literal('let s = "x.unwrap()";', ".unwrap()") is True
    assert is_in_string_literal("x.unwrap();", ".unwrap()") is False


def test_is_in_string_literal_outside_occurrence_wins() -> None:
    line = 'log("x.unwrap()"); y.unwrap();'
    assert is_in_string_literal(line, ".unwrap()") is False


def test_is_in_string_literal_handles_escaped_quotes() -> None:
    line = r'let s = "say \"hi\" .unwrap()";'
    assert is_in_string_literal(line, ".unwrap()") is True


def test_is_in_string_literal_absent_pattern() -> None:
    assert is_in_string_literal("let x = 1;", ".unwrap()") is False


def test_leading_suppressions_stop_at_first_statement() -> None:
    lines = [
        "// header",
        "#![allow(clippy::unwrap_used)]",
        "",
        "use std::io;",
        "#![allow(clippy::expect_used)]",
    ]
    assert leading_suppressions(lines) == frozenset({"unwrap"})


def test_leading_suppressions_multi_line_attribute() -> None:
    lines = [
        "#![allow(",
        "    clippy::expect_used,",
        "    clippy::too_many_lines,",
        ")]",
        "fn main() {}",
    ]
    assert leading_suppressions(lines) == frozenset({"expect", "function-too-large"})


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("tests/api.rs", True),
        ("crates/core/tests/api.rs", True),
        ("benches/speed.rs", True),
        ("src/codec_test.rs", True),
        ("src/lib.rs", False),
        ("src/testsuite.rs", False),
    ],
)
def test_is_test_path(path: str, expected: bool) -> None:
    assert is_test_path(path) is expected


@pytest.mark.parametrize(
    ("stripped", "expected"),
    [
        ("", True),
        ("// note", True),
        ("/// Docs.", True),
        ("#[test]", True),
        ("#![allow(dead_code)]", True),
        ("#[cfg(test)] use std::fmt;", False),
        ("mod tests;", False),
        ("use std::fmt;", False),
    ],
)
def test_is_attribute_or_trivia(stripped: str, expected: bool) -> None:
    assert is_attribute_or_trivia(stripped) is expected
