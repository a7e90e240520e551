"""Regexes and line heuristics used by the source scanner.

The scanner is a line/regex scanner, not a tokenizer. Everything that
pretends to understand Rust syntax lives here so it can be swapped out
without touching the scanning pass itself.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from crategate.scanner.types import ViolationType

FUNCTION_DEF = re.compile(
    r"^\s*(pub(\([^)]*\))?\s+)?(const\s+)?(async\s+)?(unsafe\s+)?(extern\s+\"[^\"]*\"\s+)?fn\s+\w+"
)
UNDERSCORE_PARAM = re.compile(r"fn\s+\w+[^{]*?(?<!\w)(_\w*)\s*:(?!:)")
UNDERSCORE_LET = re.compile(r"^\s*let\s+_\s*=")
UNWRAP_CALL = re.compile(r"\.unwrap\(\)")
EXPECT_CALL = re.compile(r"\.expect\(")
MOD_DECL = re.compile(r"^\s*(pub(\([^)]*\))?\s+)?mod\s+\w+")

CFG_TEST_MARKER = "#[cfg(test)]"
TEST_FUNCTION_MARKERS: tuple[str, ...] = ("#[test]", "#[tokio::test", "#[bench]")
ATTRIBUTE_OPENERS = ("#[", "#![")


def is_attribute_or_trivia(stripped: str) -> bool:
    """True for blank, comment and attribute-only lines, which sit between an attribute and its item."""
    if not stripped or stripped.startswith("//"):
        return True
    return stripped.startswith(ATTRIBUTE_OPENERS) and stripped.endswith("]")


# File-leading `allow` markers and the violation class each one disables.
SUPPRESSION_MARKERS: dict[str, str] = {
    "clippy::unwrap_used": "unwrap",
    "clippy::expect_used": "expect",
    "clippy::too_many_lines": ViolationType.FUNCTION_TOO_LARGE.value,
}


def is_in_string_literal(line: str, pattern: str) -> bool:
    """Return True when ``pattern`` only occurs inside a ``"..."`` literal on ``line``.

    Walks the line toggling an in-string flag on every double quote, with a
    backslash skipping the following character. As soon as the pattern is
    seen starting outside a string the answer is False; otherwise the
    answer is whether the pattern appears in the line at all.

    Known limitations, kept deliberately: strings spanning several lines,
    raw strings (``r#"..."#``) and char literals such as ``'"'`` are not
    understood, so those lines may be misjudged.
    """
    in_string = False
    escaped = False
    for index, char in enumerate(line):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
        elif char == '"':
            in_string = not in_string
        elif not in_string and line.startswith(pattern, index):
            return False
    return pattern in line


def leading_suppressions(lines: Sequence[str]) -> frozenset[str]:
    """Collect suppression markers from the attribute block at the top of a file.

    Blank lines, ``//`` comments and ``#`` attributes (including multi-line
    attribute bodies) are scanned; the first ordinary line ends the scan.
    """
    found: set[str] = set()
    bracket_depth = 0
    for raw in lines:
        stripped = raw.strip()
        if bracket_depth > 0:
            _collect_markers(stripped, found)
            bracket_depth += stripped.count("[") - stripped.count("]")
            continue
        if not stripped or stripped.startswith("//"):
            continue
        if stripped.startswith("#"):
            _collect_markers(stripped, found)
            bracket_depth = stripped.count("[") - stripped.count("]")
            continue
        break
    return frozenset(found)


def _collect_markers(text: str, found: set[str]) -> None:
    for marker, suppressed in SUPPRESSION_MARKERS.items():
        if marker in text:
            found.add(suppressed)


def is_test_path(path: str) -> bool:
    """Return True for files that only ever hold test or benchmark code."""
    normalized = path.replace("\\", "/")
    return (
        "/tests/" in normalized
        or normalized.startswith("tests/")
        or "/benches/" in normalized
        or normalized.startswith("benches/")
        or normalized.endswith("_test.rs")
    )
