# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
from bughunter.normalizer import normalize_function, remove_blank_lines, remove_comments


def test_norm_001_remove_comments_keeps_line_numbering_for_block_comments() -> None:
    text = "\n".join(
        [
            "int f(int a) {",
            "  /* first",
            "     second */",
            "  return a; // trailing",
            "}",
        ]
    )

    cleaned = remove_comments(text)

    assert cleaned.split("\n") == ["int f(int a) {", "  ", "", "  return a; ", "}"]


def test_norm_002_block_comment_match_is_non_greedy() -> None:
    cleaned = remove_comments("a /* x */ b /* y */ c")

    assert cleaned == "a  b  c"


def test_norm_003_unterminated_block_comment_is_left_in_place() -> None:
    text = "int x; /* never closed\nint y;"

    assert remove_comments(text) == text


def test_norm_004_remove_blank_lines_records_ascending_shift_map() -> None:
    cleaned, shift_map = remove_blank_lines("a\n\n  \nb\n\t\nc")

    assert cleaned == "a\nb\nc"
    assert shift_map == [1, 2, 4]


def test_norm_005_remove_blank_lines_is_idempotent() -> None:
    once, first_shift = remove_blank_lines("x\n\ny\n   \nz\n")
    twice, second_shift = remove_blank_lines(once)

    assert first_shift == [1, 3, 5]
    assert twice == once
    assert second_shift == []


def test_norm_006_normalize_round_trips_line_count_through_shift_map() -> None:
    original = "\n".join(
        [
            "void g() {",
            "  // only a comment",
            "",
            "  /* block",
            "     spanning */ call();",
            "  return;",
            "}",
        ]
    )

    normalized, shift_map = normalize_function(original)

    assert len(normalized.split("\n")) + len(shift_map) == len(original.split("\n"))
    assert all(line.strip() for line in normalized.split("\n"))
    assert "//" not in normalized
    assert "/*" not in normalized
    assert shift_map == sorted(shift_map)
