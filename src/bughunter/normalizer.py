# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Comment and blank-line normalization for C-family function text."""

import logging
import re

logger = logging.getLogger(__name__)

# Non-greedy: the first ``*/`` closes a ``/*``. An unterminated block comment
# does not match and is left in place.
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"//[^\n]*")


def remove_comments(text: str) -> str:
    """Remove ``/* ... */`` and ``// ...`` comments without shifting lines.

    Each removed block comment is replaced by as many newlines as it spanned,
    so the line numbers of surviving code are unchanged.

    Args:
        text: Source text.

    Returns:
        Source text with comment spans removed.
    """
    without_blocks = _BLOCK_COMMENT.sub(
        lambda match: "\n" * match.group(0).count("\n"), text
    )
    return _LINE_COMMENT.sub("", without_blocks)


def remove_blank_lines(text: str) -> tuple[str, list[int]]:
    """Drop whitespace-only lines and record where they were.

    Args:
        text: Source text.

    Returns:
        The cleaned text and the strictly ascending 0-based indexes of the
        dropped lines in the input numbering.
    """
    kept: list[str] = []
    shift_map: list[int] = []
    for index, line in enumerate(text.split("\n")):
        if line.lstrip():
            kept.append(line)
        else:
            shift_map.append(index)
    return "\n".join(kept), shift_map


def normalize_function(text: str) -> tuple[str, list[int]]:
    """Strip comments, then blank lines, from one function body."""
    cleaned, shift_map = remove_blank_lines(remove_comments(text))
    if not cleaned:
        logger.debug(f"Function normalized to empty text (dropped_lines={len(shift_map)})")
    return cleaned, shift_map
