"""Context snippet selection.

Given the full text of a retrieved chunk and the question's anchor tokens,
picks a bounded, readable quotation in two phases:

1. Section-anchored. The line with the most anchor hits (headings get a
   bonus) is located, the snippet starts at the nearest heading above it (searched
   within MAX_SECTION_LINES lines, the matched line included) and
   collects following lines up to MAX_SECTION_LINES or the character budget.
   The budget stretches as far as needed to include the matched line; a
   matched line longer than the whole budget skips this phase. A
   section that mentions recovery objectives keeps growing until both RTO
   and RPO are present (at most RECOVERY_EXTRA_LINES more lines).

2. Sentence fallback. The earliest anchor occurrence is widened to its
   sentence, padded to a minimum length, and clamped to the budget on
   sentence or word boundaries.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence, Tuple

from answerforge.retrieval.anchors import (
    count_token_hits,
    earliest_token_span,
    has_token,
)
from answerforge.shared.text_utils import normalize_newlines, normalize_whitespace

DEFAULT_SNIPPET_CHARS = 520
MAX_SECTION_LINES = 12
RECOVERY_EXTRA_LINES = 6
HEADING_BONUS = 1
MAX_LABEL_HEADING_CHARS = 60

RECOVERY_PHRASE = "recovery objective"
RECOVERY_PAIRED_TOKENS: Tuple[str, ...] = ("rto", "rpo")

_MARKDOWN_HEADING = re.compile(r"^\s{0,3}#{1,6}\s+\S")
_LABEL_HEADING = re.compile(r"^[A-Z][A-Za-z0-9 ,/&()'+.-]*:$")
_SENTENCE_BOUNDARY = re.compile(r"[.!?](?=\s|$)|\n")


def is_heading(line: str) -> bool:
    """Markdown heading, or a short capitalized line ending in a colon."""
    stripped = line.strip()
    if not stripped:
        return False
    if _MARKDOWN_HEADING.match(stripped):
        return True
    return len(stripped) <= MAX_LABEL_HEADING_CHARS and bool(
        _LABEL_HEADING.match(stripped)
    )


def select_snippet(
    content: str,
    anchor_tokens: Sequence[str],
    snippet_chars: int = DEFAULT_SNIPPET_CHARS,
) -> str:
    """Select a quotation from content around the anchor tokens.

    Args:
        content: Full chunk text
        anchor_tokens: Lowercased tokens from extract_anchor_tokens()
        snippet_chars: Target character budget

    Returns:
        The snippet, or "" when content is blank.
    """
    text = normalize_newlines(content or "")
    if not normalize_whitespace(text):
        return ""

    tokens = [token for token in anchor_tokens if token]
    if tokens:
        section = _select_section(text, tokens, snippet_chars)
        if section:
            return section

    return _select_fallback(text, tokens, snippet_chars)


# ---------------------------------------------------------------------------
# Phase 1: section-anchored
# ---------------------------------------------------------------------------


def _best_line(lines: Sequence[str], tokens: Sequence[str]) -> int:
    best_index, best_score = -1, 0
    for index, line in enumerate(lines):
        hits = count_token_hits(line.lower(), tokens)
        if not hits:
            continue
        score = hits + (HEADING_BONUS if is_heading(line) else 0)
        if score > best_score:
            best_index, best_score = index, score
    return best_index


def _section_start(lines: Sequence[str], anchor: int) -> int:
    """Nearest heading at or above the anchor within one section window."""
    floor = max(-1, anchor - MAX_SECTION_LINES)
    for index in range(anchor, floor, -1):
        if is_heading(lines[index]):
            return index
    return anchor


def _accumulate(
    lines: Sequence[str], start: int, anchor: int, budget: int
) -> Tuple[List[str], int, int]:
    """Collect non-blank lines from start.

    Returns the selected lines, the index of the first line not consumed,
    and the character count used.
    """
    selected: List[str] = []
    used = 0
    index = start
    while index < len(lines) and len(selected) < MAX_SECTION_LINES:
        line = lines[index].strip()
        if not line:
            index += 1
            continue
        cost = len(line) + (1 if selected else 0)
        if index > anchor and used + cost > budget:
            break
        selected.append(line)
        used += cost
        index += 1
    return selected, index, used


def _missing_recovery_pair(selected: Sequence[str]) -> bool:
    joined = " ".join(selected).lower()
    if RECOVERY_PHRASE not in joined:
        return False
    return not all(has_token(joined, token) for token in RECOVERY_PAIRED_TOKENS)


def _extend_for_recovery(
    lines: Sequence[str],
    selected: List[str],
    next_index: int,
    used: int,
    hard_cap: int,
) -> List[str]:
    extra = 0
    index = next_index
    while (
        _missing_recovery_pair(selected)
        and extra < RECOVERY_EXTRA_LINES
        and index < len(lines)
    ):
        line = lines[index].strip()
        index += 1
        if not line:
            continue
        cost = len(line) + 1
        if used + cost > hard_cap:
            break
        selected.append(line)
        used += cost
        extra += 1
    return selected


def _select_section(text: str, tokens: Sequence[str], snippet_chars: int) -> str:
    lines = text.split("\n")
    anchor = _best_line(lines, tokens)
    if anchor < 0:
        return ""

    # A single line longer than the budget is a paragraph, not a section
    if len(lines[anchor].strip()) > snippet_chars:
        return ""

    hard_cap = snippet_chars * 2
    start = _section_start(lines, anchor)
    selected, next_index, used = _accumulate(lines, start, anchor, snippet_chars)
    if used > hard_cap and start != anchor:
        selected, next_index, used = _accumulate(lines, anchor, anchor, snippet_chars)

    selected = _extend_for_recovery(lines, selected, next_index, used, hard_cap)
    return "\n".join(selected).strip()


# ---------------------------------------------------------------------------
# Phase 2: sentence fallback
# ---------------------------------------------------------------------------


def _flatten(text: str) -> str:
    """Collapse whitespace runs to one char, keeping line breaks as '\\n'.

    The result has the same length as normalize_whitespace(text), so offsets
    carry over between the two.
    """
    return re.sub(
        r"\s+", lambda m: "\n" if "\n" in m.group(0) else " ", text
    ).strip()


def _sentence_start(flat: str, pos: int) -> int:
    start = 0
    for match in _SENTENCE_BOUNDARY.finditer(flat):
        if match.end() > pos:
            break
        start = match.end()
    while start < pos and flat[start].isspace():
        start += 1
    return start


def _sentence_end(flat: str, pos: int) -> int:
    match = _SENTENCE_BOUNDARY.search(flat, pos)
    if match is None:
        return len(flat)
    return match.end()


def _snap_start_forward(flat: str, start: int, ceiling: int) -> int:
    """Move start to the beginning of a word without passing ceiling."""
    if start <= 0 or flat[start - 1].isspace():
        return start
    for index in range(start, ceiling):
        if flat[index].isspace():
            return index + 1
    return start


def _snap_end_back(flat: str, start: int, limit: int, min_end: int) -> int:
    """Pick an end at or before limit on a sentence, else word, boundary."""
    limit = min(limit, len(flat))
    if limit >= len(flat):
        return len(flat)

    preferred_floor = max(min_end, start + (limit - start) // 2)
    sentence_end: Optional[int] = None
    for match in _SENTENCE_BOUNDARY.finditer(flat, preferred_floor):
        if match.end() > limit:
            break
        sentence_end = match.end()
    if sentence_end is not None:
        return sentence_end

    if not flat[limit].isspace():
        for index in range(limit - 1, max(min_end, start) - 1, -1):
            if flat[index].isspace():
                return index
    return limit


def _pad(flat: str, start: int, end: int, floor: int) -> Tuple[int, int]:
    """Widen [start, end) symmetrically to at least floor characters."""
    missing = floor - (end - start)
    if missing <= 0:
        return start, end

    left = missing // 2
    right = missing - left
    new_start = start - left
    new_end = end + right
    if new_start < 0:
        new_end -= new_start
        new_start = 0
    if new_end > len(flat):
        new_start = max(0, new_start - (new_end - len(flat)))
        new_end = len(flat)

    new_start = _snap_start_forward(flat, new_start, start)
    if new_end < len(flat) and not flat[new_end].isspace():
        for index in range(new_end, end - 1, -1):
            if flat[index].isspace():
                new_end = index
                break
    return new_start, new_end


def _select_fallback(text: str, tokens: Sequence[str], snippet_chars: int) -> str:
    flat = _flatten(text)
    if len(flat) <= snippet_chars:
        return normalize_whitespace(flat)

    span = earliest_token_span(flat.lower(), tokens) if tokens else None
    if span is None:
        end = _snap_end_back(flat, 0, snippet_chars, 0)
        return normalize_whitespace(flat[:end])

    anchor_start, anchor_end = span
    start = _sentence_start(flat, anchor_start)
    end = _sentence_end(flat, anchor_end)
    start, end = _pad(flat, start, end, snippet_chars // 2)

    if end - start > snippet_chars:
        if start + snippet_chars < anchor_end:
            start = _snap_start_forward(flat, anchor_end - snippet_chars, anchor_start)
        end = _snap_end_back(flat, start, start + snippet_chars, anchor_end)

    return normalize_whitespace(flat[start:end])
