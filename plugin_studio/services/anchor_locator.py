"""
Anchor Locator - find where a hunk applies in a possibly drifted buffer

Strategies run in strict priority order and the first hit wins:
exact text, whitespace-normalized text, context-before anchor,
context-after anchor. Every match is a span of the buffer plus the exact
text that replaces it, so the applier never has to guess a length.
When a block occurs more than once, the occurrence nearest the hunk's
header line wins.
"""

from __future__ import annotations

import re

from ..models.patch import AnchorMatch, AnchorStrategy, HunkBlocks

_WS_RUN_RE = re.compile(r"[ \t]+")
_BLANKS = (" ", "\t")


def normalize_ws(text: str) -> str:
    """Collapse runs of spaces/tabs to one space and trim"""
    return _WS_RUN_RE.sub(" ", text).strip()


def _collapse_with_map(text: str) -> tuple[str, list[int]]:
    """Collapse blank runs, keeping the raw offset of every output char"""
    chars: list[str] = []
    offsets: list[int] = []
    i = 0
    while i < len(text):
        if text[i] in _BLANKS:
            j = i
            while j < len(text) and text[j] in _BLANKS:
                j += 1
            chars.append(" ")
            offsets.append(i)
            i = j
        else:
            chars.append(text[i])
            offsets.append(i)
            i += 1
    return "".join(chars), offsets


def _line_of(buffer: str, offset: int) -> int:
    return buffer.count("\n", 0, offset) + 1


def _nearest(buffer: str, candidates: list[AnchorMatch], old_start: int | None) -> AnchorMatch:
    """The candidate closest to the header line; earliest on ties or without a header line"""
    if old_start is None:
        return candidates[0]
    return min(candidates, key=lambda match: abs(_line_of(buffer, match.start) - old_start))


def _exact(buffer: str, blocks: HunkBlocks) -> AnchorMatch | None:
    candidates = []
    idx = buffer.find(blocks.old_block)
    while idx != -1:
        candidates.append(
            AnchorMatch(
                start=idx,
                end=idx + len(blocks.old_block),
                replacement=blocks.new_block,
                strategy=AnchorStrategy.EXACT,
            )
        )
        idx = buffer.find(blocks.old_block, idx + 1)
    return _nearest(buffer, candidates, blocks.old_start) if candidates else None


def _skip_blanks_back(buffer: str, pos: int) -> int:
    while pos > 0 and buffer[pos - 1] in _BLANKS:
        pos -= 1
    return pos


def _skip_blanks_forward(buffer: str, pos: int) -> int:
    while pos < len(buffer) and buffer[pos] in _BLANKS:
        pos += 1
    return pos


def _widen_start(buffer: str, start: int, prefix: str) -> int | None:
    """
    Move `start` back over the whitespace the trim dropped from the front
    of the old block: its indentation and one buffer line per leading
    newline. Those lines must be blank in the buffer too.
    """
    if not prefix:
        return start
    newlines = prefix.count("\n")
    start = _skip_blanks_back(buffer, start)
    for _ in range(newlines):
        if start == 0 or buffer[start - 1] != "\n":
            return None
        start = _skip_blanks_back(buffer, start - 1)
    if newlines and start > 0 and buffer[start - 1] != "\n":
        return None
    return start


def _widen_end(buffer: str, end: int, suffix: str) -> int | None:
    """Mirror of _widen_start for the whitespace trimmed off the end"""
    if not suffix:
        return end
    newlines = suffix.count("\n")
    end = _skip_blanks_forward(buffer, end)
    for _ in range(newlines):
        if end >= len(buffer) or buffer[end] != "\n":
            return None
        end = _skip_blanks_forward(buffer, end + 1)
    if newlines and end < len(buffer) and buffer[end] != "\n":
        return None
    return end


def _whitespace_normalized(buffer: str, blocks: HunkBlocks) -> AnchorMatch | None:
    needle = normalize_ws(blocks.old_block)
    if not needle:
        return None
    old_block = blocks.old_block
    prefix = old_block[: len(old_block) - len(old_block.lstrip())]
    suffix = old_block[len(old_block.rstrip()) :]

    haystack, offsets = _collapse_with_map(buffer)
    candidates = []
    idx = haystack.find(needle)
    while idx != -1:
        # The needle is trimmed, so both ends land on non-blank chars
        start = _widen_start(buffer, offsets[idx], prefix)
        end = _widen_end(buffer, offsets[idx + len(needle) - 1] + 1, suffix)
        if start is not None and end is not None:
            candidates.append(
                AnchorMatch(
                    start=start,
                    end=end,
                    replacement=blocks.new_block,
                    strategy=AnchorStrategy.WHITESPACE,
                )
            )
        idx = haystack.find(needle, idx + 1)
    return _nearest(buffer, candidates, blocks.old_start) if candidates else None


def _segments(blocks: HunkBlocks) -> tuple[str, str]:
    old_seg = "".join(line + "\n" for line in blocks.old_core)
    new_seg = "".join(line + "\n" for line in blocks.new_core)
    return old_seg, new_seg


def _core_match(
    buffer: str, start: int, end: int, new_seg: str, strategy: AnchorStrategy
) -> AnchorMatch:
    """
    Turn a line-aligned span found in `buffer + "\\n"` into a span of the
    real buffer, so the synthetic final newline never reaches the result.
    """
    size = len(buffer)
    if end <= size:
        return AnchorMatch(start=start, end=end, replacement=new_seg, strategy=strategy)

    if start > size:
        # Insertion after the last line
        replacement = "\n" + new_seg[:-1] if new_seg else ""
        return AnchorMatch(start=size, end=size, replacement=replacement, strategy=strategy)

    # The span runs through the last line
    if new_seg:
        return AnchorMatch(start=start, end=size, replacement=new_seg[:-1], strategy=strategy)
    return AnchorMatch(start=max(start - 1, 0), end=size, replacement="", strategy=strategy)


def _anchor_before(buffer: str, padded: str, blocks: HunkBlocks) -> AnchorMatch | None:
    if not blocks.context_before:
        return None
    anchor = buffer.find(blocks.context_before)
    if anchor == -1:
        return None

    old_seg, new_seg = _segments(blocks)
    pos = padded.find("\n" + old_seg, anchor + len(blocks.context_before))
    if pos == -1:
        return None
    start = pos + 1
    return _core_match(buffer, start, start + len(old_seg), new_seg, AnchorStrategy.ANCHOR_BEFORE)


def _anchor_after(buffer: str, padded: str, blocks: HunkBlocks) -> AnchorMatch | None:
    if not blocks.context_after:
        return None
    anchor = buffer.find(blocks.context_after)
    if anchor == -1:
        return None

    old_seg, new_seg = _segments(blocks)
    pos = padded.rfind(old_seg, 0, anchor)
    # Only whole lines count
    while pos > 0 and padded[pos - 1] != "\n":
        pos = padded.rfind(old_seg, 0, pos + len(old_seg) - 1)
    if pos == -1:
        return None
    return _core_match(buffer, pos, pos + len(old_seg), new_seg, AnchorStrategy.ANCHOR_AFTER)


def find_anchor(buffer: str, blocks: HunkBlocks) -> AnchorMatch | None:
    """Locate a hunk in the buffer, or None when it cannot be placed safely"""
    if not blocks.old_block:
        # Nothing to anchor on: only a new-file hunk against an empty buffer
        if not buffer:
            return AnchorMatch(start=0, end=0, replacement=blocks.new_block, strategy=AnchorStrategy.EXACT)
        return None

    match = _exact(buffer, blocks) or _whitespace_normalized(buffer, blocks)
    if match is not None:
        return match

    padded = buffer if buffer.endswith("\n") else buffer + "\n"
    return _anchor_before(buffer, padded, blocks) or _anchor_after(buffer, padded, blocks)
