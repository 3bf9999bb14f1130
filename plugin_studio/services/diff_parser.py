"""
Unified diff parsing for model-produced patches.

Only hunk bodies matter for application: file headers, `---`/`+++` lines
and any prose around the patch are discarded. The parser never fails; input
without hunks simply yields an empty list.
"""

from __future__ import annotations

import re
from ..models.patch import DiffHunk, DiffLine, HunkBlocks, LineKind

HUNK_HEADER_RE = re.compile(
    r"^@@\s*-(?P<old_start>\d+)(?:,(?P<old_count>\d+))?"
    r"\s+\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))?\s*@@"
)
_HUNK_START_RE = re.compile(r"^@@\s*-\d+")
_FILE_BOUNDARY = "diff --git "
_NO_NEWLINE_MARKER = "\\ No newline at end of file"

# A genuine patch has at least one hunk header or file marker
_DIFF_SHAPE_RE = re.compile(r"^\s*(?:@@\s*-\d+|\s*diff --git)", re.MULTILINE)
_FENCED_DIFF_RE = re.compile(r"```(?:diff|patch|udiff)?[ \t]*\n([\s\S]*?)```", re.IGNORECASE)

CONTEXT_WINDOW = 3


def looks_like_diff(text: str) -> bool:
    """True when the text has the shape of a unified diff rather than prose"""
    return bool(text) and _DIFF_SHAPE_RE.search(text) is not None


def extract_diff_text(text: str) -> str:
    """Unwrap the first fenced block that holds a diff; otherwise return text as is"""
    for match in _FENCED_DIFF_RE.finditer(text or ""):
        body = match.group(1)
        if looks_like_diff(body):
            return body
    return text or ""


def classify_line(line: str) -> DiffLine:
    """Tag a hunk line by its leading character"""
    if line.startswith(" "):
        return DiffLine(kind=LineKind.CONTEXT, text=line[1:])
    if line.startswith("-"):
        return DiffLine(kind=LineKind.DELETION, text=line[1:])
    if line.startswith("+"):
        return DiffLine(kind=LineKind.ADDITION, text=line[1:])
    # Malformed line (often a blank context line that lost its space)
    return DiffLine(kind=LineKind.UNKNOWN, text=line)


def _old_start(header: str) -> int | None:
    match = HUNK_HEADER_RE.match(header)
    return int(match.group("old_start")) if match else None


def parse_unified_diff(diff_text: str) -> list[DiffHunk]:
    """Split raw diff text into hunks, in order of appearance"""
    lines = (diff_text or "").replace("\r\n", "\n").split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    hunks: list[DiffHunk] = []
    i = 0
    while i < len(lines):
        if not HUNK_HEADER_RE.match(lines[i]):
            i += 1
            continue

        header = lines[i]
        i += 1
        body: list[DiffLine] = []
        while i < len(lines):
            line = lines[i]
            if _HUNK_START_RE.match(line) or line.startswith(_FILE_BOUNDARY):
                break
            if not line.startswith(_NO_NEWLINE_MARKER):
                body.append(classify_line(line))
            i += 1

        hunks.append(DiffHunk(header=header, old_start=_old_start(header), lines=body))

    return hunks


def hunk_to_blocks(hunk: DiffHunk) -> HunkBlocks:
    """Replay a hunk into the old and new texts it describes"""
    old_lines: list[str] = []
    new_lines: list[str] = []

    change_positions = [
        n for n, line in enumerate(hunk.lines) if line.kind in (LineKind.ADDITION, LineKind.DELETION)
    ]
    first_change = change_positions[0] if change_positions else len(hunk.lines)
    last_change = change_positions[-1] if change_positions else len(hunk.lines)

    context_before: list[str] = []
    context_after: list[str] = []
    old_core: list[str] = []
    new_core: list[str] = []

    for n, line in enumerate(hunk.lines):
        if line.kind != LineKind.ADDITION:
            old_lines.append(line.text)
        if line.kind != LineKind.DELETION:
            new_lines.append(line.text)

        if line.kind == LineKind.CONTEXT:
            if n < first_change:
                context_before.append(line.text)
            elif n > last_change:
                context_after.append(line.text)

        if first_change <= n <= last_change:
            if line.kind != LineKind.ADDITION:
                old_core.append(line.text)
            if line.kind != LineKind.DELETION:
                new_core.append(line.text)

    return HunkBlocks(
        old_block="\n".join(old_lines),
        new_block="\n".join(new_lines),
        context_before="\n".join(context_before[-CONTEXT_WINDOW:]),
        context_after="\n".join(context_after[:CONTEXT_WINDOW]),
        old_core=old_core,
        new_core=new_core,
        old_start=hunk.old_start,
    )
