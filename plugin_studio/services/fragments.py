"""Uncertain-region fragments - shrink prompts to the code around findings"""

from __future__ import annotations

import re
from typing import Iterable

from ..models.assist import Finding

FRAGMENT_RADIUS = 20


def uncertain_ranges(findings: Iterable[Finding], line_count: int, radius: int = FRAGMENT_RADIUS) -> list[tuple[int, int]]:
    """1-indexed inclusive line ranges around warn/err findings, merged"""
    ranges = sorted(
        (max(1, f.line - radius), min(line_count, f.line + radius))
        for f in findings
        if f.level in ("warn", "err") and f.line
    )

    merged: list[list[int]] = []
    for start, end in ranges:
        if not merged or start > merged[-1][1] + 1:
            merged.append([start, end])
        else:
            merged[-1][1] = max(merged[-1][1], end)
    return [(start, end) for start, end in merged]


def build_uncertain_fragments(code: str, findings: Iterable[Finding], radius: int = FRAGMENT_RADIUS) -> str:
    """Join the uncertain regions into one snippet text; empty when nothing is uncertain"""
    lines = re.split(r"\r?\n", code)
    parts = []
    for start, end in uncertain_ranges(findings, len(lines), radius):
        block = "\n".join(lines[start - 1 : end])
        parts.append(f"// --- SNIPPET LINES {start}-{end} ---\n{block}\n// --- END SNIPPET ---")
    return "\n\n".join(parts)
