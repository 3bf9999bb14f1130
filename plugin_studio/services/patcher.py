"""
Patcher - conservative unified diff application and impact estimation

Never deletes or truncates user code: a hunk is spliced whole at a located
span or deferred to manual merge. Text outside a located span is never
touched.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from ..models.patch import (
    ApplyOutcome,
    ChangelogEntry,
    ImpactReport,
    LineKind,
    ManualMerge,
)
from .anchor_locator import find_anchor
from .diff_parser import hunk_to_blocks, parse_unified_diff

logger = logging.getLogger(__name__)

MANUAL_MERGE_REASON = "Context not found; needs manual merge"

TOUCHED_PCT_THRESHOLD = 20.0
DELETED_PCT_THRESHOLD = 10.0


def estimate_impact(original: str, diff_text: str) -> ImpactReport:
    """Count added/removed lines of a diff against the original buffer's size"""
    hunks = parse_unified_diff(diff_text)
    total_lines = len(re.split(r"\r?\n", original))

    added = 0
    removed = 0
    for hunk in hunks:
        for line in hunk.lines:
            if line.kind == LineKind.ADDITION:
                added += 1
            elif line.kind == LineKind.DELETION:
                removed += 1

    touched_lines = added + removed
    touched_pct = touched_lines / total_lines * 100 if total_lines else 0.0
    deleted_pct = removed / total_lines * 100 if total_lines else 0.0

    return ImpactReport(
        total_lines=total_lines,
        added=added,
        removed=removed,
        touched_lines=touched_lines,
        touched_pct=touched_pct,
        deleted_pct=deleted_pct,
    )


def requires_confirmation(
    impact: ImpactReport,
    touched_threshold: float = TOUCHED_PCT_THRESHOLD,
    deleted_threshold: float = DELETED_PCT_THRESHOLD,
) -> bool:
    """Whether applying needs explicit user confirmation"""
    return impact.touched_pct > touched_threshold or impact.deleted_pct > deleted_threshold


def apply_unified_diff(original: str, diff_text: str, dry_run: bool = False) -> ApplyOutcome:
    """
    Apply every locatable hunk, left to right, against the accumulating buffer.

    Unlocatable hunks are recorded in `manual` and skipped. With `dry_run`
    the anchors are still computed but the buffer is never mutated.
    """
    text = original
    manual: list[ManualMerge] = []

    for hunk in parse_unified_diff(diff_text):
        blocks = hunk_to_blocks(hunk)
        match = find_anchor(text, blocks)
        if match is None:
            logger.info("[Patcher] No anchor for hunk %s", hunk.header)
            manual.append(ManualMerge(header=hunk.header, reason=MANUAL_MERGE_REASON))
            continue

        logger.debug(
            "[Patcher] Hunk %s anchored at %d:%d (%s)",
            hunk.header,
            match.start,
            match.end,
            match.strategy.value,
        )
        if not dry_run:
            text = text[: match.start] + match.replacement + text[match.end :]

    return ApplyOutcome(changed=text != original, result=text, manual=manual)


def build_changelog_entry(title: str, diff_text: str, impact: ImpactReport) -> ChangelogEntry:
    """Audit record for an applied patch"""
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    summary = (
        f"+{impact.added}/-{impact.removed}, touched {impact.touched_lines} lines "
        f"({impact.touched_pct:.1f}%)"
    )
    return ChangelogEntry(title=title, timestamp=timestamp, summary=summary, diff=diff_text)


def manual_merge_message(outcome: ApplyOutcome, dry_run: bool) -> str:
    """User-facing summary of an apply"""
    count = len(outcome.manual)
    if dry_run:
        if count:
            return f"Dry-run: {count} hunks need manual merge"
        return "Dry-run OK: patch applies cleanly"
    if outcome.changed:
        if count:
            return f"Patch applied; {count} hunks need manual merge (not applied)"
        return "Patch applied"
    if count:
        return f"{count} hunks need manual merge (not applied)"
    return "No changes applied (patch may be empty or mismatched)"
