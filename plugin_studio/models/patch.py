"""Patch-related data models"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class LineKind(str, Enum):
    """Tag of a single line inside a hunk body"""

    CONTEXT = "context"
    ADDITION = "addition"
    DELETION = "deletion"
    UNKNOWN = "unknown"


class DiffLine(BaseModel):
    """A tagged hunk line; text excludes the leading marker"""

    kind: LineKind
    text: str


class DiffHunk(BaseModel):
    """One contiguous change region opened by an @@ header"""

    header: str
    old_start: int | None = None  # 1-indexed, from the header
    lines: list[DiffLine] = []


class HunkBlocks(BaseModel):
    """Texts derived from a hunk for locating and splicing"""

    old_block: str
    new_block: str
    context_before: str = ""
    context_after: str = ""
    old_core: list[str] = []  # lines from first to last change, old side
    new_core: list[str] = []  # same region, new side
    old_start: int | None = None  # header line of the old side


class AnchorStrategy(str, Enum):
    """How a hunk was anchored, in priority order"""

    EXACT = "exact"
    WHITESPACE = "whitespace"
    ANCHOR_BEFORE = "anchor_before"
    ANCHOR_AFTER = "anchor_after"


class AnchorMatch(BaseModel):
    """Buffer span chosen for a hunk and the text that replaces it"""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    replacement: str
    strategy: AnchorStrategy


class ImpactReport(BaseModel):
    """Estimated blast radius of a diff against a buffer"""

    total_lines: int
    added: int
    removed: int
    touched_lines: int  # added + removed, replacements count twice
    touched_pct: float
    deleted_pct: float


class ManualMerge(BaseModel):
    """A hunk left for a human to merge"""

    header: str
    reason: str


class ApplyOutcome(BaseModel):
    """Result of applying a diff"""

    changed: bool
    result: str
    manual: list[ManualMerge] = []


class ChangelogEntry(BaseModel):
    """Append-only audit record of an applied patch"""

    model_config = ConfigDict(frozen=True)

    title: str
    timestamp: str  # ISO 8601, UTC
    summary: str
    diff: str
