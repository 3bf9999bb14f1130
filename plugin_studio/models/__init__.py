"""Models module - Pydantic data models"""

from .chat import ChatMessage, InvocationResult, StreamEvent, StreamFrame, StructuredResult
from .patch import (
    AnchorMatch,
    ApplyOutcome,
    ChangelogEntry,
    DiffHunk,
    DiffLine,
    HunkBlocks,
    ImpactReport,
    ManualMerge,
)
from .assist import (
    ApplyRequest,
    ApplyResponse,
    DiffResponse,
    Finding,
    GenerateRequest,
    GenerateResponse,
    PatchRequest,
    RefineRequest,
    TestPlan,
    TestPlanResponse,
)

__all__ = [
    # Chat models
    "ChatMessage",
    "InvocationResult",
    "StreamEvent",
    "StreamFrame",
    "StructuredResult",
    # Patch models
    "AnchorMatch",
    "ApplyOutcome",
    "ChangelogEntry",
    "DiffHunk",
    "DiffLine",
    "HunkBlocks",
    "ImpactReport",
    "ManualMerge",
    # API models
    "ApplyRequest",
    "ApplyResponse",
    "DiffResponse",
    "Finding",
    "GenerateRequest",
    "GenerateResponse",
    "PatchRequest",
    "RefineRequest",
    "TestPlan",
    "TestPlanResponse",
]
