"""Assist and patch API data models"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from .patch import ApplyOutcome, ImpactReport


class Finding(BaseModel):
    """Heuristic validator finding"""

    level: Literal["ok", "warn", "err"]
    message: str
    line: int | None = None  # 1-indexed


class PluginMeta(BaseModel):
    """Metadata placed in the generated plugin header"""

    name: str = "MyPlugin"
    author: str = "YourName"
    version: str = "1.0.0"
    permissions: list[str] = []


class AssistRequest(BaseModel):
    """Common fields of code-based assist requests; None falls back to settings"""

    code: str
    framework: str | None = None
    model: str | None = None
    only_uncertain: bool | None = None
    category_only: bool | None = None


class GenerateRequest(BaseModel):
    """Request to generate a plugin from a description"""

    description: str
    framework: str | None = None
    model: str | None = None
    meta: PluginMeta = PluginMeta()
    safety_mode: bool | None = None
    hooks: list[str] = []


class GenerateResponse(BaseModel):
    """Generated plugin, or the model's clarifying question"""

    model: str
    text: str
    code: str | None = None
    clarification_needed: bool = False


class RefineRequest(AssistRequest):
    """Request a diff that refines the plugin towards goals"""

    goals: list[str] = []


class PatchRequest(AssistRequest):
    """Request a diff that fixes a described problem"""

    problem: str


class DiffResponse(BaseModel):
    """Diff proposed by the model, with its estimated impact"""

    model: str
    diff: str
    clarification_needed: bool = False
    impact: ImpactReport | None = None
    requires_confirmation: bool = False
    token_estimate: int = 0


class TestPlan(BaseModel):
    """Test plan suggested by the model"""

    __test__ = False  # not a pytest class

    scenarios: list[str] = []
    assertions: list[str] = []
    manual_steps: list[str] = []


class TestPlanResponse(BaseModel):
    """Structured test plan answer"""

    __test__ = False

    model: str
    plan: TestPlan | None = None
    raw: str = ""
    status: str = "ok"
    clarification_needed: bool = False


class ExplainResponse(BaseModel):
    """Free-text explanation"""

    model: str
    text: str


class ImpactRequest(BaseModel):
    """Buffer and diff to estimate"""

    code: str
    diff: str


class ApplyRequest(BaseModel):
    """Buffer and diff to apply"""

    code: str
    diff: str
    dry_run: bool = False
    confirm: bool = False
    title: str = "Applied Patch"


class ApplyResponse(BaseModel):
    """Outcome of an apply, with the impact used for gating"""

    outcome: ApplyOutcome
    impact: ImpactReport
    message: str


class ValidateRequest(BaseModel):
    """Code to run the heuristic validators on"""

    code: str
    framework: str | None = None


class StatsResponse(BaseModel):
    """Request counters of the model service"""

    requests: int
    last_tokens: int
    json_mode_fallbacks: int
    last_model: str | None = None


class HistoryEntry(BaseModel):
    """One model answer in the output history"""

    ts: int  # epoch milliseconds
    title: str
    model: str | None = None
    content: str = ""


class Snapshot(BaseModel):
    """Saved copy of the editor buffer"""

    ts: int
    content: str
    note: str = ""


class SnapshotRequest(BaseModel):
    content: str
    note: str = ""


class AutosaveBody(BaseModel):
    text: str = ""

