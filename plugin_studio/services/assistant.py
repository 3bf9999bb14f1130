"""
Plugin Assistant - task-level operations on top of the LLM service

Builds the prompts, scopes them to uncertain fragments when asked, checks
the shape of what comes back and records every answer in the history.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any

from ..models.assist import (
    AssistRequest,
    DiffResponse,
    ExplainResponse,
    GenerateRequest,
    GenerateResponse,
    PatchRequest,
    RefineRequest,
    TestPlan,
    TestPlanResponse,
)
from ..models.chat import ChatMessage, StructuredResult, StructuredStatus
from . import prompts
from .config_manager import ConfigManager
from .diff_parser import extract_diff_text, looks_like_diff
from .fragments import build_uncertain_fragments
from .llm_service import LLMService, TokenObserver
from .patcher import estimate_impact, requires_confirmation
from .validators import run_validators
from .workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)

_CODE_BLOCK_RE = re.compile(r"```(?:csharp|cs)?\s*([\s\S]*?)```", re.IGNORECASE)
_PLUGIN_SHAPE_RES = [
    re.compile(r"class\s+\w+\s*:\s*(RustPlugin|CarbonPlugin)\b"),
    re.compile(r"\[(Info|Plugin)\s*\("),
    re.compile(r"\busing\s+Oxide\.Core\b"),
    re.compile(r"\busing\s+Carbon\.Core\b"),
]
_JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def extract_code_block(text: str) -> str | None:
    """Body of the first fenced C# block, if any"""
    match = _CODE_BLOCK_RE.search(text or "")
    return match.group(1) if match else None


def is_likely_csharp_plugin(text: str | None) -> bool:
    """Heuristic: does the text look like an Oxide/Carbon plugin?"""
    if not text:
        return False
    return any(pattern.search(text) for pattern in _PLUGIN_SHAPE_RES)


def parse_structured(raw: str) -> StructuredResult:
    """Parse a JSON object answer; never raises"""
    text = (raw or "").strip()
    if not text:
        return StructuredResult(status=StructuredStatus.EMPTY, raw=raw or "")

    json_match = _JSON_BLOCK_RE.search(text)
    if json_match:
        text = json_match.group(1).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Try to find a JSON object inside surrounding prose
        brace_start = text.find("{")
        brace_end = text.rfind("}") + 1
        if brace_start < 0 or brace_end <= brace_start:
            return StructuredResult(status=StructuredStatus.MALFORMED, raw=raw)
        try:
            data = json.loads(text[brace_start:brace_end])
        except json.JSONDecodeError:
            return StructuredResult(status=StructuredStatus.MALFORMED, raw=raw)

    if not isinstance(data, dict):
        return StructuredResult(status=StructuredStatus.MALFORMED, raw=raw)
    if not data:
        return StructuredResult(status=StructuredStatus.EMPTY, raw=raw)
    return StructuredResult(status=StructuredStatus.OK, data=data, raw=raw)


def _string_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(item) for item in value]
    if isinstance(value, str) and value:
        return [value]
    return []


class PluginAssistant:
    """Generate, refine, patch, test-plan and explain plugin code"""

    def __init__(self, llm: LLMService, config_manager: ConfigManager, store: WorkspaceStore):
        self.llm = llm
        self.config_manager = config_manager
        self.store = store

    # ========== Helpers ==========

    def _settings(self) -> dict[str, Any]:
        return self.config_manager.get_settings()

    def _framework(self, requested: str | None) -> str:
        return requested or self._settings().get("framework") or "oxide"

    def _model(self, requested: str | None) -> str:
        return requested or self._settings().get("model") or "auto"

    def _fragment(self, request: AssistRequest, framework: str) -> str:
        only_uncertain = request.only_uncertain
        if only_uncertain is None:
            only_uncertain = bool(self._settings().get("onlyUncertain"))
        if not only_uncertain:
            return ""
        return build_uncertain_fragments(request.code, run_validators(request.code, framework))

    def _category_only(self, request: AssistRequest) -> bool:
        if request.category_only is not None:
            return request.category_only
        return bool(self._settings().get("categoryOnly"))

    def _post_history(self, title: str, content: str, model: str | None):
        self.store.add_history(
            {"ts": int(time.time() * 1000), "title": title, "model": model, "content": content}
        )

    def _diff_response(self, title: str, model: str, raw: str, code: str) -> DiffResponse:
        diff = extract_diff_text(raw)
        tokens = self.llm.stats.last_tokens
        if not looks_like_diff(diff):
            self._post_history(f"Clarification needed ({title})", raw, model)
            return DiffResponse(model=model, diff=raw, clarification_needed=True, token_estimate=tokens)

        settings = self._settings()
        impact = estimate_impact(code, diff)
        confirm = requires_confirmation(
            impact,
            touched_threshold=float(settings.get("touchedThreshold", 20)),
            deleted_threshold=float(settings.get("deletedThreshold", 10)),
        )
        self._post_history(title, diff, model)
        return DiffResponse(
            model=model,
            diff=diff,
            impact=impact,
            requires_confirmation=confirm,
            token_estimate=tokens,
        )

    # ========== Tasks ==========

    async def generate_plugin(self, request: GenerateRequest) -> GenerateResponse:
        framework = self._framework(request.framework)
        safety_mode = request.safety_mode
        if safety_mode is None:
            safety_mode = bool(self._settings().get("safetyMode", True))

        messages = prompts.build_generate_messages(
            framework, request.description, request.meta, safety_mode, request.hooks
        )
        result = await self.llm.invoke_with_fallback(messages, self._model(request.model))
        text = result.content

        code = extract_code_block(text)
        if code and is_likely_csharp_plugin(code):
            self._post_history("Generate Plugin", text, result.model)
            return GenerateResponse(model=result.model, text=text, code=code)

        self._post_history("Clarification needed", text, result.model)
        return GenerateResponse(model=result.model, text=text, clarification_needed=True)

    async def refine_plugin(self, request: RefineRequest) -> DiffResponse:
        framework = self._framework(request.framework)
        goals = request.goals or ["reliability"]
        messages = prompts.build_refine_messages(
            framework, goals, request.code, self._fragment(request, framework)
        )
        result = await self.llm.invoke_with_fallback(messages, self._model(request.model))
        return self._diff_response("Refine/Improve", result.model, result.content, request.code)

    async def create_patch(self, request: PatchRequest) -> DiffResponse:
        framework = self._framework(request.framework)
        messages = prompts.build_patch_messages(
            framework, request.problem, request.code, self._fragment(request, framework)
        )
        result = await self.llm.invoke_with_fallback(messages, self._model(request.model))
        return self._diff_response("Create Patch", result.model, result.content, request.code)

    async def suggest_tests(self, request: AssistRequest) -> TestPlanResponse:
        framework = self._framework(request.framework)
        messages = prompts.build_test_plan_messages(
            framework, request.code, self._category_only(request), self._fragment(request, framework)
        )
        result = await self.llm.invoke_with_fallback(
            messages, self._model(request.model), require_json=True
        )
        parsed = parse_structured(result.content)
        data = parsed.data
        if parsed.status == StructuredStatus.MALFORMED:
            logger.info("[Assistant] Test plan answer from %s is not JSON", result.model)

        if not any(key in data for key in ("scenarios", "assertions", "manual_steps")):
            # Probably a clarifying question or non-JSON response
            self._post_history("Clarification needed (Tests)", parsed.raw or "(no data)", result.model)
            return TestPlanResponse(
                model=result.model,
                raw=parsed.raw,
                status=parsed.status.value,
                clarification_needed=True,
            )

        plan = TestPlan(
            scenarios=_string_list(data.get("scenarios")),
            assertions=_string_list(data.get("assertions")),
            manual_steps=_string_list(data.get("manual_steps")),
        )
        self._post_history("Suggest Tests", json.dumps(plan.model_dump(), indent=2), result.model)
        return TestPlanResponse(model=result.model, plan=plan, raw=parsed.raw, status=parsed.status.value)

    def _explain_messages(self, request: AssistRequest) -> list[ChatMessage]:
        framework = self._framework(request.framework)
        return prompts.build_explain_messages(
            framework, request.code, self._category_only(request), self._fragment(request, framework)
        )

    async def explain_code(
        self,
        request: AssistRequest,
        stream: bool = False,
        on_token: TokenObserver | None = None,
    ) -> ExplainResponse:
        result = await self.llm.invoke_with_fallback(
            self._explain_messages(request),
            self._model(request.model),
            stream=stream,
            on_token=on_token,
        )
        self._post_history("Explain Code", result.content, result.model)
        return ExplainResponse(model=result.model, text=result.content)
