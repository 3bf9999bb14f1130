"""Assist API endpoints - model-backed generate/refine/patch/tests/explain"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from ..dependencies import get_assistant, get_llm_service
from ..errors import describe_error
from ..models.assist import (
    AssistRequest,
    DiffResponse,
    ExplainResponse,
    GenerateRequest,
    GenerateResponse,
    PatchRequest,
    RefineRequest,
    StatsResponse,
    TestPlanResponse,
)
from ..models.chat import StreamEvent
from ..services.assistant import PluginAssistant
from ..services.llm_service import LLMService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate", response_model=GenerateResponse)
async def generate_plugin(
    request: GenerateRequest, assistant: PluginAssistant = Depends(get_assistant)
) -> GenerateResponse:
    """Generate a plugin from a description"""
    return await assistant.generate_plugin(request)


@router.post("/refine", response_model=DiffResponse)
async def refine_plugin(
    request: RefineRequest, assistant: PluginAssistant = Depends(get_assistant)
) -> DiffResponse:
    """Get a refinement diff; never applied here"""
    return await assistant.refine_plugin(request)


@router.post("/patch", response_model=DiffResponse)
async def create_patch(
    request: PatchRequest, assistant: PluginAssistant = Depends(get_assistant)
) -> DiffResponse:
    """Get a minimal fix diff; never applied here"""
    return await assistant.create_patch(request)


@router.post("/tests", response_model=TestPlanResponse)
async def suggest_tests(
    request: AssistRequest, assistant: PluginAssistant = Depends(get_assistant)
) -> TestPlanResponse:
    """Get a structured test plan"""
    return await assistant.suggest_tests(request)


@router.post("/explain", response_model=ExplainResponse)
async def explain_code(
    request: AssistRequest, assistant: PluginAssistant = Depends(get_assistant)
) -> ExplainResponse:
    """Explain the plugin (non-streaming)"""
    return await assistant.explain_code(request)


@router.post("/explain/stream")
async def explain_code_stream(request: AssistRequest, assistant: PluginAssistant = Depends(get_assistant)):
    """Explain the plugin as a streaming response (SSE)"""

    async def event_generator():
        queue: asyncio.Queue[str | None] = asyncio.Queue()
        task = asyncio.create_task(
            assistant.explain_code(request, stream=True, on_token=queue.put_nowait)
        )
        task.add_done_callback(lambda _: queue.put_nowait(None))

        try:
            while True:
                chunk = await queue.get()
                if chunk is None:
                    break
                event = StreamEvent(type="content", chunk=chunk)
                yield {"event": "message", "data": event.model_dump_json()}

            try:
                result = task.result()
            except Exception as e:
                logger.error("[Assist] Explain stream failed: %s", e)
                _, message = describe_error(e)
                event = StreamEvent(type="error", error=message)
            else:
                event = StreamEvent(type="done", done=True, metadata={"model": result.model})
            yield {"event": "message", "data": event.model_dump_json()}
        finally:
            if not task.done():
                task.cancel()

    return EventSourceResponse(event_generator())


@router.get("/stats", response_model=StatsResponse)
async def get_stats(llm: LLMService = Depends(get_llm_service)) -> StatsResponse:
    """Request counters and the latest token estimate"""
    return StatsResponse(
        requests=llm.stats.requests,
        last_tokens=llm.stats.last_tokens,
        json_mode_fallbacks=llm.stats.json_mode_fallbacks,
        last_model=llm.stats.last_model,
    )
