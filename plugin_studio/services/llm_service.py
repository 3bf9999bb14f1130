"""
LLM Service - Chat completion calls with retry, model fallback and streaming
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable

import aiohttp

from ..errors import (
    AuthError,
    ConfigurationError,
    JsonModeRejected,
    LLMServiceError,
    StreamInterrupted,
    TransientServiceError,
    error_for_status,
)
from ..models.chat import ChatMessage, FrameStatus, InvocationResult, StreamFrame
from .backoff import RetryPolicy, sleep, with_backoff
from .config_manager import DEFAULT_FALLBACK_MODELS, ConfigManager

logger = logging.getLogger(__name__)

TokenObserver = Callable[[str], None]

AUTO_MODEL = "auto"
FALLBACK_PAUSE_MS = 200
MODEL_RETRY_POLICY = RetryPolicy(max_retries=2, base_delay_ms=500)

_SSE_DATA_RE = re.compile(r"^data:\s*(.+)$")


@dataclass
class LLMStats:
    """Request counters, written only by the owning service"""

    requests: int = 0
    last_tokens: int = 0
    json_mode_fallbacks: int = 0
    last_model: str | None = None


class LLMService:
    """Service for OpenAI-compatible chat completions with model fallback"""

    def __init__(
        self,
        config_manager: ConfigManager,
        session: aiohttp.ClientSession | None = None,
        retry_policy: RetryPolicy = MODEL_RETRY_POLICY,
        fallback_pause_ms: int = FALLBACK_PAUSE_MS,
    ):
        self.config_manager = config_manager
        self._session = session
        self.retry_policy = retry_policy
        self.fallback_pause_ms = fallback_pause_ms
        self.stats = LLMStats()

    # ========== Config Helpers ==========

    def _openai_config(self) -> dict[str, Any]:
        return self.config_manager.get_config().get("openai", {})

    def fallback_models(self) -> list[str]:
        return list(self._openai_config().get("fallbackModels") or DEFAULT_FALLBACK_MODELS)

    def _get_openai_request(self) -> tuple[str, dict[str, str], int]:
        """Get request target: (url, headers, timeout). Raises if api_key missing."""
        cfg = self._openai_config()
        api_key = cfg.get("apiKey")
        if not api_key:
            raise ConfigurationError("Missing OpenAI API key")
        base_url = (cfg.get("baseUrl") or "https://api.openai.com/v1").rstrip("/")
        url = f"{base_url}/chat/completions"
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        return url, headers, int(cfg.get("timeoutSeconds") or 60)

    def resolve_model_order(self, preferred: str | None) -> list[str]:
        """Preferred model first (deduplicated), then the fixed fallback order"""
        fallback = self.fallback_models()
        if preferred and preferred != AUTO_MODEL:
            return [preferred] + [m for m in fallback if m != preferred]
        return fallback

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough token count: 1 token ~ 4 chars"""
        return math.ceil(len(text or "") / 4)

    # ========== Payload / HTTP ==========

    def _build_openai_payload(
        self,
        model: str,
        messages: list[ChatMessage],
        stream: bool = False,
        json_mode: bool = False,
    ) -> dict[str, Any]:
        """Build OpenAI-compatible request payload"""
        # No temperature: some models reject non-default values
        payload: dict[str, Any] = {
            "model": model,
            "messages": [m.model_dump() for m in messages],
            "stream": stream,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    @asynccontextmanager
    async def _request(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        timeout_seconds: int = 60,
    ):
        """Context manager for HTTP POST requests with automatic session cleanup"""
        timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        if self._session is not None:
            async with self._session.post(url, json=payload, headers=headers, timeout=timeout) as response:
                yield response
            return
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload, headers=headers) as response:
                yield response

    # ========== Invocation ==========

    async def _open(
        self,
        model: str,
        messages: list[ChatMessage],
        json_mode: bool,
        stream: bool,
    ) -> tuple[AsyncExitStack, Any]:
        """
        Send one request and check its status.

        On success the response is still open; the returned stack owns it
        and closes it.
        """
        url, headers, timeout = self._get_openai_request()
        payload = self._build_openai_payload(model, messages, stream=stream, json_mode=json_mode)

        async with AsyncExitStack() as stack:
            try:
                response = await stack.enter_async_context(self._request(url, payload, headers, timeout))
                body = await response.text() if response.status != 200 else ""
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise TransientServiceError(f"Network error calling {model}: {e}") from e

            if response.status != 200:
                if response.status == 400 and json_mode:
                    raise JsonModeRejected(f"OpenAI error 400: {body}", status=400, body=body)
                logger.error("[LLMService] OpenAI API Error (%s): %s", response.status, body)
                raise error_for_status(response.status, body)

            return stack.pop_all(), response

    async def _open_with_json_fallback(
        self,
        model: str,
        messages: list[ChatMessage],
        json_mode: bool,
        stream: bool,
    ) -> tuple[AsyncExitStack, Any]:
        """With JSON mode, a 400 answer leads to exactly one more request without it"""
        if not json_mode:
            return await self._open(model, messages, False, stream)
        try:
            return await self._open(model, messages, True, stream)
        except JsonModeRejected:
            self.stats.json_mode_fallbacks += 1
            logger.info("[LLMService] %s rejected response_format; retrying without JSON mode", model)
            return await self._open(model, messages, False, stream)

    async def _consume(
        self,
        model: str,
        response,
        stream: bool,
        on_token: TokenObserver | None,
    ) -> InvocationResult:
        """Read the body of an open response"""
        try:
            if stream:
                text = await self._read_stream(response, on_token)
                logger.debug("[LLMService] Streamed %d chars from %s", len(text), model)
                return InvocationResult(model=model, stream_text=text)
            data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            raise TransientServiceError(f"Network error calling {model}: {e}") from e

        logger.debug("[LLMService] model: %s usage: %s id: %s", model, data.get("usage"), data.get("id"))
        return InvocationResult(model=model, data=data)

    async def invoke_once(
        self,
        model: str,
        messages: list[ChatMessage],
        json_mode: bool = False,
        stream: bool = False,
        on_token: TokenObserver | None = None,
    ) -> InvocationResult:
        """
        Issue one completion request.

        With JSON mode, a 400 answer leads to exactly one more attempt on the
        same model without response_format.
        """
        owner, response = await self._open_with_json_fallback(model, messages, json_mode, stream)
        async with owner:
            return await self._consume(model, response, stream, on_token)

    async def _invoke_streaming(
        self,
        model: str,
        messages: list[ChatMessage],
        json_mode: bool,
        on_token: TokenObserver | None,
    ) -> InvocationResult:
        """
        Retry opening the stream, then read it once.

        A stream that breaks after delivering tokens raises StreamInterrupted;
        the observer has already shown those tokens, so nothing is replayed.
        """
        owner, response = await with_backoff(
            lambda: self._open_with_json_fallback(model, messages, json_mode, True),
            self.retry_policy,
        )
        delivered = 0

        def observe(token: str):
            nonlocal delivered
            delivered += 1
            if on_token is not None:
                on_token(token)

        async with owner:
            try:
                return await self._consume(model, response, True, observe)
            except TransientServiceError as e:
                if not delivered:
                    raise
                raise StreamInterrupted(
                    f"Stream from {model} broke after {delivered} tokens: {e}"
                ) from e

    async def invoke_with_fallback(
        self,
        messages: list[ChatMessage],
        model_preference: str | None = AUTO_MODEL,
        require_json: bool = False,
        stream: bool = False,
        on_token: TokenObserver | None = None,
    ) -> InvocationResult:
        """Try each candidate model in order until one answers"""
        self._get_openai_request()

        last_error: Exception | None = None
        for model in self.resolve_model_order(model_preference):
            self.stats.requests += 1
            self.stats.last_tokens = self.estimate_tokens("\n".join(m.content for m in messages))
            try:
                if stream:
                    result = await self._invoke_streaming(model, messages, require_json, on_token)
                else:
                    result = await with_backoff(
                        lambda: self.invoke_once(model, messages, require_json),
                        self.retry_policy,
                    )
            except (AuthError, ConfigurationError, StreamInterrupted):
                raise
            except Exception as e:
                last_error = e
                logger.warning("[LLMService] model %s failed: %s", model, e)
                await sleep(self.fallback_pause_ms)
                continue

            self.stats.last_model = model
            return result

        raise last_error or LLMServiceError("All model fallbacks failed")

    # ========== Streaming ==========

    @staticmethod
    def _extract_openai_delta(data: Any) -> str | None:
        """Extract content delta from OpenAI stream data"""
        if isinstance(data, dict) and data.get("choices"):
            delta = data["choices"][0].get("delta") or {}
            return delta.get("content") or None
        return None

    @classmethod
    def parse_stream_line(cls, line_text: str) -> StreamFrame:
        """Parse a single SSE line from an OpenAI-compatible stream"""
        match = _SSE_DATA_RE.match(line_text.strip())
        if not match:
            return StreamFrame(status=FrameStatus.IGNORED)
        data_str = match.group(1)
        if data_str == "[DONE]":
            return StreamFrame(status=FrameStatus.DONE)
        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            return StreamFrame(status=FrameStatus.MALFORMED)
        try:
            text = cls._extract_openai_delta(data)
        except (AttributeError, IndexError, TypeError):
            return StreamFrame(status=FrameStatus.MALFORMED)
        if not text:
            return StreamFrame(status=FrameStatus.EMPTY)
        return StreamFrame(status=FrameStatus.TEXT, text=text)

    async def _read_stream(self, response, on_token: TokenObserver | None) -> str:
        """Accumulate streamed deltas, handing each to on_token as it arrives"""
        parts: list[str] = []
        async for line in response.content:
            frame = self.parse_stream_line(line.decode("utf-8", errors="replace"))
            if frame.status == FrameStatus.TEXT:
                parts.append(frame.text)
                if on_token is not None:
                    on_token(frame.text)
            elif frame.status == FrameStatus.MALFORMED:
                logger.debug("[LLMService] Skipping malformed stream frame: %r", line[:200])
        return "".join(parts)
