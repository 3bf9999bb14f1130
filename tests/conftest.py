"""Shared fixtures: a temp config directory and a fake aiohttp session"""

import json

import pytest

from plugin_studio.services.backoff import RetryPolicy
from plugin_studio.services.config_manager import ConfigManager
from plugin_studio.services.llm_service import LLMService


def completion(content, model="m"):
    """Non-streaming chat completion body"""
    return {
        "id": "chatcmpl-test",
        "model": model,
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 1, "completion_tokens": 1},
    }


def sse_lines(*fragments, done=True):
    """Encoded `data:` frames, one per fragment"""
    lines = [
        f"data: {json.dumps({'choices': [{'delta': {'content': f}}]})}\n".encode("utf-8")
        for f in fragments
    ]
    if done:
        lines.append(b"data: [DONE]\n")
    return lines


class FakeContent:
    """Stands in for aiohttp's StreamReader line iteration; an exception item is raised"""

    def __init__(self, lines):
        self._lines = list(lines)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for line in self._lines:
            if isinstance(line, Exception):
                raise line
            yield line


class FakeResponse:
    def __init__(self, status=200, json_data=None, body=None, lines=()):
        self.status = status
        self._json = json_data
        self._body = body
        self.content = FakeContent(lines)

    async def text(self):
        if self._body is not None:
            return self._body
        return json.dumps(self._json)

    async def json(self):
        return self._json


class _RequestContext:
    def __init__(self, response):
        self._response = response

    async def __aenter__(self):
        return self._response

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Minimal aiohttp.ClientSession replacement.

    `handler(payload)` returns a FakeResponse, or an exception instance to
    raise from post() (a network failure).
    """

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    @property
    def models(self):
        return [call["json"]["model"] for call in self.calls]

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers})
        result = self.handler(json)
        if isinstance(result, Exception):
            raise result
        return _RequestContext(result)


@pytest.fixture
def config_manager(tmp_path):
    manager = ConfigManager(tmp_path)
    manager.save_config({"openai": {"apiKey": "sk-test-123456", "fallbackModels": ["m1", "m2", "m3"]}})
    return manager


@pytest.fixture
def make_service(config_manager):
    def _make(handler):
        session = FakeSession(handler)
        service = LLMService(
            config_manager,
            session=session,
            retry_policy=RetryPolicy(max_retries=2, base_delay_ms=1),
            fallback_pause_ms=0,
        )
        return service, session

    return _make
