import aiohttp
import pytest

from plugin_studio.errors import AuthError, ConfigurationError, StreamInterrupted, TransientServiceError
from plugin_studio.models.chat import ChatMessage, FrameStatus
from plugin_studio.services.config_manager import ConfigManager
from plugin_studio.services.llm_service import LLMService

from .conftest import FakeResponse, FakeSession, completion, sse_lines

MESSAGES = [
    ChatMessage(role="system", content="abcd"),
    ChatMessage(role="user", content="efgh"),
]


def by_model(responses):
    """Handler answering per model; lists are consumed call by call"""

    def handler(payload):
        answer = responses[payload["model"]]
        if isinstance(answer, list):
            return answer.pop(0)
        return answer

    return handler


# =============================================================================
# Model order and accounting
# =============================================================================


def test_resolve_model_order(config_manager):
    service = LLMService(config_manager)
    assert service.resolve_model_order("auto") == ["m1", "m2", "m3"]
    assert service.resolve_model_order(None) == ["m1", "m2", "m3"]
    assert service.resolve_model_order("m2") == ["m2", "m1", "m3"]
    assert service.resolve_model_order("custom") == ["custom", "m1", "m2", "m3"]


def test_estimate_tokens():
    assert LLMService.estimate_tokens("") == 0
    assert LLMService.estimate_tokens("abcd") == 1
    assert LLMService.estimate_tokens("abcde") == 2


@pytest.mark.asyncio
async def test_success_records_stats_and_payload(make_service):
    service, session = make_service(by_model({"m1": FakeResponse(json_data=completion("hi"))}))

    result = await service.invoke_with_fallback(MESSAGES)

    assert result.model == "m1"
    assert result.content == "hi"
    assert service.stats.requests == 1
    assert service.stats.last_tokens == 3  # "abcd\nefgh" -> 9 chars
    assert service.stats.last_model == "m1"

    call = session.calls[0]
    assert call["url"] == "https://api.openai.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test-123456"
    assert call["json"]["messages"][0] == {"role": "system", "content": "abcd"}
    assert call["json"]["stream"] is False
    assert "response_format" not in call["json"]


# =============================================================================
# Fallback behaviour
# =============================================================================


@pytest.mark.asyncio
async def test_auth_error_short_circuits_fallback(make_service):
    service, session = make_service(
        by_model(
            {
                "m1": FakeResponse(status=403, body="forbidden"),
                "m2": FakeResponse(json_data=completion("never")),
                "m3": FakeResponse(json_data=completion("never")),
            }
        )
    )

    with pytest.raises(AuthError) as exc_info:
        await service.invoke_with_fallback(MESSAGES)

    assert exc_info.value.status == 403
    assert set(session.models) == {"m1"}


@pytest.mark.asyncio
async def test_transient_error_moves_to_next_model(make_service):
    service, session = make_service(
        by_model(
            {
                "m1": FakeResponse(status=500, body="server error"),
                "m2": FakeResponse(json_data=completion("from m2")),
            }
        )
    )

    result = await service.invoke_with_fallback(MESSAGES)

    assert result.model == "m2"
    assert result.content == "from m2"
    # Two retries on m1 before moving on
    assert session.models == ["m1", "m1", "m1", "m2"]
    assert service.stats.requests == 2


@pytest.mark.asyncio
async def test_retry_within_model_recovers(make_service):
    service, session = make_service(
        by_model({"m1": [FakeResponse(status=502, body="bad gateway"), FakeResponse(json_data=completion("ok"))]})
    )

    result = await service.invoke_with_fallback(MESSAGES)

    assert result.model == "m1"
    assert session.models == ["m1", "m1"]


@pytest.mark.asyncio
async def test_all_models_exhausted_raises_last_error(make_service):
    service, session = make_service(lambda payload: FakeResponse(status=503, body="overloaded"))

    with pytest.raises(TransientServiceError) as exc_info:
        await service.invoke_with_fallback(MESSAGES)

    assert exc_info.value.status == 503
    assert len(session.calls) == 9


@pytest.mark.asyncio
async def test_network_failure_is_transient(make_service):
    service, session = make_service(
        by_model(
            {
                "m1": aiohttp.ClientConnectionError("connection reset"),
                "m2": FakeResponse(json_data=completion("ok")),
            }
        )
    )

    result = await service.invoke_with_fallback(MESSAGES)
    assert result.model == "m2"


@pytest.mark.asyncio
async def test_missing_key_fails_before_any_request(tmp_path):
    session = FakeSession(lambda payload: FakeResponse(json_data=completion("never")))
    service = LLMService(ConfigManager(tmp_path), session=session)

    with pytest.raises(ConfigurationError, match="Missing OpenAI API key"):
        await service.invoke_with_fallback(MESSAGES)

    assert session.calls == []
    assert service.stats.requests == 0


# =============================================================================
# JSON mode fallback
# =============================================================================


@pytest.mark.asyncio
async def test_json_mode_rejection_retries_same_model_without_it(make_service):
    service, session = make_service(
        by_model(
            {
                "m1": [
                    FakeResponse(status=400, body="response_format is unsupported"),
                    FakeResponse(json_data=completion('{"scenarios": []}')),
                ]
            }
        )
    )

    result = await service.invoke_with_fallback(MESSAGES, require_json=True)

    assert result.model == "m1"
    assert session.models == ["m1", "m1"]
    assert session.calls[0]["json"]["response_format"] == {"type": "json_object"}
    assert "response_format" not in session.calls[1]["json"]
    assert service.stats.json_mode_fallbacks == 1


@pytest.mark.asyncio
async def test_invoke_once_drops_json_mode_only_once(make_service):
    service, session = make_service(lambda payload: FakeResponse(status=400, body="bad request"))

    with pytest.raises(TransientServiceError) as exc_info:
        await service.invoke_once("m1", MESSAGES, json_mode=True)

    assert exc_info.value.status == 400
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_400_without_json_mode_is_not_retried_as_json_fallback(make_service):
    service, session = make_service(lambda payload: FakeResponse(status=400, body="bad request"))

    with pytest.raises(TransientServiceError):
        await service.invoke_once("m1", MESSAGES, json_mode=False)

    assert len(session.calls) == 1
    assert service.stats.json_mode_fallbacks == 0


# =============================================================================
# Streaming
# =============================================================================


@pytest.mark.asyncio
async def test_streaming_delivers_tokens_and_accumulates(make_service):
    service, session = make_service(lambda payload: FakeResponse(lines=sse_lines("Hel", "lo")))
    tokens = []

    result = await service.invoke_with_fallback(MESSAGES, stream=True, on_token=tokens.append)

    assert tokens == ["Hel", "lo"]
    assert result.stream_text == "Hello"
    assert result.content == "Hello"
    assert session.calls[0]["json"]["stream"] is True


@pytest.mark.asyncio
async def test_streaming_skips_malformed_frames(make_service):
    lines = [
        b": keep-alive\n",
        b"data: {not json\n",
        *sse_lines("A", done=False),
        b'data: {"choices": [{"delta": {}}]}\n',
        b"\n",
        *sse_lines("B"),
    ]
    service, _ = make_service(lambda payload: FakeResponse(lines=lines))
    tokens = []

    result = await service.invoke_with_fallback(MESSAGES, stream=True, on_token=tokens.append)

    assert tokens == ["A", "B"]
    assert result.stream_text == "AB"


def test_parse_stream_line_variants():
    parse = LLMService.parse_stream_line
    assert parse('data: {"choices":[{"delta":{"content":"x"}}]}').status == FrameStatus.TEXT
    assert parse("data: [DONE]").status == FrameStatus.DONE
    assert parse("data: {oops").status == FrameStatus.MALFORMED
    assert parse('data: {"choices":[{"delta":{}}]}').status == FrameStatus.EMPTY
    assert parse("event: ping").status == FrameStatus.IGNORED
    assert parse('data: {"choices":["bad"]}').status == FrameStatus.MALFORMED


@pytest.mark.asyncio
async def test_stream_broken_after_tokens_is_not_replayed(make_service):
    service, session = make_service(
        by_model(
            {
                "m1": [
                    FakeResponse(lines=[*sse_lines("Hel", done=False), aiohttp.ClientPayloadError("cut")]),
                    FakeResponse(lines=sse_lines("Hel", "lo")),
                ],
                "m2": FakeResponse(lines=sse_lines("Hel", "lo")),
            }
        )
    )
    tokens = []

    with pytest.raises(StreamInterrupted):
        await service.invoke_with_fallback(MESSAGES, stream=True, on_token=tokens.append)

    assert tokens == ["Hel"]
    assert session.models == ["m1"]


@pytest.mark.asyncio
async def test_stream_broken_before_any_token_moves_to_next_model(make_service):
    service, session = make_service(
        by_model(
            {
                "m1": FakeResponse(lines=[aiohttp.ClientPayloadError("cut")]),
                "m2": FakeResponse(lines=sse_lines("Hel", "lo")),
            }
        )
    )
    tokens = []

    result = await service.invoke_with_fallback(MESSAGES, stream=True, on_token=tokens.append)

    assert tokens == ["Hel", "lo"]
    assert "".join(tokens) == result.content
    assert result.model == "m2"
    assert session.models == ["m1", "m2"]


@pytest.mark.asyncio
async def test_stream_open_failures_are_still_retried(make_service):
    service, session = make_service(
        by_model({"m1": [FakeResponse(status=503, body="busy"), FakeResponse(lines=sse_lines("ok"))]})
    )
    tokens = []

    result = await service.invoke_with_fallback(MESSAGES, stream=True, on_token=tokens.append)

    assert tokens == ["ok"]
    assert result.stream_text == "ok"
    assert session.models == ["m1", "m1"]
