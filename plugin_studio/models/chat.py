"""Model invocation data models"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class ChatMessage(BaseModel):
    """One message of a completion conversation"""

    role: Literal["system", "user"]
    content: str


class InvocationResult(BaseModel):
    """Successful completion: JSON payload or accumulated stream text"""

    model_config = ConfigDict(frozen=True)

    model: str
    data: dict[str, Any] | None = None
    stream_text: str | None = None

    @property
    def content(self) -> str:
        """Text of the answer, whichever way it was delivered"""
        if self.stream_text is not None:
            return self.stream_text
        choices = (self.data or {}).get("choices") or []
        if choices:
            message = choices[0].get("message") or {}
            return message.get("content") or ""
        return ""


class FrameStatus(str, Enum):
    """Outcome of parsing one line of a streamed response"""

    TEXT = "text"
    EMPTY = "empty"  # valid frame without a content delta
    DONE = "done"  # the [DONE] sentinel
    MALFORMED = "malformed"  # data frame whose JSON does not parse
    IGNORED = "ignored"  # not a data frame (blank line, comment, event:)


class StreamFrame(BaseModel):
    """Parsed SSE line"""

    status: FrameStatus
    text: str = ""


class StructuredStatus(str, Enum):
    """Outcome of parsing a structured (JSON mode) answer"""

    OK = "ok"
    EMPTY = "empty"
    MALFORMED = "malformed"


class StructuredResult(BaseModel):
    """JSON object parsed from a model answer, or an empty fallback"""

    status: StructuredStatus
    data: dict[str, Any] = {}
    raw: str = ""


class StreamEvent(BaseModel):
    """SSE stream event"""

    type: str  # "content", "done", "error"
    chunk: str | None = None
    metadata: dict | None = None
    done: bool = False
    error: str | None = None
