"""Core types and DTOs for the Generation Gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Capability(str, Enum):
    """Kinds of generation request the gateway relays."""

    CHAT = "chat"
    IMAGE = "image"
    VIDEO_CREATE = "video-create"
    VIDEO_STATUS = "video-status"
    SPEECH = "speech"


class ProviderName(str, Enum):
    """Supported upstream providers."""

    DOUBAO = "doubao"
    QIANFAN = "qianfan"
    VOLC_TTS = "volc_tts"


class ErrorCode(str, Enum):
    """Error codes the gateway itself emits in the `error` field."""

    CONFIG_MISSING = "CONFIG_MISSING"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    MESSAGES_REQUIRED = "MESSAGES_REQUIRED"
    PROMPT_REQUIRED = "PROMPT_REQUIRED"
    CONTENT_REQUIRED = "CONTENT_REQUIRED"
    ID_REQUIRED = "ID_REQUIRED"
    TEXT_EMPTY = "TEXT_EMPTY"
    TEXT_TOO_LONG = "TEXT_TOO_LONG"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    SERVER_ERROR = "SERVER_ERROR"
    TIMEOUT = "TIMEOUT"  # poll loop budget exhausted (client side only)


class VideoTaskStatus(str, Enum):
    """Lifecycle of a provider video generation task."""

    QUEUED = "queued"
    PENDING = "pending"  # Ark reports queued tasks as "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_VIDEO_STATUSES


TERMINAL_VIDEO_STATUSES = frozenset(
    {VideoTaskStatus.SUCCEEDED, VideoTaskStatus.FAILED, VideoTaskStatus.CANCELLED}
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GatewayError(Exception):
    """Base error carrying the envelope code and HTTP status."""

    status_code: int = 500

    def __init__(self, code: ErrorCode | str, message: str = "", status_code: int | None = None):
        super().__init__(message or str(code))
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class GatewayValidationError(GatewayError):
    """Local validation failed; no upstream call must be made."""

    status_code = 400


class UpstreamUnavailableError(GatewayError):
    """Network-level or decode failure talking to a provider."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(ErrorCode.SERVER_ERROR, message)


# ---------------------------------------------------------------------------
# Upstream call / result
# ---------------------------------------------------------------------------


@dataclass
class UpstreamCall:
    """A single HTTP request to be sent to a provider."""

    method: str
    url: str
    json_body: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class JsonBody:
    value: Any


@dataclass(frozen=True)
class TextBody:
    text: str


@dataclass(frozen=True)
class BinaryBody:
    data: bytes
    mime_type: str


UpstreamBody = Union[JsonBody, TextBody, BinaryBody]


@dataclass
class UpstreamResult:
    """Decoded provider response: HTTP status plus tagged body."""

    status_code: int
    body: UpstreamBody
    latency_ms: int = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        if isinstance(self.body, JsonBody):
            return "json"
        if isinstance(self.body, BinaryBody):
            return "binary"
        return "text"


# ---------------------------------------------------------------------------
# Gateway Response — uniform envelope
# ---------------------------------------------------------------------------


@dataclass
class GatewayResponse:
    """Uniform response envelope returned by every capability endpoint.

    Success renders as ``{"ok": true, "data": ...}`` (or the audio fields for
    speech); failure renders as ``{"error": ..., "data"?, "message"?}``.
    """

    ok: bool = True
    status_code: int = 200
    data: Any = None
    error: str | None = None
    message: str | None = None
    audio_base64: str | None = None
    content_type: str | None = None

    def to_dict(self) -> dict:
        """Serialize to the wire envelope; absent fields are omitted."""
        if self.ok:
            if self.audio_base64 is not None:
                return {"ok": True, "audio_base64": self.audio_base64, "content_type": self.content_type}
            return {"ok": True, "data": self.data}

        payload: dict[str, Any] = {"error": self.error or ErrorCode.SERVER_ERROR.value}
        if self.data is not None:
            payload["data"] = self.data
        if self.message is not None:
            payload["message"] = self.message
        return payload

    @classmethod
    def from_wire(cls, status_code: int, payload: Any) -> GatewayResponse:
        """Parse an envelope received from a gateway endpoint over HTTP."""
        if not isinstance(payload, dict):
            return cls(
                ok=False,
                status_code=status_code,
                error=ErrorCode.SERVER_ERROR.value,
                message="Malformed gateway response",
                data=payload,
            )
        if status_code == 200 and payload.get("ok") is True:
            return cls(
                ok=True,
                status_code=status_code,
                data=payload.get("data"),
                audio_base64=payload.get("audio_base64"),
                content_type=payload.get("content_type"),
            )
        return cls(
            ok=False,
            status_code=status_code,
            error=payload.get("error") or ErrorCode.SERVER_ERROR.value,
            data=payload.get("data"),
            message=payload.get("message"),
        )


# ---------------------------------------------------------------------------
# Video task
# ---------------------------------------------------------------------------


@dataclass
class VideoTask:
    """Snapshot of a provider video generation task.

    The gateway only relays these; status transitions happen upstream.
    """

    id: str
    status: VideoTaskStatus | str
    model: str = ""
    video_url: str | None = None
    last_frame_url: str | None = None
    error: Any = None
    usage: dict[str, Any] = field(default_factory=dict)
    created_at: int | None = None
    updated_at: int | None = None

    @property
    def is_terminal(self) -> bool:
        return isinstance(self.status, VideoTaskStatus) and self.status.is_terminal

    @classmethod
    def from_payload(cls, data: Any) -> VideoTask:
        """Build from a provider task payload; raises ValueError when malformed."""
        if not isinstance(data, dict):
            raise ValueError("task payload is not an object")
        task_id = data.get("id")
        raw_status = data.get("status")
        if not isinstance(task_id, str) or not isinstance(raw_status, str):
            raise ValueError("task payload lacks id/status")

        try:
            status: VideoTaskStatus | str = VideoTaskStatus(raw_status)
        except ValueError:
            status = raw_status  # unknown statuses are treated as non-terminal

        content = data.get("content") or {}
        if not isinstance(content, dict):
            content = {}
        usage = data.get("usage") or {}
        return cls(
            id=task_id,
            status=status,
            model=data.get("model") or "",
            video_url=content.get("video_url"),
            last_frame_url=content.get("last_frame_url"),
            error=data.get("error"),
            usage=usage if isinstance(usage, dict) else {},
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )
