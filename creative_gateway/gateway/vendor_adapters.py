"""Provider Adapters — map inbound request bodies onto each provider's wire schema.

Each adapter validates and sanitizes the inbound body, builds a single
UpstreamCall, attaches the Authorization header from its CredentialProvider
and normalizes the result. Validation always happens before any network
traffic.

Provider-specific behaviors:
  - Doubao chat: multimodal content parts, max_tokens / max_completion_tokens
  - Doubao image: size/n/response_format defaults
  - Doubao video: async task create + status lookup by id
  - Qianfan chat: string-only message content, OAuth token store, quota → 429
  - Volc TTS: length-bounded text, audio bytes returned base64-encoded
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

from creative_gateway.gateway.credentials import CredentialProvider
from creative_gateway.gateway.normalizer import QuotaPolicy, normalize_response
from creative_gateway.gateway.sanitizer import (
    sanitize_content_parts,
    sanitize_messages,
    strip_unsafe,
    validate_speech_text,
)
from creative_gateway.gateway.types import (
    Capability,
    ErrorCode,
    GatewayResponse,
    GatewayValidationError,
    ProviderName,
    UpstreamCall,
    UpstreamResult,
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _copy_if(payload: dict, body: dict, key: str, predicate) -> None:
    """Forward ``body[key]`` only when it passes the type predicate."""
    value = body.get(key)
    if predicate(value):
        payload[key] = value


def _model_override(body: dict, default: str) -> str:
    model = body.get("model")
    return model if isinstance(model, str) and model.strip() else default


def _pick_max_tokens(body: dict) -> int | float | None:
    for key in ("max_tokens", "max_completion_tokens"):
        if _is_number(body.get(key)):
            return body[key]
    return None


class BaseProviderAdapter(ABC):
    """Base class for all provider adapters."""

    provider: ProviderName
    capability: Capability
    method: str = "POST"

    def __init__(
        self,
        credentials: CredentialProvider,
        base_url: str = "",
        model: str = "",
        quota_policy: QuotaPolicy | None = None,
        **kwargs,
    ):
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.quota_policy = quota_policy

    def is_configured(self) -> bool:
        return self.credentials.is_configured() and bool(self.model)

    @abstractmethod
    def url(self, path_params: dict[str, Any]) -> str:
        ...

    @abstractmethod
    def build_payload(self, body: dict[str, Any], path_params: dict[str, Any]) -> dict[str, Any] | None:
        """Validate + sanitize the inbound body. Raises GatewayValidationError."""
        ...

    def build_call(self, body: dict[str, Any], path_params: dict[str, Any] | None = None) -> UpstreamCall:
        path_params = path_params or {}
        payload = self.build_payload(body, path_params)
        return UpstreamCall(method=self.method, url=self.url(path_params), json_body=payload)

    async def authorize(self, call: UpstreamCall) -> UpstreamCall:
        header = await self.credentials.get_authorization_header()
        if header:
            call.headers["Authorization"] = header
        return call

    def normalize(self, result: UpstreamResult) -> GatewayResponse:
        return normalize_response(result, self.quota_policy)


# ---------------------------------------------------------------------------
# Doubao (Volcengine Ark)
# ---------------------------------------------------------------------------


class DoubaoChatAdapter(BaseProviderAdapter):
    """Ark chat completions with multimodal content parts."""

    provider = ProviderName.DOUBAO
    capability = Capability.CHAT

    def url(self, path_params: dict[str, Any]) -> str:
        return f"{self.base_url}/chat/completions"

    def build_payload(self, body: dict[str, Any], path_params: dict[str, Any]) -> dict[str, Any]:
        messages = body.get("messages")
        if not isinstance(messages, list) or not messages:
            raise GatewayValidationError(ErrorCode.MESSAGES_REQUIRED)

        payload: dict[str, Any] = {
            "model": _model_override(body, self.model),
            "messages": sanitize_messages(messages),
        }
        max_tokens = _pick_max_tokens(body)
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        _copy_if(payload, body, "temperature", _is_number)
        _copy_if(payload, body, "top_p", _is_number)
        _copy_if(payload, body, "stream", lambda v: isinstance(v, bool))
        return payload


class DoubaoImageAdapter(BaseProviderAdapter):
    """Ark image generation (Seedream)."""

    provider = ProviderName.DOUBAO
    capability = Capability.IMAGE

    DEFAULT_SIZE = "1024x1024"

    def url(self, path_params: dict[str, Any]) -> str:
        return f"{self.base_url}/images/generations"

    def build_payload(self, body: dict[str, Any], path_params: dict[str, Any]) -> dict[str, Any]:
        prompt = body.get("prompt")
        if not isinstance(prompt, str) or not strip_unsafe(prompt):
            raise GatewayValidationError(ErrorCode.PROMPT_REQUIRED)

        size = body.get("size")
        n = body.get("n")
        response_format = body.get("response_format")
        payload: dict[str, Any] = {
            "model": _model_override(body, self.model),
            "prompt": strip_unsafe(prompt),
            "size": strip_unsafe(size) if isinstance(size, str) and size.strip() else self.DEFAULT_SIZE,
            "n": n if isinstance(n, int) and not isinstance(n, bool) and n > 0 else 1,
            "response_format": response_format if isinstance(response_format, str) and response_format else "url",
        }
        _copy_if(payload, body, "seed", _is_number)
        _copy_if(payload, body, "guidance_scale", _is_number)
        _copy_if(payload, body, "watermark", lambda v: isinstance(v, bool))
        return payload


class DoubaoVideoCreateAdapter(BaseProviderAdapter):
    """Ark content generation task creation (Seedance)."""

    provider = ProviderName.DOUBAO
    capability = Capability.VIDEO_CREATE

    def url(self, path_params: dict[str, Any]) -> str:
        return f"{self.base_url}/contents/generations/tasks"

    def build_payload(self, body: dict[str, Any], path_params: dict[str, Any]) -> dict[str, Any]:
        content = body.get("content")
        if not isinstance(content, list) or not content:
            raise GatewayValidationError(ErrorCode.CONTENT_REQUIRED)

        payload: dict[str, Any] = {
            "model": _model_override(body, self.model),
            "content": sanitize_content_parts(content),
        }
        _copy_if(payload, body, "callback_url", lambda v: isinstance(v, str) and bool(v.strip()))
        if "callback_url" in payload:
            payload["callback_url"] = strip_unsafe(payload["callback_url"])
        _copy_if(payload, body, "return_last_frame", lambda v: isinstance(v, bool))
        return payload


class DoubaoVideoStatusAdapter(BaseProviderAdapter):
    """Ark content generation task lookup by id (GET, no body)."""

    provider = ProviderName.DOUBAO
    capability = Capability.VIDEO_STATUS
    method = "GET"

    def is_configured(self) -> bool:
        return self.credentials.is_configured()

    @staticmethod
    def task_id(path_params: dict[str, Any]) -> str:
        return strip_unsafe(path_params.get("task_id"))

    def url(self, path_params: dict[str, Any]) -> str:
        return f"{self.base_url}/contents/generations/tasks/{quote(self.task_id(path_params), safe='')}"

    def build_payload(self, body: dict[str, Any], path_params: dict[str, Any]) -> None:
        if not self.task_id(path_params):
            raise GatewayValidationError(ErrorCode.ID_REQUIRED)
        return None


# ---------------------------------------------------------------------------
# Qianfan (Baidu Wenxin)
# ---------------------------------------------------------------------------


class QianfanChatAdapter(BaseProviderAdapter):
    """Qianfan v2 chat completions (OpenAI-compatible, text-only messages)."""

    provider = ProviderName.QIANFAN
    capability = Capability.CHAT

    def url(self, path_params: dict[str, Any]) -> str:
        return f"{self.base_url}/v2/chat/completions"

    def build_payload(self, body: dict[str, Any], path_params: dict[str, Any]) -> dict[str, Any]:
        messages = body.get("messages")
        if not isinstance(messages, list) or not messages:
            raise GatewayValidationError(ErrorCode.MESSAGES_REQUIRED)

        payload: dict[str, Any] = {
            "model": _model_override(body, self.model),
            "messages": sanitize_messages(messages, flatten=True),
            "stream": False,
        }
        max_tokens = _pick_max_tokens(body)
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        _copy_if(payload, body, "temperature", _is_number)
        _copy_if(payload, body, "top_p", _is_number)
        return payload


# ---------------------------------------------------------------------------
# Volc TTS
# ---------------------------------------------------------------------------


class VolcTTSAdapter(BaseProviderAdapter):
    """Volcengine text-to-speech; the endpoint is fully configured."""

    provider = ProviderName.VOLC_TTS
    capability = Capability.SPEECH

    DEFAULT_VOICE = "female"
    DEFAULT_FORMAT = "mp3"

    def __init__(self, credentials: CredentialProvider, endpoint: str = "", app_id: str = "", **kwargs):
        super().__init__(credentials=credentials, **kwargs)
        self.endpoint = endpoint
        self.app_id = app_id

    def is_configured(self) -> bool:
        return self.credentials.is_configured() and bool(self.endpoint)

    def url(self, path_params: dict[str, Any]) -> str:
        return self.endpoint

    def build_payload(self, body: dict[str, Any], path_params: dict[str, Any]) -> dict[str, Any]:
        text = validate_speech_text(body.get("text"))

        voice = body.get("voice")
        audio_format = body.get("format")
        payload: dict[str, Any] = {
            "text": text,
            "voice": voice if isinstance(voice, str) and voice else self.DEFAULT_VOICE,
            "speed": body["speed"] if _is_number(body.get("speed")) else 1.0,
            "pitch": body["pitch"] if _is_number(body.get("pitch")) else 1.0,
            "audio_format": audio_format if isinstance(audio_format, str) and audio_format else self.DEFAULT_FORMAT,
        }
        if self.app_id:
            payload["app_id"] = self.app_id
        return payload


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[tuple[Capability, ProviderName], type[BaseProviderAdapter]] = {
    (Capability.CHAT, ProviderName.DOUBAO): DoubaoChatAdapter,
    (Capability.IMAGE, ProviderName.DOUBAO): DoubaoImageAdapter,
    (Capability.VIDEO_CREATE, ProviderName.DOUBAO): DoubaoVideoCreateAdapter,
    (Capability.VIDEO_STATUS, ProviderName.DOUBAO): DoubaoVideoStatusAdapter,
    (Capability.CHAT, ProviderName.QIANFAN): QianfanChatAdapter,
    (Capability.SPEECH, ProviderName.VOLC_TTS): VolcTTSAdapter,
}


def get_adapter(
    capability: Capability,
    provider: ProviderName,
    credentials: CredentialProvider,
    **kwargs,
) -> BaseProviderAdapter:
    """Factory: get the appropriate adapter for a capability/provider pair."""
    cls = ADAPTER_REGISTRY.get((capability, provider))
    if cls is None:
        raise ValueError(f"No adapter registered for {provider.value}/{capability.value}")
    return cls(credentials=credentials, **kwargs)
