"""Request Sanitizer — cleans free text and URLs before they reach a provider.

Backticks are removed and surrounding whitespace trimmed from every text or
URL field. Content-part items of unknown type pass through untouched so that
new provider content kinds keep working.
"""

from __future__ import annotations

from typing import Any

from creative_gateway.gateway.types import ErrorCode, GatewayValidationError

MAX_SPEECH_TEXT_LENGTH = 2000


def strip_unsafe(value: Any) -> str:
    """Coerce to str, drop backticks, trim whitespace. None becomes ''."""
    if value is None:
        return ""
    return str(value).replace("`", "").strip()


def sanitize_content_part(part: Any) -> Any:
    if not isinstance(part, dict):
        return part

    kind = part.get("type")
    if kind == "text" and isinstance(part.get("text"), str):
        return {"type": "text", "text": strip_unsafe(part["text"])}
    if kind == "image_url":
        image_url = part.get("image_url")
        if isinstance(image_url, dict) and isinstance(image_url.get("url"), str):
            return {"type": "image_url", "image_url": {"url": strip_unsafe(image_url["url"])}}
    # anything not in a recognised shape goes upstream untouched
    return part


def sanitize_content_parts(parts: list[Any]) -> list[Any]:
    return [sanitize_content_part(part) for part in parts]


def sanitize_message(message: Any, flatten: bool = False) -> dict[str, Any]:
    """Normalize one chat message.

    ``role`` defaults to ``user``. List content is sanitized part by part,
    anything else is coerced to a sanitized string. With ``flatten`` the
    content is always a string (providers without multimodal messages).
    """
    if not isinstance(message, dict):
        message = {}

    role = message.get("role") or "user"
    content = message.get("content")

    if isinstance(content, list) and not flatten:
        return {"role": role, "content": sanitize_content_parts(content)}
    if isinstance(content, list):
        text = " ".join(
            strip_unsafe(part.get("text"))
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
        return {"role": role, "content": text.strip()}
    return {"role": role, "content": strip_unsafe(content)}


def sanitize_messages(messages: list[Any], flatten: bool = False) -> list[dict[str, Any]]:
    return [sanitize_message(m, flatten=flatten) for m in messages]


def validate_speech_text(text: Any) -> str:
    """Return sanitized speech text or raise TEXT_EMPTY / TEXT_TOO_LONG."""
    cleaned = strip_unsafe(text)
    if not cleaned:
        raise GatewayValidationError(ErrorCode.TEXT_EMPTY)
    if len(cleaned) > MAX_SPEECH_TEXT_LENGTH:
        raise GatewayValidationError(ErrorCode.TEXT_TOO_LONG)
    return cleaned
