"""Response Normalizer — maps UpstreamResults onto the uniform envelope.

  - 2xx upstream → HTTP 200 ``{ok: true, data}``; audio bodies are returned
    base64-encoded under ``audio_base64`` / ``content_type``
  - non-2xx → upstream status is forwarded with the provider's error code
    (``error.code``, ``error_code`` or ``error_msg``), else SERVER_ERROR
  - an optional QuotaPolicy rewrites quota exhaustion to 429 QUOTA_EXCEEDED
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Iterable
from typing import Any

from creative_gateway.gateway.types import (
    BinaryBody,
    ErrorCode,
    GatewayResponse,
    JsonBody,
    TextBody,
    UpstreamResult,
)

logger = logging.getLogger(__name__)


class QuotaPolicy:
    """Detects quota exhaustion in provider error bodies.

    Phrases are matched as case-insensitive substrings of the error message;
    codes are compared as strings against the error code fields.
    """

    def __init__(self, phrases: Iterable[str], codes: Iterable[str | int], message: str):
        self.phrases = [p.lower() for p in phrases if p]
        self.codes = {str(c) for c in codes}
        self.message = message

    def matches(self, body: Any) -> bool:
        if not isinstance(body, dict):
            return False

        nested = body.get("error") if isinstance(body.get("error"), dict) else {}
        messages = [body.get("error_msg"), nested.get("message")]
        for text in messages:
            if isinstance(text, str) and any(p in text.lower() for p in self.phrases):
                return True

        codes = [body.get("error_code"), nested.get("code")]
        return any(code is not None and str(code) in self.codes for code in codes)


def extract_error_code(body: Any) -> str:
    """Pull a provider error code out of the known body shapes."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("code"):
            return str(error["code"])
        # Qianfan sends both error_code and error_msg; the numeric code wins
        if body.get("error_code"):
            return str(body["error_code"])
        if body.get("error_msg"):
            return str(body["error_msg"])
    return ErrorCode.SERVER_ERROR.value


def error_response(
    code: ErrorCode | str,
    status_code: int,
    message: str | None = None,
    data: Any = None,
) -> GatewayResponse:
    """Build a failure envelope for a locally detected error."""
    return GatewayResponse(
        ok=False,
        status_code=status_code,
        error=code.value if isinstance(code, ErrorCode) else code,
        message=message or None,
        data=data,
    )


def _body_value(result: UpstreamResult) -> Any:
    if isinstance(result.body, JsonBody):
        return result.body.value
    if isinstance(result.body, TextBody):
        return result.body.text
    return None  # binary is only meaningful on success


def normalize_response(result: UpstreamResult, quota_policy: QuotaPolicy | None = None) -> GatewayResponse:
    """Turn a decoded provider response into a GatewayResponse."""
    if result.ok:
        if isinstance(result.body, BinaryBody):
            return GatewayResponse(
                ok=True,
                status_code=200,
                audio_base64=base64.b64encode(result.body.data).decode("ascii"),
                content_type=result.body.mime_type,
            )
        return GatewayResponse(ok=True, status_code=200, data=_body_value(result))

    body = _body_value(result)

    if quota_policy is not None and quota_policy.matches(body):
        logger.warning("Upstream quota exhausted (HTTP %d)", result.status_code)
        return error_response(ErrorCode.QUOTA_EXCEEDED, 429, message=quota_policy.message)

    code = extract_error_code(body)
    logger.info("Upstream error HTTP %d: %s", result.status_code, code)
    return error_response(code, result.status_code, data=body)
