"""Upstream Invoker — sends exactly one HTTP request to a provider.

The response body is decoded according to its declared content type:
  - application/json → JsonBody
  - audio/*          → BinaryBody (raw bytes + mime type)
  - anything else    → TextBody (UTF-8)

Network failures (DNS, refused connection, timeout) and unparseable JSON
are raised as UpstreamUnavailableError. There are no retries.
"""

from __future__ import annotations

import logging
import time

import httpx

from creative_gateway.gateway.types import (
    BinaryBody,
    JsonBody,
    TextBody,
    UpstreamBody,
    UpstreamCall,
    UpstreamResult,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)


def decode_body(response: httpx.Response) -> UpstreamBody:
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        return JsonBody(response.json())
    if content_type.startswith("audio/"):
        return BinaryBody(data=response.content, mime_type=content_type)
    return TextBody(response.content.decode("utf-8", errors="replace"))


class UpstreamInvoker:
    """Thin wrapper over a shared httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 60.0):
        self.client = client
        self.timeout = timeout

    async def invoke(self, call: UpstreamCall) -> UpstreamResult:
        headers = dict(call.headers)
        if call.json_body is not None:
            headers.setdefault("Content-Type", "application/json")

        start = time.monotonic()
        try:
            resp = await self.client.request(
                call.method,
                call.url,
                json=call.json_body,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(f"Upstream timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(str(e) or type(e).__name__) from e

        latency_ms = int((time.monotonic() - start) * 1000)

        try:
            body = decode_body(resp)
        except ValueError as e:
            raise UpstreamUnavailableError(f"Invalid JSON from upstream: {e}") from e

        logger.debug("%s %s → %d in %dms", call.method, call.url, resp.status_code, latency_ms)
        return UpstreamResult(status_code=resp.status_code, body=body, latency_ms=latency_ms)
