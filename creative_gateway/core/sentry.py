"""Sentry error tracking integration.

Enabled only when SENTRY_DSN is set. Provider credentials travel in
Authorization headers and, for the Qianfan token exchange, in the query
string, so every event is scrubbed before it leaves the process.
"""

import logging
import re
from typing import Any

from creative_gateway.core.config import settings

logger = logging.getLogger(__name__)

_SECRET_PARAM = re.compile(r"(client_secret|client_id|access_token)=[^&\s]+")
_SENSITIVE_HEADERS = {"authorization", "x-api-key", "cookie"}


def scrub_url(url: str) -> str:
    return _SECRET_PARAM.sub(r"\1=[Filtered]", url)


def scrub_event(event: dict[str, Any], hint: dict[str, Any] | None = None) -> dict[str, Any]:
    """before_send hook: mask credentials in request data and breadcrumbs."""
    request = event.get("request") or {}
    headers = request.get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in _SENSITIVE_HEADERS:
                headers[name] = "[Filtered]"
    if isinstance(request.get("url"), str):
        request["url"] = scrub_url(request["url"])
    if isinstance(request.get("query_string"), str):
        request["query_string"] = scrub_url(request["query_string"])

    breadcrumbs = event.get("breadcrumbs") or {}
    for crumb in breadcrumbs.get("values", []) if isinstance(breadcrumbs, dict) else []:
        data = crumb.get("data") or {}
        if isinstance(data.get("url"), str):
            data["url"] = scrub_url(data["url"])
    return event


def init_sentry() -> None:
    if not settings.sentry_dsn:
        logger.debug("Sentry DSN not configured, skipping")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.httpx import HttpxIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        release="creative-gateway@1.0.0",
        traces_sample_rate=0.1 if settings.app_env == "production" else 1.0,
        send_default_pii=False,
        before_send=scrub_event,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            HttpxIntegration(),
        ],
    )
    logger.info("Sentry initialized (env=%s)", settings.app_env)
