"""Credential providers — yield the Authorization header for each provider.

Static-key providers (Doubao, Volc TTS) read a configured secret.

Qianfan supports several strategies, tried in order:
  1. A pre-issued ``bce-v3/...`` credential, sent verbatim.
  2. A cached access token that is more than 60s away from expiry.
  3. A pre-fetched access token from configuration.
  4. An API key/secret pair exchanged for a fresh token (OAuth 2.0
     client credentials), cached until ``now + expires_in``.

The cache is not locked. Concurrent requests that all see a stale token
may each exchange; the last writer wins, which is fine because any valid
token serves any caller.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from creative_gateway.core.metrics import TOKEN_EXCHANGES
from creative_gateway.gateway.types import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class CredentialProvider(ABC):
    """Strategy that produces an Authorization header value for a provider."""

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether enough configuration exists to attempt a call at all."""
        ...

    @abstractmethod
    async def get_authorization_header(self) -> str | None:
        ...


class StaticKeyCredentials(CredentialProvider):
    """A fixed API key from configuration, sent as ``<scheme> <key>``."""

    def __init__(self, api_key: str, scheme: str = "Bearer"):
        self.api_key = api_key
        self.scheme = scheme

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def get_authorization_header(self) -> str | None:
        if not self.api_key:
            return None
        return f"{self.scheme} {self.api_key}"


@dataclass
class Credential:
    token: str
    expire_at: float  # epoch seconds


class QianfanCredentialStore(CredentialProvider):
    """Process-lifetime token cache for Baidu Qianfan.

    Constructed once per process and injected into the Qianfan adapter.
    """

    PREISSUED_PREFIX = "bce-v3"
    REFRESH_MARGIN_SECONDS = 60

    def __init__(
        self,
        client: httpx.AsyncClient,
        auth: str = "",
        access_token: str = "",
        api_key: str = "",
        secret_key: str = "",
        token_url: str = "https://aip.baidubce.com/oauth/2.0/token",
        clock: Callable[[], float] = time.time,
        timeout: float = 30.0,
    ):
        self.client = client
        self.auth = auth
        self.access_token = access_token
        self.api_key = api_key
        self.secret_key = secret_key
        self.token_url = token_url
        self.clock = clock
        self.timeout = timeout
        self._credential: Credential | None = None

    def is_configured(self) -> bool:
        return bool(self.auth or self.access_token or (self.api_key and self.secret_key))

    def get(self) -> Credential | None:
        """Current cached credential, fresh or not."""
        return self._credential

    def _is_fresh(self, credential: Credential | None) -> bool:
        return credential is not None and credential.expire_at > self.clock() + self.REFRESH_MARGIN_SECONDS

    async def get_authorization_header(self) -> str | None:
        if self.auth and self.auth.startswith(self.PREISSUED_PREFIX):
            return self.auth

        cached = self._credential
        if self._is_fresh(cached):
            return f"Bearer {cached.token}"

        if self.access_token:
            return f"Bearer {self.access_token}"

        credential = await self.refresh_if_needed()
        if credential is None:
            logger.warning("Qianfan: no credential strategy produced a token, calling unauthenticated")
            return None
        return f"Bearer {credential.token}"

    async def refresh_if_needed(self) -> Credential | None:
        """Return a fresh cached credential, exchanging key/secret if stale."""
        cached = self._credential
        if self._is_fresh(cached):
            return cached
        if not (self.api_key and self.secret_key):
            return None
        return await self._exchange()

    async def _exchange(self) -> Credential | None:
        now = self.clock()
        try:
            resp = await self.client.get(
                self.token_url,
                params={
                    "grant_type": "client_credentials",
                    "client_id": self.api_key,
                    "client_secret": self.secret_key,
                },
                timeout=self.timeout,
            )
            data = resp.json()
        except httpx.HTTPError as e:
            TOKEN_EXCHANGES.labels(provider="qianfan", status="error").inc()
            raise UpstreamUnavailableError(f"Qianfan token exchange failed: {e}") from e
        except ValueError as e:
            TOKEN_EXCHANGES.labels(provider="qianfan", status="error").inc()
            raise UpstreamUnavailableError("Qianfan token exchange returned invalid JSON") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            TOKEN_EXCHANGES.labels(provider="qianfan", status="rejected").inc()
            logger.warning(
                "Qianfan token exchange returned no token (HTTP %d): %s",
                resp.status_code,
                data.get("error_description", "") if isinstance(data, dict) else "",
            )
            return None

        try:
            expires_in = float(data.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0.0

        credential = Credential(token=token, expire_at=now + expires_in)
        self._credential = credential
        TOKEN_EXCHANGES.labels(provider="qianfan", status="ok").inc()
        logger.info("Qianfan access token refreshed, expires in %ds", int(expires_in))
        return credential
