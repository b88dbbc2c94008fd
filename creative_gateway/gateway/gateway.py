"""Generation Gateway — orchestrator integrating all gateway components.

Every inbound capability call goes through the same pipeline:
  1. Look up the provider adapter for (capability, provider)
  2. Fail fast with CONFIG_MISSING if the provider is not configured
  3. Sanitize + validate the body and build the upstream call
     (validation errors return immediately, no network traffic)
  4. Resolve the Authorization header via the adapter's CredentialProvider
  5. Invoke the provider exactly once
  6. Normalize the result into the uniform envelope

Usage:
    async with httpx.AsyncClient() as client:
        gateway = GenerationGateway.from_settings(settings, client)
        response = await gateway.execute(Capability.CHAT, ProviderName.DOUBAO, body)
        return response.to_dict()
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from creative_gateway.core.config import Settings
from creative_gateway.core.metrics import UPSTREAM_CALLS, UPSTREAM_LATENCY
from creative_gateway.gateway.credentials import QianfanCredentialStore, StaticKeyCredentials
from creative_gateway.gateway.invoker import UpstreamInvoker
from creative_gateway.gateway.normalizer import QuotaPolicy, error_response
from creative_gateway.gateway.types import (
    Capability,
    ErrorCode,
    GatewayResponse,
    GatewayValidationError,
    ProviderName,
    UpstreamUnavailableError,
)
from creative_gateway.gateway.vendor_adapters import BaseProviderAdapter, get_adapter

logger = logging.getLogger(__name__)


class GenerationGateway:
    """Main gateway orchestrator.

    Holds one adapter per registered (capability, provider) pair and a
    shared UpstreamInvoker. Stateless per request; the only shared mutable
    state is whatever the credential providers cache.
    """

    def __init__(
        self,
        adapters: dict[tuple[Capability, ProviderName], BaseProviderAdapter],
        invoker: UpstreamInvoker,
    ):
        self._adapters = adapters
        self.invoker = invoker

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient) -> GenerationGateway:
        """Wire every provider adapter from configuration."""
        doubao = StaticKeyCredentials(settings.doubao_api_key)
        qianfan = QianfanCredentialStore(
            client,
            auth=settings.qianfan_auth,
            access_token=settings.qianfan_access_token,
            api_key=settings.qianfan_ak,
            secret_key=settings.qianfan_sk,
            token_url=settings.qianfan_token_url,
        )
        volc_tts = StaticKeyCredentials(settings.volc_tts_access_token)
        quota_policy = QuotaPolicy(
            phrases=settings.qianfan_quota_phrases,
            codes=settings.qianfan_quota_codes,
            message=settings.qianfan_quota_message,
        )

        adapter_kwargs: dict[tuple[Capability, ProviderName], dict[str, Any]] = {
            (Capability.CHAT, ProviderName.DOUBAO): {
                "credentials": doubao,
                "base_url": settings.doubao_base_url,
                "model": settings.doubao_model_id,
            },
            (Capability.IMAGE, ProviderName.DOUBAO): {
                "credentials": doubao,
                "base_url": settings.doubao_base_url,
                "model": settings.doubao_model_id,
            },
            (Capability.VIDEO_CREATE, ProviderName.DOUBAO): {
                "credentials": doubao,
                "base_url": settings.doubao_base_url,
                "model": settings.doubao_video_model_id,
            },
            (Capability.VIDEO_STATUS, ProviderName.DOUBAO): {
                "credentials": doubao,
                "base_url": settings.doubao_base_url,
            },
            (Capability.CHAT, ProviderName.QIANFAN): {
                "credentials": qianfan,
                "base_url": settings.qianfan_base_url,
                "model": settings.qianfan_model_id,
                "quota_policy": quota_policy,
            },
            (Capability.SPEECH, ProviderName.VOLC_TTS): {
                "credentials": volc_tts,
                "endpoint": settings.volc_tts_endpoint,
                "app_id": settings.volc_tts_app_id,
            },
        }

        adapters = {
            (capability, provider): get_adapter(capability, provider, **kwargs)
            for (capability, provider), kwargs in adapter_kwargs.items()
        }
        return cls(adapters, UpstreamInvoker(client, timeout=settings.upstream_timeout_seconds))

    def get_adapter(self, capability: Capability, provider: ProviderName) -> BaseProviderAdapter | None:
        return self._adapters.get((capability, provider))

    async def execute(
        self,
        capability: Capability,
        provider: ProviderName,
        body: Any = None,
        path_params: dict[str, Any] | None = None,
    ) -> GatewayResponse:
        """Run one inbound request through the full gateway pipeline."""
        log_extra = {"provider": provider.value, "capability": capability.value}
        adapter = self.get_adapter(capability, provider)
        if adapter is None or not adapter.is_configured():
            logger.error(
                "%s/%s called but provider is not configured", provider.value, capability.value, extra=log_extra
            )
            return error_response(ErrorCode.CONFIG_MISSING, 500)

        if not isinstance(body, dict):
            body = {}

        try:
            call = adapter.build_call(body, path_params)
        except GatewayValidationError as e:
            logger.info("%s/%s rejected: %s", provider.value, capability.value, e.code, extra=log_extra)
            return error_response(e.code, e.status_code, message=e.message)

        try:
            call = await adapter.authorize(call)
            result = await self.invoker.invoke(call)
        except UpstreamUnavailableError as e:
            UPSTREAM_CALLS.labels(provider=provider.value, capability=capability.value, outcome="unavailable").inc()
            logger.warning(
                "%s/%s upstream unavailable: %s", provider.value, capability.value, e.message, extra=log_extra
            )
            return error_response(ErrorCode.SERVER_ERROR, e.status_code, message=e.message)

        UPSTREAM_LATENCY.labels(provider=provider.value, capability=capability.value).observe(
            result.latency_ms / 1000
        )
        response = adapter.normalize(result)
        UPSTREAM_CALLS.labels(
            provider=provider.value,
            capability=capability.value,
            outcome="success" if response.ok else "error",
        ).inc()

        if not response.ok:
            logger.warning(
                "%s/%s upstream HTTP %d → %s (%d)",
                provider.value,
                capability.value,
                result.status_code,
                response.error,
                response.status_code,
                extra={**log_extra, "upstream_status": result.status_code},
            )
        return response

    def get_status(self) -> dict:
        """Which capability/provider pairs are ready to serve."""
        return {
            f"{provider.value}:{capability.value}": adapter.is_configured()
            for (capability, provider), adapter in self._adapters.items()
        }
