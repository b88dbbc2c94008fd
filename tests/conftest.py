import json
from collections.abc import AsyncGenerator

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from creative_gateway.core.config import Settings
from creative_gateway.core.dependencies import get_gateway
from creative_gateway.gateway.gateway import GenerationGateway
from creative_gateway.main import app


class StubUpstream:
    """httpx.MockTransport handler that records requests and replays canned responses.

    Queue httpx.Response objects, exceptions (raised) or callables
    (called with the request). An empty queue answers 200 ``{}``.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._replies: list = []

    def queue(self, *replies) -> None:
        self._replies.extend(replies)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._replies:
            return httpx.Response(200, json={})
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    def json_body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def make_settings(**overrides) -> Settings:
    values = {
        "doubao_base_url": "https://ark.test/api/v3",
        "doubao_api_key": "ark-test-key",
        "doubao_model_id": "doubao-test-model",
        "doubao_video_model_id": "doubao-seedance-test",
        "qianfan_base_url": "https://qianfan.test",
        "qianfan_model_id": "ERNIE-Speed-8K",
        "qianfan_auth": "",
        "qianfan_access_token": "",
        "qianfan_ak": "ak-test",
        "qianfan_sk": "sk-test",
        "qianfan_token_url": "https://aip.test/oauth/2.0/token",
        "volc_tts_endpoint": "https://tts.test/api/v1/synthesize",
        "volc_tts_access_token": "tts-test-token",
        "volc_tts_app_id": "app-123",
        "cors_allow_origin": "*",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def stub() -> StubUpstream:
    return StubUpstream()


@pytest.fixture
async def upstream_client(stub: StubUpstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as c:
        yield c


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def gateway(test_settings: Settings, upstream_client: httpx.AsyncClient) -> GenerationGateway:
    return GenerationGateway.from_settings(test_settings, upstream_client)


@pytest.fixture
async def client(gateway: GenerationGateway) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_gateway] = lambda: gateway
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.pop(get_gateway, None)
