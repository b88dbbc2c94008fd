"""Tests for provider adapters: payload mapping, validation, registry."""

import pytest

from creative_gateway.gateway.credentials import StaticKeyCredentials
from creative_gateway.gateway.types import Capability, GatewayValidationError, ProviderName
from creative_gateway.gateway.vendor_adapters import (
    ADAPTER_REGISTRY,
    DoubaoChatAdapter,
    DoubaoImageAdapter,
    DoubaoVideoCreateAdapter,
    DoubaoVideoStatusAdapter,
    QianfanChatAdapter,
    VolcTTSAdapter,
    get_adapter,
)

ARK = "https://ark.test/api/v3"


def _creds(key: str = "key") -> StaticKeyCredentials:
    return StaticKeyCredentials(key)


def _validation_code(adapter, body, path_params=None) -> str:
    with pytest.raises(GatewayValidationError) as exc:
        adapter.build_call(body, path_params)
    assert exc.value.status_code == 400
    return exc.value.code


# ==========================================================================
# Doubao chat
# ==========================================================================


class TestDoubaoChatAdapter:
    @pytest.fixture
    def adapter(self):
        return DoubaoChatAdapter(credentials=_creds(), base_url=ARK + "/", model="default-model")

    @pytest.mark.parametrize("body", [{}, {"messages": []}, {"messages": "hi"}, {"messages": None}])
    def test_messages_required(self, adapter, body):
        assert _validation_code(adapter, body) == "MESSAGES_REQUIRED"

    def test_minimal_payload(self, adapter):
        call = adapter.build_call({"messages": [{"content": [{"type": "text", "text": "`hi`"}]}]})
        assert call.method == "POST"
        assert call.url == f"{ARK}/chat/completions"
        assert call.json_body == {
            "model": "default-model",
            "messages": [{"role": "user", "content": [{"type": "text", "text": "hi"}]}],
        }

    def test_model_override(self, adapter):
        call = adapter.build_call({"model": "doubao-1.5-vision", "messages": [{"content": "x"}]})
        assert call.json_body["model"] == "doubao-1.5-vision"

    def test_max_tokens_preferred(self, adapter):
        call = adapter.build_call({"messages": [{"content": "x"}], "max_tokens": 100, "max_completion_tokens": 50})
        assert call.json_body["max_tokens"] == 100

    def test_max_completion_tokens_fallback(self, adapter):
        call = adapter.build_call({"messages": [{"content": "x"}], "max_completion_tokens": 50})
        assert call.json_body["max_tokens"] == 50
        assert "max_completion_tokens" not in call.json_body

    def test_non_numeric_max_tokens_falls_back(self, adapter):
        call = adapter.build_call({"messages": [{"content": "x"}], "max_tokens": "100", "max_completion_tokens": 50})
        assert call.json_body["max_tokens"] == 50

    def test_optional_fields_forwarded_when_well_typed(self, adapter):
        call = adapter.build_call(
            {"messages": [{"content": "x"}], "temperature": 0.7, "top_p": 1, "stream": False}
        )
        assert call.json_body["temperature"] == 0.7
        assert call.json_body["top_p"] == 1
        assert call.json_body["stream"] is False

    def test_malformed_optional_fields_omitted(self, adapter):
        call = adapter.build_call(
            {
                "messages": [{"content": "x"}],
                "temperature": "0.7",
                "top_p": None,
                "stream": "true",
                "max_tokens": True,
            }
        )
        for key in ("temperature", "top_p", "stream", "max_tokens"):
            assert key not in call.json_body


# ==========================================================================
# Doubao image
# ==========================================================================


class TestDoubaoImageAdapter:
    @pytest.fixture
    def adapter(self):
        return DoubaoImageAdapter(credentials=_creds(), base_url=ARK, model="seedream-test")

    @pytest.mark.parametrize("body", [{}, {"prompt": ""}, {"prompt": 123}, {"prompt": " `` "}])
    def test_prompt_required(self, adapter, body):
        assert _validation_code(adapter, body) == "PROMPT_REQUIRED"

    def test_defaults(self, adapter):
        call = adapter.build_call({"prompt": "a cat"})
        assert call.url == f"{ARK}/images/generations"
        assert call.json_body == {
            "model": "seedream-test",
            "prompt": "a cat",
            "size": "1024x1024",
            "n": 1,
            "response_format": "url",
        }

    def test_overrides_and_optionals(self, adapter):
        call = adapter.build_call(
            {
                "prompt": "`a dog`",
                "size": "512x512",
                "n": 2,
                "response_format": "b64_json",
                "seed": 42,
                "guidance_scale": 2.5,
                "watermark": False,
            }
        )
        body = call.json_body
        assert body["prompt"] == "a dog"
        assert body["size"] == "512x512"
        assert body["n"] == 2
        assert body["response_format"] == "b64_json"
        assert body["seed"] == 42
        assert body["guidance_scale"] == 2.5
        assert body["watermark"] is False

    def test_bad_optionals_omitted(self, adapter):
        body = adapter.build_call({"prompt": "x", "seed": "1", "guidance_scale": None, "watermark": "no"}).json_body
        assert "seed" not in body
        assert "guidance_scale" not in body
        assert "watermark" not in body


# ==========================================================================
# Doubao video
# ==========================================================================


class TestDoubaoVideoAdapters:
    @pytest.fixture
    def create(self):
        return DoubaoVideoCreateAdapter(credentials=_creds(), base_url=ARK, model="seedance-test")

    @pytest.fixture
    def status(self):
        return DoubaoVideoStatusAdapter(credentials=_creds(), base_url=ARK)

    @pytest.mark.parametrize("body", [{}, {"content": []}, {"content": {"type": "text"}}])
    def test_content_required(self, create, body):
        assert _validation_code(create, body) == "CONTENT_REQUIRED"

    def test_create_payload(self, create):
        call = create.build_call(
            {
                "content": [
                    {"type": "text", "text": " `a kite over the sea` --ratio 16:9 "},
                    {"type": "image_url", "image_url": {"url": "`https://img.test/first.png`"}},
                    {"type": "draft", "value": 1},
                ]
            }
        )
        assert call.url == f"{ARK}/contents/generations/tasks"
        assert call.json_body == {
            "model": "seedance-test",
            "content": [
                {"type": "text", "text": "a kite over the sea --ratio 16:9"},
                {"type": "image_url", "image_url": {"url": "https://img.test/first.png"}},
                {"type": "draft", "value": 1},
            ],
        }

    def test_create_keeps_bare_image_url_string(self, create):
        content = [{"type": "text", "text": "x"}, {"type": "image_url", "image_url": "https://img.test/first.png"}]
        call = create.build_call({"content": content})
        assert call.json_body["content"] == [
            {"type": "text", "text": "x"},
            {"type": "image_url", "image_url": "https://img.test/first.png"},
        ]

    def test_create_optional_fields(self, create):
        body = create.build_call(
            {
                "content": [{"type": "text", "text": "x"}],
                "callback_url": " https://hooks.test/video ",
                "return_last_frame": True,
            }
        ).json_body
        assert body["callback_url"] == "https://hooks.test/video"
        assert body["return_last_frame"] is True

    @pytest.mark.parametrize("path_params", [None, {}, {"task_id": ""}, {"task_id": "  "}, {"task_id": "``"}])
    def test_id_required(self, status, path_params):
        assert _validation_code(status, {}, path_params) == "ID_REQUIRED"

    def test_status_call(self, status):
        call = status.build_call({}, {"task_id": " cgt-2025 "})
        assert call.method == "GET"
        assert call.json_body is None
        assert call.url == f"{ARK}/contents/generations/tasks/cgt-2025"

    def test_status_id_is_url_quoted(self, status):
        call = status.build_call({}, {"task_id": "a/b?c"})
        assert call.url.endswith("/tasks/a%2Fb%3Fc")

    def test_status_configured_without_model(self, status):
        assert status.is_configured()
        assert not DoubaoVideoStatusAdapter(credentials=_creds(""), base_url=ARK).is_configured()


# ==========================================================================
# Qianfan chat
# ==========================================================================


class TestQianfanChatAdapter:
    @pytest.fixture
    def adapter(self):
        return QianfanChatAdapter(credentials=_creds(), base_url="https://qianfan.test", model="ERNIE-Speed-8K")

    def test_messages_required(self, adapter):
        assert _validation_code(adapter, {"messages": []}) == "MESSAGES_REQUIRED"

    def test_payload_flattens_content(self, adapter):
        call = adapter.build_call(
            {
                "messages": [
                    {"role": "system", "content": "`be brief`"},
                    {"content": [{"type": "text", "text": "hello"}]},
                ]
            }
        )
        assert call.url == "https://qianfan.test/v2/chat/completions"
        assert call.json_body == {
            "model": "ERNIE-Speed-8K",
            "messages": [
                {"role": "system", "content": "be brief"},
                {"role": "user", "content": "hello"},
            ],
            "stream": False,
        }

    def test_unset_optionals_are_not_forwarded_as_null(self, adapter):
        body = adapter.build_call({"messages": [{"content": "x"}], "temperature": None}).json_body
        assert None not in body.values()
        assert "temperature" not in body
        assert "max_tokens" not in body

    def test_stream_always_false(self, adapter):
        body = adapter.build_call({"messages": [{"content": "x"}], "stream": True, "top_p": 0.8}).json_body
        assert body["stream"] is False
        assert body["top_p"] == 0.8


# ==========================================================================
# Volc TTS
# ==========================================================================


class TestVolcTTSAdapter:
    @pytest.fixture
    def adapter(self):
        return VolcTTSAdapter(credentials=_creds(), endpoint="https://tts.test/synth", app_id="app-1")

    def test_defaults(self, adapter):
        call = adapter.build_call({"text": " `你好` "})
        assert call.url == "https://tts.test/synth"
        assert call.json_body == {
            "text": "你好",
            "voice": "female",
            "speed": 1.0,
            "pitch": 1.0,
            "audio_format": "mp3",
            "app_id": "app-1",
        }

    def test_overrides(self, adapter):
        body = adapter.build_call({"text": "hi", "voice": "male", "speed": 1.5, "pitch": 0.8, "format": "wav"}).json_body
        assert body["voice"] == "male"
        assert body["speed"] == 1.5
        assert body["pitch"] == 0.8
        assert body["audio_format"] == "wav"

    def test_non_numeric_speed_uses_default(self, adapter):
        body = adapter.build_call({"text": "hi", "speed": "fast"}).json_body
        assert body["speed"] == 1.0

    def test_app_id_omitted_when_not_configured(self):
        adapter = VolcTTSAdapter(credentials=_creds(), endpoint="https://tts.test/synth")
        assert "app_id" not in adapter.build_call({"text": "hi"}).json_body

    def test_text_validation(self, adapter):
        assert _validation_code(adapter, {"text": ""}) == "TEXT_EMPTY"
        assert _validation_code(adapter, {"text": "x" * 2001}) == "TEXT_TOO_LONG"

    def test_requires_endpoint(self):
        assert not VolcTTSAdapter(credentials=_creds(), endpoint="").is_configured()
        assert not VolcTTSAdapter(credentials=_creds(""), endpoint="https://tts.test").is_configured()


# ==========================================================================
# Registry + auth
# ==========================================================================


class TestRegistry:
    def test_all_capabilities_registered(self):
        assert ADAPTER_REGISTRY[(Capability.CHAT, ProviderName.DOUBAO)] is DoubaoChatAdapter
        assert ADAPTER_REGISTRY[(Capability.CHAT, ProviderName.QIANFAN)] is QianfanChatAdapter
        assert ADAPTER_REGISTRY[(Capability.SPEECH, ProviderName.VOLC_TTS)] is VolcTTSAdapter
        assert len(ADAPTER_REGISTRY) == 6

    def test_get_adapter(self):
        adapter = get_adapter(Capability.IMAGE, ProviderName.DOUBAO, _creds(), base_url=ARK, model="m")
        assert isinstance(adapter, DoubaoImageAdapter)
        assert adapter.is_configured()

    def test_get_adapter_unknown_pair(self):
        with pytest.raises(ValueError):
            get_adapter(Capability.IMAGE, ProviderName.QIANFAN, _creds())

    def test_chat_adapter_needs_model(self):
        assert not DoubaoChatAdapter(credentials=_creds(), base_url=ARK, model="").is_configured()

    @pytest.mark.asyncio
    async def test_authorize_sets_header(self):
        adapter = DoubaoChatAdapter(credentials=_creds("secret"), base_url=ARK, model="m")
        call = await adapter.authorize(adapter.build_call({"messages": [{"content": "x"}]}))
        assert call.headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_authorize_without_credential(self):
        adapter = DoubaoChatAdapter(credentials=_creds(""), base_url=ARK, model="m")
        call = await adapter.authorize(adapter.build_call({"messages": [{"content": "x"}]}))
        assert "Authorization" not in call.headers
