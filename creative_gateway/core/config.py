from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Doubao (Volcengine Ark): chat, images, video tasks
    doubao_base_url: str = "https://ark.cn-beijing.volces.com/api/v3"
    doubao_api_key: str = ""
    doubao_model_id: str = ""
    doubao_video_model_id: str = "doubao-seedance-1-0-pro-250528"

    # Qianfan (Baidu Wenxin)
    qianfan_base_url: str = "https://qianfan.baidubce.com"
    qianfan_model_id: str = "ERNIE-Speed-8K"
    qianfan_auth: str = ""  # pre-issued "bce-v3/..." credential, used verbatim
    qianfan_access_token: str = ""  # pre-fetched bearer token
    qianfan_ak: str = Field(default="", validation_alias=AliasChoices("qianfan_ak", "baidu_ak"))
    qianfan_sk: str = Field(default="", validation_alias=AliasChoices("qianfan_sk", "baidu_sk"))
    qianfan_token_url: str = "https://aip.baidubce.com/oauth/2.0/token"

    # Quota exhaustion detection (Qianfan error bodies)
    qianfan_quota_phrases: list[str] = ["quota exceeded", "配额"]
    qianfan_quota_codes: list[str] = ["4001"]
    qianfan_quota_message: str = "百度千帆API免费额度已用完"

    # Volc TTS
    volc_tts_app_id: str = ""
    volc_tts_access_token: str = ""
    volc_tts_secret_key: str = ""
    volc_tts_endpoint: str = ""

    # Upstream HTTP
    upstream_timeout_seconds: float = 60.0

    # Video task polling (client side)
    video_poll_interval_seconds: float = 10.0
    video_poll_timeout_seconds: float = 600.0

    # CORS
    cors_allow_origin: str = "*"

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable

    @property
    def doubao_configured(self) -> bool:
        return bool(self.doubao_api_key and self.doubao_model_id)

    @property
    def qianfan_configured(self) -> bool:
        return bool(self.qianfan_auth or self.qianfan_access_token or (self.qianfan_ak and self.qianfan_sk))

    @property
    def volc_tts_configured(self) -> bool:
        return bool(self.volc_tts_endpoint and self.volc_tts_access_token)


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if settings.app_env == "production":
        if settings.cors_allow_origin == "*":
            errors.append("CORS_ALLOW_ORIGIN must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")
        if not (settings.doubao_configured or settings.qianfan_configured or settings.volc_tts_configured):
            errors.append("At least one provider (DOUBAO_*, QIANFAN_*, VOLC_TTS_*) must be configured")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
