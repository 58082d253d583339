from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "signalx-api"
    environment: str = "dev"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    app_url: str = "http://localhost:3000"
    admin_email: str | None = None
    admin_login_email: str = "admin@signalx.com"
    image_upload_url: str | None = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_secure: bool = False
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_from_email: str | None = None
    smtp_from_name: str = "SignalX"
    smtp_timeout_seconds: float = 15.0
    moderation_api_key: str | None = None
    moderation_base_url: str = "https://api.groq.com/openai/v1"
    moderation_model: str = "llama-3.3-70b-versatile"
    analysis_api_key: str | None = None
    analysis_base_url: str = "https://api.groq.com/openai/v1"
    analysis_model: str = "llama-3.3-70b-versatile"
    llm_timeout_seconds: float = 30.0
    publish_sweep_interval_seconds: float = 60.0
    publish_sweep_batch_size: int = 100
    publish_sweep_max_backoff_seconds: float = 300.0
    otel_enabled: bool = True
    otel_service_name: str = "signalx-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="SIGNALX_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
