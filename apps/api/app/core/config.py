from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Mini CRM API"
    app_version: str = "0.1.0"
    app_env: str = "local"
    app_debug: bool = True
    api_port: int = 8000
    log_level: str = "INFO"
    database_url: str = "sqlite+pysqlite:///./mini_crm.db"
    jwt_secret: str = "replace-me"
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 24 * 60 * 60
    password_hash_schemes: list[str] = ["argon2"]
    customers_page_size_max: int = 100
    metrics_enabled: bool = False
    otel_enabled: bool = False
    otel_service_name: str = "mini-crm-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_console_exporter: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in {"prod", "production"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
