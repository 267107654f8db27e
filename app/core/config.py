from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://staydigest:staydigest@db:5432/eventdb"
    APP_ENV: str = "development"

    # Bearer token required on every route except /health.
    # Left empty, all authenticated requests are rejected.
    API_TOKEN: str = ""

    # Comma-separated allowed origins, or "*" to allow all.
    CORS_ORIGINS: str = "*"

    # Digest worker
    DIGEST_TIMEZONE: str = "UTC"
    DIGEST_INTERVAL_SECONDS: int = 300
    DIGEST_BATCH_LIMIT: int = 1000

    # Notification channel (OpenClaw hook). Empty URL disables delivery.
    OPENCLAW_HOOK_URL: str = ""
    OPENCLAW_TOKEN: str = ""
    OPENCLAW_TIMEOUT_SECONDS: float = 10.0

    LOG_LEVEL: str = "INFO"
    LOG_MODE: str = "dev"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
