"""
Kitchen Timer — Configuration
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "kitchen-timer"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8006
    LOG_LEVEL: str = "INFO"

    # ── Redis (alert pub/sub) ─────────────────────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    ALERT_CHANNEL: str = "kitchen:alerts"

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── Order Backend ─────────────────────────────────────────
    BACKEND_BASE_URL: str = "http://order-backend:8081"
    HTTP_TIMEOUT_SECONDS: float = 5.0
    BACKEND_STRICT_PAYLOADS: bool = False

    # ── Kitchen Timing ──────────────────────────────────────
    TIMER_TICK_INTERVAL_SECONDS: float = 1.0
    TIMER_LEGACY_PAUSE_ACCOUNTING: bool = False
    ALERT_REPEAT_SECONDS: int = 30
    ALERT_THRESHOLD_CAP_SECONDS: int = 300
    KITCHEN_DEFAULT_ESTIMATED_MINUTES: int = 15

    # ── Optimistic Locking ────────────────────────────────────
    OPT_LOCK_MAX_RETRIES: int = 3
    OPT_LOCK_BASE_DELAY_MS: int = 10
    OPT_LOCK_MAX_DELAY_MS: int = 200
    OPT_LOCK_JITTER_MS: int = 10

    # ── SSE ───────────────────────────────────────────────────
    SSE_KEEPALIVE_INTERVAL_SECONDS: int = 15
    SSE_RETRY_MILLISECONDS: int = 3000

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
