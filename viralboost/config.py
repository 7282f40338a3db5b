from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    PORT: int = 3000

    # Durable backend (empty = no database, snapshot file or memory only)
    DATABASE_URL: str = ""
    DATA_FILE: str = "data.json"
    SNAPSHOT_INTERVAL_SECONDS: float = 30.0

    # Admin shared secret
    ADMIN_KEY: str = "viralboost-admin"

    # Stripe settings
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"
    STRIPE_CURRENCY: str = "eur"
    PAYMENT_TIMEOUT_SECONDS: float = 15.0

    # OpenAI settings
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o"
    AI_TIMEOUT_SECONDS: float = 60.0
    AI_HISTORY_TURNS: int = 10

    # Redis (optional, rate limiting only)
    REDIS_URL: str | None = None

    # Rate limiting for AI and payment endpoints
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_FAIL_OPEN: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_AI_PER_MINUTE: int = 20
    RATE_LIMIT_PAYMENT_PER_MINUTE: int = 10

    # CORS (comma-separated, "*" allows any origin)
    CORS_ALLOWED_ORIGINS: str = "*"

    # Only enable behind a proxy that sets X-Forwarded-For
    TRUST_X_FORWARDED_FOR: bool = False

    # Realtime chat
    CHAT_HISTORY_CAPACITY: int = 200
    CHAT_REPLAY_WINDOW: int = 50
    MAX_MESSAGE_LENGTH: int = 500
    WELCOME_SNAPSHOT_SIZE: int = 50
    CHAT_PERSISTENCE_STRICT: bool = False

    # Feed retention for the file/memory backends
    MAX_POSTS: int = 500
    MAX_PROJECTS: int = 200

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def storage_backend(self) -> str:
        """Name of the backend picked from configuration: postgres, snapshot or memory."""
        if self.DATABASE_URL:
            return "postgres"
        if self.DATA_FILE:
            return "snapshot"
        return "memory"

    def cors_origins(self) -> list[str]:
        return [o.strip().rstrip("/") for o in self.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update({"min_size": 1, "max_size": 5, "timeout": 15.0})

        return config

    def get_rate_limits(self) -> dict:
        return {
            "ai_per_minute": self.RATE_LIMIT_AI_PER_MINUTE,
            "payment_per_minute": self.RATE_LIMIT_PAYMENT_PER_MINUTE,
        }


settings = Settings()
