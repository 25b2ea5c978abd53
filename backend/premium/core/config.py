from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "premium-membership"
    DEBUG: bool = False
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/premium.db"
    REDIS_URL: str = "redis://localhost:6379"
    LOG_LEVEL: str = "INFO"

    # Bearer tokens issued to signed-in members
    AUTH_JWT_SECRET: str = "change-me-to-a-long-random-secret-value"
    AUTH_TOKEN_TTL_HOURS: int = 12

    # Paystack
    paystack_secret_key: str = ""
    paystack_base_url: str = "https://api.paystack.co"
    paystack_initialize_timeout: float = 4.0
    paystack_verify_timeout: float = 3.0
    paystack_callback_url: str = ""  # Where Paystack redirects after checkout

    # Premium plan
    payment_currency: str = "NGN"
    premium_price_minor: int = 250000  # NGN 2,500 in kobo
    premium_billing_months: int = 1
    payment_reference_prefix: str = "premium"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Rate limiting
    RATE_LIMIT_WEBHOOKS_PER_MINUTE: int = 120

    # Worker
    PENDING_RECONCILE_AFTER_MINUTES: int = 15

    @property
    def version(self) -> str:
        return "0.1.0"


settings = Settings()
