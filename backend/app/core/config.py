"""Application settings loaded from environment variables and .env file."""

import logging
from pathlib import Path

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration resolved once at process start."""

    PROJECT_NAME: str = "quote-to-cash"
    API_V1_STR: str = "/api/v1"
    BASE_URL: str = Field(
        default="http://localhost:3000",
        description="Public origin used to build acceptance and signing links",
    )

    # Database
    SQLALCHEMY_DATABASE_URI: str = Field(
        default="sqlite:///./quote_to_cash.db",
        description="SQLAlchemy connection URL",
    )
    AUTO_CREATE_TABLES: bool = False

    # Secrets
    ADMIN_PASSWORD: SecretStr = SecretStr("")
    QUOTE_TOKEN_SECRET: SecretStr = SecretStr("")
    QUOTE_TOKEN_LENGTH: int = 16

    # Email / SMTP
    MAIL_SERVER: str = "smtp.gmail.com"
    MAIL_PORT: int = 587
    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: SecretStr = SecretStr("")
    MAIL_USE_TLS: bool = True
    CONTACT_EMAIL: str = ""
    EMAIL_TIMEOUT_S: float = 10.0
    EMAIL_SEND_DELAY_SECONDS: int = Field(
        default=3,
        description="Gap between sequential emails to one recipient (provider rate limit)",
    )

    # Outbox worker
    OUTBOX_WORKER_ENABLED: bool = True
    OUTBOX_POLL_INTERVAL_S: float = 2.0
    OUTBOX_BATCH_SIZE: int = 20

    # Stripe
    STRIPE_SECRET_KEY: SecretStr = SecretStr("")
    STRIPE_WEBHOOK_SECRET: SecretStr = SecretStr("")
    STRIPE_TIMEOUT_S: int = 10
    WEBHOOK_TOLERANCE_S: int = 300
    CURRENCY: str = "gbp"
    CURRENCY_SYMBOL: str = "£"

    # Business details printed on documents
    ACCOUNT_NAME: str = "Freelance Studio"
    PROVIDER_TAGLINE: str = "Professional Web Development Services"
    PROVIDER_LOCATION: str = "United Kingdom"
    JURISDICTION: str = "England & Wales"
    BANK_NAME: str = ""
    ACCOUNT_NUMBER: str = ""
    SORT_CODE: str = ""
    INVOICE_DUE_DAYS: int = 30

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "Settings":
        """Log a startup warning for every critical setting left empty."""
        _log = logging.getLogger("app.core.config")

        if not Path(".env").exists():
            _log.warning("No .env file found, configuration loaded from environment or defaults.")
        if not self.QUOTE_TOKEN_SECRET.get_secret_value():
            _log.warning("QUOTE_TOKEN_SECRET is empty; quote acceptance links cannot be verified.")
        if not self.ADMIN_PASSWORD.get_secret_value():
            _log.warning("ADMIN_PASSWORD is empty; every admin request will be rejected.")
        if not self.MAIL_USERNAME:
            _log.warning("MAIL_USERNAME is empty; outbound email will fail.")
        if not self.STRIPE_WEBHOOK_SECRET.get_secret_value():
            _log.warning("STRIPE_WEBHOOK_SECRET is empty; payment webhooks will be rejected.")
        return self

    @property
    def admin_email(self) -> str:
        """Address that receives admin notifications and invoice copies."""
        return self.CONTACT_EMAIL or self.MAIL_USERNAME

    def validate_email_config(self) -> None:
        """Raise ValueError when SMTP settings are incomplete."""
        if not self.MAIL_USERNAME or not self.MAIL_PASSWORD.get_secret_value():
            raise ValueError("MAIL_USERNAME and MAIL_PASSWORD must be set")
        if not self.MAIL_SERVER:
            raise ValueError("MAIL_SERVER must be set")


settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings


def build_settings(**overrides: object) -> Settings:
    """Build a settings object with explicit overrides (tests, scripts)."""
    return Settings(**overrides)

