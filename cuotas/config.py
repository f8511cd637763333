"""Application configuration from environment variables."""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./cuotas.db",
        description="SQLAlchemy async connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log", description="Server log file path")

    # API
    api_title: str = Field(default="Cuotas Billing API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed to call the API (gateway and frontends)",
    )

    # Dues lifecycle
    grace_days: int = Field(default=5, description="Days after due date before surcharge")
    default_surcharge_percent: Decimal = Field(
        default=Decimal("10.00"), description="Surcharge percent fixed on each new due"
    )
    currency: str = Field(default="usd", description="Checkout currency (ISO code)")

    # Payment provider
    stripe_secret_key: str | None = Field(default=None, description="Stripe secret key")
    frontend_url: str = Field(
        default="http://localhost:5173", description="Frontend base URL for checkout redirects"
    )

    # Email
    smtp_host: str | None = Field(default=None, description="SMTP server host")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_user: str | None = Field(default=None, description="SMTP username")
    smtp_password: str | None = Field(default=None, description="SMTP password")
    smtp_use_tls: bool = Field(default=True, description="Issue STARTTLS before login")
    smtp_timeout: float = Field(default=10.0, description="SMTP timeout in seconds")
    email_from: str = Field(default="billing@example.com", description="Sender address")
    email_from_name: str = Field(default="Building Administration", description="Sender name")

    # Resident directory
    directory_url: str | None = Field(
        default=None, description="Base URL of the resident directory service"
    )
    directory_timeout: float = Field(default=10.0, description="Directory request timeout")

    # Invoices
    invoice_dir: str = Field(default="invoices", description="Directory for generated PDFs")
    company_name: str = Field(default="CITYLIGHTS ADMINISTRATION", description="Issuer name")
    company_tax_id: str = Field(default="1234567890123", description="Issuer tax identifier")
    company_authorization: str = Field(
        default="29040011008", description="Tax authority authorization number"
    )
    company_address: str = Field(default="", description="Issuer address")
    company_phone: str = Field(default="", description="Issuer phone")
    company_email: str = Field(default="", description="Issuer email")
    invoice_currency_label: str = Field(default="Bs.", description="Currency label on invoices")


# Global settings instance
settings = Settings()
