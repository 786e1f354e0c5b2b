import json
from typing import List, Union
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Wooffy Functions"
    env: str = "dev"
    jwt_secret: str
    jwt_audience: str | None = "authenticated"
    cron_secret: str | None = None

    # DATABASE
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)
    datastore_page_size: int = Field(default=1000, ge=1, le=10_000)

    # MEMBERSHIPS
    membership_expiry_grace_days: int = Field(default=7, ge=0, le=365)
    membership_reminder_window_days: int = Field(default=30, ge=1, le=365)
    currency_symbol: str = "€"

    # MEMBER VERIFICATION
    member_verify_max_failed_attempts: int = Field(default=10, ge=1)
    member_verify_lockout_minutes: int = Field(default=30, ge=1)

    # ADMIN
    delete_users_confirmation_token: str = "DELETE_ALL_USERS"

    # EMAIL
    web_base_url: str = "https://www.wooffy.app"
    verification_token_ttl_hours: int = Field(default=24, ge=1, le=24 * 14)
    email_sender_name: str = "Wooffy"
    smtp_host: str | None = None
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_sender_email: str | None = None
    smtp_reply_to_email: str | None = None
    smtp_use_starttls: bool = True
    smtp_use_ssl: bool = False
    smtp_timeout_seconds: int = Field(default=20, ge=1, le=120)

    # SIDE EFFECT OUTBOX
    side_effect_max_attempts: int = Field(default=5, ge=1, le=20)
    side_effect_retry_seconds: int = Field(default=300, ge=1, le=86400)

    # CORS
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            if not v.strip():
                return []
            if v.startswith("["):
                parsed = json.loads(v)
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON value must be a list")
                return [str(i).strip() for i in parsed if str(i).strip()]
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return [str(i).strip() for i in v if str(i).strip()]
        raise ValueError(v)

    @field_validator(
        "cron_secret",
        "jwt_audience",
        "smtp_host",
        "smtp_username",
        "smtp_password",
        "smtp_sender_email",
        "smtp_reply_to_email",
        mode="before",
    )
    @classmethod
    def normalize_optional_strings(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @field_validator("web_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("delete_users_confirmation_token")
    @classmethod
    def validate_confirmation_token(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("DELETE_USERS_CONFIRMATION_TOKEN cannot be empty")
        return cleaned

    @model_validator(mode="after")
    def validate_production_safety(self) -> "Settings":
        env_value = self.env.lower().strip()
        if env_value not in {"prod", "production"}:
            return self

        weak_secrets = {
            "",
            "change_me",
            "super-secret-jwt-token-with-at-least-32-characters-long",
        }
        if self.jwt_secret.strip() in weak_secrets or len(self.jwt_secret.strip()) < 32:
            raise ValueError("JWT_SECRET must be a strong random value in production")

        if not self.cron_secret:
            raise ValueError("CRON_SECRET must be set in production")

        if self.smtp_use_ssl and self.smtp_use_starttls:
            raise ValueError("Set only one of SMTP_USE_SSL or SMTP_USE_STARTTLS in production")

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )


settings = Settings()
