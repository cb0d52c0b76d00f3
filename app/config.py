import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


def _database_url() -> str:
    url = os.getenv("DATABASE_URL", "sqlite:///./archive.db")

    # Render/Supabase hand out postgres:// but SQLAlchemy needs postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


@dataclass(frozen=True)
class Settings:
    # -------------------------------------------------------
    # Project
    # -------------------------------------------------------
    PROJECT_NAME: str = "Family Archive Identity API"
    ENV: str = field(default_factory=lambda: os.getenv("ENV", "dev"))
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # -------------------------------------------------------
    # Database
    # -------------------------------------------------------
    DATABASE_URL: str = field(default_factory=_database_url)

    # -------------------------------------------------------
    # Public base URL (used to build claim links)
    # -------------------------------------------------------
    BASE_URL: str = field(
        default_factory=lambda: os.getenv("BASE_URL", "http://127.0.0.1:8000")
    )

    # -------------------------------------------------------
    # Supabase (auth + edge functions)
    # -------------------------------------------------------
    SUPABASE_URL: str | None = field(default_factory=lambda: os.getenv("SUPABASE_URL"))
    SUPABASE_JWT_SECRET: str | None = field(
        default_factory=lambda: os.getenv("SUPABASE_JWT_SECRET")
    )
    LLM_FUNCTION_SECRET: str | None = field(
        default_factory=lambda: os.getenv("LLM_FUNCTION_SECRET")
    )

    # Emails allowed to use the moderation surface
    ADMIN_EMAILS: tuple[str, ...] = field(
        default_factory=lambda: _env_list("ADMIN_EMAILS")
    )

    # -------------------------------------------------------
    # Identity / redaction
    # -------------------------------------------------------
    CLAIM_TOKEN_TTL_DAYS: int = field(
        default_factory=lambda: int(os.getenv("CLAIM_TOKEN_TTL_DAYS", "7"))
    )
    PENDING_PLACEHOLDER: str = field(
        default_factory=lambda: os.getenv("PENDING_PLACEHOLDER", "someone")
    )

    # The archive subject's own name is never turned into a mention
    SUBJECT_NAME_VARIANTS: tuple[str, ...] = field(
        default_factory=lambda: _env_list(
            "SUBJECT_NAME_VARIANTS",
            "val,valerie,valeri,valera,valeria,valerie anderson,valerie park anderson",
        )
    )

    DEV_COMPARE_ENABLED: bool = field(
        default_factory=lambda: _env_bool("DEV_COMPARE_ENABLED")
    )

    # -------------------------------------------------------
    # SMS (claim links)
    # -------------------------------------------------------
    TWILIO_ACCOUNT_SID: str | None = field(
        default_factory=lambda: os.getenv("TWILIO_ACCOUNT_SID")
    )
    TWILIO_AUTH_TOKEN: str | None = field(
        default_factory=lambda: os.getenv("TWILIO_AUTH_TOKEN")
    )
    TWILIO_FROM_NUMBER: str | None = field(
        default_factory=lambda: os.getenv("TWILIO_FROM_NUMBER")
    )

    @property
    def sms_configured(self) -> bool:
        return bool(
            self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_FROM_NUMBER
        )

    def is_admin_email(self, email: str | None) -> bool:
        return bool(email) and email.strip().lower() in self.ADMIN_EMAILS


# Single instance that is imported everywhere
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency; tests override it with their own Settings."""
    return settings
