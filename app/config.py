from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

from sqlalchemy.engine import URL


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────
    database_hostname: str
    database_port: str = "5432"
    database_password: str
    database_name: str
    database_username: str
    # Statement timeout applied to every pooled connection (Postgres only)
    database_timeout_ms: int = 5000
    database_connect_timeout: int = 10

    # ── JWT ───────────────────────────────────────────────────
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_days: int = 30

    # ── OTP ───────────────────────────────────────────────────
    environment: str = "production"
    bypass_otp: bool = False

    # ── SMTP (OTP delivery) ───────────────────────────────────
    mail_username: Optional[str] = None
    mail_password: Optional[str] = None
    mail_from: Optional[str] = None
    mail_from_name: str = "Convoy"
    mail_server: str = "smtp.gmail.com"
    mail_port: int = 587

    # ── App ───────────────────────────────────────────────────
    cors_origins: str = "http://localhost:8081"
    log_level: str = "INFO"

    @property
    def cors_origins_list(self) -> list[str]:
        """Split comma-separated origins into a list, stripping whitespace."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def database_url(self) -> str:
        """psycopg2 URL; credentials are escaped, so any character is safe in the password."""
        return URL.create(
            "postgresql+psycopg2",
            username=self.database_username,
            password=self.database_password,
            host=self.database_hostname,
            port=int(self.database_port),
            database=self.database_name,
        ).render_as_string(hide_password=False)

    @property
    def otp_bypass_enabled(self) -> bool:
        """Fixed-code OTP mode: explicit flag, or any development environment."""
        return self.bypass_otp or self.environment == "development"

    @property
    def mail_configured(self) -> bool:
        return bool(self.mail_username and self.mail_password and self.mail_from)

    class Config:
        env_file = ".env"
        # Case-insensitive so DATABASE_HOSTNAME and database_hostname both work
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings loader, reads .env once and reuses.
    Use this everywhere instead of instantiating Settings() directly.
    """
    return Settings()


# Module-level singleton for convenience imports
settings = get_settings()
