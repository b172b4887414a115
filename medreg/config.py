"""Runtime configuration read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """Settings shared by the app factory, the trackers and the code issuer."""

    enable_mongodb: bool = False
    mongodb_uri: str = "mongodb://localhost:27017/"
    mongodb_database: str = "medreg"

    # Verification session windows (seconds), one per channel.
    email_session_ttl_seconds: int = 10 * 60
    phone_session_ttl_seconds: int = 30 * 60

    # One-time code lifetime and abuse limits.
    code_ttl_seconds: int = 10 * 60
    resend_cooldown_seconds: int = 60
    max_sends_per_hour: int = 5
    max_verify_attempts: int = 5

    # Marks syntactically valid phones as verified without an SMS challenge.
    phone_auto_verify: bool = False

    smtp_server: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    email_from: Optional[str] = None
    public_base_url: str = "http://localhost:5050"

    cors_origins: str = "*"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (after ``load_dotenv``)."""
        return cls(
            enable_mongodb=_env_flag("ENABLE_MONGODB"),
            mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017/"),
            mongodb_database=os.getenv("MONGODB_DATABASE", "medreg"),
            email_session_ttl_seconds=_env_int("EMAIL_SESSION_TTL_SECONDS", 10 * 60),
            phone_session_ttl_seconds=_env_int("PHONE_SESSION_TTL_SECONDS", 30 * 60),
            code_ttl_seconds=_env_int("CODE_TTL_SECONDS", 10 * 60),
            resend_cooldown_seconds=_env_int("RESEND_COOLDOWN_SECONDS", 60),
            max_sends_per_hour=_env_int("MAX_SENDS_PER_HOUR", 5),
            max_verify_attempts=_env_int("MAX_VERIFY_ATTEMPTS", 5),
            phone_auto_verify=_env_flag("PHONE_AUTO_VERIFY"),
            smtp_server=os.getenv("SMTP_SERVER") or None,
            smtp_port=_env_int("SMTP_PORT", 587),
            smtp_user=os.getenv("SMTP_USER") or None,
            smtp_password=os.getenv("SMTP_PASSWORD") or None,
            email_from=os.getenv("EMAIL_FROM") or os.getenv("SMTP_USER") or None,
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:5050").rstrip("/"),
            cors_origins=os.getenv("CORS_ORIGINS", "*"),
        )

    def session_ttl_for(self, channel: str) -> int:
        if channel == "phone":
            return self.phone_session_ttl_seconds
        return self.email_session_ttl_seconds
