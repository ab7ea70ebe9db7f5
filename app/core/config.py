# ------------------------------------------
# Application settings
# - Loads environment variables (and .env) once at startup
# - Exposes an immutable, validated Settings value passed to services explicitly
# - get_settings() is also used as a FastAPI dependency
# ------------------------------------------

import os
from functools import lru_cache
from typing import Literal, Tuple
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

load_dotenv()

ALGORITHM = "HS256"


class Settings(BaseModel):
    """Every field is read from the environment variable of the same name, upper-cased."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    secret_key: str
    database_url: str
    jwt_issuer: str = "SmartMeeting"
    jwt_audience: str = "SmartMeetingUsers"
    access_token_expire_minutes: int = Field(15, ge=1)
    refresh_token_expire_days: int = Field(7, ge=1)
    refresh_token_stale_days: int = Field(1, ge=0)
    lockout_threshold: int = Field(5, ge=1)
    lockout_minutes: int = Field(30, ge=1)
    bcrypt_rounds: int = Field(12, ge=4, le=31)
    revoke_family_on_reuse: bool = False
    access_token_transport: Literal["bearer", "cookie"] = "bearer"
    refresh_cookie_name: str = "refreshToken"
    access_cookie_name: str = "accessToken"
    cookie_secure: bool = True
    token_sweep_interval_seconds: int = Field(3600, ge=0)
    cors_origins: Tuple[str, ...] = ("*",)
    # peers whose X-Forwarded-For header is believed
    trusted_proxies: Tuple[str, ...] = ()
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(name.upper())
            if raw is not None and raw.strip() != "":
                values[name] = raw.strip()
        return cls(**values)

    @field_validator("secret_key")
    @classmethod
    def _require_secret_key(cls, value: str) -> str:
        if not value:
            raise ValueError("SECRET_KEY is not set! Set it in environment variables.")
        return value

    @field_validator("database_url")
    @classmethod
    def _require_database_url(cls, value: str) -> str:
        if not value:
            raise ValueError("DATABASE_URL environment variable not set")
        return value

    @field_validator("access_token_transport", "log_level", mode="before")
    @classmethod
    def _normalize_case(cls, value, info):
        if isinstance(value, str):
            value = value.strip()
            return value.upper() if info.field_name == "log_level" else value.lower()
        return value

    @field_validator("cors_origins", "trusted_proxies", mode="before")
    @classmethod
    def _split_csv(cls, value):
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
