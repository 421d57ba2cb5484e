"""
Service Configuration
Settings read from the environment
"""

import os
from datetime import timedelta
from typing import List, Optional

from pydantic import BaseModel

DEV_JWT_SECRET = "dev-jwt-secret-change-in-production-0123456789abcdef0123456789abcdef"


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


class Settings(BaseModel):
    jwt_secret: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS512"
    access_token_ttl_seconds: int = 86400
    refresh_token_ttl_seconds: int = 604800
    min_password_length: int = 8
    password_hash_rounds: int = 29000
    block_reenrollment_after_drop: bool = True
    timezone: str = "UTC"
    database_url: Optional[str] = None
    database_timeout_seconds: int = 5
    cors_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(seconds=self.access_token_ttl_seconds)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(seconds=self.refresh_token_ttl_seconds)

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", defaults.jwt_algorithm),
            access_token_ttl_seconds=_int_env("ACCESS_TOKEN_TTL_SECONDS", defaults.access_token_ttl_seconds),
            refresh_token_ttl_seconds=_int_env("REFRESH_TOKEN_TTL_SECONDS", defaults.refresh_token_ttl_seconds),
            min_password_length=_int_env("MIN_PASSWORD_LENGTH", defaults.min_password_length),
            password_hash_rounds=_int_env("PASSWORD_HASH_ROUNDS", defaults.password_hash_rounds),
            block_reenrollment_after_drop=_bool_env(
                "BLOCK_REENROLLMENT_AFTER_DROP", defaults.block_reenrollment_after_drop
            ),
            timezone=os.getenv("TIMEZONE", defaults.timezone),
            database_url=os.getenv("DATABASE_URL") or None,
            database_timeout_seconds=_int_env("DATABASE_TIMEOUT_SECONDS", defaults.database_timeout_seconds),
            cors_origins=[
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", ",".join(defaults.cors_origins)).split(",")
                if origin.strip()
            ],
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        )
