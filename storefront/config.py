# storefront/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _get_env(*keys: str, default: Optional[str] = None) -> Optional[str]:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int) -> int:
    v = _get_env(*keys)
    if v is None:
        return default
    return int(v)


def _get_float(*keys: str, default: float) -> float:
    v = _get_env(*keys)
    if v is None:
        return default
    return float(v)


def _get_bool(*keys: str, default: bool) -> bool:
    v = _get_env(*keys)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


def _get_list(*keys: str, default: str) -> Tuple[str, ...]:
    v = _get_env(*keys, default=default) or ""
    return tuple(part.strip() for part in v.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite+aiosqlite://"
    sql_echo: bool = False
    secret_key: str = "your_secret_key"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    cookie_name: str = "access_token"
    cors_origins: Tuple[str, ...] = field(default=("*",))
    # empty means any authenticated user may create menu items
    menu_create_role: Optional[str] = None
    seed_menu: bool = True
    allow_mock_login: bool = True
    log_level: str = "INFO"
    api_url: str = "http://localhost:8000"
    client_timeout: float = 5.0


def load_settings() -> Settings:
    return Settings(
        database_url=_get_env("DATABASE_URL", default="sqlite+aiosqlite://") or "sqlite+aiosqlite://",
        sql_echo=_get_bool("SQL_ECHO", default=False),
        secret_key=_get_env("SECRET_KEY", "JWT_SECRET", default="your_secret_key") or "your_secret_key",
        algorithm=_get_env("ALGORITHM", default="HS256") or "HS256",
        access_token_expire_minutes=_get_int("ACCESS_TOKEN_EXPIRE_MINUTES", default=30),
        cookie_name=_get_env("COOKIE_NAME", default="access_token") or "access_token",
        cors_origins=_get_list("CORS_ORIGINS", default="*"),
        menu_create_role=_get_env("MENU_CREATE_ROLE"),
        seed_menu=_get_bool("SEED_MENU", default=True),
        allow_mock_login=_get_bool("ALLOW_MOCK_LOGIN", default=True),
        log_level=_get_env("LOG_LEVEL", default="INFO") or "INFO",
        api_url=_get_env("API_URL", "STOREFRONT_API_URL", default="http://localhost:8000") or "http://localhost:8000",
        client_timeout=_get_float("CLIENT_TIMEOUT", default=5.0),
    )


settings = load_settings()


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
