from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional


DEFAULT_DISPLAY_TZ = "America/Sao_Paulo"
DEFAULT_READ_RETRY_ATTEMPTS = 3
DEFAULT_WRITE_RETRY_ATTEMPTS = 6


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return default
    s = str(raw).strip()
    return s if s else default


def _parse_bool(raw: str | None) -> bool:
    return (raw or "").strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _parse_bool_env(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return _parse_bool(raw)


def _parse_float_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return float(default)
    try:
        return float(raw)
    except Exception:
        return float(default)


def _parse_int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except Exception:
        return int(default)


def get_firebase_project_id(*, required: bool = False) -> str:
    v = env_str("FIREBASE_PROJECT_ID") or env_str("GOOGLE_CLOUD_PROJECT") or ""
    if required and not v:
        raise RuntimeError("Missing required config: FIREBASE_PROJECT_ID (or GOOGLE_CLOUD_PROJECT)")
    return v


def get_database_url(*, required: bool = True) -> str:
    v = env_str("FIREBASE_DATABASE_URL") or ""
    if required and not v:
        raise RuntimeError(
            "Missing required config: FIREBASE_DATABASE_URL "
            "(example: 'https://<project>-default-rtdb.firebaseio.com')"
        )
    return v


@dataclass
class Config:
    database_url: Optional[str]
    project_id: Optional[str]
    database_emulator_host: Optional[str]
    allow_prod_database: bool
    display_tz: str
    read_retry_attempts: int
    write_retry_attempts: int
    retry_base_delay_s: float
    retry_max_delay_s: float
    service_name: str
    env: str
    log_level: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "database_url": self.database_url,
            "project_id": self.project_id,
            "database_emulator_host": self.database_emulator_host,
            "allow_prod_database": self.allow_prod_database,
            "display_tz": self.display_tz,
            "read_retry_attempts": self.read_retry_attempts,
            "write_retry_attempts": self.write_retry_attempts,
            "retry_base_delay_s": self.retry_base_delay_s,
            "retry_max_delay_s": self.retry_max_delay_s,
            "service_name": self.service_name,
            "env": self.env,
            "log_level": self.log_level,
        }


def load_config() -> Config:
    """
    Read configuration from the environment (call-time only, never at import).
    """
    return Config(
        database_url=get_database_url(required=False) or None,
        project_id=get_firebase_project_id(required=False) or None,
        database_emulator_host=env_str("FIREBASE_DATABASE_EMULATOR_HOST"),
        allow_prod_database=_parse_bool_env("ALLOW_PROD_DATABASE", default=False),
        display_tz=env_str("LINECUT_DISPLAY_TZ", default=DEFAULT_DISPLAY_TZ) or DEFAULT_DISPLAY_TZ,
        read_retry_attempts=max(1, _parse_int_env("LINECUT_READ_RETRY_ATTEMPTS", DEFAULT_READ_RETRY_ATTEMPTS)),
        write_retry_attempts=max(1, _parse_int_env("LINECUT_WRITE_RETRY_ATTEMPTS", DEFAULT_WRITE_RETRY_ATTEMPTS)),
        retry_base_delay_s=_parse_float_env("LINECUT_RETRY_BASE_DELAY_S", 0.2),
        retry_max_delay_s=_parse_float_env("LINECUT_RETRY_MAX_DELAY_S", 5.0),
        service_name=env_str("SERVICE_NAME", default="linecut-orders") or "linecut-orders",
        env=env_str("ENV", default="prod") or "prod",
        log_level=(env_str("LOG_LEVEL", default="INFO") or "INFO").upper(),
    )
