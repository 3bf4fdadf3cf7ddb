from __future__ import annotations

import pytest

_CONFIG_ENV_VARS = (
    "FIREBASE_DATABASE_URL",
    "FIREBASE_PROJECT_ID",
    "GOOGLE_CLOUD_PROJECT",
    "FIREBASE_DATABASE_EMULATOR_HOST",
    "ALLOW_PROD_DATABASE",
    "LINECUT_DISPLAY_TZ",
    "LINECUT_READ_RETRY_ATTEMPTS",
    "LINECUT_WRITE_RETRY_ATTEMPTS",
    "LINECUT_RETRY_BASE_DELAY_S",
    "LINECUT_RETRY_MAX_DELAY_S",
    "SERVICE_NAME",
    "ENV",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolated_config_env(monkeypatch) -> None:
    """
    Test hygiene: config is read from the environment at call time, so start
    every test from a clean slate regardless of the developer's shell.
    """
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
