from __future__ import annotations

import os
import sys
import threading
from typing import Optional

import firebase_admin
from firebase_admin import credentials, db
import google.auth

from linecut.common.config import get_database_url


_CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def is_local_execution() -> bool:
    """
    Heuristic: treat execution as "local" when either:
    - ENV=local, OR
    - we're not on a managed GCP runtime (no K_SERVICE, no CLOUD_RUN_JOB, and no GAE_* env vars).
    """
    if (os.getenv("ENV") or "").strip().lower() == "local":
        return True

    if (os.getenv("K_SERVICE") or "").strip():
        return False
    if (os.getenv("CLOUD_RUN_JOB") or "").strip():
        return False
    for k in os.environ.keys():
        if str(k).startswith("GAE_"):
            return False

    return True


def require_database_emulator_or_allow_prod(*, caller: str) -> None:
    """
    Safety guard: fail-closed locally unless the Realtime Database emulator is configured.

    Local execution MUST set FIREBASE_DATABASE_EMULATOR_HOST, unless explicitly overridden with:
      ALLOW_PROD_DATABASE=1
    """
    if not is_local_execution():
        return

    if (os.getenv("FIREBASE_DATABASE_EMULATOR_HOST") or "").strip():
        return

    if (os.getenv("ALLOW_PROD_DATABASE") or "").strip() == "1":
        return

    sys.stderr.write(
        "\n".join(
            [
                "ERROR: Refusing to use the production Realtime Database from local execution.",
                f"caller={caller}",
                "",
                "Fix:",
                "  - Set FIREBASE_DATABASE_EMULATOR_HOST (example: '127.0.0.1:9000'), OR",
                "  - Intentionally override with ALLOW_PROD_DATABASE=1 (DANGEROUS).",
                "",
            ]
        )
        + "\n"
    )
    raise SystemExit(2)


def _resolve_project_id(explicit_project_id: Optional[str] = None) -> Optional[str]:
    if explicit_project_id:
        return explicit_project_id

    env_project_id = os.getenv("FIREBASE_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT")
    if env_project_id:
        return env_project_id

    return None


_init_lock = threading.Lock()


def init_firebase_admin(*, project_id: Optional[str] = None, database_url: Optional[str] = None) -> None:
    """
    Initialize Firebase Admin SDK exactly once.

    - Uses Application Default Credentials (ADC).
    - Requires a Realtime Database URL (FIREBASE_DATABASE_URL or `database_url`).
    """
    require_database_emulator_or_allow_prod(caller="linecut.persistence.firebase_client.init_firebase_admin")

    if firebase_admin._apps:
        return

    with _init_lock:
        if firebase_admin._apps:
            return

        try:
            cred = credentials.ApplicationDefault()
        except Exception as e:
            raise RuntimeError(
                "Failed to load Application Default Credentials (ADC) for Firebase Admin SDK. "
                "Locally: run `gcloud auth application-default login`."
            ) from e

        resolved_project_id = _resolve_project_id(project_id)
        if not resolved_project_id:
            try:
                _, resolved_project_id = google.auth.default(scopes=[_CLOUD_PLATFORM_SCOPE])
            except Exception:
                resolved_project_id = None

        if not resolved_project_id:
            raise RuntimeError(
                "Firebase project id could not be resolved. Set FIREBASE_PROJECT_ID "
                "(or ensure your ADC environment provides a project id)."
            )

        options = {
            "projectId": resolved_project_id,
            "databaseURL": database_url or get_database_url(required=True),
        }
        try:
            firebase_admin.initialize_app(cred, options)
        except Exception as e:
            raise RuntimeError("Failed to initialize Firebase Admin SDK with Application Default Credentials (ADC).") from e


def get_database_root(*, project_id: Optional[str] = None, database_url: Optional[str] = None) -> db.Reference:
    init_firebase_admin(project_id=project_id, database_url=database_url)
    return db.reference("/")
