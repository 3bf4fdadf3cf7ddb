from __future__ import annotations

import logging
from typing import Optional, Protocol

from firebase_admin import auth as firebase_auth

from linecut.common.logging import log_event
from linecut.persistence.firebase_client import init_firebase_admin

from .context import UserContext

logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    def current_user_id(self) -> Optional[str]: ...


class StaticAuthProvider:
    """Provider for a uid known up front (operator CLI, tests)."""

    def __init__(self, uid: Optional[str]) -> None:
        self._uid = (uid or "").strip() or None

    def current_user_id(self) -> Optional[str]:
        return self._uid


class FirebaseTokenAuthProvider:
    """
    Resolve the current user from a Firebase ID token.

    The token is verified once, lazily; an invalid or uid-less token means
    "no current user" (None), never an exception. Verification blocks on the
    network, so resolve it before starting an event loop or via
    `asyncio.to_thread`.
    """

    def __init__(self, id_token: Optional[str]) -> None:
        self._id_token = (id_token or "").strip()
        self._context: Optional[UserContext] = None
        self._resolved = False

    def user_context(self) -> Optional[UserContext]:
        if self._resolved:
            return self._context
        self._resolved = True

        if not self._id_token:
            log_event(logger, "auth_failure", severity="WARNING", auth_provider="firebase", reason="missing_token")
            return None

        init_firebase_admin()
        # Never log the token value (credential). Only log outcome metadata.
        try:
            decoded = firebase_auth.verify_id_token(self._id_token)
        except Exception as e:
            log_event(
                logger,
                "auth_failure",
                severity="WARNING",
                auth_provider="firebase",
                reason="verify_id_token_failed",
                error=f"{type(e).__name__}: {e}",
            )
            return None

        uid = str(decoded.get("uid") or decoded.get("sub") or "").strip()
        if not uid:
            log_event(logger, "auth_failure", severity="WARNING", auth_provider="firebase", reason="missing_uid")
            return None

        log_event(logger, "auth_success", severity="INFO", auth_provider="firebase", uid=uid)
        self._context = UserContext(uid=uid, claims=decoded)
        return self._context

    def current_user_id(self) -> Optional[str]:
        ctx = self.user_context()
        return ctx.uid if ctx else None
