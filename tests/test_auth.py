from __future__ import annotations

import pytest

from linecut.auth import auth as auth_mod
from linecut.auth import FirebaseTokenAuthProvider, StaticAuthProvider


@pytest.fixture()
def fake_verify(monkeypatch):
    calls: list[str] = []
    monkeypatch.setattr(auth_mod, "init_firebase_admin", lambda: None)

    def _install(result=None, error: Exception | None = None):
        def _verify(token: str):
            calls.append(token)
            if error is not None:
                raise error
            return result

        monkeypatch.setattr(auth_mod.firebase_auth, "verify_id_token", _verify)
        return calls

    return _install


def test_static_provider_strips_blank_uid() -> None:
    assert StaticAuthProvider(" u1 ").current_user_id() == "u1"
    assert StaticAuthProvider("   ").current_user_id() is None
    assert StaticAuthProvider(None).current_user_id() is None


def test_token_provider_resolves_uid_once(fake_verify) -> None:
    calls = fake_verify(result={"uid": "u1", "email": "a@b.c"})
    provider = FirebaseTokenAuthProvider("tok")

    assert provider.current_user_id() == "u1"
    assert provider.current_user_id() == "u1"
    assert calls == ["tok"]
    ctx = provider.user_context()
    assert ctx is not None and ctx.claims["email"] == "a@b.c"


def test_token_provider_falls_back_to_sub_claim(fake_verify) -> None:
    fake_verify(result={"sub": "u2"})
    assert FirebaseTokenAuthProvider("tok").current_user_id() == "u2"


def test_invalid_token_means_no_user(fake_verify) -> None:
    fake_verify(error=ValueError("Token expired"))
    assert FirebaseTokenAuthProvider("tok").current_user_id() is None


def test_token_without_uid_means_no_user(fake_verify) -> None:
    fake_verify(result={"email": "a@b.c"})
    assert FirebaseTokenAuthProvider("tok").current_user_id() is None


def test_missing_token_skips_verification(fake_verify) -> None:
    calls = fake_verify(result={"uid": "u1"})
    assert FirebaseTokenAuthProvider("").current_user_id() is None
    assert calls == []
