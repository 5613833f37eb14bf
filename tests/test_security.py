from datetime import timedelta

import pytest
from bson import ObjectId
from jose import JWTError

import security


def test_hash_password_is_salted():
    first = security.hash_password("hunter22")
    second = security.hash_password("hunter22")

    assert first != "hunter22"
    assert first != second
    assert security.verify_password("hunter22", first)
    assert security.verify_password("hunter22", second)
    assert not security.verify_password("hunter23", first)


def test_token_carries_user_and_access():
    user_id = ObjectId()

    payload = security.decode_auth_token(security.generate_auth_token(user_id))

    assert payload["_id"] == str(user_id)
    assert payload["access"] == security.AUTH_ACCESS
    assert "exp" not in payload


def test_tokens_are_unique_per_session():
    user_id = ObjectId()

    assert security.generate_auth_token(user_id) != security.generate_auth_token(user_id)


def test_expiry_is_enforced():
    token = security.generate_auth_token(ObjectId(), expires_delta=timedelta(seconds=-5))

    with pytest.raises(JWTError):
        security.decode_auth_token(token)


def test_configured_expiry_is_applied(monkeypatch):
    monkeypatch.setattr(security.config, "ACCESS_TOKEN_EXPIRE_MINUTES", 30)

    payload = security.decode_auth_token(security.generate_auth_token(ObjectId()))

    assert payload["exp"] - payload["iat"] == 30 * 60


def test_tampered_token_is_rejected():
    header, _, signature = security.generate_auth_token(ObjectId()).split(".")
    _, other_payload, _ = security.generate_auth_token(ObjectId()).split(".")

    with pytest.raises(JWTError):
        security.decode_auth_token(".".join([header, other_payload, signature]))
