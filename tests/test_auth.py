"""
Tests for signup, login, token verification and password reset.
"""
from datetime import timedelta

import jwt
import pytest
from sqlalchemy import select

from src.auth.config import auth_settings
from src.auth.jwt import create_access_token, create_refresh_token, verify_token
from src.auth.models import PasswordResetModel, UserModel
from src.auth.passwords import hash_password, validate_password, verify_password
from src.auth.service import auth_service
from src.domain.errors import InvalidPassword, InvalidToken, TokenExpired


@pytest.mark.asyncio
async def test_signup_returns_user_and_token(client):
    response = await client.post(
        "/api/auth/signup",
        json={"full_name": "Ada", "email": "ada@x.io", "password": "hunter22"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["user"]["id"] == 1
    assert data["user"]["email"] == "ada@x.io"
    assert data["user"]["role"] == "user"
    assert "password_hash" not in data["user"]
    assert data["token"]
    assert data["refresh_token"]
    assert verify_token(data["token"], expected_type="access")["sub"] == "1"


@pytest.mark.asyncio
async def test_signup_duplicate_email_conflicts(client):
    first = await client.post(
        "/api/auth/signup",
        json={"full_name": "Ada", "email": "ada@x.io", "password": "hunter22"},
    )
    second = await client.post(
        "/api/auth/signup",
        json={"full_name": "Ada2", "email": "ADA@x.io", "password": "hunter22"},
    )

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error"] == "EMAIL_EXISTS"


@pytest.mark.asyncio
async def test_signup_accepts_camel_case_full_name(client):
    response = await client.post(
        "/api/auth/signup",
        json={"fullName": "Grace", "email": "grace@example.com", "password": "hunter22"},
    )

    assert response.status_code == 201
    assert response.json()["user"]["full_name"] == "Grace"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body, code",
    [
        ({"email": "a@example.com", "password": "hunter22"}, "MISSING_FIELDS"),
        ({"full_name": "A", "email": "not-an-email", "password": "hunter22"}, "INVALID_EMAIL"),
        ({"full_name": "A", "email": "a@example.com", "password": "short"}, "INVALID_PASSWORD"),
    ],
)
async def test_signup_validation(client, body, code):
    response = await client.post("/api/auth/signup", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == code


@pytest.mark.asyncio
async def test_login_updates_last_login(client, signup):
    await signup(email="ada@example.com")

    response = await client.post(
        "/api/auth/login",
        json={"email": "Ada@Example.com", "password": "hunter22"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["user"]["last_login"] is not None
    assert data["token_type"] == "Bearer"


@pytest.mark.asyncio
async def test_login_errors_are_indistinguishable(client, signup):
    await signup(email="ada@example.com")

    wrong_password = await client.post(
        "/api/auth/login",
        json={"email": "ada@example.com", "password": "wrong-password"},
    )
    unknown_user = await client.post(
        "/api/auth/login",
        json={"email": "nobody@example.com", "password": "hunter22"},
    )

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json()
    assert wrong_password.json()["error"] == "INVALID_CREDENTIALS"


@pytest.mark.asyncio
async def test_profile_and_verify(client, signup):
    user, headers = await signup()

    profile = await client.get("/api/auth/profile", headers=headers)
    verify = await client.get("/api/auth/verify", headers=headers)

    assert profile.status_code == 200
    assert profile.json()["user"]["id"] == user["id"]
    assert verify.json()["valid"] is True


@pytest.mark.asyncio
async def test_missing_token(client):
    response = await client.get("/api/auth/profile")

    assert response.status_code == 401
    assert response.json()["error"] == "MISSING_TOKEN"
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_expired_token(client, signup):
    user, _ = await signup()
    token = create_access_token(user["id"], user["email"], expires_delta=timedelta(seconds=-5))

    response = await client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["error"] == "TOKEN_EXPIRED"


@pytest.mark.asyncio
async def test_token_signed_with_other_secret_is_rejected(client, signup):
    user, _ = await signup()
    forged = jwt.encode(
        {"sub": str(user["id"]), "type": "access", "iat": 1700000000, "exp": 4100000000},
        "someone-elses-secret",
        algorithm="HS256",
    )

    response = await client.get("/api/auth/verify", headers={"Authorization": f"Bearer {forged}"})

    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_refresh_token_is_not_an_access_token(client, signup):
    user, _ = await signup()
    refresh = create_refresh_token(user["id"])

    response = await client.get("/api/auth/verify", headers={"Authorization": f"Bearer {refresh}"})

    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_token_of_deleted_user(client, signup, admin_headers):
    user, headers = await signup()
    deleted = await client.delete(f"/api/admin/users/{user['id']}", headers=admin_headers)

    response = await client.get("/api/auth/verify", headers=headers)

    assert deleted.status_code == 200
    assert response.status_code == 401
    assert response.json()["error"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_forgot_password_response_does_not_leak_accounts(client, signup):
    await signup(email="ada@example.com")

    known = await client.post("/api/auth/forgot-password", json={"email": "ada@example.com"})
    unknown = await client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()


@pytest.mark.asyncio
async def test_password_reset_flow(client, database, signup):
    await signup(email="ada@example.com")
    async with database.session() as session:
        token = await auth_service.forgot_password(session, "ada@example.com")
        await session.commit()

    reset = await client.post(
        "/api/auth/reset-password",
        json={"token": token, "newPassword": "brand-new-pass"},
    )
    reused = await client.post(
        "/api/auth/reset-password",
        json={"token": token, "newPassword": "another-pass"},
    )
    old_login = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": "hunter22"})
    new_login = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": "brand-new-pass"})

    assert reset.status_code == 200
    assert reused.status_code == 400
    assert reused.json()["error"] == "INVALID_RESET_TOKEN"
    assert old_login.status_code == 401
    assert new_login.status_code == 200

    async with database.session() as session:
        stored = (await session.execute(select(PasswordResetModel))).scalars().all()
    assert len(stored) == 1
    assert stored[0].token_hash != token
    assert stored[0].used_at is not None


@pytest.mark.asyncio
async def test_reset_with_unknown_token(client):
    response = await client.post(
        "/api/auth/reset-password",
        json={"token": "not-a-real-token", "new_password": "brand-new-pass"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_RESET_TOKEN"


@pytest.mark.asyncio
async def test_password_hash_is_never_stored_in_clear(database, signup):
    await signup(email="ada@example.com", password="hunter22")

    async with database.session() as session:
        user = (await session.execute(select(UserModel))).scalar_one()

    assert user.password_hash != "hunter22"
    assert verify_password("hunter22", user.password_hash)


def test_password_helpers():
    hashed = hash_password("correct horse", rounds=4)

    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)
    assert not verify_password("correct horse", "not-a-bcrypt-hash")


def test_strict_password_policy(monkeypatch):
    monkeypatch.setattr(auth_settings, "strict_password_policy", True)

    with pytest.raises(InvalidPassword):
        validate_password("alllowercase1")
    validate_password("Mixed1Case")


def test_verify_token_errors():
    expired = create_access_token(1, "a@example.com", expires_delta=timedelta(seconds=-1))

    with pytest.raises(TokenExpired):
        verify_token(expired, expected_type="access")
    with pytest.raises(InvalidToken):
        verify_token("garbage", expected_type="access")
