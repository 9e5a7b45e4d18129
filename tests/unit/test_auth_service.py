from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import Response
from starlette.requests import Request

from bikeshop.models import User
from bikeshop.models.enums import Role
from bikeshop.services.auth import (
    AUTH_COOKIE_NAME,
    JWT_ALGORITHM,
    TokenService,
    clear_auth_cookie,
    hash_password,
    role_allowed,
    set_auth_cookie,
    token_from_request,
    verify_password,
)


def _user(user_id: int = 5, role: Role = Role.TECHNICIAN) -> User:
    return User(id=user_id, email="tech@test.com", password_hash="x", role=role)


def _request(headers: dict[str, str]) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


# ── Passwords ─────────────────────────────────────────────

@pytest.mark.parametrize("password", ["secret", "correct horse battery staple", "ñandú-123", ""])
def test_hash_then_verify(password):
    hashed = hash_password(password)
    assert hashed != password
    assert verify_password(password, hashed)
    assert not verify_password(password + "x", hashed)


def test_hashes_are_salted():
    assert hash_password("same") != hash_password("same")


def test_verify_rejects_malformed_hash():
    assert not verify_password("secret", "not-a-bcrypt-hash")


# ── Tokens ────────────────────────────────────────────────

def test_issue_and_decode_roundtrip():
    tokens = TokenService("s3cret", "BikeShop", expiration_hours=24)
    claims = tokens.decode(tokens.issue(_user()))
    assert claims is not None
    assert claims.user_id == 5
    assert claims.email == "tech@test.com"
    assert claims.role is Role.TECHNICIAN
    assert claims.expires_at - claims.issued_at == timedelta(hours=24)


def test_expired_token_rejected():
    tokens = TokenService("s3cret", "BikeShop", expiration_hours=1)
    issued = datetime.now(timezone.utc) - timedelta(hours=2)
    assert tokens.decode(tokens.issue(_user(), now=issued)) is None


def test_token_valid_just_before_expiry():
    tokens = TokenService("s3cret", "BikeShop", expiration_hours=1)
    issued = datetime.now(timezone.utc) - timedelta(minutes=59)
    assert tokens.decode(tokens.issue(_user(), now=issued)) is not None


def test_wrong_secret_rejected():
    token = TokenService("one", "BikeShop").issue(_user())
    assert TokenService("two", "BikeShop").decode(token) is None


def test_wrong_issuer_rejected():
    token = TokenService("s3cret", "Other shop").issue(_user())
    assert TokenService("s3cret", "BikeShop").decode(token) is None


def test_unknown_role_rejected():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "1", "role": "superuser", "iss": "BikeShop", "iat": now, "exp": now + timedelta(hours=1)},
        "s3cret", algorithm=JWT_ALGORITHM,
    )
    assert TokenService("s3cret", "BikeShop").decode(token) is None


def test_garbage_token_rejected():
    assert TokenService("s3cret", "BikeShop").decode("not.a.token") is None


def test_max_age_matches_expiration():
    assert TokenService("s", "i", expiration_hours=3).max_age_seconds == 3 * 3600


# ── Roles ─────────────────────────────────────────────────

def test_admin_passes_every_gate():
    assert role_allowed(Role.ADMIN, [Role.CUSTOMER])
    assert role_allowed(Role.ADMIN, [])


def test_role_membership():
    staff = (Role.TECHNICIAN, Role.ADMIN)
    assert role_allowed(Role.TECHNICIAN, staff)
    assert not role_allowed(Role.CUSTOMER, staff)


# ── Transport ─────────────────────────────────────────────

def test_cookie_wins_over_bearer_header():
    request = _request({"cookie": f"{AUTH_COOKIE_NAME}=from-cookie", "authorization": "Bearer from-header"})
    assert token_from_request(request) == "from-cookie"


def test_bearer_header_fallback():
    assert token_from_request(_request({"authorization": "Bearer abc"})) == "abc"


@pytest.mark.parametrize("header", ["Basic abc", "Bearer", "bearer abc", ""])
def test_other_authorization_headers_ignored(header):
    assert token_from_request(_request({"authorization": header})) is None


def test_cookie_attributes():
    response = Response()
    set_auth_cookie(response, "tok", max_age=3600, secure=True)
    cookie = response.headers["set-cookie"]
    assert f"{AUTH_COOKIE_NAME}=tok" in cookie
    assert "HttpOnly" in cookie
    assert "Secure" in cookie
    assert "Max-Age=3600" in cookie
    assert "SameSite=strict" in cookie
    assert "Path=/" in cookie


def test_clear_cookie_expires_it():
    response = Response()
    clear_auth_cookie(response)
    cookie = response.headers["set-cookie"]
    assert f'{AUTH_COOKIE_NAME}=""' in cookie
    assert "Max-Age=0" in cookie
