"""Authentication service: bcrypt passwords, signed JWT sessions, role checks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

import bcrypt
import jwt
from fastapi import Request, Response

from bikeshop.models.enums import Role
from bikeshop.models.user import User

AUTH_COOKIE_NAME = "auth_token"
JWT_ALGORITHM = "HS256"

# Landing page after login, per role
HOME_PATHS = {
    Role.ADMIN: "/admin",
    Role.TECHNICIAN: "/workshop",
    Role.CUSTOMER: "/dashboard",
}


@dataclass
class Claims:
    user_id: int
    email: str
    role: Role
    issued_at: datetime
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.ADMIN, Role.TECHNICIAN)


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Check a password against a bcrypt hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def role_allowed(role: Role, allowed: Iterable[Role]) -> bool:
    """Admin is implicitly allowed everywhere."""
    return role is Role.ADMIN or role in set(allowed)


class TokenService:
    """Mints and validates the HS256 session token."""

    def __init__(self, secret: str, issuer: str, expiration_hours: int = 24):
        self.secret = secret
        self.issuer = issuer
        self.expiration_hours = expiration_hours

    @property
    def max_age_seconds(self) -> int:
        return self.expiration_hours * 3600

    def issue(self, user: User, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "role": Role(user.role).value,
            "iss": self.issuer,
            "iat": issued_at,
            "exp": issued_at + timedelta(hours=self.expiration_hours),
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)

    def decode(self, token: str) -> Claims | None:
        """Return the verified claims, or None for any invalid or expired token."""
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[JWT_ALGORITHM],
                issuer=self.issuer,
                options={"require": ["sub", "exp", "iat", "iss"]},
            )
        except jwt.InvalidTokenError:
            return None

        try:
            return Claims(
                user_id=int(payload["sub"]),
                email=payload.get("email", ""),
                role=Role(payload["role"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError):
            return None


def token_from_request(request: Request) -> str | None:
    """The auth cookie if present, otherwise an `Authorization: Bearer` token."""
    cookie = request.cookies.get(AUTH_COOKIE_NAME)
    if cookie is not None:
        return cookie

    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme == "Bearer" and token:
        return token
    return None


def set_auth_cookie(response: Response, token: str, max_age: int, secure: bool) -> None:
    response.set_cookie(
        AUTH_COOKIE_NAME, token,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=secure,
        samesite="strict",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(AUTH_COOKIE_NAME, path="/", httponly=True)
