"""FastAPI dependency providers for the app context, DB sessions, auth and roles."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.context import AppContext
from bikeshop.errors import LoginRequired
from bikeshop.models.enums import Role
from bikeshop.services.auth import Claims, role_allowed, token_from_request


def get_ctx(request: Request) -> AppContext:
    return request.app.state.ctx


async def get_db(ctx: AppContext = Depends(get_ctx)) -> AsyncSession:
    """Yield one session for the whole request."""
    async with ctx.db.session_factory() as session:
        yield session


async def optional_auth(
    request: Request,
    ctx: AppContext = Depends(get_ctx),
) -> Claims | None:
    """Claims for the caller if a valid token is present, else None."""
    token = token_from_request(request)
    if not token:
        return None
    return ctx.tokens.decode(token)


async def require_auth(claims: Claims | None = Depends(optional_auth)) -> Claims:
    """Require a valid session token; otherwise redirect to the login page."""
    if claims is None:
        raise LoginRequired()
    return claims


def require_role(*allowed_roles: Role):
    """Factory: returns a dependency that enforces role membership (admin always passes)."""
    async def _check(claims: Claims = Depends(require_auth)) -> Claims:
        if not role_allowed(claims.role, allowed_roles):
            raise HTTPException(403, "Forbidden")
        return claims
    return _check


require_staff = require_role(Role.TECHNICIAN, Role.ADMIN)
require_admin = require_role(Role.ADMIN)
