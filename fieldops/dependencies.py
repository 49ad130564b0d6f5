"""FastAPI dependency providers for settings, DB sessions, auth and roles."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.config import Settings, get_settings
from fieldops.db.engine import get_db
from fieldops.services.auth import AuthContext, get_current_user

_bearer = HTTPBearer(auto_error=False)


@lru_cache
def get_settings_dep() -> Settings:
    return get_settings()


async def require_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Require a valid bearer token. Returns AuthContext."""
    return await get_current_user(credentials, db)


def require_role(*allowed_roles: str):
    """Factory: returns a dependency that enforces role membership."""
    async def _check(auth: AuthContext = Depends(require_auth)) -> AuthContext:
        if auth.role not in allowed_roles:
            raise HTTPException(403, "Insufficient permissions")
        return auth
    return _check
