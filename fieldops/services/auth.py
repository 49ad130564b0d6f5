"""Authentication service: DB-backed bearer tokens, bcrypt passwords."""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

import bcrypt
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.models import ApiToken, User
from fieldops.models.base import utcnow


@dataclass
class AuthContext:
    user_id: str
    role: str  # 'admin' | 'dispatcher' | 'technician'
    email: str
    display_name: str


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def _hash_token(token: str) -> str:
    """SHA-256 hash of a bearer token for DB storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


async def issue_token(user: User, db: AsyncSession, max_age_days: int = 30, label: str = "") -> str:
    """Store a new token for ``user``. Returns the raw token (not the hash)."""
    token = secrets.token_urlsafe(48)
    db.add(ApiToken(
        user_id=user.id,
        token_hash=_hash_token(token),
        expires_at=utcnow() + timedelta(days=max_age_days),
        label=label,
    ))
    await db.commit()
    return token


async def validate_token(token: str, db: AsyncSession) -> User | None:
    """Look up a token by hash, return its User if unexpired and active."""
    result = await db.execute(
        select(ApiToken).where(
            ApiToken.token_hash == _hash_token(token),
            ApiToken.expires_at > utcnow(),
        )
    )
    api_token = result.scalars().first()
    if not api_token:
        return None

    user = await db.get(User, api_token.user_id)
    if not user or not user.is_active or user.is_deleted:
        return None
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None, db: AsyncSession,
) -> AuthContext:
    """Validate the bearer credentials, return AuthContext or raise 401."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = await validate_token(credentials.credentials, db)
    if not user:
        raise HTTPException(status_code=401, detail="Token invalid or expired")

    return AuthContext(
        user_id=str(user.id),
        role=user.role,
        email=user.email,
        display_name=user.full_name,
    )
