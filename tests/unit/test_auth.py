from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from fieldops.db import crud
from fieldops.models import ApiToken
from fieldops.models.base import utcnow
from fieldops.services.auth import (
    _hash_token, get_current_user, hash_password, issue_token, validate_token, verify_password,
)


def _bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_password_round_trip():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong", hashed)


async def test_issue_and_validate_token(db):
    user = await crud.create_user(db, "disp@example.com", "Dee", "Spatch", role="dispatcher")
    token = await issue_token(user, db, max_age_days=1, label="cli")

    assert (await validate_token(token, db)).id == user.id
    assert await validate_token("not-a-token", db) is None

    auth = await get_current_user(_bearer(token), db)
    assert auth.user_id == str(user.id)
    assert auth.role == "dispatcher"
    assert auth.display_name == "Dee Spatch"


async def test_expired_token_is_rejected(db):
    user = await crud.create_user(db, "old@example.com")
    db.add(ApiToken(
        user_id=user.id, token_hash=_hash_token("stale"), expires_at=utcnow() - timedelta(minutes=1),
    ))
    await db.commit()

    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(_bearer("stale"), db)
    assert exc_info.value.status_code == 401


async def test_inactive_user_token_is_rejected(db):
    user = await crud.create_user(db, "gone@example.com")
    token = await issue_token(user, db)
    user.is_active = False
    await db.commit()

    assert await validate_token(token, db) is None


async def test_missing_credentials(db):
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(None, db)
    assert exc_info.value.status_code == 401
