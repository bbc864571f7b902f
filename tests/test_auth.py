import uuid

import pytest
from fastapi import HTTPException
from jose import JWTError, jwt

from app.core.auth.security import hash_password, verify_password, create_access_token, decode_access_token
from app.core.auth.service import login
from app.core.rbac.models import ADMIN_ALL
from app.core.rbac.service import get_user_permissions, has_any_permission, list_user_ids_with_permissions
from app.settings import get_settings
from conftest import make_user


def test_password_hash_roundtrip():
    plain = "MyS3cure!Pass"
    hashed = hash_password(plain)
    assert verify_password(plain, hashed)
    assert not verify_password("wrong", hashed)


def test_access_token_roundtrip():
    user_id = uuid.uuid4()
    token = create_access_token(user_id)
    payload = decode_access_token(token)
    assert payload["sub"] == str(user_id)
    assert payload["type"] == "access"


def test_access_token_lifetime_follows_settings():
    payload = decode_access_token(create_access_token(uuid.uuid4()))
    assert payload["exp"] - payload["iat"] == get_settings().JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60


def test_verify_password_rejects_malformed_hash():
    assert not verify_password("segredo123", "not-a-bcrypt-hash")


def test_decode_rejects_other_token_types():
    settings = get_settings()
    token = jwt.encode({"sub": str(uuid.uuid4()), "type": "refresh"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_admin_all_overrides_every_check():
    assert has_any_permission({ADMIN_ALL}, ["rnc.create"])
    assert has_any_permission({"rnc.read"}, ["rnc.create", "rnc.read"])
    assert not has_any_permission({"inc.read"}, ["rnc.read"])
    assert not has_any_permission(set(), [])


async def test_login_issues_token_for_active_user(db):
    user = await make_user(db, email="qualidade@empresa.com")
    user.hashed_password = hash_password("segredo123")
    await db.flush()

    token = await login(db, "Qualidade@Empresa.com", "segredo123")
    assert decode_access_token(token)["sub"] == str(user.id)


async def test_login_rejects_bad_password_and_suspended_user(db):
    user = await make_user(db, email="a@empresa.com")
    user.hashed_password = hash_password("segredo123")
    suspended = await make_user(db, email="b@empresa.com", status="suspended")
    suspended.hashed_password = hash_password("segredo123")
    await db.flush()

    with pytest.raises(HTTPException) as exc:
        await login(db, user.email, "errada")
    assert exc.value.status_code == 401

    with pytest.raises(HTTPException) as exc:
        await login(db, suspended.email, "segredo123")
    assert exc.value.status_code == 403


async def test_recipient_lookup_skips_inactive_users(db):
    reader = await make_user(db, permissions=["rnc.read"])
    admin = await make_user(db, permissions=[ADMIN_ALL])
    await make_user(db, permissions=["rnc.read"], status="suspended")
    await make_user(db, permissions=["inc.read"])

    ids = await list_user_ids_with_permissions(db, ["rnc.read", ADMIN_ALL])
    assert set(ids) == {reader.id, admin.id}
    assert await get_user_permissions(db, reader.id) == {"rnc.read"}
