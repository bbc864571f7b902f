import uuid
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.rbac.models import ADMIN_ALL, Permission, User, UserPermission


def has_any_permission(held: Iterable[str], required: Iterable[str]) -> bool:
    held = set(held)
    if ADMIN_ALL in held:
        return True
    return any(code in held for code in required)


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user_permissions(db: AsyncSession, user_id: uuid.UUID) -> set[str]:
    result = await db.execute(
        select(Permission.code)
        .join(UserPermission, UserPermission.permission_id == Permission.id)
        .where(UserPermission.user_id == user_id)
    )
    return set(result.scalars().all())


async def list_user_ids_with_permissions(db: AsyncSession, codes: Iterable[str]) -> list[uuid.UUID]:
    """Distinct ids of active users holding at least one of `codes`, in a stable order."""
    result = await db.execute(
        select(UserPermission.user_id)
        .join(Permission, Permission.id == UserPermission.permission_id)
        .join(User, User.id == UserPermission.user_id)
        .where(Permission.code.in_(list(codes)), User.status == "active")
        .distinct()
        .order_by(UserPermission.user_id)
    )
    return list(result.scalars().all())


async def grant_permission(db: AsyncSession, user_id: uuid.UUID, code: str) -> UserPermission:
    result = await db.execute(select(Permission).where(Permission.code == code))
    permission = result.scalar_one()
    grant = UserPermission(user_id=user_id, permission_id=permission.id)
    db.add(grant)
    await db.flush()
    return grant


async def sync_permissions(db: AsyncSession, catalog: Iterable[tuple[str, str, str, str]]) -> list[Permission]:
    """Insert missing catalog entries and refresh name/module/description of existing ones."""
    result = await db.execute(select(Permission))
    existing = {p.code: p for p in result.scalars().all()}
    synced = []
    for code, name, module, description in catalog:
        permission = existing.get(code)
        if permission is None:
            permission = Permission(code=code, name=name, module=module, description=description)
            db.add(permission)
        else:
            permission.name, permission.module, permission.description = name, module, description
        synced.append(permission)
    await db.flush()
    return synced
