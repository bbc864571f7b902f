import uuid
from dataclasses import dataclass, field
from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth.security import decode_access_token
from app.core.rbac.models import User
from app.core.rbac.service import get_user, get_user_permissions, has_any_permission
from app.db.session import AsyncSessionLocal

bearer = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    user: User
    user_id: uuid.UUID
    permissions: set[str] = field(default_factory=set)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        async with session.begin():
            yield session


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer)],
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        user_id = uuid.UUID(decode_access_token(credentials.credentials)["sub"])
    except (JWTError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = await get_user(db, user_id)
    if not user or user.status != "active":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    permissions = await get_user_permissions(db, user_id)
    return CurrentUser(user=user, user_id=user_id, permissions=permissions)


def require_permissions(*codes: str):
    """Dependency granting access when the user holds any of `codes` (or admin.all)."""

    async def checker(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_any_permission(current.permissions, codes):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Você precisa de uma das seguintes permissões: {', '.join(codes)}",
            )
        return current

    return checker
