from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import service as auth_service
from app.core.auth.schemas import LoginRequest, TokenResponse
from app.core.auth.security import access_token_ttl
from app.core.rbac.schemas import CurrentUserRead
from app.dependencies import get_db, get_current_user, CurrentUser

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    token = await auth_service.login(db, body.email, body.password)
    return TokenResponse(access_token=token, expires_in=int(access_token_ttl().total_seconds()))


@router.get("/me", response_model=CurrentUserRead)
async def me(current: CurrentUser = Depends(get_current_user)):
    return CurrentUserRead(
        id=current.user.id,
        email=current.user.email,
        nome=current.user.nome,
        status=current.user.status,
        created_at=current.user.created_at,
        permissions=sorted(current.permissions),
    )
