import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.inc import service
from app.core.inc.schemas import IncCreate, IncRead
from app.dependencies import get_db, require_permissions, CurrentUser

router = APIRouter(prefix="/inc", tags=["inc"])


@router.post("", response_model=IncRead, status_code=201)
async def create_inc(
    data: IncCreate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("inc.create")),
):
    return await service.create_inc(db, data, current.user_id)


@router.get("", response_model=list[IncRead])
async def list_incs(
    status: str | None = None,
    ar: int | None = None,
    fornecedor_id: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("inc.read")),
):
    return await service.list_incs(db, status=status, ar=ar, fornecedor_id=fornecedor_id)


@router.get("/{inc_id}", response_model=IncRead)
async def get_inc(
    inc_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("inc.read")),
):
    inc = await service.get_inc(db, inc_id)
    if not inc:
        raise HTTPException(404, "INC não encontrada")
    return inc
