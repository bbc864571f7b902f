import uuid
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.fornecedores.service import get_fornecedor
from app.core.inc.models import Inc, INC_EM_ANALISE
from app.core.inc.schemas import IncCreate
from app.errors import NotFound


async def create_inc(db: AsyncSession, data: IncCreate, criado_por_id: uuid.UUID | None) -> Inc:
    if not await get_fornecedor(db, data.fornecedor_id):
        raise NotFound("Fornecedor não encontrado")
    inc = Inc(status=INC_EM_ANALISE, criado_por_id=criado_por_id, **data.model_dump())
    db.add(inc)
    await db.flush()
    await db.refresh(inc)
    return inc


async def get_inc(db: AsyncSession, inc_id: uuid.UUID, *, for_update: bool = False) -> Inc | None:
    q = select(Inc).where(Inc.id == inc_id)
    if for_update:
        q = q.with_for_update()
    result = await db.execute(q)
    return result.scalar_one_or_none()


async def list_incs(
    db: AsyncSession,
    status: str | None = None,
    ar: int | None = None,
    fornecedor_id: uuid.UUID | None = None,
) -> list[Inc]:
    q = select(Inc)
    if status:
        q = q.where(Inc.status == status)
    if ar:
        q = q.where(Inc.ar == ar)
    if fornecedor_id:
        q = q.where(Inc.fornecedor_id == fornecedor_id)
    result = await db.execute(q.order_by(Inc.created_at.desc()))
    return list(result.scalars().all())
