import uuid
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.fornecedores.models import Fornecedor


async def get_fornecedor(db: AsyncSession, fornecedor_id: uuid.UUID) -> Fornecedor | None:
    result = await db.execute(select(Fornecedor).where(Fornecedor.id == fornecedor_id))
    return result.scalar_one_or_none()


def format_cnpj(cnpj: str) -> str:
    digits = "".join(ch for ch in cnpj if ch.isdigit())
    if len(digits) != 14:
        return cnpj
    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
