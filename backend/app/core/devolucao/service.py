import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit.service import audit
from app.core.devolucao.models import (
    Devolucao,
    DEVOLUCAO_COLETADA, DEVOLUCAO_RECEBIDA, DEVOLUCAO_SOLICITADA, DEVOLUCAO_STAGES,
    FINALIZADO, NFE_EMITIDA,
)
from app.core.devolucao.schemas import DevolucaoCreate
from app.core.files.schemas import IncomingFile
from app.core.files.service import delete_files
from app.core.files.storage import FileStore
from app.core.remediation.workflow import LinearWorkflow, lock_rnc_for_remediation
from app.core.rnc.models import Rnc
from app.db.base import utcnow
from app.errors import Conflict, MissingRequiredFile, NotFound, ValidationError

logger = logging.getLogger(__name__)

DEVOLUCAO_WORKFLOW = LinearWorkflow("Devolução", DEVOLUCAO_STAGES)


async def get_devolucao(db: AsyncSession, devolucao_id: uuid.UUID, *, for_update: bool = False) -> Devolucao | None:
    q = select(Devolucao).where(Devolucao.id == devolucao_id)
    if for_update:
        q = q.with_for_update()
    result = await db.execute(q)
    return result.scalar_one_or_none()


async def _load(db: AsyncSession, devolucao_id: uuid.UUID) -> Devolucao:
    devolucao = await get_devolucao(db, devolucao_id, for_update=True)
    if not devolucao:
        raise NotFound("Devolução não encontrada")
    return devolucao


async def list_devolucoes(
    db: AsyncSession,
    status: str | None = None,
    rnc_id: uuid.UUID | None = None,
    fornecedor_id: uuid.UUID | None = None,
) -> list[Devolucao]:
    q = select(Devolucao)
    if status:
        q = q.where(Devolucao.status == status)
    if rnc_id:
        q = q.where(Devolucao.rnc_id == rnc_id)
    if fornecedor_id:
        q = q.join(Rnc, Rnc.id == Devolucao.rnc_id).where(Rnc.fornecedor_id == fornecedor_id)
    result = await db.execute(q.order_by(Devolucao.created_at.desc()))
    return list(result.scalars().all())


async def create_devolucao(db: AsyncSession, data: DevolucaoCreate, user_id: uuid.UUID) -> Devolucao:
    rnc = await lock_rnc_for_remediation(db, data.rnc_id)
    devolucao = Devolucao(
        ar_origem=rnc.ar,
        status=DEVOLUCAO_SOLICITADA,
        criado_por_id=user_id,
        **data.model_dump(),
    )
    db.add(devolucao)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise Conflict("Já existe uma devolução para esta RNC") from exc
    await db.refresh(devolucao)
    await audit(
        db, user_id=user_id, action="devolucao.create", resource_type="devolucao",
        resource_id=str(devolucao.id), detail={"rnc_id": str(rnc.id)},
    )
    logger.info("Devolução %s opened for RNC %s", devolucao.id, rnc.numero)
    return devolucao


async def _finish(db: AsyncSession, devolucao: Devolucao, action: str, user_id: uuid.UUID) -> Devolucao:
    await db.flush()
    await db.refresh(devolucao)
    await audit(
        db, user_id=user_id, action=f"devolucao.{action}", resource_type="devolucao",
        resource_id=str(devolucao.id), detail={"status": devolucao.status},
    )
    logger.info("Devolução %s -> %s", devolucao.id, devolucao.status)
    return devolucao


async def emitir_nfe(
    db: AsyncSession,
    devolucao_id: uuid.UUID,
    nfe_numero: str,
    nfe_pdf: IncomingFile | None,
    user_id: uuid.UUID,
    store: FileStore,
    now: datetime | None = None,
) -> Devolucao:
    devolucao = await _load(db, devolucao_id)
    DEVOLUCAO_WORKFLOW.require(devolucao, DEVOLUCAO_SOLICITADA)
    if not nfe_numero or not nfe_numero.strip():
        raise ValidationError("O número da NF-e é obrigatório")
    if nfe_pdf is None:
        raise MissingRequiredFile("O PDF da NF-e é obrigatório")
    path = await store.save(nfe_pdf, "nfe-devolucao")
    DEVOLUCAO_WORKFLOW.advance(
        devolucao, DEVOLUCAO_SOLICITADA, NFE_EMITIDA,
        nfe_numero=nfe_numero.strip(),
        nfe_pdf_path=path,
        nfe_emitida_em=now or utcnow(),
        nfe_emitida_por_id=user_id,
    )
    return await _finish(db, devolucao, "emitir_nfe", user_id)


async def confirmar_coleta(
    db: AsyncSession, devolucao_id: uuid.UUID, user_id: uuid.UUID, now: datetime | None = None
) -> Devolucao:
    devolucao = await _load(db, devolucao_id)
    DEVOLUCAO_WORKFLOW.advance(
        devolucao, NFE_EMITIDA, DEVOLUCAO_COLETADA,
        data_coleta=now or utcnow(),
        coleta_confirmada_por_id=user_id,
    )
    return await _finish(db, devolucao, "confirmar_coleta", user_id)


async def confirmar_recebimento(
    db: AsyncSession, devolucao_id: uuid.UUID, user_id: uuid.UUID, now: datetime | None = None
) -> Devolucao:
    devolucao = await _load(db, devolucao_id)
    DEVOLUCAO_WORKFLOW.advance(
        devolucao, DEVOLUCAO_COLETADA, DEVOLUCAO_RECEBIDA,
        data_recebimento=now or utcnow(),
        recebimento_confirmado_por_id=user_id,
    )
    return await _finish(db, devolucao, "confirmar_recebimento", user_id)


async def confirmar_compensacao(
    db: AsyncSession,
    devolucao_id: uuid.UUID,
    comprovante: IncomingFile | None,
    user_id: uuid.UUID,
    store: FileStore,
    now: datetime | None = None,
) -> Devolucao:
    devolucao = await _load(db, devolucao_id)
    DEVOLUCAO_WORKFLOW.require(devolucao, DEVOLUCAO_RECEBIDA)
    if comprovante is None:
        raise MissingRequiredFile("O comprovante de compensação é obrigatório")
    path = await store.save(comprovante, "comprovante")
    DEVOLUCAO_WORKFLOW.advance(
        devolucao, DEVOLUCAO_RECEBIDA, FINALIZADO,
        data_compensacao=now or utcnow(),
        comprovante_path=path,
        compensacao_confirmada_por_id=user_id,
    )
    return await _finish(db, devolucao, "confirmar_compensacao", user_id)


async def remove_devolucao(db: AsyncSession, devolucao_id: uuid.UUID, user_id: uuid.UUID, store: FileStore) -> None:
    devolucao = await _load(db, devolucao_id)
    paths = [devolucao.nfe_pdf_path, devolucao.comprovante_path]
    rnc_id = devolucao.rnc_id
    await db.delete(devolucao)
    await db.flush()
    await audit(
        db, user_id=user_id, action="devolucao.delete", resource_type="devolucao",
        resource_id=str(devolucao_id), detail={"rnc_id": str(rnc_id)},
    )
    await delete_files(store, paths)
    logger.info("Devolução %s deleted", devolucao_id)
