import logging
import uuid
from datetime import datetime, timedelta
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit.service import audit
from app.core.conserto.models import (
    Conserto, ConsertoInspecaoFoto, InspecaoResultado,
    CONSERTO_COLETADO, CONSERTO_RECEBIDO, CONSERTO_SOLICITADA, CONSERTO_STAGES,
    CONSERTO_TERMINAL_STATUSES, FINALIZADO, MATERIAL_RETORNADO, NFE_EMITIDA, REJEITADO,
)
from app.core.conserto.schemas import ConsertoCreate
from app.core.files.schemas import IncomingFile
from app.core.files.service import check_file_count, delete_files
from app.core.files.storage import FileStore
from app.core.remediation.workflow import LinearWorkflow, lock_rnc_for_remediation
from app.core.rnc.models import Rnc
from app.db.base import utcnow
from app.errors import Conflict, MissingRequiredFile, NotFound, ValidationError
from app.settings import get_settings

logger = logging.getLogger(__name__)

CONSERTO_WORKFLOW = LinearWorkflow(
    "Conserto",
    CONSERTO_STAGES,
    branches={MATERIAL_RETORNADO: CONSERTO_TERMINAL_STATUSES},
)

MAX_FOTOS = 10


async def get_conserto(db: AsyncSession, conserto_id: uuid.UUID, *, for_update: bool = False) -> Conserto | None:
    q = select(Conserto).where(Conserto.id == conserto_id)
    if for_update:
        q = q.with_for_update()
    result = await db.execute(q)
    return result.scalar_one_or_none()


async def _load(db: AsyncSession, conserto_id: uuid.UUID) -> Conserto:
    conserto = await get_conserto(db, conserto_id, for_update=True)
    if not conserto:
        raise NotFound("Conserto não encontrado")
    return conserto


async def _reload(db: AsyncSession, conserto: Conserto) -> Conserto:
    await db.refresh(conserto)
    await db.refresh(conserto, ["inspecao_fotos"])
    return conserto


async def list_consertos(
    db: AsyncSession,
    status: str | None = None,
    rnc_id: uuid.UUID | None = None,
    fornecedor_id: uuid.UUID | None = None,
) -> list[Conserto]:
    q = select(Conserto)
    if status:
        q = q.where(Conserto.status == status)
    if rnc_id:
        q = q.where(Conserto.rnc_id == rnc_id)
    if fornecedor_id:
        q = q.join(Rnc, Rnc.id == Conserto.rnc_id).where(Rnc.fornecedor_id == fornecedor_id)
    result = await db.execute(q.order_by(Conserto.created_at.desc()))
    return list(result.scalars().all())


async def get_foto(db: AsyncSession, conserto_id: uuid.UUID, foto_id: uuid.UUID) -> ConsertoInspecaoFoto:
    result = await db.execute(
        select(ConsertoInspecaoFoto).where(
            ConsertoInspecaoFoto.id == foto_id,
            ConsertoInspecaoFoto.conserto_id == conserto_id,
        )
    )
    foto = result.scalar_one_or_none()
    if not foto:
        raise NotFound("Foto não encontrada")
    return foto


async def create_conserto(db: AsyncSession, data: ConsertoCreate, user_id: uuid.UUID) -> Conserto:
    if data.frete == "FOB" and not data.transportadora:
        raise ValidationError("A transportadora é obrigatória quando o frete é FOB")
    rnc = await lock_rnc_for_remediation(db, data.rnc_id)
    conserto = Conserto(
        ar_origem=rnc.ar,
        status=CONSERTO_SOLICITADA,
        inspecao_resultado=InspecaoResultado.PENDENTE,
        criado_por_id=user_id,
        **data.model_dump(),
    )
    db.add(conserto)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise Conflict("Já existe um conserto para esta RNC") from exc
    await _reload(db, conserto)
    await audit(
        db, user_id=user_id, action="conserto.create", resource_type="conserto",
        resource_id=str(conserto.id), detail={"rnc_id": str(rnc.id)},
    )
    logger.info("Conserto %s opened for RNC %s", conserto.id, rnc.numero)
    return conserto


async def _finish(db: AsyncSession, conserto: Conserto, action: str, user_id: uuid.UUID) -> Conserto:
    await db.flush()
    await _reload(db, conserto)
    await audit(
        db, user_id=user_id, action=f"conserto.{action}", resource_type="conserto",
        resource_id=str(conserto.id), detail={"status": conserto.status},
    )
    logger.info("Conserto %s -> %s", conserto.id, conserto.status)
    return conserto


async def emitir_nfe(
    db: AsyncSession,
    conserto_id: uuid.UUID,
    nfe_numero: str,
    nfe_pdf: IncomingFile | None,
    user_id: uuid.UUID,
    store: FileStore,
    now: datetime | None = None,
) -> Conserto:
    conserto = await _load(db, conserto_id)
    CONSERTO_WORKFLOW.require(conserto, CONSERTO_SOLICITADA)
    if not nfe_numero or not nfe_numero.strip():
        raise ValidationError("O número da NF-e é obrigatório")
    if nfe_pdf is None:
        raise MissingRequiredFile("O PDF da NF-e é obrigatório")
    path = await store.save(nfe_pdf, "nfe-conserto")
    CONSERTO_WORKFLOW.advance(
        conserto, CONSERTO_SOLICITADA, NFE_EMITIDA,
        nfe_numero=nfe_numero.strip(),
        nfe_pdf_path=path,
        nfe_emitida_em=now or utcnow(),
        nfe_emitida_por_id=user_id,
    )
    return await _finish(db, conserto, "emitir_nfe", user_id)


async def confirmar_coleta(
    db: AsyncSession, conserto_id: uuid.UUID, user_id: uuid.UUID, now: datetime | None = None
) -> Conserto:
    conserto = await _load(db, conserto_id)
    CONSERTO_WORKFLOW.advance(
        conserto, NFE_EMITIDA, CONSERTO_COLETADO,
        data_coleta=now or utcnow(),
        coleta_confirmada_por_id=user_id,
    )
    return await _finish(db, conserto, "confirmar_coleta", user_id)


async def confirmar_recebimento(
    db: AsyncSession, conserto_id: uuid.UUID, user_id: uuid.UUID, now: datetime | None = None
) -> Conserto:
    """Supplier received the material: the repair clock starts."""
    now = now or utcnow()
    conserto = await _load(db, conserto_id)
    CONSERTO_WORKFLOW.advance(
        conserto, CONSERTO_COLETADO, CONSERTO_RECEBIDO,
        data_recebimento=now,
        recebimento_confirmado_por_id=user_id,
        prazo_conserto_inicio=now,
        prazo_conserto_fim=now + timedelta(days=get_settings().CONSERTO_PRAZO_DIAS),
    )
    return await _finish(db, conserto, "confirmar_recebimento", user_id)


async def confirmar_retorno(
    db: AsyncSession,
    conserto_id: uuid.UUID,
    nfe_retorno_numero: str,
    nfe_retorno_pdf: IncomingFile | None,
    user_id: uuid.UUID,
    store: FileStore,
    now: datetime | None = None,
) -> Conserto:
    conserto = await _load(db, conserto_id)
    CONSERTO_WORKFLOW.require(conserto, CONSERTO_RECEBIDO)
    if not nfe_retorno_numero or not nfe_retorno_numero.strip():
        raise ValidationError("O número da NF-e de retorno é obrigatório")
    if nfe_retorno_pdf is None:
        raise MissingRequiredFile("O PDF da NF-e de retorno é obrigatório")
    path = await store.save(nfe_retorno_pdf, "nfe-retorno")
    CONSERTO_WORKFLOW.advance(
        conserto, CONSERTO_RECEBIDO, MATERIAL_RETORNADO,
        data_retorno=now or utcnow(),
        nfe_retorno_numero=nfe_retorno_numero.strip(),
        nfe_retorno_pdf_path=path,
        retorno_confirmado_por_id=user_id,
    )
    return await _finish(db, conserto, "confirmar_retorno", user_id)


async def _store_fotos(store: FileStore, fotos: Sequence[IncomingFile]) -> list[tuple[str, str]]:
    stored: list[tuple[str, str]] = []
    try:
        for foto in fotos:
            stored.append((await store.save(foto, "inspecao"), foto.filename))
    except Exception:
        await delete_files(store, [path for path, _ in stored])
        raise
    return stored


async def _inspecionar(
    db: AsyncSession,
    conserto_id: uuid.UUID,
    fotos: Sequence[IncomingFile],
    descricao: str | None,
    resultado: InspecaoResultado,
    user_id: uuid.UUID,
    store: FileStore,
    now: datetime | None,
) -> Conserto:
    conserto = await _load(db, conserto_id)
    CONSERTO_WORKFLOW.require(conserto, MATERIAL_RETORNADO)
    check_file_count(fotos, minimum=1, maximum=MAX_FOTOS)
    stored = await _store_fotos(store, fotos)
    to_status = FINALIZADO if resultado == InspecaoResultado.APROVADA else REJEITADO
    CONSERTO_WORKFLOW.advance(
        conserto, MATERIAL_RETORNADO, to_status,
        inspecao_data=now or utcnow(),
        inspecao_realizada_por_id=user_id,
    )
    conserto.inspecao_resultado = resultado
    conserto.inspecao_descricao = descricao
    for path, filename in stored:
        db.add(ConsertoInspecaoFoto(conserto_id=conserto.id, path=path, filename=filename))
    action = "aprovar_inspecao" if resultado == InspecaoResultado.APROVADA else "rejeitar_inspecao"
    return await _finish(db, conserto, action, user_id)


async def aprovar_inspecao(
    db: AsyncSession,
    conserto_id: uuid.UUID,
    fotos: Sequence[IncomingFile],
    descricao: str | None,
    user_id: uuid.UUID,
    store: FileStore,
    now: datetime | None = None,
) -> Conserto:
    descricao = descricao.strip() if descricao and descricao.strip() else None
    return await _inspecionar(db, conserto_id, fotos, descricao, InspecaoResultado.APROVADA, user_id, store, now)


async def rejeitar_inspecao(
    db: AsyncSession,
    conserto_id: uuid.UUID,
    fotos: Sequence[IncomingFile],
    descricao: str | None,
    user_id: uuid.UUID,
    store: FileStore,
    now: datetime | None = None,
) -> Conserto:
    conserto = await _load(db, conserto_id)
    CONSERTO_WORKFLOW.require(conserto, MATERIAL_RETORNADO)
    if not descricao or not descricao.strip():
        raise ValidationError("A descrição da rejeição é obrigatória")
    return await _inspecionar(
        db, conserto_id, fotos, descricao.strip(), InspecaoResultado.REJEITADA, user_id, store, now,
    )


async def remove_conserto(db: AsyncSession, conserto_id: uuid.UUID, user_id: uuid.UUID, store: FileStore) -> None:
    conserto = await _load(db, conserto_id)
    paths = [conserto.nfe_pdf_path, conserto.nfe_retorno_pdf_path, *(f.path for f in conserto.inspecao_fotos)]
    rnc_id = conserto.rnc_id
    for foto in conserto.inspecao_fotos:
        await db.delete(foto)
    await db.flush()
    await db.refresh(conserto, ["inspecao_fotos"])
    await db.delete(conserto)
    await db.flush()
    await audit(
        db, user_id=user_id, action="conserto.delete", resource_type="conserto",
        resource_id=str(conserto_id), detail={"rnc_id": str(rnc_id)},
    )
    await delete_files(store, paths)
    logger.info("Conserto %s deleted", conserto_id)
