import logging
import uuid
from datetime import datetime
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import local_date
from app.core.audit.service import audit
from app.core.documents.renderer import NoticeRenderer, RncNotice, generate_notice
from app.core.files.schemas import IncomingFile
from app.core.files.service import delete_files
from app.core.files.storage import FileStore
from app.core.fornecedores.models import Fornecedor
from app.core.fornecedores.service import format_cnpj
from app.core.inc.models import Inc, INC_APROVADO_CONCESSAO, INC_EM_ANALISE, INC_RNC_ENVIADA
from app.core.inc.service import get_inc
from app.core.rbac.service import get_user
from app.core.remediation.workflow import find_remediation, remediation_open
from app.core.rnc.deadlines import prazo_fim
from app.core.rnc.models import (
    HISTORICO_ACEITE, HISTORICO_RECUSA,
    Rnc, RncHistorico, RncSequence,
    RNC_ACEITA, RNC_AGUARDANDO_RESPOSTA, RNC_CONCLUIDA, RNC_EM_ANALISE, RNC_ENVIADA,
)
from app.core.rnc.schemas import RncCreate, RncUpdate
from app.db.base import as_utc, utcnow
from app.errors import (
    Conflict, InvalidReference, InvalidState, InvalidStateTransition,
    MissingRequiredFile, NotFound, ValidationError,
)

logger = logging.getLogger(__name__)

# Administrative moves a user may make by hand; every other status change has
# its own operation.
RNC_MANUAL_TRANSITIONS = {
    RNC_ENVIADA: [RNC_AGUARDANDO_RESPOSTA],
    RNC_AGUARDANDO_RESPOSTA: [RNC_ENVIADA, RNC_EM_ANALISE],
    RNC_EM_ANALISE: [RNC_AGUARDANDO_RESPOSTA],
}


# ── Sequence allocation ──────────────────────────────────────────────────────

def next_sequencial(existing: Iterable[int]) -> int:
    return max(existing, default=0) + 1


def format_numero(sequencial: int, ano: int) -> str:
    return f"RNC:{sequencial:03d}/{ano}"


async def ensure_sequence_row(db: AsyncSession, fornecedor_id: uuid.UUID, ano: int) -> None:
    """
    Inserts the (supplier, year) counter row unless it exists. When two first
    allocations race, the unique constraint keeps one row and the loser's
    SAVEPOINT is rolled back.
    """
    try:
        async with db.begin_nested():
            db.add(RncSequence(fornecedor_id=fornecedor_id, ano=ano, last_seq=0))
            await db.flush()
    except IntegrityError:
        logger.debug("Sequence row for %s/%s already exists", fornecedor_id, ano)


async def _lock_sequence(db: AsyncSession, fornecedor_id: uuid.UUID, ano: int) -> RncSequence:
    q = (
        select(RncSequence)
        .where(RncSequence.fornecedor_id == fornecedor_id, RncSequence.ano == ano)
        .with_for_update()
    )
    seq = (await db.execute(q)).scalar_one_or_none()
    if seq is None:
        await ensure_sequence_row(db, fornecedor_id, ano)
        seq = (await db.execute(q)).scalar_one()
    return seq


async def allocate_sequencial(db: AsyncSession, fornecedor_id: uuid.UUID, ano: int) -> int:
    """
    Holds the (supplier, year) counter row lock until the caller's transaction
    ends, so concurrent creations for the same pair get distinct numbers.
    """
    seq = await _lock_sequence(db, fornecedor_id, ano)
    result = await db.execute(
        select(Rnc.sequencial).where(Rnc.fornecedor_id == fornecedor_id, Rnc.ano == ano)
    )
    sequencial = next_sequencial(result.scalars().all())
    seq.last_seq = sequencial
    await db.flush()
    return sequencial


# ── Reads ────────────────────────────────────────────────────────────────────

async def get_rnc(db: AsyncSession, rnc_id: uuid.UUID, *, for_update: bool = False) -> Rnc | None:
    q = select(Rnc).where(Rnc.id == rnc_id)
    if for_update:
        q = q.with_for_update()
    result = await db.execute(q)
    return result.scalar_one_or_none()


async def _load_rnc(db: AsyncSession, rnc_id: uuid.UUID) -> Rnc:
    rnc = await get_rnc(db, rnc_id, for_update=True)
    if not rnc:
        raise NotFound("RNC não encontrada")
    return rnc


async def list_rncs(
    db: AsyncSession,
    status: str | None = None,
    fornecedor_id: uuid.UUID | None = None,
    ano: int | None = None,
    reincidente: bool | None = None,
) -> list[Rnc]:
    q = select(Rnc)
    if status:
        q = q.where(Rnc.status == status)
    if fornecedor_id:
        q = q.where(Rnc.fornecedor_id == fornecedor_id)
    if ano:
        q = q.where(Rnc.ano == ano)
    if reincidente is not None:
        q = q.where(Rnc.reincidente == reincidente)
    result = await db.execute(q.order_by(Rnc.created_at.desc()))
    return list(result.scalars().all())


async def list_rncs_by_fornecedor(
    db: AsyncSession, fornecedor_id: uuid.UUID, ano: int | None = None
) -> list[Rnc]:
    return await list_rncs(db, fornecedor_id=fornecedor_id, ano=ano)


async def list_historico(db: AsyncSession, rnc_id: uuid.UUID) -> list[RncHistorico]:
    if not await get_rnc(db, rnc_id):
        raise NotFound("RNC não encontrada")
    result = await db.execute(
        select(RncHistorico)
        .where(RncHistorico.rnc_id == rnc_id)
        .order_by(RncHistorico.created_at.desc())
    )
    return list(result.scalars().all())


async def get_historico_item(db: AsyncSession, historico_id: uuid.UUID) -> RncHistorico:
    result = await db.execute(select(RncHistorico).where(RncHistorico.id == historico_id))
    item = result.scalar_one_or_none()
    if not item:
        raise NotFound("Histórico não encontrado")
    return item


# ── Creation ─────────────────────────────────────────────────────────────────

async def _validate_rnc_anterior(
    db: AsyncSession, rnc_anterior_id: uuid.UUID, fornecedor_id: uuid.UUID, rnc_id: uuid.UUID | None = None
) -> Rnc:
    if rnc_id is not None and rnc_anterior_id == rnc_id:
        raise InvalidReference("Uma RNC não pode ser a sua própria RNC anterior")
    anterior = await get_rnc(db, rnc_anterior_id)
    if not anterior:
        raise NotFound("RNC anterior não encontrada")
    if anterior.fornecedor_id != fornecedor_id:
        raise InvalidReference("A RNC anterior deve ser do mesmo fornecedor")
    return anterior


async def _build_notice(db: AsyncSession, rnc: Rnc, anterior: Rnc | None) -> RncNotice:
    fornecedor = (await db.execute(select(Fornecedor).where(Fornecedor.id == rnc.fornecedor_id))).scalar_one()
    criado_por = await get_user(db, rnc.criado_por_id)
    return RncNotice(
        numero=rnc.numero,
        data=rnc.data,
        status=rnc.status,
        responsavel=criado_por.nome if criado_por else "",
        fornecedor_cnpj=format_cnpj(fornecedor.cnpj),
        fornecedor_razao_social=fornecedor.razao_social,
        fornecedor_codigo_logix=fornecedor.codigo_logix,
        ar=rnc.ar,
        nfe_numero=rnc.nfe_numero,
        um=rnc.um,
        quantidade_recebida=rnc.quantidade_recebida,
        quantidade_com_defeito=rnc.quantidade_com_defeito,
        descricao_nao_conformidade=rnc.descricao_nao_conformidade,
        reincidente=rnc.reincidente,
        rnc_anterior_numero=anterior.numero if anterior else None,
        rnc_anterior_data=anterior.data if anterior else None,
    )


async def create_rnc(
    db: AsyncSession,
    data: RncCreate,
    user_id: uuid.UUID,
    renderer: NoticeRenderer,
    store: FileStore,
    now: datetime | None = None,
) -> Rnc:
    """
    Opens an RNC for an INC under analysis. The notice document is rendered in
    the same transaction; if rendering fails nothing is persisted.
    """
    now = now or utcnow()
    inc = await get_inc(db, data.inc_id, for_update=True)
    if not inc:
        raise NotFound("INC não encontrada")
    if inc.status != INC_EM_ANALISE:
        raise InvalidState(f'Apenas INCs com status "{INC_EM_ANALISE}" podem gerar RNCs')

    if data.reincidente and not data.rnc_anterior_id:
        raise ValidationError("RNC reincidente exige a RNC anterior")
    anterior = None
    if data.rnc_anterior_id:
        anterior = await _validate_rnc_anterior(db, data.rnc_anterior_id, inc.fornecedor_id)

    data_rnc = as_utc(data.data) if data.data else now
    ano = local_date(data_rnc).year
    sequencial = await allocate_sequencial(db, inc.fornecedor_id, ano)

    rnc = Rnc(
        numero=format_numero(sequencial, ano),
        sequencial=sequencial,
        ano=ano,
        data=data_rnc,
        ar=inc.ar,
        nfe_numero=inc.nfe_numero,
        um=inc.um,
        quantidade_recebida=inc.quantidade_recebida,
        quantidade_com_defeito=inc.quantidade_com_defeito,
        descricao_nao_conformidade=data.descricao_nao_conformidade,
        reincidente=data.reincidente,
        rnc_anterior_id=data.rnc_anterior_id,
        status=RNC_ENVIADA,
        prazo_inicio=now,
        inc_id=inc.id,
        fornecedor_id=inc.fornecedor_id,
        criado_por_id=user_id,
    )
    db.add(rnc)
    inc.status = INC_RNC_ENVIADA
    await db.flush()

    rnc.pdf_path = await generate_notice(renderer, store, await _build_notice(db, rnc, anterior), now)
    await db.flush()
    await db.refresh(rnc)

    await audit(
        db, user_id=user_id, action="rnc.create", resource_type="rnc", resource_id=str(rnc.id),
        detail={"numero": rnc.numero, "inc_id": str(inc.id)},
    )
    logger.info("RNC %s created from INC %s", rnc.numero, inc.id)
    return rnc


# ── Action plan answers ──────────────────────────────────────────────────────

async def _answer_plano(
    db: AsyncSession,
    rnc: Rnc,
    tipo: str,
    plano: IncomingFile | None,
    user_id: uuid.UUID,
    store: FileStore,
    now: datetime,
    justificativa: str | None = None,
) -> RncHistorico:
    if plano is None:
        raise MissingRequiredFile("O PDF do plano de ação é obrigatório")
    path = await store.save(plano, "plano-acao")
    rnc.prazo_inicio = now
    historico = RncHistorico(
        rnc_id=rnc.id,
        tipo=tipo,
        pdf_path=path,
        justificativa=justificativa,
        prazo_inicio=now,
        prazo_fim=prazo_fim(now),
        criado_por_id=user_id,
    )
    db.add(historico)
    return historico


async def aceitar_plano_acao(
    db: AsyncSession,
    rnc_id: uuid.UUID,
    plano: IncomingFile | None,
    user_id: uuid.UUID,
    store: FileStore,
    now: datetime | None = None,
) -> Rnc:
    now = now or utcnow()
    rnc = await _load_rnc(db, rnc_id)
    if rnc.status != RNC_ENVIADA:
        raise InvalidStateTransition(RNC_ENVIADA, rnc.status)
    historico = await _answer_plano(db, rnc, HISTORICO_ACEITE, plano, user_id, store, now)
    rnc.status = RNC_ACEITA
    rnc.plano_acao_pdf_path = historico.pdf_path
    await db.flush()
    await db.refresh(rnc)
    await audit(db, user_id=user_id, action="rnc.aceitar_plano", resource_type="rnc", resource_id=str(rnc.id))
    logger.info("RNC %s action plan accepted", rnc.numero)
    return rnc


async def recusar_plano_acao(
    db: AsyncSession,
    rnc_id: uuid.UUID,
    plano: IncomingFile | None,
    justificativa: str | None,
    user_id: uuid.UUID,
    store: FileStore,
    now: datetime | None = None,
) -> Rnc:
    """Keeps the RNC in RNC enviada and restarts the supplier's clock."""
    now = now or utcnow()
    rnc = await _load_rnc(db, rnc_id)
    if rnc.status != RNC_ENVIADA:
        raise InvalidStateTransition(RNC_ENVIADA, rnc.status)
    if not justificativa or not justificativa.strip():
        raise ValidationError("A justificativa da recusa é obrigatória")
    await _answer_plano(db, rnc, HISTORICO_RECUSA, plano, user_id, store, now, justificativa.strip())
    await db.flush()
    await db.refresh(rnc)
    await audit(
        db, user_id=user_id, action="rnc.recusar_plano", resource_type="rnc", resource_id=str(rnc.id),
        detail={"justificativa": justificativa.strip()},
    )
    logger.info("RNC %s action plan refused; deadline restarted", rnc.numero)
    return rnc


# ── Status changes ───────────────────────────────────────────────────────────

async def alterar_status(db: AsyncSession, rnc_id: uuid.UUID, to_status: str, user_id: uuid.UUID) -> Rnc:
    rnc = await _load_rnc(db, rnc_id)
    allowed = RNC_MANUAL_TRANSITIONS.get(rnc.status, [])
    if to_status not in allowed:
        raise InvalidState(
            f'Transição de "{rnc.status}" para "{to_status}" não permitida',
            allowed=allowed,
        )
    from_status = rnc.status
    rnc.status = to_status
    await db.flush()
    await db.refresh(rnc)
    await audit(
        db, user_id=user_id, action="rnc.status", resource_type="rnc", resource_id=str(rnc.id),
        detail={"from": from_status, "to": to_status},
    )
    logger.info("RNC %s status %s -> %s", rnc.numero, from_status, to_status)
    return rnc


async def concluir_rnc(db: AsyncSession, rnc_id: uuid.UUID, user_id: uuid.UUID) -> Rnc:
    rnc = await _load_rnc(db, rnc_id)
    if rnc.status != RNC_ACEITA:
        raise InvalidStateTransition(RNC_ACEITA, rnc.status)
    remediation = await find_remediation(db, rnc.id)
    if remediation_open(remediation):
        raise InvalidState(
            "A RNC possui devolução ou conserto em andamento",
            remediation_status=remediation.status,
        )
    rnc.status = RNC_CONCLUIDA
    await db.flush()
    await db.refresh(rnc)
    await audit(db, user_id=user_id, action="rnc.concluir", resource_type="rnc", resource_id=str(rnc.id))
    logger.info("RNC %s concluded", rnc.numero)
    return rnc


# ── Edit / delete ────────────────────────────────────────────────────────────

async def update_rnc(db: AsyncSession, rnc_id: uuid.UUID, data: RncUpdate, user_id: uuid.UUID) -> Rnc:
    rnc = await _load_rnc(db, rnc_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("rnc_anterior_id"):
        await _validate_rnc_anterior(db, changes["rnc_anterior_id"], rnc.fornecedor_id, rnc.id)
    reincidente = changes.get("reincidente", rnc.reincidente)
    rnc_anterior_id = changes.get("rnc_anterior_id", rnc.rnc_anterior_id)
    if reincidente and not rnc_anterior_id:
        raise ValidationError("RNC reincidente exige a RNC anterior")
    for field, value in changes.items():
        if field == "reincidente" and value is None:
            continue
        setattr(rnc, field, value)
    await db.flush()
    await db.refresh(rnc)
    await audit(
        db, user_id=user_id, action="rnc.update", resource_type="rnc", resource_id=str(rnc.id),
        detail={k: str(v) if v is not None else None for k, v in changes.items()},
    )
    return rnc


async def remove_rnc(db: AsyncSession, rnc_id: uuid.UUID, user_id: uuid.UUID, store: FileStore) -> None:
    rnc = await _load_rnc(db, rnc_id)
    if await find_remediation(db, rnc.id):
        raise Conflict("A RNC possui devolução ou conserto vinculado e não pode ser excluída")
    posterior = await db.scalar(select(Rnc.numero).where(Rnc.rnc_anterior_id == rnc.id).limit(1))
    if posterior:
        raise Conflict(f"A RNC é a anterior da RNC {posterior} e não pode ser excluída")

    historico = (await db.execute(select(RncHistorico).where(RncHistorico.rnc_id == rnc.id))).scalars().all()
    paths = {rnc.pdf_path, rnc.plano_acao_pdf_path, *(h.pdf_path for h in historico)}

    inc = await get_inc(db, rnc.inc_id, for_update=True)
    if inc:
        inc.status = INC_EM_ANALISE
    for item in historico:
        await db.delete(item)
    numero, inc_id = rnc.numero, rnc.inc_id
    await db.delete(rnc)
    await db.flush()
    await audit(
        db, user_id=user_id, action="rnc.delete", resource_type="rnc", resource_id=str(rnc_id),
        detail={"numero": numero},
    )
    await delete_files(store, sorted(p for p in paths if p))
    logger.info("RNC %s deleted; INC %s back to %s", numero, inc_id, INC_EM_ANALISE)


async def aprovar_por_concessao(db: AsyncSession, inc_id: uuid.UUID, user_id: uuid.UUID) -> Inc:
    inc = await get_inc(db, inc_id, for_update=True)
    if not inc:
        raise NotFound("INC não encontrada")
    if inc.status != INC_EM_ANALISE:
        raise InvalidState(f'Apenas INCs com status "{INC_EM_ANALISE}" podem ser aprovadas por concessão')
    inc.status = INC_APROVADO_CONCESSAO
    await db.flush()
    await db.refresh(inc)
    await audit(db, user_id=user_id, action="inc.aprovar_concessao", resource_type="inc", resource_id=str(inc.id))
    logger.info("INC %s approved by concession", inc.id)
    return inc
