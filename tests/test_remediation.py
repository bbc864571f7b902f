import uuid
from dataclasses import dataclass
from datetime import timedelta

import pytest

from app.core.conserto import service as conserto_service
from app.core.conserto.models import CONSERTO_COLETADO, CONSERTO_SOLICITADA, FINALIZADO as CONSERTO_FINALIZADO, MATERIAL_RETORNADO, REJEITADO
from app.core.conserto.schemas import ConsertoCreate
from app.core.conserto.service import CONSERTO_WORKFLOW, create_conserto
from app.core.devolucao.models import (
    DEVOLUCAO_COLETADA, DEVOLUCAO_RECEBIDA, DEVOLUCAO_SOLICITADA, FINALIZADO, NFE_EMITIDA,
)
from app.core.devolucao.schemas import DevolucaoCreate
from app.core.devolucao.service import (
    DEVOLUCAO_WORKFLOW, confirmar_coleta, confirmar_compensacao, confirmar_recebimento,
    create_devolucao, emitir_nfe, get_devolucao, list_devolucoes, remove_devolucao,
)
from app.core.remediation.workflow import find_remediation, remediation_open
from app.core.rnc.models import RNC_CONCLUIDA
from app.core.rnc.service import concluir_rnc
from app.errors import Conflict, InvalidState, InvalidStateTransition, MissingRequiredFile, NotFound, ValidationError
from conftest import NOW, accepted_rnc, jpeg, make_user, open_rnc, pdf


@dataclass
class Record:
    status: str
    nfe_numero: str | None = None


def devolucao_data(rnc_id, **overrides) -> DevolucaoCreate:
    fields = dict(
        rnc_id=rnc_id, quantidade_total=12, peso_kg=3.5, motivo="Peças com rebarba",
        transportadora="Translog", frete="CIF", meio_compensacao="Abatimento em fatura",
    )
    fields.update(overrides)
    return DevolucaoCreate(**fields)


def conserto_data(rnc_id, **overrides) -> ConsertoCreate:
    fields = dict(rnc_id=rnc_id, quantidade_total=12, peso_kg=3.5, motivo="Retrabalho da vedação", frete="CIF")
    fields.update(overrides)
    return ConsertoCreate(**fields)


# ── workflow ─────────────────────────────────────────────────────────────────

def test_devolucao_workflow_is_linear():
    assert DEVOLUCAO_WORKFLOW.successors(DEVOLUCAO_SOLICITADA) == (NFE_EMITIDA,)
    assert DEVOLUCAO_WORKFLOW.successors(DEVOLUCAO_RECEBIDA) == (FINALIZADO,)
    assert DEVOLUCAO_WORKFLOW.is_terminal(FINALIZADO)
    assert not DEVOLUCAO_WORKFLOW.is_terminal(NFE_EMITIDA)


def test_conserto_workflow_forks_after_return():
    assert CONSERTO_WORKFLOW.successors(MATERIAL_RETORNADO) == (CONSERTO_FINALIZADO, REJEITADO)
    assert CONSERTO_WORKFLOW.is_terminal(CONSERTO_FINALIZADO)
    assert CONSERTO_WORKFLOW.is_terminal(REJEITADO)


def test_advance_checks_before_writing():
    record = Record(status=DEVOLUCAO_SOLICITADA)
    with pytest.raises(InvalidStateTransition):
        DEVOLUCAO_WORKFLOW.advance(record, NFE_EMITIDA, DEVOLUCAO_COLETADA)
    with pytest.raises(InvalidState):
        DEVOLUCAO_WORKFLOW.advance(record, DEVOLUCAO_SOLICITADA, FINALIZADO)

    record.nfe_numero = "123"
    with pytest.raises(InvalidState):
        DEVOLUCAO_WORKFLOW.advance(record, DEVOLUCAO_SOLICITADA, NFE_EMITIDA, nfe_numero="456")
    assert record.status == DEVOLUCAO_SOLICITADA
    assert record.nfe_numero == "123"


def test_remediation_open():
    assert not remediation_open(None)


# ── exclusivity ──────────────────────────────────────────────────────────────

async def test_remediation_requires_accepted_rnc(db, store):
    user = await make_user(db)
    rnc = await open_rnc(db, user, store)
    with pytest.raises(InvalidState):
        await create_devolucao(db, devolucao_data(rnc.id), user.id)
    with pytest.raises(InvalidState):
        await create_conserto(db, conserto_data(rnc.id), user.id)
    with pytest.raises(NotFound):
        await create_devolucao(db, devolucao_data(uuid.uuid4()), user.id)


async def test_only_one_remediation_per_rnc(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)

    devolucao = await create_devolucao(db, devolucao_data(rnc.id), user.id)
    assert devolucao.status == DEVOLUCAO_SOLICITADA
    assert devolucao.ar_origem == rnc.ar

    with pytest.raises(Conflict):
        await create_devolucao(db, devolucao_data(rnc.id), user.id)
    with pytest.raises(Conflict):
        await create_conserto(db, conserto_data(rnc.id), user.id)


async def test_conserto_blocks_devolucao(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    conserto = await create_conserto(db, conserto_data(rnc.id), user.id)
    assert conserto.status == CONSERTO_SOLICITADA
    with pytest.raises(Conflict):
        await create_devolucao(db, devolucao_data(rnc.id), user.id)


async def test_conclusion_waits_for_remediation(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    devolucao = await create_devolucao(db, devolucao_data(rnc.id), user.id)
    assert remediation_open(await find_remediation(db, rnc.id))

    with pytest.raises(InvalidState):
        await concluir_rnc(db, rnc.id, user.id)

    await emitir_nfe(db, devolucao.id, "NF-900", pdf("nfe.pdf"), user.id, store, now=NOW)
    await confirmar_coleta(db, devolucao.id, user.id, now=NOW)
    await confirmar_recebimento(db, devolucao.id, user.id, now=NOW)
    await confirmar_compensacao(db, devolucao.id, pdf("comprovante.pdf"), user.id, store, now=NOW)

    rnc = await concluir_rnc(db, rnc.id, user.id)
    assert rnc.status == RNC_CONCLUIDA


# ── Devolução ────────────────────────────────────────────────────────────────

async def test_devolucao_full_flow(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    devolucao = await create_devolucao(db, devolucao_data(rnc.id), user.id)

    devolucao = await emitir_nfe(db, devolucao.id, " NF-900 ", pdf("nfe.pdf"), user.id, store, now=NOW)
    assert devolucao.status == NFE_EMITIDA
    assert devolucao.nfe_numero == "NF-900"
    assert devolucao.nfe_emitida_por_id == user.id
    assert await store.exists(devolucao.nfe_pdf_path)

    devolucao = await confirmar_coleta(db, devolucao.id, user.id, now=NOW + timedelta(days=1))
    assert devolucao.status == DEVOLUCAO_COLETADA
    assert devolucao.coleta_confirmada_por_id == user.id

    devolucao = await confirmar_recebimento(db, devolucao.id, user.id, now=NOW + timedelta(days=2))
    assert devolucao.status == DEVOLUCAO_RECEBIDA

    devolucao = await confirmar_compensacao(db, devolucao.id, jpeg("comprovante.jpg"), user.id, store, now=NOW)
    assert devolucao.status == FINALIZADO
    assert devolucao.comprovante_path.endswith(".jpg")
    assert devolucao.compensacao_confirmada_por_id == user.id


async def test_devolucao_steps_cannot_be_skipped(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    devolucao = await create_devolucao(db, devolucao_data(rnc.id), user.id)

    with pytest.raises(InvalidStateTransition):
        await confirmar_coleta(db, devolucao.id, user.id)
    with pytest.raises(InvalidStateTransition):
        await confirmar_compensacao(db, devolucao.id, pdf(), user.id, store)
    with pytest.raises(MissingRequiredFile):
        await emitir_nfe(db, devolucao.id, "NF-1", None, user.id, store)
    with pytest.raises(ValidationError):
        await emitir_nfe(db, devolucao.id, "  ", pdf(), user.id, store)


async def test_emitir_nfe_after_coleta_reports_expected_and_actual(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    devolucao = await create_devolucao(db, devolucao_data(rnc.id), user.id)
    await emitir_nfe(db, devolucao.id, "NF-900", pdf("nfe.pdf"), user.id, store, now=NOW)
    devolucao = await confirmar_coleta(db, devolucao.id, user.id, now=NOW)
    nfe_path = devolucao.nfe_pdf_path

    with pytest.raises(InvalidStateTransition) as exc:
        await emitir_nfe(db, devolucao.id, "NF-901", pdf("outra.pdf"), user.id, store, now=NOW)
    assert exc.value.expected == DEVOLUCAO_SOLICITADA
    assert exc.value.actual == DEVOLUCAO_COLETADA
    assert exc.value.status_code == 400

    devolucao = await get_devolucao(db, devolucao.id)
    assert devolucao.status == DEVOLUCAO_COLETADA
    assert devolucao.nfe_numero == "NF-900"
    assert devolucao.nfe_pdf_path == nfe_path


async def test_conserto_emitir_nfe_after_coleta_reports_expected_and_actual(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    conserto = await create_conserto(db, conserto_data(rnc.id), user.id)
    await conserto_service.emitir_nfe(db, conserto.id, "NF-700", pdf("nfe.pdf"), user.id, store, now=NOW)
    await conserto_service.confirmar_coleta(db, conserto.id, user.id, now=NOW)

    with pytest.raises(InvalidStateTransition) as exc:
        await conserto_service.emitir_nfe(db, conserto.id, "NF-701", pdf(), user.id, store, now=NOW)
    assert exc.value.expected == CONSERTO_SOLICITADA
    assert exc.value.actual == CONSERTO_COLETADO

    with pytest.raises(InvalidStateTransition) as exc:
        await conserto_service.confirmar_coleta(db, conserto.id, user.id)
    assert (exc.value.expected, exc.value.actual) == (NFE_EMITIDA, CONSERTO_COLETADO)


async def test_rejected_step_stores_no_file(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    devolucao = await create_devolucao(db, devolucao_data(rnc.id), user.id)
    before = set(store.root.iterdir())

    with pytest.raises(InvalidStateTransition):
        await confirmar_compensacao(db, devolucao.id, pdf(), user.id, store)
    assert set(store.root.iterdir()) == before


async def test_remove_devolucao_frees_rnc(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    devolucao = await create_devolucao(db, devolucao_data(rnc.id), user.id)
    devolucao = await emitir_nfe(db, devolucao.id, "NF-1", pdf(), user.id, store, now=NOW)
    nfe_path = devolucao.nfe_pdf_path

    await remove_devolucao(db, devolucao.id, user.id, store)
    assert not await store.exists(nfe_path)
    assert await find_remediation(db, rnc.id) is None

    conserto = await create_conserto(db, conserto_data(rnc.id), user.id)
    assert conserto.rnc_id == rnc.id


async def test_list_devolucoes_by_fornecedor(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    devolucao = await create_devolucao(db, devolucao_data(rnc.id), user.id)

    assert [d.id for d in await list_devolucoes(db, fornecedor_id=rnc.fornecedor_id)] == [devolucao.id]
    assert await list_devolucoes(db, fornecedor_id=uuid.uuid4()) == []
    assert await list_devolucoes(db, status=FINALIZADO) == []


def test_devolucao_payload_validation():
    with pytest.raises(ValueError):
        devolucao_data(uuid.uuid4(), quantidade_total=0)
    with pytest.raises(ValueError):
        devolucao_data(uuid.uuid4(), frete="EXW")
