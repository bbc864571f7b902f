import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.core.audit.service import list_audit
from app.core.inc.models import INC_APROVADO_CONCESSAO, INC_EM_ANALISE, INC_RNC_ENVIADA
from app.core.inc.service import get_inc
from app.core.rnc.models import (
    HISTORICO_ACEITE, HISTORICO_RECUSA,
    RncSequence,
    RNC_ACEITA, RNC_AGUARDANDO_RESPOSTA, RNC_CONCLUIDA, RNC_EM_ANALISE, RNC_ENVIADA,
)
from app.core.rnc.schemas import RncCreate, RncUpdate
from app.core.rnc.service import (
    RNC_MANUAL_TRANSITIONS,
    aceitar_plano_acao, allocate_sequencial, alterar_status, aprovar_por_concessao,
    concluir_rnc, create_rnc, format_numero, get_rnc, list_historico, list_rncs,
    ensure_sequence_row, next_sequencial, recusar_plano_acao, remove_rnc, update_rnc,
)
from app.db.base import as_utc
from app.errors import (
    Conflict, DocumentGenerationError, InvalidReference, InvalidState,
    InvalidStateTransition, MissingRequiredFile, NotFound, ValidationError,
)
from conftest import NOW, FailingRenderer, accepted_rnc, make_fornecedor, make_inc, make_user, open_rnc, pdf


def test_next_sequencial():
    assert next_sequencial([]) == 1
    assert next_sequencial([1, 2, 3]) == 4
    assert next_sequencial([1, 5, 2]) == 6


def test_numero_format():
    assert format_numero(1, 2026) == "RNC:001/2026"
    assert format_numero(42, 2026) == "RNC:042/2026"
    assert format_numero(1234, 2026) == "RNC:1234/2026"


def test_manual_transitions():
    assert RNC_MANUAL_TRANSITIONS[RNC_ENVIADA] == [RNC_AGUARDANDO_RESPOSTA]
    assert RNC_MANUAL_TRANSITIONS[RNC_AGUARDANDO_RESPOSTA] == [RNC_ENVIADA, RNC_EM_ANALISE]
    assert RNC_MANUAL_TRANSITIONS[RNC_EM_ANALISE] == [RNC_AGUARDANDO_RESPOSTA]
    assert RNC_ACEITA not in RNC_MANUAL_TRANSITIONS
    assert RNC_CONCLUIDA not in RNC_MANUAL_TRANSITIONS


# ── creation ─────────────────────────────────────────────────────────────────

async def test_create_rnc_snapshots_inc_and_renders_notice(db, store, renderer):
    user = await make_user(db)
    rnc = await open_rnc(db, user, store, renderer=renderer)

    assert rnc.numero == "RNC:001/2026"
    assert rnc.sequencial == 1 and rnc.ano == 2026
    assert rnc.status == RNC_ENVIADA
    assert rnc.ar == 1001 and rnc.nfe_numero == "NF-5521" and rnc.um == "PC"
    assert rnc.quantidade_recebida == 100 and rnc.quantidade_com_defeito == 12
    assert rnc.pdf_path.startswith("rnc-RNC-001-2026-") and rnc.pdf_path.endswith(".html")
    assert await store.exists(rnc.pdf_path)

    notice = renderer.rendered[0]
    assert notice.numero == rnc.numero
    assert notice.fornecedor_cnpj == "12.345.678/0001-90"

    inc = await get_inc(db, rnc.inc_id)
    assert inc.status == INC_RNC_ENVIADA

    entries = await list_audit(db, "rnc", str(rnc.id))
    assert [e.action for e in entries] == ["rnc.create"]


async def test_sequence_is_per_supplier_and_year(db, store):
    user = await make_user(db)
    acme = await make_fornecedor(db, cnpj="11111111000111")
    other = await make_fornecedor(db, cnpj="22222222000122")

    first = await open_rnc(db, user, store, fornecedor=acme)
    second = await open_rnc(db, user, store, fornecedor=acme)
    other_first = await open_rnc(db, user, store, fornecedor=other)
    next_year = await open_rnc(db, user, store, fornecedor=acme, now=datetime(2027, 2, 1, 12, tzinfo=timezone.utc))

    assert [first.numero, second.numero] == ["RNC:001/2026", "RNC:002/2026"]
    assert other_first.numero == "RNC:001/2026"
    assert next_year.numero == "RNC:001/2027"


async def test_year_follows_business_timezone(db, store):
    user = await make_user(db)
    # 02:00 UTC on Jan 1st is still Dec 31st in São Paulo.
    rnc = await open_rnc(db, user, store, now=datetime(2027, 1, 1, 2, tzinfo=timezone.utc))
    assert rnc.ano == 2026
    assert rnc.numero == "RNC:001/2026"


async def test_allocate_sequencial_continues_after_existing(db, store):
    user = await make_user(db)
    fornecedor = await make_fornecedor(db)
    await open_rnc(db, user, store, fornecedor=fornecedor)
    await open_rnc(db, user, store, fornecedor=fornecedor)
    assert await allocate_sequencial(db, fornecedor.id, 2026) == 3
    assert await allocate_sequencial(db, fornecedor.id, 2030) == 1


async def test_sequence_row_insert_tolerates_an_existing_row(db):
    fornecedor = await make_fornecedor(db)
    await ensure_sequence_row(db, fornecedor.id, 2026)
    # A concurrent first allocation already inserted the row.
    await ensure_sequence_row(db, fornecedor.id, 2026)

    rows = (await db.execute(
        select(RncSequence).where(RncSequence.fornecedor_id == fornecedor.id, RncSequence.ano == 2026)
    )).scalars().all()
    assert len(rows) == 1
    assert await allocate_sequencial(db, fornecedor.id, 2026) == 1


async def test_create_rnc_requires_inc_under_analysis(db, store, renderer):
    user = await make_user(db)
    rnc = await open_rnc(db, user, store)

    with pytest.raises(InvalidState):
        await create_rnc(db, RncCreate(inc_id=rnc.inc_id), user.id, renderer, store, now=NOW)


async def test_create_rnc_unknown_inc(db, store, renderer):
    user = await make_user(db)
    with pytest.raises(NotFound):
        await create_rnc(db, RncCreate(inc_id=uuid.uuid4()), user.id, renderer, store, now=NOW)


async def test_reincidente_requires_previous_rnc(db, store):
    user = await make_user(db)
    with pytest.raises(ValidationError):
        await open_rnc(db, user, store, reincidente=True)


async def test_reincidente_links_previous_rnc_of_same_supplier(db, store, renderer):
    user = await make_user(db)
    fornecedor = await make_fornecedor(db)
    anterior = await open_rnc(db, user, store, fornecedor=fornecedor)

    rnc = await open_rnc(
        db, user, store, renderer=renderer, fornecedor=fornecedor,
        reincidente=True, rnc_anterior_id=anterior.id,
    )
    assert rnc.reincidente and rnc.rnc_anterior_id == anterior.id
    assert renderer.rendered[-1].rnc_anterior_numero == anterior.numero


async def test_previous_rnc_must_belong_to_same_supplier(db, store):
    user = await make_user(db)
    anterior = await open_rnc(db, user, store, fornecedor=await make_fornecedor(db, cnpj="11111111000111"))
    other = await make_fornecedor(db, cnpj="22222222000122")
    with pytest.raises(InvalidReference):
        await open_rnc(db, user, store, fornecedor=other, reincidente=True, rnc_anterior_id=anterior.id)


async def test_render_failure_raises_document_error(db, store):
    user = await make_user(db)
    with pytest.raises(DocumentGenerationError):
        await open_rnc(db, user, store, renderer=FailingRenderer())


# ── action plan ──────────────────────────────────────────────────────────────

async def test_aceitar_plano_acao(db, store):
    user = await make_user(db)
    rnc = await open_rnc(db, user, store)
    later = NOW + timedelta(days=3)

    rnc = await aceitar_plano_acao(db, rnc.id, pdf("plano.pdf"), user.id, store, now=later)
    assert rnc.status == RNC_ACEITA
    assert rnc.plano_acao_pdf_path.startswith("plano-acao-")
    assert await store.exists(rnc.plano_acao_pdf_path)

    historico = await list_historico(db, rnc.id)
    assert len(historico) == 1
    assert historico[0].tipo == HISTORICO_ACEITE
    assert historico[0].pdf_path == rnc.plano_acao_pdf_path


async def test_aceitar_requires_pdf_and_enviada_status(db, store):
    user = await make_user(db)
    rnc = await open_rnc(db, user, store)
    with pytest.raises(MissingRequiredFile):
        await aceitar_plano_acao(db, rnc.id, None, user.id, store)

    await aceitar_plano_acao(db, rnc.id, pdf(), user.id, store, now=NOW)
    with pytest.raises(InvalidStateTransition) as exc:
        await aceitar_plano_acao(db, rnc.id, pdf(), user.id, store, now=NOW)
    assert exc.value.expected == RNC_ENVIADA
    assert exc.value.actual == RNC_ACEITA


async def test_recusar_restarts_deadline_and_keeps_status(db, store):
    user = await make_user(db)
    rnc = await open_rnc(db, user, store)
    later = NOW + timedelta(days=5)

    rnc = await recusar_plano_acao(db, rnc.id, pdf(), "  Plano incompleto  ", user.id, store, now=later)
    assert rnc.status == RNC_ENVIADA
    assert as_utc(rnc.prazo_inicio) == later

    historico = await list_historico(db, rnc.id)
    assert historico[0].tipo == HISTORICO_RECUSA
    assert historico[0].justificativa == "Plano incompleto"
    assert as_utc(historico[0].prazo_fim) == later + timedelta(days=7)


async def test_recusar_requires_justificativa(db, store):
    user = await make_user(db)
    rnc = await open_rnc(db, user, store)
    with pytest.raises(ValidationError):
        await recusar_plano_acao(db, rnc.id, pdf(), "   ", user.id, store)


async def test_historico_of_unknown_rnc(db):
    with pytest.raises(NotFound):
        await list_historico(db, uuid.uuid4())


# ── status, conclusion, edit, delete ─────────────────────────────────────────

async def test_alterar_status_follows_manual_transitions(db, store):
    user = await make_user(db)
    rnc = await open_rnc(db, user, store)

    rnc = await alterar_status(db, rnc.id, RNC_AGUARDANDO_RESPOSTA, user.id)
    rnc = await alterar_status(db, rnc.id, RNC_EM_ANALISE, user.id)
    assert rnc.status == RNC_EM_ANALISE

    with pytest.raises(InvalidState):
        await alterar_status(db, rnc.id, RNC_ACEITA, user.id)
    with pytest.raises(InvalidState):
        await alterar_status(db, rnc.id, "Qualquer", user.id)


async def test_concluir_requires_aceita(db, store):
    user = await make_user(db)
    rnc = await open_rnc(db, user, store)
    with pytest.raises(InvalidStateTransition):
        await concluir_rnc(db, rnc.id, user.id)

    await aceitar_plano_acao(db, rnc.id, pdf(), user.id, store, now=NOW)
    rnc = await concluir_rnc(db, rnc.id, user.id)
    assert rnc.status == RNC_CONCLUIDA


async def test_update_rnc_descriptive_fields(db, store):
    user = await make_user(db)
    fornecedor = await make_fornecedor(db)
    anterior = await open_rnc(db, user, store, fornecedor=fornecedor)
    rnc = await open_rnc(db, user, store, fornecedor=fornecedor)

    rnc = await update_rnc(
        db, rnc.id,
        RncUpdate(descricao_nao_conformidade="Nova descrição", reincidente=True, rnc_anterior_id=anterior.id),
        user.id,
    )
    assert rnc.descricao_nao_conformidade == "Nova descrição"
    assert rnc.reincidente and rnc.rnc_anterior_id == anterior.id

    with pytest.raises(InvalidReference):
        await update_rnc(db, rnc.id, RncUpdate(rnc_anterior_id=rnc.id), user.id)
    with pytest.raises(ValidationError):
        await update_rnc(db, rnc.id, RncUpdate(rnc_anterior_id=None), user.id)


async def test_remove_rnc_reopens_inc_and_deletes_files(db, store):
    user = await make_user(db)
    rnc = await open_rnc(db, user, store)
    await recusar_plano_acao(db, rnc.id, pdf(), "Sem evidências", user.id, store, now=NOW)
    historico = await list_historico(db, rnc.id)
    paths = [rnc.pdf_path, historico[0].pdf_path]
    rnc_id, inc_id = rnc.id, rnc.inc_id

    await remove_rnc(db, rnc_id, user.id, store)

    assert await get_rnc(db, rnc_id) is None
    assert (await get_inc(db, inc_id)).status == INC_EM_ANALISE
    for path in paths:
        assert not await store.exists(path)


async def test_remove_rnc_with_remediation_conflicts(db, store):
    from app.core.devolucao.schemas import DevolucaoCreate
    from app.core.devolucao.service import create_devolucao

    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    await create_devolucao(db, DevolucaoCreate(
        rnc_id=rnc.id, quantidade_total=12, peso_kg=3.5, motivo="Defeito",
        transportadora="Translog", frete="CIF", meio_compensacao="Abatimento",
    ), user.id)

    with pytest.raises(Conflict):
        await remove_rnc(db, rnc.id, user.id, store)


async def test_remove_rnc_referenced_as_previous_conflicts(db, store):
    user = await make_user(db)
    fornecedor = await make_fornecedor(db)
    anterior = await open_rnc(db, user, store, fornecedor=fornecedor)
    posterior = await open_rnc(db, user, store, fornecedor=fornecedor, reincidente=True, rnc_anterior_id=anterior.id)

    with pytest.raises(Conflict):
        await remove_rnc(db, anterior.id, user.id, store)
    assert (await get_rnc(db, posterior.id)).rnc_anterior_id == anterior.id

    await remove_rnc(db, posterior.id, user.id, store)
    await remove_rnc(db, anterior.id, user.id, store)
    assert await get_rnc(db, anterior.id) is None


async def test_aprovar_por_concessao(db, store):
    user = await make_user(db)
    fornecedor = await make_fornecedor(db)
    inc = await make_inc(db, fornecedor, user)

    inc = await aprovar_por_concessao(db, inc.id, user.id)
    assert inc.status == INC_APROVADO_CONCESSAO

    with pytest.raises(InvalidState):
        await aprovar_por_concessao(db, inc.id, user.id)


async def test_list_rncs_filters(db, store):
    user = await make_user(db)
    fornecedor = await make_fornecedor(db, cnpj="11111111000111")
    other = await make_fornecedor(db, cnpj="22222222000122")
    a = await open_rnc(db, user, store, fornecedor=fornecedor)
    b = await accepted_rnc(db, user, store, fornecedor=other)

    assert {r.id for r in await list_rncs(db)} == {a.id, b.id}
    assert [r.id for r in await list_rncs(db, status=RNC_ACEITA)] == [b.id]
    assert [r.id for r in await list_rncs(db, fornecedor_id=fornecedor.id)] == [a.id]
    assert await list_rncs(db, ano=2025) == []
