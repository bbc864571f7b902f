import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.core.conserto.models import (
    CONSERTO_COLETADO, CONSERTO_RECEBIDO, FINALIZADO, MATERIAL_RETORNADO, NFE_EMITIDA, REJEITADO,
    ConsertoInspecaoFoto, InspecaoResultado,
)
from app.core.conserto.schemas import ConsertoCreate, ConsertoRead
from app.core.conserto.service import (
    aprovar_inspecao, confirmar_coleta, confirmar_recebimento, confirmar_retorno,
    create_conserto, emitir_nfe, get_foto, list_consertos, rejeitar_inspecao, remove_conserto,
)
from app.db.base import as_utc
from app.errors import InvalidStateTransition, MissingRequiredFile, NotFound, TooManyFiles, ValidationError
from conftest import NOW, accepted_rnc, jpeg, make_user, pdf


async def returned_conserto(db, user, store):
    rnc = await accepted_rnc(db, user, store)
    conserto = await create_conserto(db, ConsertoCreate(
        rnc_id=rnc.id, quantidade_total=12, peso_kg=3.5, motivo="Retrabalho", frete="FOB",
        transportadora="Translog", conserto_em_garantia=True,
    ), user.id)
    await emitir_nfe(db, conserto.id, "NF-700", pdf("nfe.pdf"), user.id, store, now=NOW)
    await confirmar_coleta(db, conserto.id, user.id, now=NOW)
    await confirmar_recebimento(db, conserto.id, user.id, now=NOW)
    return await confirmar_retorno(db, conserto.id, "NF-701", pdf("retorno.pdf"), user.id, store, now=NOW)


def test_blank_transportadora_is_none():
    fob = ConsertoCreate(rnc_id=uuid.uuid4(), quantidade_total=1, peso_kg=1, motivo="x", frete="FOB", transportadora="  ")
    assert fob.transportadora is None
    cif = ConsertoCreate(rnc_id=uuid.uuid4(), quantidade_total=1, peso_kg=1, motivo="x", frete="CIF", transportadora=" ")
    assert cif.transportadora is None


async def test_fob_requires_transportadora(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    for transportadora in (None, "  "):
        with pytest.raises(ValidationError) as exc:
            await create_conserto(db, ConsertoCreate(
                rnc_id=rnc.id, quantidade_total=1, peso_kg=1, motivo="x", frete="FOB", transportadora=transportadora,
            ), user.id)
        assert exc.value.detail["code"] == "validation_error"
    assert await list_consertos(db) == []


async def test_conserto_flow_until_return(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    conserto = await create_conserto(db, ConsertoCreate(
        rnc_id=rnc.id, quantidade_total=12, peso_kg=3.5, motivo="Retrabalho", frete="CIF",
    ), user.id)
    assert conserto.inspecao_resultado == InspecaoResultado.PENDENTE
    assert conserto.inspecao_fotos == []

    conserto = await emitir_nfe(db, conserto.id, "NF-700", pdf(), user.id, store, now=NOW)
    assert conserto.status == NFE_EMITIDA
    conserto = await confirmar_coleta(db, conserto.id, user.id, now=NOW)
    assert conserto.status == CONSERTO_COLETADO

    conserto = await confirmar_recebimento(db, conserto.id, user.id, now=NOW)
    assert conserto.status == CONSERTO_RECEBIDO
    assert as_utc(conserto.prazo_conserto_inicio) == NOW
    assert as_utc(conserto.prazo_conserto_fim) == NOW + timedelta(days=30)

    with pytest.raises(MissingRequiredFile):
        await confirmar_retorno(db, conserto.id, "NF-701", None, user.id, store)
    with pytest.raises(ValidationError):
        await confirmar_retorno(db, conserto.id, "", pdf(), user.id, store)

    conserto = await confirmar_retorno(db, conserto.id, "NF-701", pdf("retorno.pdf"), user.id, store, now=NOW)
    assert conserto.status == MATERIAL_RETORNADO
    assert conserto.nfe_retorno_numero == "NF-701"
    assert await store.exists(conserto.nfe_retorno_pdf_path)

    read = ConsertoRead.model_validate(conserto)
    assert read.dias_restantes_conserto is None
    assert read.inspecao_aprovada is None


async def test_recebimento_requires_coleta(db, store):
    user = await make_user(db)
    rnc = await accepted_rnc(db, user, store)
    conserto = await create_conserto(db, ConsertoCreate(
        rnc_id=rnc.id, quantidade_total=1, peso_kg=1, motivo="x", frete="CIF",
    ), user.id)
    with pytest.raises(InvalidStateTransition):
        await confirmar_recebimento(db, conserto.id, user.id)
    with pytest.raises(InvalidStateTransition):
        await aprovar_inspecao(db, conserto.id, [jpeg()], None, user.id, store)


async def test_aprovar_inspecao_finishes_with_photos(db, store):
    user = await make_user(db)
    conserto = await returned_conserto(db, user, store)

    conserto = await aprovar_inspecao(
        db, conserto.id, [jpeg("a.jpg"), jpeg("b.jpg")], "  ", user.id, store, now=NOW,
    )
    assert conserto.status == FINALIZADO
    assert conserto.inspecao_resultado == InspecaoResultado.APROVADA
    assert conserto.inspecao_descricao is None
    assert conserto.inspecao_realizada_por_id == user.id
    assert sorted(f.filename for f in conserto.inspecao_fotos) == ["a.jpg", "b.jpg"]
    assert ConsertoRead.model_validate(conserto).inspecao_aprovada is True

    foto = await get_foto(db, conserto.id, conserto.inspecao_fotos[0].id)
    assert await store.exists(foto.path)
    with pytest.raises(NotFound):
        await get_foto(db, uuid.uuid4(), foto.id)


async def test_rejeitar_inspecao_requires_description(db, store):
    user = await make_user(db)
    conserto = await returned_conserto(db, user, store)

    with pytest.raises(ValidationError):
        await rejeitar_inspecao(db, conserto.id, [jpeg()], "", user.id, store)

    conserto = await rejeitar_inspecao(db, conserto.id, [jpeg()], "Vazamento persiste", user.id, store, now=NOW)
    assert conserto.status == REJEITADO
    assert conserto.inspecao_resultado == InspecaoResultado.REJEITADA
    assert conserto.inspecao_descricao == "Vazamento persiste"
    assert ConsertoRead.model_validate(conserto).inspecao_aprovada is False

    with pytest.raises(InvalidStateTransition):
        await aprovar_inspecao(db, conserto.id, [jpeg()], None, user.id, store)


async def test_inspection_photo_count(db, store):
    user = await make_user(db)
    conserto = await returned_conserto(db, user, store)

    with pytest.raises(MissingRequiredFile):
        await aprovar_inspecao(db, conserto.id, [], None, user.id, store)
    with pytest.raises(TooManyFiles):
        await aprovar_inspecao(db, conserto.id, [jpeg(f"{i}.jpg") for i in range(11)], None, user.id, store)

    conserto = await aprovar_inspecao(db, conserto.id, [jpeg(f"{i}.jpg") for i in range(10)], None, user.id, store)
    assert len(conserto.inspecao_fotos) == 10


async def test_remove_conserto_deletes_files_and_photo_rows(db, store):
    user = await make_user(db)
    conserto = await returned_conserto(db, user, store)
    conserto = await aprovar_inspecao(db, conserto.id, [jpeg()], None, user.id, store, now=NOW)
    paths = [conserto.nfe_pdf_path, conserto.nfe_retorno_pdf_path, conserto.inspecao_fotos[0].path]

    await remove_conserto(db, conserto.id, user.id, store)
    for path in paths:
        assert not await store.exists(path)
    assert await list_consertos(db) == []
    remaining = await db.scalar(select(func.count()).select_from(ConsertoInspecaoFoto))
    assert remaining == 0
