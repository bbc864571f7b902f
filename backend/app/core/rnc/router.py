import uuid
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.documents.renderer import NoticeRenderer, get_notice_renderer
from app.core.files.schemas import PDF_TYPES
from app.core.files.service import download_response, read_upload
from app.core.files.storage import FileStore, get_file_store
from app.core.inc.schemas import IncRead
from app.core.rnc import service
from app.core.rnc.schemas import (
    AprovarPorConcessao, MessageResponse, RncCreate, RncHistoricoRead,
    RncRead, RncStatusUpdate, RncSummary, RncUpdate,
)
from app.dependencies import CurrentUser, get_db, require_permissions
from app.settings import get_settings

router = APIRouter(prefix="/rnc", tags=["rnc"])


@router.post("", response_model=RncRead, status_code=201)
async def create_rnc(
    data: RncCreate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("rnc.create")),
    renderer: NoticeRenderer = Depends(get_notice_renderer),
    store: FileStore = Depends(get_file_store),
):
    return await service.create_rnc(db, data, current.user_id, renderer, store)


@router.get("", response_model=list[RncRead])
async def list_rncs(
    status: str | None = None,
    fornecedor_id: uuid.UUID | None = None,
    ano: int | None = None,
    reincidente: bool | None = None,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("rnc.read")),
):
    return await service.list_rncs(db, status=status, fornecedor_id=fornecedor_id, ano=ano, reincidente=reincidente)


@router.post("/aprovar-concessao", response_model=IncRead)
async def aprovar_por_concessao(
    data: AprovarPorConcessao,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("rnc.approve")),
):
    return await service.aprovar_por_concessao(db, data.inc_id, current.user_id)


@router.get("/fornecedor/{fornecedor_id}/anteriores", response_model=list[RncSummary])
async def list_rncs_by_fornecedor(
    fornecedor_id: uuid.UUID,
    ano: int | None = None,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("rnc.read")),
):
    return await service.list_rncs_by_fornecedor(db, fornecedor_id, ano)


@router.get("/historico/{historico_id}/pdf")
async def download_historico_pdf(
    historico_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("rnc.read")),
    store: FileStore = Depends(get_file_store),
):
    item = await service.get_historico_item(db, historico_id)
    return await download_response(store, item.pdf_path, "PDF do histórico não encontrado")


@router.get("/{rnc_id}", response_model=RncRead)
async def get_rnc(
    rnc_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("rnc.read")),
):
    rnc = await service.get_rnc(db, rnc_id)
    if not rnc:
        raise HTTPException(404, "RNC não encontrada")
    return rnc


@router.patch("/{rnc_id}", response_model=RncRead)
async def update_rnc(
    rnc_id: uuid.UUID,
    data: RncUpdate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("rnc.update")),
):
    return await service.update_rnc(db, rnc_id, data, current.user_id)


@router.delete("/{rnc_id}", response_model=MessageResponse)
async def delete_rnc(
    rnc_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("rnc.delete")),
    store: FileStore = Depends(get_file_store),
):
    await service.remove_rnc(db, rnc_id, current.user_id, store)
    return MessageResponse(message="RNC deletada com sucesso")


@router.post("/{rnc_id}/aceitar", response_model=RncRead)
async def aceitar_plano_acao(
    rnc_id: uuid.UUID,
    plano_acao: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("rnc.update")),
    store: FileStore = Depends(get_file_store),
):
    plano = await read_upload(plano_acao, PDF_TYPES, get_settings().MAX_FILE_SIZE)
    return await service.aceitar_plano_acao(db, rnc_id, plano, current.user_id, store)


@router.post("/{rnc_id}/recusar", response_model=RncRead)
async def recusar_plano_acao(
    rnc_id: uuid.UUID,
    justificativa: str = Form(""),
    plano_acao: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("rnc.update")),
    store: FileStore = Depends(get_file_store),
):
    plano = await read_upload(plano_acao, PDF_TYPES, get_settings().MAX_FILE_SIZE)
    return await service.recusar_plano_acao(db, rnc_id, plano, justificativa, current.user_id, store)


@router.post("/{rnc_id}/status", response_model=RncRead)
async def alterar_status(
    rnc_id: uuid.UUID,
    data: RncStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("rnc.update")),
):
    return await service.alterar_status(db, rnc_id, data.status, current.user_id)


@router.post("/{rnc_id}/concluir", response_model=RncRead)
async def concluir_rnc(
    rnc_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("rnc.approve")),
):
    return await service.concluir_rnc(db, rnc_id, current.user_id)


@router.get("/{rnc_id}/historico", response_model=list[RncHistoricoRead])
async def list_historico(
    rnc_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("rnc.read")),
):
    return await service.list_historico(db, rnc_id)


@router.get("/{rnc_id}/pdf")
async def download_rnc_pdf(
    rnc_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("rnc.read")),
    store: FileStore = Depends(get_file_store),
):
    rnc = await service.get_rnc(db, rnc_id)
    if not rnc:
        raise HTTPException(404, "RNC não encontrada")
    return await download_response(store, rnc.pdf_path, "Documento da RNC não encontrado")


@router.get("/{rnc_id}/plano-acao-pdf")
async def download_plano_acao_pdf(
    rnc_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("rnc.read")),
    store: FileStore = Depends(get_file_store),
):
    rnc = await service.get_rnc(db, rnc_id)
    if not rnc:
        raise HTTPException(404, "RNC não encontrada")
    return await download_response(store, rnc.plano_acao_pdf_path, "Plano de ação não encontrado")
