import uuid
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.devolucao import service
from app.core.devolucao.schemas import DevolucaoCreate, DevolucaoRead
from app.core.files.schemas import PDF_OR_IMAGE_TYPES, PDF_TYPES
from app.core.files.service import download_response, read_upload
from app.core.files.storage import FileStore, get_file_store
from app.core.rnc.schemas import MessageResponse
from app.dependencies import CurrentUser, get_db, require_permissions
from app.settings import get_settings

router = APIRouter(prefix="/devolucao", tags=["devolucao"])


async def _get_or_404(db: AsyncSession, devolucao_id: uuid.UUID):
    devolucao = await service.get_devolucao(db, devolucao_id)
    if not devolucao:
        raise HTTPException(404, "Devolução não encontrada")
    return devolucao


@router.post("", response_model=DevolucaoRead, status_code=201)
async def create_devolucao(
    data: DevolucaoCreate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("devolucao.create")),
):
    return await service.create_devolucao(db, data, current.user_id)


@router.get("", response_model=list[DevolucaoRead])
async def list_devolucoes(
    status: str | None = None,
    rnc_id: uuid.UUID | None = None,
    fornecedor_id: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("devolucao.read")),
):
    return await service.list_devolucoes(db, status=status, rnc_id=rnc_id, fornecedor_id=fornecedor_id)


@router.get("/{devolucao_id}", response_model=DevolucaoRead)
async def get_devolucao(
    devolucao_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("devolucao.read")),
):
    return await _get_or_404(db, devolucao_id)


@router.delete("/{devolucao_id}", response_model=MessageResponse)
async def delete_devolucao(
    devolucao_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("devolucao.delete")),
    store: FileStore = Depends(get_file_store),
):
    await service.remove_devolucao(db, devolucao_id, current.user_id, store)
    return MessageResponse(message="Devolução deletada com sucesso")


@router.post("/{devolucao_id}/emitir-nfe", response_model=DevolucaoRead)
async def emitir_nfe(
    devolucao_id: uuid.UUID,
    nfe_numero: str = Form(""),
    nfe_pdf: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("devolucao.emitir_nfe")),
    store: FileStore = Depends(get_file_store),
):
    arquivo = await read_upload(nfe_pdf, PDF_TYPES, get_settings().MAX_FILE_SIZE)
    return await service.emitir_nfe(db, devolucao_id, nfe_numero, arquivo, current.user_id, store)


@router.post("/{devolucao_id}/confirmar-coleta", response_model=DevolucaoRead)
async def confirmar_coleta(
    devolucao_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("devolucao.confirmar_coleta")),
):
    return await service.confirmar_coleta(db, devolucao_id, current.user_id)


@router.post("/{devolucao_id}/confirmar-recebimento", response_model=DevolucaoRead)
async def confirmar_recebimento(
    devolucao_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("devolucao.confirmar_recebimento")),
):
    return await service.confirmar_recebimento(db, devolucao_id, current.user_id)


@router.post("/{devolucao_id}/confirmar-compensacao", response_model=DevolucaoRead)
async def confirmar_compensacao(
    devolucao_id: uuid.UUID,
    comprovante: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("devolucao.confirmar_compensacao")),
    store: FileStore = Depends(get_file_store),
):
    arquivo = await read_upload(comprovante, PDF_OR_IMAGE_TYPES, get_settings().MAX_FILE_SIZE)
    return await service.confirmar_compensacao(db, devolucao_id, arquivo, current.user_id, store)


@router.get("/{devolucao_id}/nfe-pdf")
async def download_nfe_pdf(
    devolucao_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("devolucao.read")),
    store: FileStore = Depends(get_file_store),
):
    devolucao = await _get_or_404(db, devolucao_id)
    return await download_response(store, devolucao.nfe_pdf_path, "PDF da NF-e não encontrado")


@router.get("/{devolucao_id}/comprovante")
async def download_comprovante(
    devolucao_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("devolucao.read")),
    store: FileStore = Depends(get_file_store),
):
    devolucao = await _get_or_404(db, devolucao_id)
    return await download_response(store, devolucao.comprovante_path, "Comprovante não encontrado")
