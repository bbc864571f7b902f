import uuid
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.conserto import service
from app.core.conserto.schemas import ConsertoCreate, ConsertoRead
from app.core.files.schemas import IMAGE_TYPES, PDF_TYPES
from app.core.files.service import download_response, read_upload, read_uploads
from app.core.files.storage import FileStore, get_file_store
from app.core.rnc.schemas import MessageResponse
from app.dependencies import CurrentUser, get_db, require_permissions
from app.settings import get_settings

router = APIRouter(prefix="/conserto", tags=["conserto"])


async def _get_or_404(db: AsyncSession, conserto_id: uuid.UUID):
    conserto = await service.get_conserto(db, conserto_id)
    if not conserto:
        raise HTTPException(404, "Conserto não encontrado")
    return conserto


@router.post("", response_model=ConsertoRead, status_code=201)
async def create_conserto(
    data: ConsertoCreate,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("conserto.create")),
):
    return await service.create_conserto(db, data, current.user_id)


@router.get("", response_model=list[ConsertoRead])
async def list_consertos(
    status: str | None = None,
    rnc_id: uuid.UUID | None = None,
    fornecedor_id: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("conserto.read")),
):
    return await service.list_consertos(db, status=status, rnc_id=rnc_id, fornecedor_id=fornecedor_id)


@router.get("/{conserto_id}", response_model=ConsertoRead)
async def get_conserto(
    conserto_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("conserto.read")),
):
    return await _get_or_404(db, conserto_id)


@router.delete("/{conserto_id}", response_model=MessageResponse)
async def delete_conserto(
    conserto_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("conserto.delete")),
    store: FileStore = Depends(get_file_store),
):
    await service.remove_conserto(db, conserto_id, current.user_id, store)
    return MessageResponse(message="Conserto deletado com sucesso")


@router.post("/{conserto_id}/emitir-nfe", response_model=ConsertoRead)
async def emitir_nfe(
    conserto_id: uuid.UUID,
    nfe_numero: str = Form(""),
    nfe_pdf: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("conserto.emitir_nfe")),
    store: FileStore = Depends(get_file_store),
):
    arquivo = await read_upload(nfe_pdf, PDF_TYPES, get_settings().MAX_FILE_SIZE)
    return await service.emitir_nfe(db, conserto_id, nfe_numero, arquivo, current.user_id, store)


@router.post("/{conserto_id}/confirmar-coleta", response_model=ConsertoRead)
async def confirmar_coleta(
    conserto_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("conserto.confirmar_coleta")),
):
    return await service.confirmar_coleta(db, conserto_id, current.user_id)


@router.post("/{conserto_id}/confirmar-recebimento", response_model=ConsertoRead)
async def confirmar_recebimento(
    conserto_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("conserto.confirmar_recebimento")),
):
    return await service.confirmar_recebimento(db, conserto_id, current.user_id)


@router.post("/{conserto_id}/confirmar-retorno", response_model=ConsertoRead)
async def confirmar_retorno(
    conserto_id: uuid.UUID,
    nfe_retorno_numero: str = Form(""),
    nfe_retorno_pdf: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("conserto.confirmar_retorno")),
    store: FileStore = Depends(get_file_store),
):
    arquivo = await read_upload(nfe_retorno_pdf, PDF_TYPES, get_settings().MAX_FILE_SIZE)
    return await service.confirmar_retorno(db, conserto_id, nfe_retorno_numero, arquivo, current.user_id, store)


@router.post("/{conserto_id}/aprovar-inspecao", response_model=ConsertoRead)
async def aprovar_inspecao(
    conserto_id: uuid.UUID,
    inspecao_descricao: str | None = Form(None),
    fotos: list[UploadFile] | None = File(None),
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("conserto.aprovar_inspecao")),
    store: FileStore = Depends(get_file_store),
):
    arquivos = await read_uploads(fotos, IMAGE_TYPES, get_settings().MAX_FILE_SIZE)
    return await service.aprovar_inspecao(db, conserto_id, arquivos, inspecao_descricao, current.user_id, store)


@router.post("/{conserto_id}/rejeitar-inspecao", response_model=ConsertoRead)
async def rejeitar_inspecao(
    conserto_id: uuid.UUID,
    inspecao_descricao: str = Form(""),
    fotos: list[UploadFile] | None = File(None),
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("conserto.rejeitar_inspecao")),
    store: FileStore = Depends(get_file_store),
):
    arquivos = await read_uploads(fotos, IMAGE_TYPES, get_settings().MAX_FILE_SIZE)
    return await service.rejeitar_inspecao(db, conserto_id, arquivos, inspecao_descricao, current.user_id, store)


@router.get("/{conserto_id}/nfe-pdf")
async def download_nfe_pdf(
    conserto_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("conserto.read")),
    store: FileStore = Depends(get_file_store),
):
    conserto = await _get_or_404(db, conserto_id)
    return await download_response(store, conserto.nfe_pdf_path, "PDF da NF-e não encontrado")


@router.get("/{conserto_id}/nfe-retorno-pdf")
async def download_nfe_retorno_pdf(
    conserto_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("conserto.read")),
    store: FileStore = Depends(get_file_store),
):
    conserto = await _get_or_404(db, conserto_id)
    return await download_response(store, conserto.nfe_retorno_pdf_path, "PDF da NF-e de retorno não encontrado")


@router.get("/{conserto_id}/inspecao-fotos/{foto_id}")
async def download_inspecao_foto(
    conserto_id: uuid.UUID,
    foto_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("conserto.read")),
    store: FileStore = Depends(get_file_store),
):
    foto = await service.get_foto(db, conserto_id, foto_id)
    return await download_response(store, foto.path, "Foto não encontrada")
