import mimetypes
from pathlib import Path
from typing import Iterable, Sequence

from fastapi import UploadFile
from fastapi.responses import FileResponse

from app.core.files.schemas import IncomingFile
from app.core.files.storage import FileStore
from app.errors import FileTooLarge, MissingRequiredFile, NotFound, TooManyFiles, UnsupportedFileType


def check_upload(file: IncomingFile, allowed_types: Iterable[str], max_size: int) -> IncomingFile:
    allowed = set(allowed_types)
    if file.content_type not in allowed:
        raise UnsupportedFileType(
            f"Tipo de arquivo não permitido: {file.content_type}",
            allowed=sorted(allowed),
        )
    if file.size > max_size:
        raise FileTooLarge(f"Arquivo excede o tamanho máximo de {max_size} bytes", max_size=max_size)
    return file


def check_file_count(files: Sequence[IncomingFile], minimum: int = 1, maximum: int = 10) -> None:
    if len(files) < minimum:
        raise MissingRequiredFile("Pelo menos uma foto é obrigatória")
    if len(files) > maximum:
        raise TooManyFiles(f"Máximo de {maximum} fotos permitidas", maximum=maximum)


async def read_upload(
    upload: UploadFile | None,
    allowed_types: Iterable[str],
    max_size: int,
) -> IncomingFile | None:
    """Turns a multipart upload into an IncomingFile; None when nothing was sent."""
    if upload is None or not upload.filename:
        return None
    content = await upload.read(max_size + 1)
    incoming = IncomingFile(
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
        content=content,
    )
    return check_upload(incoming, allowed_types, max_size)


async def read_uploads(
    uploads: list[UploadFile] | None,
    allowed_types: Iterable[str],
    max_size: int,
) -> list[IncomingFile]:
    files: list[IncomingFile] = []
    for upload in uploads or []:
        incoming = await read_upload(upload, allowed_types, max_size)
        if incoming is not None:
            files.append(incoming)
    return files


async def delete_files(store: FileStore, paths: Iterable[str | None]) -> None:
    for path in paths:
        if path:
            await store.delete(path)


async def resolve_download(store: FileStore, path: str | None, missing_message: str) -> Path:
    if not path:
        raise NotFound(missing_message)
    if not await store.exists(path):
        raise NotFound("Arquivo não encontrado no servidor")
    return store.resolve(path)


async def download_response(store: FileStore, path: str | None, missing_message: str) -> FileResponse:
    target = await resolve_download(store, path, missing_message)
    media_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
    return FileResponse(target, media_type=media_type, filename=target.name)
