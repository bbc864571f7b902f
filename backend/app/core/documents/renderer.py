import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Protocol

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.clock import business_tz
from app.core.files.storage import FileStore
from app.db.base import as_utc
from app.errors import DocumentGenerationError
from app.settings import get_settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


@dataclass(frozen=True)
class RncNotice:
    numero: str
    data: datetime
    status: str
    responsavel: str
    fornecedor_cnpj: str
    fornecedor_razao_social: str
    fornecedor_codigo_logix: str | None
    ar: int
    nfe_numero: str
    um: str
    quantidade_recebida: float
    quantidade_com_defeito: float
    descricao_nao_conformidade: str | None
    reincidente: bool
    rnc_anterior_numero: str | None = None
    rnc_anterior_data: datetime | None = None


class NoticeRenderer(Protocol):
    extension: str

    async def render(self, notice: RncNotice) -> bytes: ...


def render_notice_html(notice: RncNotice, gerado_em: datetime | None = None) -> str:
    tz = business_tz()
    template = _env.get_template("rnc_notice.html")
    return template.render(
        rnc=notice,
        data=as_utc(notice.data).astimezone(tz),
        rnc_anterior_data=as_utc(notice.rnc_anterior_data).astimezone(tz) if notice.rnc_anterior_data else None,
        gerado_em=(gerado_em or datetime.now(tz)).astimezone(tz),
    )


class HtmlNoticeRenderer:
    extension = "html"

    async def render(self, notice: RncNotice) -> bytes:
        return render_notice_html(notice).encode("utf-8")


class PdfNoticeRenderer:
    extension = "pdf"

    def _write_pdf(self, html: str) -> bytes:
        from weasyprint import HTML

        return HTML(string=html, base_url=str(TEMPLATES_DIR)).write_pdf()

    async def render(self, notice: RncNotice) -> bytes:
        html = render_notice_html(notice)
        return await asyncio.to_thread(self._write_pdf, html)


@lru_cache
def get_notice_renderer() -> NoticeRenderer:
    fmt = get_settings().NOTICE_DOCUMENT_FORMAT.lower()
    if fmt == "html":
        return HtmlNoticeRenderer()
    if fmt == "pdf":
        return PdfNoticeRenderer()
    raise ValueError(f"Unknown NOTICE_DOCUMENT_FORMAT: {fmt}")


def notice_filename(numero: str, extension: str, now: datetime) -> str:
    safe = re.sub(r"[:/\\]", "-", numero)
    return f"rnc-{safe}-{int(now.timestamp() * 1000)}.{extension}"


async def generate_notice(
    renderer: NoticeRenderer,
    store: FileStore,
    notice: RncNotice,
    now: datetime,
) -> str:
    """Renders the notice and stores it. Any failure surfaces as DocumentGenerationError."""
    timeout = get_settings().IO_TIMEOUT_SECONDS
    try:
        content = await asyncio.wait_for(renderer.render(notice), timeout=timeout)
        path = await store.save_bytes(content, notice_filename(notice.numero, renderer.extension, now))
    except DocumentGenerationError:
        raise
    except Exception as exc:
        logger.exception("Notice generation failed for %s", notice.numero)
        raise DocumentGenerationError(f"Falha ao gerar documento da {notice.numero}") from exc
    logger.info("Notice for %s stored at %s", notice.numero, path)
    return path
