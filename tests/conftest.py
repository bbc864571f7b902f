import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.files.schemas import IncomingFile
from app.core.files.storage import LocalFileStore
from app.core.fornecedores.models import Fornecedor
from app.core.inc.models import Inc, INC_EM_ANALISE
from app.core.rbac.catalog import PERMISSION_CATALOG
from app.core.rbac.models import User
from app.core.rbac.service import grant_permission, sync_permissions
from app.core.rnc.schemas import RncCreate
from app.core.rnc.service import aceitar_plano_acao, create_rnc
from app.db.models import Base
from app.db.session import build_session_factory

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


class FakeRenderer:
    extension = "html"

    def __init__(self):
        self.rendered = []

    async def render(self, notice) -> bytes:
        self.rendered.append(notice)
        return f"<h1>{notice.numero}</h1>".encode()


class FailingRenderer:
    extension = "pdf"

    async def render(self, notice) -> bytes:
        raise RuntimeError("renderer down")


def pdf(name: str = "documento.pdf") -> IncomingFile:
    return IncomingFile(filename=name, content_type="application/pdf", content=b"%PDF-1.4 test")


def jpeg(name: str = "foto.jpg") -> IncomingFile:
    return IncomingFile(filename=name, content_type="image/jpeg", content=b"\xff\xd8\xff\xe0test")


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite/aiosqlite handle BEGIN themselves and break SAVEPOINT; take over.
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        await sync_permissions(session, PERMISSION_CATALOG)
        yield session


@pytest.fixture
def store(tmp_path):
    return LocalFileStore(tmp_path / "uploads", timeout=5)


@pytest.fixture
def renderer():
    return FakeRenderer()


async def make_user(db, email: str | None = None, permissions=(), status: str = "active") -> User:
    user = User(
        email=email or f"{uuid.uuid4().hex[:8]}@qualidade.local",
        nome="Usuário Teste",
        status=status,
    )
    db.add(user)
    await db.flush()
    for code in permissions:
        await grant_permission(db, user.id, code)
    return user


async def make_fornecedor(db, cnpj: str = "12345678000190", razao_social: str = "Metalúrgica Exemplo Ltda") -> Fornecedor:
    fornecedor = Fornecedor(cnpj=cnpj, razao_social=razao_social, codigo_logix="F001")
    db.add(fornecedor)
    await db.flush()
    return fornecedor


async def make_inc(db, fornecedor: Fornecedor, user: User | None = None, ar: int = 1001) -> Inc:
    inc = Inc(
        fornecedor_id=fornecedor.id,
        ar=ar,
        nfe_numero="NF-5521",
        um="PC",
        quantidade_recebida=100,
        quantidade_com_defeito=12,
        descricao="Rebarbas na face de vedação",
        status=INC_EM_ANALISE,
        criado_por_id=user.id if user else None,
    )
    db.add(inc)
    await db.flush()
    return inc


async def open_rnc(db, user, store, renderer=None, fornecedor=None, now=NOW, **fields):
    fornecedor = fornecedor or await make_fornecedor(db)
    inc = await make_inc(db, fornecedor, user)
    data = RncCreate(inc_id=inc.id, descricao_nao_conformidade="Peças fora de tolerância", **fields)
    return await create_rnc(db, data, user.id, renderer or FakeRenderer(), store, now=now)


async def accepted_rnc(db, user, store, **kwargs):
    rnc = await open_rnc(db, user, store, **kwargs)
    return await aceitar_plano_acao(db, rnc.id, pdf("plano.pdf"), user.id, store, now=NOW)
