import uuid
from sqlalchemy import String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, TimestampMixin


class Fornecedor(Base, TimestampMixin):
    """Supplier. Maintained elsewhere; the workflows only read it."""
    __tablename__ = "fornecedores"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    cnpj: Mapped[str] = mapped_column(String(14), nullable=False, unique=True)
    razao_social: Mapped[str] = mapped_column(String(255), nullable=False)
    codigo_logix: Mapped[str | None] = mapped_column(String(50), nullable=True)
