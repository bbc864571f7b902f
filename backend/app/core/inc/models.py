import uuid
from sqlalchemy import Integer, Numeric, String, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, TimestampMixin

INC_EM_ANALISE = "Em análise"
INC_APROVADO = "Aprovado"
INC_REJEITADO = "Rejeitado"
INC_RNC_ENVIADA = "RNC enviada"
INC_APROVADO_CONCESSAO = "Aprovado por concessão"


class Inc(Base, TimestampMixin):
    """
    INC – receiving inspection finding.
    status flow: Em análise -> RNC enviada | Aprovado por concessão | Aprovado | Rejeitado
    Deleting the RNC created from an INC puts it back to Em análise.
    """
    __tablename__ = "incs"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ar: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    nfe_numero: Mapped[str] = mapped_column(String(50), nullable=False)
    um: Mapped[str] = mapped_column(String(10), nullable=False)
    quantidade_recebida: Mapped[float] = mapped_column(Numeric(14, 3, asdecimal=False), nullable=False)
    quantidade_com_defeito: Mapped[float] = mapped_column(Numeric(14, 3, asdecimal=False), nullable=False)
    descricao: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=INC_EM_ANALISE)
    fornecedor_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("fornecedores.id", ondelete="RESTRICT"), nullable=False, index=True)
    criado_por_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
