import uuid
from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, TimestampMixin

DEVOLUCAO_SOLICITADA = "DEVOLUCAO_SOLICITADA"
NFE_EMITIDA = "NFE_EMITIDA"
DEVOLUCAO_COLETADA = "DEVOLUCAO_COLETADA"
DEVOLUCAO_RECEBIDA = "DEVOLUCAO_RECEBIDA"
FINALIZADO = "FINALIZADO"

DEVOLUCAO_STAGES = (DEVOLUCAO_SOLICITADA, NFE_EMITIDA, DEVOLUCAO_COLETADA, DEVOLUCAO_RECEBIDA, FINALIZADO)
DEVOLUCAO_TERMINAL_STATUSES = (FINALIZADO,)


class Devolucao(Base, TimestampMixin):
    """
    Devolução – defective material sent back to the supplier for credit.
    status flow: DEVOLUCAO_SOLICITADA -> NFE_EMITIDA -> DEVOLUCAO_COLETADA
                 -> DEVOLUCAO_RECEBIDA -> FINALIZADO
    """
    __tablename__ = "devolucoes"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    rnc_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("rncs.id", ondelete="RESTRICT"), nullable=False, unique=True)
    ar_origem: Mapped[int] = mapped_column(Integer, nullable=False)
    quantidade_total: Mapped[float] = mapped_column(Numeric(14, 3, asdecimal=False), nullable=False)
    peso_kg: Mapped[float] = mapped_column(Numeric(14, 3, asdecimal=False), nullable=False)
    motivo: Mapped[str] = mapped_column(Text, nullable=False)
    transportadora: Mapped[str] = mapped_column(String(255), nullable=False)
    frete: Mapped[str] = mapped_column(String(3), nullable=False)
    meio_compensacao: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=DEVOLUCAO_SOLICITADA, index=True)
    criado_por_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    nfe_numero: Mapped[str | None] = mapped_column(String(50), nullable=True)
    nfe_pdf_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    nfe_emitida_em: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    nfe_emitida_por_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    data_coleta: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    coleta_confirmada_por_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    data_recebimento: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    recebimento_confirmado_por_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    data_compensacao: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    comprovante_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    compensacao_confirmada_por_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
