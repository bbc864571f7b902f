import uuid
from datetime import datetime
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, TimestampMixin

RNC_ENVIADA = "RNC enviada"
RNC_AGUARDANDO_RESPOSTA = "Aguardando resposta"
RNC_EM_ANALISE = "Em análise"
RNC_ACEITA = "RNC aceita"
RNC_CONCLUIDA = "Concluída"

RNC_STATUSES = (RNC_ENVIADA, RNC_AGUARDANDO_RESPOSTA, RNC_EM_ANALISE, RNC_ACEITA, RNC_CONCLUIDA)
# Statuses the deadline engine watches.
RNC_TRACKED_STATUSES = (RNC_ENVIADA, RNC_ACEITA)

HISTORICO_ACEITE = "ACEITE"
HISTORICO_RECUSA = "RECUSA"


class RncSequence(Base, TimestampMixin):
    __tablename__ = "rnc_sequences"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    fornecedor_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("fornecedores.id", ondelete="CASCADE"), nullable=False, index=True)
    ano: Mapped[int] = mapped_column(Integer, nullable=False)
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    __table_args__ = (UniqueConstraint("fornecedor_id", "ano", name="uq_rnc_sequence_fornecedor_ano"),)


class Rnc(Base, TimestampMixin):
    """
    RNC – supplier non-conformance report.
    status flow: RNC enviada <-> Aguardando resposta <-> Em análise
                 RNC enviada -> RNC aceita (plan accepted) -> Concluída
    Plan refusal keeps RNC enviada and restarts the 7-day clock.
    INC fields are snapshotted at creation.
    """
    __tablename__ = "rncs"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    numero: Mapped[str] = mapped_column(String(30), nullable=False)
    sequencial: Mapped[int] = mapped_column(Integer, nullable=False)
    ano: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ar: Mapped[int] = mapped_column(Integer, nullable=False)
    nfe_numero: Mapped[str] = mapped_column(String(50), nullable=False)
    um: Mapped[str] = mapped_column(String(10), nullable=False)
    quantidade_recebida: Mapped[float] = mapped_column(Numeric(14, 3, asdecimal=False), nullable=False)
    quantidade_com_defeito: Mapped[float] = mapped_column(Numeric(14, 3, asdecimal=False), nullable=False)
    descricao_nao_conformidade: Mapped[str | None] = mapped_column(Text, nullable=True)
    reincidente: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rnc_anterior_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("rncs.id", ondelete="RESTRICT"), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=RNC_ENVIADA, index=True)
    prazo_inicio: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    pdf_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    plano_acao_pdf_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    inc_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("incs.id", ondelete="RESTRICT"), nullable=False, index=True)
    fornecedor_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("fornecedores.id", ondelete="RESTRICT"), nullable=False, index=True)
    criado_por_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    __table_args__ = (UniqueConstraint("fornecedor_id", "ano", "sequencial", name="uq_rnc_fornecedor_ano_sequencial"),)


class RncHistorico(Base, TimestampMixin):
    """One row per supplier action plan answer (ACEITE or RECUSA)."""
    __tablename__ = "rnc_historico"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    rnc_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("rncs.id", ondelete="CASCADE"), nullable=False, index=True)
    tipo: Mapped[str] = mapped_column(String(20), nullable=False)
    pdf_path: Mapped[str] = mapped_column(String(500), nullable=False)
    justificativa: Mapped[str | None] = mapped_column(Text, nullable=True)
    prazo_inicio: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    prazo_fim: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    criado_por_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
