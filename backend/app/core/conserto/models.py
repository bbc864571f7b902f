import enum
import uuid
from datetime import datetime
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base, TimestampMixin

CONSERTO_SOLICITADA = "CONSERTO_SOLICITADA"
NFE_EMITIDA = "NFE_EMITIDA"
CONSERTO_COLETADO = "CONSERTO_COLETADO"
CONSERTO_RECEBIDO = "CONSERTO_RECEBIDO"
MATERIAL_RETORNADO = "MATERIAL_RETORNADO"
FINALIZADO = "FINALIZADO"
REJEITADO = "REJEITADO"

CONSERTO_STAGES = (CONSERTO_SOLICITADA, NFE_EMITIDA, CONSERTO_COLETADO, CONSERTO_RECEBIDO, MATERIAL_RETORNADO)
CONSERTO_TERMINAL_STATUSES = (FINALIZADO, REJEITADO)


class InspecaoResultado(str, enum.Enum):
    PENDENTE = "PENDENTE"
    APROVADA = "APROVADA"
    REJEITADA = "REJEITADA"


class Conserto(Base, TimestampMixin):
    """
    Conserto – defective material sent to the supplier for repair.
    status flow: CONSERTO_SOLICITADA -> NFE_EMITIDA -> CONSERTO_COLETADO -> CONSERTO_RECEBIDO
                 -> MATERIAL_RETORNADO -> FINALIZADO | REJEITADO (inspection)
    Receiving starts the 30-day repair clock.
    """
    __tablename__ = "consertos"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    rnc_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("rncs.id", ondelete="RESTRICT"), nullable=False, unique=True)
    ar_origem: Mapped[int] = mapped_column(Integer, nullable=False)
    quantidade_total: Mapped[float] = mapped_column(Numeric(14, 3, asdecimal=False), nullable=False)
    peso_kg: Mapped[float] = mapped_column(Numeric(14, 3, asdecimal=False), nullable=False)
    motivo: Mapped[str] = mapped_column(Text, nullable=False)
    transportadora: Mapped[str | None] = mapped_column(String(255), nullable=True)
    frete: Mapped[str] = mapped_column(String(3), nullable=False)
    conserto_em_garantia: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=CONSERTO_SOLICITADA, index=True)
    criado_por_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    nfe_numero: Mapped[str | None] = mapped_column(String(50), nullable=True)
    nfe_pdf_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    nfe_emitida_em: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    nfe_emitida_por_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    data_coleta: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    coleta_confirmada_por_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    data_recebimento: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    recebimento_confirmado_por_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    prazo_conserto_inicio: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    prazo_conserto_fim: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    data_retorno: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    nfe_retorno_numero: Mapped[str | None] = mapped_column(String(50), nullable=True)
    nfe_retorno_pdf_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    retorno_confirmado_por_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    inspecao_resultado: Mapped[InspecaoResultado] = mapped_column(
        Enum(InspecaoResultado, name="inspecao_resultado", native_enum=False, length=20),
        nullable=False,
        default=InspecaoResultado.PENDENTE,
    )
    inspecao_data: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    inspecao_descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    inspecao_realizada_por_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    inspecao_fotos: Mapped[list["ConsertoInspecaoFoto"]] = relationship(
        lazy="selectin", cascade="save-update, merge", order_by="ConsertoInspecaoFoto.created_at",
    )


class ConsertoInspecaoFoto(Base, TimestampMixin):
    __tablename__ = "conserto_inspecao_fotos"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conserto_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("consertos.id", ondelete="CASCADE"), nullable=False, index=True)
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
