import uuid
from datetime import datetime
from pydantic import BaseModel, Field, computed_field

from app.clock import business_today
from app.core.rnc.deadlines import dias_restantes as _dias_restantes
from app.core.rnc.models import RNC_TRACKED_STATUSES


class RncCreate(BaseModel):
    inc_id: uuid.UUID
    data: datetime | None = None
    descricao_nao_conformidade: str | None = None
    reincidente: bool = False
    rnc_anterior_id: uuid.UUID | None = None


class RncUpdate(BaseModel):
    """Descriptive fields only. Status moves through the dedicated endpoints."""
    descricao_nao_conformidade: str | None = None
    reincidente: bool | None = None
    rnc_anterior_id: uuid.UUID | None = None


class RncStatusUpdate(BaseModel):
    status: str


class AprovarPorConcessao(BaseModel):
    inc_id: uuid.UUID


class RncRead(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    numero: str
    sequencial: int
    ano: int
    data: datetime
    ar: int
    nfe_numero: str
    um: str
    quantidade_recebida: float
    quantidade_com_defeito: float
    descricao_nao_conformidade: str | None
    reincidente: bool
    rnc_anterior_id: uuid.UUID | None
    status: str
    prazo_inicio: datetime
    pdf_path: str | None
    plano_acao_pdf_path: str | None
    inc_id: uuid.UUID
    fornecedor_id: uuid.UUID
    criado_por_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def dias_restantes(self) -> int | None:
        if self.status not in RNC_TRACKED_STATUSES:
            return None
        return _dias_restantes(self.prazo_inicio, business_today())


class RncSummary(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    numero: str
    data: datetime
    status: str
    descricao_nao_conformidade: str | None


class RncHistoricoRead(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    rnc_id: uuid.UUID
    tipo: str
    pdf_path: str
    justificativa: str | None
    prazo_inicio: datetime
    prazo_fim: datetime
    criado_por_id: uuid.UUID
    created_at: datetime


class MessageResponse(BaseModel):
    message: str = Field(...)
