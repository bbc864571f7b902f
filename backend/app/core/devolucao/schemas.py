import uuid
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, Field


class DevolucaoCreate(BaseModel):
    rnc_id: uuid.UUID
    quantidade_total: float = Field(..., gt=0)
    peso_kg: float = Field(..., ge=0)
    motivo: str = Field(..., min_length=1)
    transportadora: str = Field(..., min_length=1, max_length=255)
    frete: Literal["FOB", "CIF"]
    meio_compensacao: str = Field(..., min_length=1, max_length=255)


class DevolucaoRead(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    rnc_id: uuid.UUID
    ar_origem: int
    quantidade_total: float
    peso_kg: float
    motivo: str
    transportadora: str
    frete: str
    meio_compensacao: str
    status: str
    criado_por_id: uuid.UUID
    nfe_numero: str | None
    nfe_pdf_path: str | None
    nfe_emitida_em: datetime | None
    nfe_emitida_por_id: uuid.UUID | None
    data_coleta: datetime | None
    coleta_confirmada_por_id: uuid.UUID | None
    data_recebimento: datetime | None
    recebimento_confirmado_por_id: uuid.UUID | None
    data_compensacao: datetime | None
    comprovante_path: str | None
    compensacao_confirmada_por_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime
