import uuid
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, Field, computed_field, model_validator

from app.clock import business_today, local_date
from app.core.conserto.models import InspecaoResultado


class ConsertoCreate(BaseModel):
    rnc_id: uuid.UUID
    quantidade_total: float = Field(..., gt=0)
    peso_kg: float = Field(..., ge=0)
    motivo: str = Field(..., min_length=1)
    frete: Literal["FOB", "CIF"]
    transportadora: str | None = Field(None, max_length=255)
    conserto_em_garantia: bool = False

    @model_validator(mode="after")
    def blank_transportadora_is_none(self):
        if self.transportadora is not None and not self.transportadora.strip():
            self.transportadora = None
        return self


class ConsertoInspecaoFotoRead(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    path: str
    filename: str
    created_at: datetime


class ConsertoRead(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    rnc_id: uuid.UUID
    ar_origem: int
    quantidade_total: float
    peso_kg: float
    motivo: str
    transportadora: str | None
    frete: str
    conserto_em_garantia: bool
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
    prazo_conserto_inicio: datetime | None
    prazo_conserto_fim: datetime | None
    data_retorno: datetime | None
    nfe_retorno_numero: str | None
    nfe_retorno_pdf_path: str | None
    retorno_confirmado_por_id: uuid.UUID | None
    inspecao_resultado: InspecaoResultado
    inspecao_data: datetime | None
    inspecao_descricao: str | None
    inspecao_realizada_por_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime
    inspecao_fotos: list[ConsertoInspecaoFotoRead] = []

    @computed_field
    @property
    def inspecao_aprovada(self) -> bool | None:
        if self.inspecao_resultado == InspecaoResultado.PENDENTE:
            return None
        return self.inspecao_resultado == InspecaoResultado.APROVADA

    @computed_field
    @property
    def dias_restantes_conserto(self) -> int | None:
        if self.prazo_conserto_fim is None or self.data_retorno is not None:
            return None
        return max(0, (local_date(self.prazo_conserto_fim) - business_today()).days)
