import uuid
from datetime import datetime
from pydantic import BaseModel, Field, model_validator


class IncCreate(BaseModel):
    fornecedor_id: uuid.UUID
    ar: int = Field(..., gt=0)
    nfe_numero: str = Field(..., min_length=1, max_length=50)
    um: str = Field(..., min_length=1, max_length=10)
    quantidade_recebida: float = Field(..., gt=0)
    quantidade_com_defeito: float = Field(..., gt=0)
    descricao: str | None = None

    @model_validator(mode="after")
    def defeito_not_above_recebida(self):
        if self.quantidade_com_defeito > self.quantidade_recebida:
            raise ValueError("quantidade_com_defeito cannot exceed quantidade_recebida")
        return self


class IncRead(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    fornecedor_id: uuid.UUID
    ar: int
    nfe_numero: str
    um: str
    quantidade_recebida: float
    quantidade_com_defeito: float
    descricao: str | None
    status: str
    criado_por_id: uuid.UUID | None
    created_at: datetime
