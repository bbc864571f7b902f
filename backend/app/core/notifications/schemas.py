import uuid
from dataclasses import dataclass
from datetime import datetime
from pydantic import BaseModel, Field


@dataclass(frozen=True)
class NotificationPayload:
    codigo: str
    user_id: uuid.UUID
    titulo: str
    mensagem: str
    unique_key: str
    urgente: bool = False
    entity_type: str | None = None
    entity_id: uuid.UUID | None = None


class NotificationRead(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    notification_type_id: uuid.UUID
    user_id: uuid.UUID
    titulo: str
    mensagem: str
    urgente: bool
    entity_type: str | None
    entity_id: uuid.UUID | None
    unique_key: str
    lida: bool
    data_leitura: datetime | None
    created_at: datetime


class NotificationTypeRead(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    codigo: str
    nome: str
    descricao: str | None
    modulo: str
    canal: str
    ativo: bool


class UnreadCount(BaseModel):
    count: int


class MarkAllReadResult(BaseModel):
    updated: int


class UserNotificationSettingRead(BaseModel):
    id: uuid.UUID
    codigo: str
    nome: str
    descricao: str | None
    modulo: str
    ativo: bool
    habilitado: bool


class UserNotificationSettingUpdate(BaseModel):
    habilitado: bool


class UserNotificationSettingStored(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    user_id: uuid.UUID
    notification_type_id: uuid.UUID
    habilitado: bool


class SweepResult(BaseModel):
    codigo: str
    payloads: int = 0
    created: int = 0
    skipped: int = 0
    error: str | None = None
    # entity id -> error, for entities whose delivery was rolled back
    failed: dict[str, str] = Field(default_factory=dict)
