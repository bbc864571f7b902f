"""
Notification rules evaluated by the periodic sweep.

A rule looks at current data for one calendar day and returns the payloads
that should exist for that day. Delivery is idempotent, so a rule may be
evaluated any number of times per day.
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import local_date
from app.core.fornecedores.models import Fornecedor
from app.core.notifications.schemas import NotificationPayload
from app.core.notifications.service import build_unique_key, resolve_recipients
from app.core.rbac.models import ADMIN_ALL
from app.core.rnc.deadlines import dias_decorridos, prazo_dias
from app.core.rnc.models import Rnc, RNC_TRACKED_STATUSES

logger = logging.getLogger(__name__)

RNC_RECIPIENT_PERMISSIONS = ("rnc.read", ADMIN_ALL)


class NotificationRule(Protocol):
    codigo: str
    nome: str
    descricao: str
    modulo: str
    canal: str

    async def check(self, db: AsyncSession, today: date) -> list[NotificationPayload]: ...


@dataclass(frozen=True)
class RncPrazoRule:
    """Fires for tracked RNCs whose response clock reached day `dia`."""
    codigo: str
    nome: str
    descricao: str
    dia: int
    titulo: str
    mensagem: str
    urgente: bool = False
    modulo: str = "rnc"
    canal: str = "sistema"

    async def check(self, db: AsyncSession, today: date) -> list[NotificationPayload]:
        result = await db.execute(
            select(Rnc, Fornecedor.razao_social)
            .join(Fornecedor, Fornecedor.id == Rnc.fornecedor_id)
            .where(Rnc.status.in_(RNC_TRACKED_STATUSES))
            .order_by(Rnc.numero)
        )
        due = [(rnc, razao) for rnc, razao in result.all() if dias_decorridos(rnc.prazo_inicio, today) == self.dia]
        logger.debug("%s: %d RNC(s) on day %d", self.codigo, len(due), self.dia)
        if not due:
            return []

        recipients = await resolve_recipients(db, self.codigo, RNC_RECIPIENT_PERMISSIONS)
        payloads = []
        for rnc, razao_social in due:
            prazo_fim = local_date(rnc.prazo_inicio) + timedelta(days=prazo_dias())
            fields = {"numero": rnc.numero, "fornecedor": razao_social, "prazo_fim": prazo_fim.strftime("%d/%m/%Y")}
            for user_id in recipients:
                payloads.append(NotificationPayload(
                    codigo=self.codigo,
                    user_id=user_id,
                    titulo=self.titulo.format(**fields),
                    mensagem=self.mensagem.format(**fields),
                    urgente=self.urgente,
                    entity_type="rnc",
                    entity_id=rnc.id,
                    unique_key=build_unique_key(self.codigo, rnc.id, today.isoformat()),
                ))
        return payloads


NOTIFICATION_RULES: tuple[NotificationRule, ...] = (
    RncPrazoRule(
        codigo="rnc_prazo_2dias",
        nome="RNC - Prazo 2 Dias",
        descricao="Notificação enviada 2 dias antes do prazo de 7 dias da RNC expirar",
        dia=5,
        titulo="RNC {numero} - Prazo em 2 dias",
        mensagem="A RNC {numero} do fornecedor {fornecedor} vence em 2 dias ({prazo_fim}).",
    ),
    RncPrazoRule(
        codigo="rnc_prazo_1dia",
        nome="RNC - Prazo 1 Dia",
        descricao="Notificação enviada 1 dia antes do prazo de 7 dias da RNC expirar",
        dia=6,
        titulo="RNC {numero} - Prazo em 1 dia",
        mensagem="A RNC {numero} do fornecedor {fornecedor} vence amanhã ({prazo_fim}).",
    ),
    RncPrazoRule(
        codigo="rnc_prazo_hoje",
        nome="RNC - Prazo Hoje (Urgente)",
        descricao="Notificação URGENTE enviada no dia do vencimento do prazo de 7 dias da RNC",
        dia=7,
        titulo="URGENTE: RNC {numero} - Prazo vence HOJE",
        mensagem="A RNC {numero} do fornecedor {fornecedor} vence HOJE ({prazo_fim}). Ação imediata necessária!",
        urgente=True,
    ),
)
