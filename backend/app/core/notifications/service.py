import logging
import uuid
from typing import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.notifications.models import Notification, NotificationType, UserNotificationSetting
from app.core.notifications.schemas import NotificationPayload, UserNotificationSettingRead
from app.core.rbac.service import get_user, list_user_ids_with_permissions
from app.db.base import utcnow
from app.errors import NotFound

logger = logging.getLogger(__name__)


def build_unique_key(codigo: str, entity_id: uuid.UUID, iso_date: str) -> str:
    return f"{codigo}_{entity_id}_{iso_date}"


async def get_type_by_codigo(db: AsyncSession, codigo: str) -> NotificationType | None:
    result = await db.execute(select(NotificationType).where(NotificationType.codigo == codigo))
    return result.scalar_one_or_none()


async def _find_existing(db: AsyncSession, user_id: uuid.UUID, unique_key: str) -> Notification | None:
    result = await db.execute(
        select(Notification).where(Notification.user_id == user_id, Notification.unique_key == unique_key)
    )
    return result.scalar_one_or_none()


async def create_notification(db: AsyncSession, payload: NotificationPayload) -> tuple[Notification, bool]:
    """
    Upsert-or-skip: returns the stored row and whether it was created now.
    A concurrent insert of the same (user, key) resolves to the existing row.
    """
    existing = await _find_existing(db, payload.user_id, payload.unique_key)
    if existing:
        logger.debug("Duplicate prevented: %s for user %s", payload.unique_key, payload.user_id)
        return existing, False

    notification_type = await get_type_by_codigo(db, payload.codigo)
    if not notification_type:
        raise NotFound(f"Tipo de notificação não encontrado: {payload.codigo}")

    try:
        async with db.begin_nested():
            notification = Notification(
                notification_type_id=notification_type.id,
                user_id=payload.user_id,
                titulo=payload.titulo,
                mensagem=payload.mensagem,
                urgente=payload.urgente,
                entity_type=payload.entity_type,
                entity_id=payload.entity_id,
                unique_key=payload.unique_key,
                lida=False,
            )
            db.add(notification)
            await db.flush()
    except IntegrityError:
        existing = await _find_existing(db, payload.user_id, payload.unique_key)
        if existing is None:
            raise
        return existing, False
    return notification, True


async def resolve_recipients(db: AsyncSession, codigo: str, permission_codes: Iterable[str]) -> list[uuid.UUID]:
    """Holders of `permission_codes` minus users who switched this type off."""
    notification_type = await get_type_by_codigo(db, codigo)
    if not notification_type or not notification_type.ativo:
        return []
    user_ids = await list_user_ids_with_permissions(db, permission_codes)
    if not user_ids:
        return []
    result = await db.execute(
        select(UserNotificationSetting.user_id).where(
            UserNotificationSetting.notification_type_id == notification_type.id,
            UserNotificationSetting.user_id.in_(user_ids),
            UserNotificationSetting.habilitado == False,  # noqa: E712
        )
    )
    disabled = set(result.scalars().all())
    return [user_id for user_id in user_ids if user_id not in disabled]


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    lida: bool | None = None,
    entity_type: str | None = None,
    urgente: bool | None = None,
) -> list[Notification]:
    q = select(Notification).where(Notification.user_id == user_id)
    if lida is not None:
        q = q.where(Notification.lida == lida)
    if entity_type:
        q = q.where(Notification.entity_type == entity_type)
    if urgente is not None:
        q = q.where(Notification.urgente == urgente)
    result = await db.execute(q.order_by(Notification.created_at.desc()))
    return list(result.scalars().all())


async def count_unread(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(Notification.user_id == user_id, Notification.lida == False)  # noqa: E712
    )
    return result.scalar_one() or 0


async def mark_as_read(db: AsyncSession, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
    result = await db.execute(select(Notification).where(Notification.id == notification_id))
    notification = result.scalar_one_or_none()
    # Other users' notifications are reported as missing.
    if not notification or notification.user_id != user_id:
        raise NotFound("Notificação não encontrada")
    if not notification.lida:
        notification.lida = True
        notification.data_leitura = utcnow()
        await db.flush()
        await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.lida == False)  # noqa: E712
        .values(lida=True, data_leitura=utcnow())
    )
    return result.rowcount or 0


async def sync_notification_types(db: AsyncSession, rules: Iterable) -> list[NotificationType]:
    synced = []
    for rule in rules:
        existing = await get_type_by_codigo(db, rule.codigo)
        if existing is None:
            existing = NotificationType(
                codigo=rule.codigo,
                nome=rule.nome,
                descricao=rule.descricao,
                modulo=rule.modulo,
                canal=rule.canal,
                ativo=True,
            )
            db.add(existing)
            logger.info("Notification type created: %s", rule.codigo)
        else:
            existing.nome = rule.nome
            existing.descricao = rule.descricao
            existing.modulo = rule.modulo
            existing.canal = rule.canal
        synced.append(existing)
    await db.flush()
    return synced


async def get_user_settings(db: AsyncSession, user_id: uuid.UUID) -> list[UserNotificationSettingRead]:
    types = (await db.execute(
        select(NotificationType).order_by(NotificationType.modulo, NotificationType.codigo)
    )).scalars().all()
    settings = (await db.execute(
        select(UserNotificationSetting).where(UserNotificationSetting.user_id == user_id)
    )).scalars().all()
    enabled = {s.notification_type_id: s.habilitado for s in settings}
    return [
        UserNotificationSettingRead(
            id=t.id,
            codigo=t.codigo,
            nome=t.nome,
            descricao=t.descricao,
            modulo=t.modulo,
            ativo=t.ativo,
            habilitado=enabled.get(t.id, True),
        )
        for t in types
    ]


async def update_user_setting(
    db: AsyncSession, user_id: uuid.UUID, type_id: uuid.UUID, habilitado: bool
) -> UserNotificationSetting:
    notification_type = (await db.execute(
        select(NotificationType).where(NotificationType.id == type_id)
    )).scalar_one_or_none()
    if not notification_type:
        raise NotFound("Tipo de notificação não encontrado")
    if not await get_user(db, user_id):
        raise NotFound("Usuário não encontrado")

    result = await db.execute(
        select(UserNotificationSetting).where(
            UserNotificationSetting.user_id == user_id,
            UserNotificationSetting.notification_type_id == type_id,
        ).with_for_update()
    )
    setting = result.scalar_one_or_none()
    if setting is None:
        setting = UserNotificationSetting(user_id=user_id, notification_type_id=type_id, habilitado=habilitado)
        db.add(setting)
    else:
        setting.habilitado = habilitado
    await db.flush()
    await db.refresh(setting)
    logger.info("User %s set %s habilitado=%s", user_id, notification_type.codigo, habilitado)
    return setting
