import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.notifications import service
from app.core.notifications.rules import NOTIFICATION_RULES
from app.core.notifications.schemas import (
    MarkAllReadResult, NotificationRead, NotificationTypeRead, UnreadCount,
    UserNotificationSettingRead, UserNotificationSettingStored, UserNotificationSettingUpdate,
)
from app.dependencies import CurrentUser, get_db, require_permissions

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationRead])
async def list_notifications(
    lida: bool | None = None,
    entity_type: str | None = None,
    urgente: bool | None = None,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("notifications.read")),
):
    return await service.list_notifications(db, current.user_id, lida=lida, entity_type=entity_type, urgente=urgente)


@router.get("/unread/count", response_model=UnreadCount)
async def count_unread(
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("notifications.read")),
):
    return UnreadCount(count=await service.count_unread(db, current.user_id))


@router.patch("/read-all", response_model=MarkAllReadResult)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("notifications.read")),
):
    return MarkAllReadResult(updated=await service.mark_all_read(db, current.user_id))


@router.patch("/{notification_id}/read", response_model=NotificationRead)
async def mark_as_read(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permissions("notifications.read")),
):
    return await service.mark_as_read(db, notification_id, current.user_id)


@router.post("/sync-types", response_model=list[NotificationTypeRead])
async def sync_types(
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("notifications.manage_types")),
):
    return await service.sync_notification_types(db, NOTIFICATION_RULES)


@router.get("/users/{user_id}/settings", response_model=list[UserNotificationSettingRead])
async def get_user_settings(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("notifications.manage_settings")),
):
    return await service.get_user_settings(db, user_id)


@router.patch("/users/{user_id}/settings/{type_id}", response_model=UserNotificationSettingStored)
async def update_user_setting(
    user_id: uuid.UUID,
    type_id: uuid.UUID,
    data: UserNotificationSettingUpdate,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permissions("notifications.manage_settings")),
):
    return await service.update_user_setting(db, user_id, type_id, data.habilitado)
