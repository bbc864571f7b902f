import asyncio
import os

from app.core.auth.security import hash_password
from app.core.notifications.rules import NOTIFICATION_RULES
from app.core.notifications.service import sync_notification_types
from app.core.rbac.catalog import PERMISSION_CATALOG
from app.core.rbac.models import ADMIN_ALL, User
from app.core.rbac.service import get_user_by_email, get_user_permissions, grant_permission, sync_permissions
from app.db.session import get_session


async def seed() -> None:
    admin_email = os.getenv("SEED_ADMIN_EMAIL", "admin@qualidade.local")
    admin_password = os.getenv("SEED_ADMIN_PASSWORD", "changeme123!")

    async with get_session() as db:
        permissions = await sync_permissions(db, PERMISSION_CATALOG)
        print(f"Permissões: {len(permissions)}")

        types = await sync_notification_types(db, NOTIFICATION_RULES)
        print(f"Tipos de notificação: {len(types)}")

        user = await get_user_by_email(db, admin_email)
        if not user:
            user = User(
                email=admin_email.lower(),
                hashed_password=hash_password(admin_password),
                nome="Administrador",
            )
            db.add(user)
            await db.flush()
            print(f"Administrador: {user.email}")
        else:
            print(f"Administrador já existe: {user.email}")

        if ADMIN_ALL not in await get_user_permissions(db, user.id):
            await grant_permission(db, user.id, ADMIN_ALL)
            print(f"{ADMIN_ALL} concedido a {user.email}")

    print("Concluído.")


if __name__ == "__main__":
    asyncio.run(seed())
