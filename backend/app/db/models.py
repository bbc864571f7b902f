"""Imports every mapped class so Base.metadata is complete."""
from app.db.base import Base  # noqa: F401
from app.core.rbac.models import User, Permission, UserPermission  # noqa: F401
from app.core.audit.models import AuditLog  # noqa: F401
from app.core.fornecedores.models import Fornecedor  # noqa: F401
from app.core.inc.models import Inc  # noqa: F401
from app.core.rnc.models import Rnc, RncHistorico, RncSequence  # noqa: F401
from app.core.devolucao.models import Devolucao  # noqa: F401
from app.core.conserto.models import Conserto, ConsertoInspecaoFoto  # noqa: F401
from app.core.notifications.models import Notification, NotificationType, UserNotificationSetting  # noqa: F401
