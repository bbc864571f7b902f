import logging
import uuid
from datetime import date
from typing import Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import business_today
from app.core.notifications.rules import NOTIFICATION_RULES, NotificationRule
from app.core.notifications.schemas import NotificationPayload, SweepResult
from app.core.notifications.service import create_notification

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


async def _deliver(db: AsyncSession, payloads: list[NotificationPayload]) -> tuple[int, int]:
    created = skipped = 0
    async with db.begin_nested():
        for payload in payloads:
            _, was_created = await create_notification(db, payload)
            if was_created:
                created += 1
            else:
                skipped += 1
    return created, skipped


async def run_rule(db: AsyncSession, rule: NotificationRule, today: date) -> SweepResult:
    """
    Delivers each entity's payloads under its own SAVEPOINT. A failure rolls
    back that entity only and is reported in `failed`.
    """
    result = SweepResult(codigo=rule.codigo)
    payloads = await rule.check(db, today)
    result.payloads = len(payloads)

    by_entity: dict[uuid.UUID | None, list[NotificationPayload]] = {}
    for payload in payloads:
        by_entity.setdefault(payload.entity_id, []).append(payload)

    for entity_id, group in by_entity.items():
        try:
            created, skipped = await _deliver(db, group)
        except Exception as exc:
            logger.exception("%s: delivery failed for %s %s", rule.codigo, group[0].entity_type, entity_id)
            result.failed[str(entity_id)] = str(exc) or exc.__class__.__name__
            continue
        result.created += created
        result.skipped += skipped
    return result


async def run_all_checks(
    session_factory: SessionFactory,
    rules: Sequence[NotificationRule] = NOTIFICATION_RULES,
    today: date | None = None,
) -> list[SweepResult]:
    """
    One session and transaction per rule. A failing rule is logged and
    reported; the remaining rules still run.
    """
    today = today or business_today()
    results: list[SweepResult] = []
    for rule in rules:
        try:
            async with session_factory() as db:
                async with db.begin():
                    result = await run_rule(db, rule, today)
        except Exception as exc:
            logger.exception("Notification rule %s failed", rule.codigo)
            result = SweepResult(codigo=rule.codigo, error=str(exc) or exc.__class__.__name__)
        if result.created:
            logger.info("%s: created %d notification(s)", rule.codigo, result.created)
        if result.failed:
            logger.warning("%s: delivery failed for %d entity(ies)", rule.codigo, len(result.failed))
        results.append(result)
    return results
