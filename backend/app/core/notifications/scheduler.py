import asyncio
import contextlib
import logging
from typing import Sequence

from app.core.notifications.rules import NOTIFICATION_RULES, NotificationRule
from app.core.notifications.runner import SessionFactory, run_all_checks

logger = logging.getLogger(__name__)


class NotificationScheduler:
    """Runs the sweep every `interval` seconds. Each sweep finishes before the next sleep."""

    def __init__(
        self,
        session_factory: SessionFactory,
        interval: float = 60,
        rules: Sequence[NotificationRule] = NOTIFICATION_RULES,
    ):
        self.session_factory = session_factory
        self.interval = interval
        self.rules = rules
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="notification-scheduler")
        logger.info("Notification scheduler started (every %ss)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Notification scheduler stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await run_all_checks(self.session_factory, self.rules)
            except Exception:
                logger.exception("Notification sweep failed")
            await asyncio.sleep(self.interval)
