"""
Notification scheduler interface.

The planification service tells the scheduler about deadlines and expiries.
Delivery (local push, OS alarms) lives outside the ledger.

DESIGN DECISION: Scheduler calls are fire-and-forget. The planification service
makes them only after its unit of work has committed and logs any exception
they raise, so a failing scheduler can never undo a ledger write.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

import structlog

from mitsitsy.models.ledger import ensure_utc, utc_now


REMINDER_HOUR = 9


def deadline_reminder_times(
    deadline: datetime,
    now: Optional[datetime] = None,
) -> list[tuple[str, datetime]]:
    """
    When to remind about a deadline: 09:00 the day before and 09:00 on the day.

    Times already in the past are dropped.
    """
    now = ensure_utc(now) or utc_now()
    on_the_day = ensure_utc(deadline).replace(hour=REMINDER_HOUR, minute=0, second=0, microsecond=0)
    candidates = [
        ("day_before", on_the_day - timedelta(days=1)),
        ("deadline", on_the_day),
    ]
    return [(kind, at) for kind, at in candidates if at > now]


class NotificationScheduler(ABC):
    """
    Abstract interface for planification reminders.

    Implementations must be safe to call repeatedly for the same id:
    scheduling replaces earlier reminders, cancelling twice is a no-op.
    """

    @abstractmethod
    async def schedule_deadline_reminder(
        self,
        planification_id: str,
        title: str,
        deadline: datetime,
    ) -> None:
        """Arm reminders leading up to the deadline, replacing earlier ones."""
        pass

    @abstractmethod
    async def cancel_reminders(self, planification_id: str) -> None:
        """Drop every reminder armed for this planification."""
        pass

    @abstractmethod
    async def notify_expired(self, planification_id: str, title: str) -> None:
        """Deliver the one-shot 'deadline passed' notification."""
        pass


class LoggingNotificationScheduler(NotificationScheduler):
    """Default scheduler: writes each request to the structured log."""

    def __init__(self, logger: Optional[structlog.stdlib.BoundLogger] = None):
        self._logger = logger or structlog.get_logger(__name__)

    async def schedule_deadline_reminder(
        self,
        planification_id: str,
        title: str,
        deadline: datetime,
    ) -> None:
        for kind, at in deadline_reminder_times(deadline):
            self._logger.info(
                "deadline_reminder_scheduled",
                planification_id=planification_id,
                title=title,
                reminder=kind,
                at=at.isoformat(),
            )

    async def cancel_reminders(self, planification_id: str) -> None:
        self._logger.info("reminders_cancelled", planification_id=planification_id)

    async def notify_expired(self, planification_id: str, title: str) -> None:
        self._logger.info(
            "planification_expired_notification",
            planification_id=planification_id,
            title=title,
        )
