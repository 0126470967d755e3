"""
Tests for reminder timing and the default scheduler.
"""

from datetime import datetime, timezone

import pytest

from mitsitsy.services.notifications import (
    REMINDER_HOUR,
    LoggingNotificationScheduler,
    deadline_reminder_times,
)


class TestReminderTimes:
    """Tests for deadline_reminder_times."""

    def test_day_before_and_day_of(self):
        """Test both reminders for a far deadline."""
        deadline = datetime(2025, 6, 10, 18, 30, tzinfo=timezone.utc)
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)

        times = deadline_reminder_times(deadline, now)

        assert times == [
            ("day_before", datetime(2025, 6, 9, REMINDER_HOUR, tzinfo=timezone.utc)),
            ("deadline", datetime(2025, 6, 10, REMINDER_HOUR, tzinfo=timezone.utc)),
        ]

    def test_past_reminders_are_dropped(self):
        """Test that only future reminders are returned."""
        deadline = datetime(2025, 6, 10, 18, 30, tzinfo=timezone.utc)
        now = datetime(2025, 6, 9, 12, 0, tzinfo=timezone.utc)

        assert [kind for kind, _ in deadline_reminder_times(deadline, now)] == ["deadline"]

    def test_expired_deadline_has_no_reminders(self):
        """Test that a past deadline yields nothing."""
        deadline = datetime(2025, 6, 10, tzinfo=timezone.utc)
        now = datetime(2025, 6, 11, tzinfo=timezone.utc)

        assert deadline_reminder_times(deadline, now) == []


class TestLoggingScheduler:
    """Tests for the default scheduler."""

    @pytest.mark.asyncio
    async def test_requests_are_logged(self, recording_logger):
        """Test that every call ends up in the log."""
        scheduler = LoggingNotificationScheduler(logger=recording_logger)

        await scheduler.schedule_deadline_reminder(
            "p1", "Rent", datetime(2999, 1, 1, tzinfo=timezone.utc),
        )
        await scheduler.cancel_reminders("p1")
        await scheduler.notify_expired("p1", "Rent")

        events = [event for _, event, _ in recording_logger.records]
        assert events == [
            "deadline_reminder_scheduled",
            "deadline_reminder_scheduled",
            "reminders_cancelled",
            "planification_expired_notification",
        ]
