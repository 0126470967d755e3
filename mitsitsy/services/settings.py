"""
Settings Service

Typed access to the key/value settings table. Values are stored as text:
flags written by the settings screen use "1"/"0", completion flags use
"true"/"false". Both spellings are read back as booleans.

The currency setting is written only by the onboarding and currency services,
never on its own, so it can never disagree with the stored amounts.
"""

from typing import Optional

from mitsitsy.models.events import LedgerEventBuilder
from mitsitsy.models.ledger import utc_now
from mitsitsy.models.results import ErrorKind, OperationResult
from mitsitsy.services.base import LedgerService
from mitsitsy.services.storage import SettingsRepository


CURRENCY_KEY = "currency"
THEME_KEY = "theme_id"
BALANCE_HIDDEN_KEY = "balance_hidden"
REMINDER_FREQUENCY_KEY = "reminder_frequency"
ONBOARDING_COMPLETED_KEY = "onboarding_completed"
TUTORIAL_COMPLETED_KEY = "tutorial_completed"
TIPS_INDEX_PREFIX = "tips_index_"

THEME_IDS = ("turquoise", "blue", "purple", "orange")
DEFAULT_THEME_ID = "turquoise"

# Hours between generic reminders; 0 disables them.
REMINDER_INTERVAL_HOURS = {"off": 0, "1h": 1, "2h": 2, "4h": 4}
DEFAULT_REMINDER_FREQUENCY = "1h"

TIP_CATEGORIES = ("dashboard", "add", "planification")

_TRUE_VALUES = {"1", "true"}


def _as_bool(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in _TRUE_VALUES


class SettingsService(LedgerService):
    """Reads and writes user preferences."""

    def __init__(self, db, settings=None, event_logger=None):
        super().__init__(db, settings, event_logger)
        self._repo = SettingsRepository(db)

    async def _set(self, key: str, value: str) -> OperationResult:
        async def action() -> OperationResult:
            async with self._db.transaction():
                await self._repo.set(key, value, utc_now())
            await self._events.log(LedgerEventBuilder.setting_changed(key, value))
            return OperationResult.ok(key, value=value)

        return await self._guard("set_setting", action, {"key": key})

    async def get_all(self) -> dict[str, str]:
        return await self._repo.all()

    # -------------------------------------------------------------------------
    # Currency
    # -------------------------------------------------------------------------

    async def get_currency(self) -> str:
        """Working currency code, falling back to the configured default."""
        return await self._repo.get(CURRENCY_KEY) or self._settings.default_currency

    # -------------------------------------------------------------------------
    # Appearance
    # -------------------------------------------------------------------------

    async def get_theme_id(self) -> str:
        value = await self._repo.get(THEME_KEY)
        return value if value in THEME_IDS else DEFAULT_THEME_ID

    async def set_theme_id(self, theme_id: str) -> OperationResult:
        if theme_id not in THEME_IDS:
            return OperationResult.fail(
                ErrorKind.VALIDATION_ERROR,
                f"Unknown theme: {theme_id!r}. Available: {', '.join(THEME_IDS)}",
            )
        return await self._set(THEME_KEY, theme_id)

    async def is_balance_hidden(self) -> bool:
        return _as_bool(await self._repo.get(BALANCE_HIDDEN_KEY))

    async def set_balance_hidden(self, hidden: bool) -> OperationResult:
        return await self._set(BALANCE_HIDDEN_KEY, "1" if hidden else "0")

    async def toggle_balance_hidden(self) -> OperationResult:
        return await self.set_balance_hidden(not await self.is_balance_hidden())

    # -------------------------------------------------------------------------
    # Reminders
    # -------------------------------------------------------------------------

    async def get_reminder_frequency(self) -> str:
        value = await self._repo.get(REMINDER_FREQUENCY_KEY)
        return value if value in REMINDER_INTERVAL_HOURS else DEFAULT_REMINDER_FREQUENCY

    async def set_reminder_frequency(self, frequency: str) -> OperationResult:
        if frequency not in REMINDER_INTERVAL_HOURS:
            return OperationResult.fail(
                ErrorKind.VALIDATION_ERROR,
                f"Unknown reminder frequency: {frequency!r}. "
                f"Available: {', '.join(REMINDER_INTERVAL_HOURS)}",
            )
        return await self._set(REMINDER_FREQUENCY_KEY, frequency)

    async def reminder_interval_hours(self) -> int:
        return REMINDER_INTERVAL_HOURS[await self.get_reminder_frequency()]

    # -------------------------------------------------------------------------
    # Onboarding / tutorial / tips
    # -------------------------------------------------------------------------

    async def is_onboarding_completed(self) -> bool:
        return _as_bool(await self._repo.get(ONBOARDING_COMPLETED_KEY))

    async def is_tutorial_completed(self) -> bool:
        return _as_bool(await self._repo.get(TUTORIAL_COMPLETED_KEY))

    async def set_tutorial_completed(self, completed: bool = True) -> OperationResult:
        return await self._set(TUTORIAL_COMPLETED_KEY, "true" if completed else "false")

    async def next_tip_index(self, category: str, tip_count: int) -> OperationResult:
        """
        Rotate to the next tip of a screen and remember it.

        Returns:
            OperationResult with data["index"] = the tip to show, or a
            VALIDATION_ERROR for an unknown category or an empty tip list
        """
        if category not in TIP_CATEGORIES:
            return OperationResult.fail(
                ErrorKind.VALIDATION_ERROR,
                f"Unknown tip category: {category!r}. Available: {', '.join(TIP_CATEGORIES)}",
            )
        if tip_count <= 0:
            return OperationResult.fail(ErrorKind.VALIDATION_ERROR, "There are no tips to show")

        key = f"{TIPS_INDEX_PREFIX}{category}"

        async def action() -> OperationResult:
            async with self._db.transaction():
                last = await self._repo.get(key)
                try:
                    last_index = int(last) if last is not None else -1
                except ValueError:
                    last_index = -1
                next_index = (last_index + 1) % tip_count
                await self._repo.set(key, str(next_index), utc_now())
            return OperationResult.ok(key, index=next_index)

        return await self._guard("next_tip_index", action, {"category": category})
