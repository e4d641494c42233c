"""Daily Ledger - A user's food entries per calendar day.

Wires the pure entry and macro functions to the sync gateway. Gateway
failures are logged here and never propagate to the caller.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime
from typing import Protocol

from ..core.entries import build_food_entry, duplicate_entry
from ..core.errors import GatewayWriteError
from ..core.macros import calculate_daily_totals, scale_density
from ..core.models import DailyTotals, FoodEntry, GoalSettings, MacroAmounts, MacroDensity, utc_now
from .subscriptions import Subscription


logger = logging.getLogger(__name__)


class SyncGateway(Protocol):
    """Remote per-user document store with live listeners."""

    def subscribe_goals(self, user_id: str) -> Subscription[GoalSettings]: ...

    def subscribe_foods(self, user_id: str, log_date: date) -> Subscription[list[FoodEntry]]: ...

    def create_food(self, user_id: str, entry: FoodEntry) -> str: ...

    def delete_food(self, user_id: str, food_id: str) -> None: ...

    def read_goals(self, user_id: str) -> GoalSettings | None: ...

    def write_goals(self, user_id: str, goals: GoalSettings) -> None: ...


class DailyLedger:
    """Add, remove, duplicate and watch one user's food entries."""

    def __init__(
        self,
        gateway: SyncGateway,
        user_id: str,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.gateway = gateway
        self.user_id = user_id
        self._today = today
        self._now = now

    def list(self, log_date: date) -> Subscription[list[FoodEntry]]:
        """Watch a day's entries, newest first. The caller releases it."""
        return self.gateway.subscribe_foods(self.user_id, log_date)

    @staticmethod
    def aggregate(entries: Iterable[FoodEntry]) -> DailyTotals:
        return calculate_daily_totals(entries)

    @staticmethod
    def preview(grams: float, density: MacroDensity) -> MacroAmounts:
        """Macros for a portion as the add form fills in; nothing is stored."""
        return scale_density(density, max(grams, 0))

    def add(
        self, log_date: date, name: str, grams: float, density: MacroDensity
    ) -> FoodEntry | None:
        """Compute and store a new entry.

        Args:
            log_date: Day the entry belongs to
            name: Food name (lowercased on save)
            grams: Portion weight, must be > 0
            density: Macros per 100 g

        Returns:
            The stored entry with its ID, or None if the write failed

        Raises:
            InputValidationError: If the name is blank or grams <= 0;
                nothing is written
        """
        entry = build_food_entry(log_date, name, grams, density, created_at=self._now())
        return self._store(entry)

    def remove(self, entry_id: str) -> bool:
        """Delete an entry; an already missing entry counts as removed.

        Returns:
            True if the store acknowledged the delete
        """
        try:
            self.gateway.delete_food(self.user_id, entry_id)
            return True
        except GatewayWriteError as e:
            logger.error("Failed to delete entry %s: %s", entry_id, str(e))
            return False

    def duplicate(self, entry: FoodEntry) -> FoodEntry | None:
        """Log the same food again today as a new entry.

        The original entry is neither read from nor written to the store.

        Returns:
            The new entry, or None if the write failed
        """
        return self._store(duplicate_entry(entry, today=self._today(), created_at=self._now()))

    def _store(self, entry: FoodEntry) -> FoodEntry | None:
        try:
            entry_id = self.gateway.create_food(self.user_id, entry)
        except GatewayWriteError as e:
            logger.error("Failed to save entry '%s': %s", entry.name, str(e))
            return None
        return entry.model_copy(update={"id": entry_id})
