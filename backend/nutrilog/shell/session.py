"""Tracker Session - Per-user view state and its live subscriptions.

A session is what the browser is looking at: the current screen, the
selected day, and the listeners that keep that day and the goals fresh.
Every listener it opens is released when the day changes or the session
closes.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime

from ..core.errors import InvalidTransitionError
from ..core.goals import DEFAULT_GOALS
from ..core.macros import calculate_daily_totals, calculate_goal_progress
from ..core.models import DayOverview, FoodEntry, GoalSettings, MacroDensity, utc_now
from ..core.navigation import Action, Screen, next_screen
from .goal_model import GoalModel
from .ledger import DailyLedger, SyncGateway
from .subscriptions import Subscription


logger = logging.getLogger(__name__)


class TrackerSession:
    """Screen state machine wired to the ledger and the goal model."""

    def __init__(
        self,
        gateway: SyncGateway,
        user_id: str,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.user_id = user_id
        self.ledger = DailyLedger(gateway, user_id, today=today, now=now)
        self.goal_model = GoalModel(gateway, user_id)
        self.screen = Screen.OVERVIEW
        self.selected_date = today()
        self.changes: Subscription[DayOverview] = Subscription(f"overview:{user_id[:8]}")

        self._foods: Subscription[list[FoodEntry]] | None = None
        self._goals = gateway.subscribe_goals(user_id)
        self._goals.add_listener(lambda _: self._publish())
        self._watch_selected_date()

    # ==================== Snapshots ====================

    @property
    def entries(self) -> list[FoodEntry]:
        """Entries of the selected day from the last snapshot."""
        if self._foods is None or self._foods.latest is None:
            return []
        return self._foods.latest

    @property
    def goals(self) -> GoalSettings:
        """Goals from the last snapshot (defaults until one arrives)."""
        return self._goals.latest or DEFAULT_GOALS

    def overview(self) -> DayOverview:
        """Build the overview screen for the selected day."""
        entries = self.entries
        goals = self.goals
        totals = calculate_daily_totals(entries)
        return DayOverview(
            date=self.selected_date.isoformat(),
            entries=entries,
            totals=totals,
            goals=goals,
            progress=calculate_goal_progress(totals, goals),
        )

    def find_entry(self, entry_id: str) -> FoodEntry | None:
        """Look up an entry in the selected day's last snapshot."""
        return next((e for e in self.entries if e.id == entry_id), None)

    # ==================== Navigation ====================

    def select_date(self, log_date: date) -> DayOverview:
        """Switch the overview to another day, releasing the old listener."""
        if log_date != self.selected_date or self._foods is None:
            if self._foods is not None:
                self._foods.unsubscribe()
            self.selected_date = log_date
            self._watch_selected_date()
            self._publish()
        return self.overview()

    def navigate(self, action: Action) -> Screen:
        """Apply a user navigation action (open-add, open-settings, back).

        Raises:
            InvalidTransitionError: If the action is not allowed here
        """
        if action is Action.SAVE:
            raise InvalidTransitionError("Saving goes through save_entry or save_goals")
        screen = next_screen(self.screen, action)
        if screen is Screen.SETTINGS:
            self.goal_model.load()
        self.screen = screen
        return screen

    # ==================== Entries ====================

    def save_entry(self, name: str, grams: float, density: MacroDensity) -> FoodEntry | None:
        """Add an entry on the selected day and return to the overview.

        The screen only changes if the store acknowledged the write.

        Raises:
            InvalidTransitionError: If the add screen is not open
            InputValidationError: If the name or weight is invalid
        """
        self._require(Screen.ADD_ENTRY)
        entry = self.ledger.add(self.selected_date, name, grams, density)
        if entry is not None:
            self.screen = next_screen(self.screen, Action.SAVE)
        return entry

    def delete_entry(self, entry_id: str) -> bool:
        return self.ledger.remove(entry_id)

    def repeat_entry(self, entry: FoodEntry) -> FoodEntry | None:
        """Log an entry again for today, whatever day is selected."""
        return self.ledger.duplicate(entry)

    # ==================== Goals ====================

    def update_goals(
        self,
        proteins: float | None = None,
        fats: float | None = None,
        carbs: float | None = None,
    ) -> GoalSettings:
        """Change the settings draft.

        Raises:
            InvalidTransitionError: If the settings screen is not open
            InputValidationError: If a target is out of range
        """
        self._require(Screen.SETTINGS)
        return self.goal_model.set_targets(proteins=proteins, fats=fats, carbs=carbs)

    def save_goals(self) -> bool:
        """Store the settings draft and return to the overview on success."""
        self._require(Screen.SETTINGS)
        saved = self.goal_model.save()
        if saved:
            self.screen = next_screen(self.screen, Action.SAVE)
        return saved

    # ==================== Lifetime ====================

    def close(self) -> None:
        """Release every listener held by this session."""
        if self._foods is not None:
            self._foods.unsubscribe()
        self._goals.unsubscribe()
        self.changes.unsubscribe()
        logger.debug("Closed session for user: %s", self.user_id[:8])

    @property
    def closed(self) -> bool:
        return not self.changes.active

    def _watch_selected_date(self) -> None:
        self._foods = self.ledger.list(self.selected_date)
        self._foods.add_listener(lambda _: self._publish())

    def _publish(self) -> None:
        if self.changes.active:
            self.changes.publish(self.overview())

    def _require(self, screen: Screen) -> None:
        if self.screen is not screen:
            raise InvalidTransitionError(
                f"The {screen.value} screen is not open (on {self.screen.value})"
            )


class SessionRegistry:
    """One session per signed-in user."""

    def __init__(
        self,
        gateway: SyncGateway,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.gateway = gateway
        self._today = today
        self._now = now
        self._sessions: dict[str, TrackerSession] = {}

    def get(self, user_id: str) -> TrackerSession:
        """Return the user's session, opening a new one if needed."""
        session = self._sessions.get(user_id)
        if session is None or session.closed:
            logger.info("Opening session for user: %s", user_id[:8])
            session = TrackerSession(self.gateway, user_id, today=self._today, now=self._now)
            self._sessions[user_id] = session
        return session

    def close(self, user_id: str) -> None:
        session = self._sessions.pop(user_id, None)
        if session is not None:
            session.close()

    def close_all(self) -> None:
        for user_id in list(self._sessions):
            self.close(user_id)
