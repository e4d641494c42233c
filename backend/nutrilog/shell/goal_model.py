"""Goal Model - The settings screen's editable copy of the goals."""

import logging

from ..core.errors import GatewayWriteError
from ..core.goals import DEFAULT_GOALS, update_goal_targets
from ..core.models import GoalSettings
from .ledger import SyncGateway


logger = logging.getLogger(__name__)


class GoalModel:
    """Holds draft goals; calories are re-derived on every change."""

    def __init__(self, gateway: SyncGateway, user_id: str) -> None:
        self.gateway = gateway
        self.user_id = user_id
        self.goals: GoalSettings = DEFAULT_GOALS

    def load(self) -> GoalSettings:
        """Seed the draft with a one-shot read; defaults if nothing is stored."""
        self.goals = self.gateway.read_goals(self.user_id) or DEFAULT_GOALS
        return self.goals

    def set_targets(
        self,
        proteins: float | None = None,
        fats: float | None = None,
        carbs: float | None = None,
    ) -> GoalSettings:
        """Change macro targets in the draft.

        Raises:
            InputValidationError: If a target is out of range
        """
        self.goals = update_goal_targets(self.goals, proteins=proteins, fats=fats, carbs=carbs)
        return self.goals

    def save(self) -> bool:
        """Write the whole draft, with derived calories, to the store.

        Returns:
            True if the store acknowledged the write
        """
        try:
            self.gateway.write_goals(self.user_id, self.goals)
            return True
        except GatewayWriteError as e:
            logger.error("Failed to save goals: %s", str(e))
            return False
