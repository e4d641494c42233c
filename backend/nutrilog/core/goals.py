"""Goal Derivation - Pure functions for daily macro targets.

Calories are never stored as input: GoalSettings derives them from the
macros on every read, so a target can only change through its macros.
"""

from typing import Any, Optional

from pydantic import ValidationError

from .errors import InputValidationError
from .models import GoalSettings


DEFAULT_GOALS = GoalSettings()

# Upper bounds of the settings sliders, in grams
GOAL_LIMITS: dict[str, float] = {
    "proteins": 400,
    "fats": 300,
    "carbs": 600,
}


def update_goal_targets(
    goals: GoalSettings,
    proteins: Optional[float] = None,
    fats: Optional[float] = None,
    carbs: Optional[float] = None,
) -> GoalSettings:
    """Return new goals with the given macro targets changed.

    Args:
        goals: Current goals
        proteins: New protein target (optional)
        fats: New fat target (optional)
        carbs: New carbohydrate target (optional)

    Returns:
        New GoalSettings; calories follow from the macros

    Raises:
        InputValidationError: If a target is negative or above its limit
    """
    updates = {"proteins": proteins, "fats": fats, "carbs": carbs}
    values = {
        name: float(value) if value is not None else getattr(goals, name)
        for name, value in updates.items()
    }

    for name, value in values.items():
        if updates[name] is None:
            continue
        if value < 0 or value > GOAL_LIMITS[name]:
            raise InputValidationError(
                f"{name} target must be between 0 and {GOAL_LIMITS[name]:g} g"
            )

    return GoalSettings(**values)


def goals_from_document(data: Optional[dict[str, Any]]) -> Optional[GoalSettings]:
    """Parse a stored goals document, ignoring any stored calorie value.

    Args:
        data: Document fields, or None when the document does not exist

    Returns:
        GoalSettings, or None if absent or malformed
    """
    if data is None:
        return None
    try:
        return GoalSettings(
            proteins=data.get("proteins", DEFAULT_GOALS.proteins),
            fats=data.get("fats", DEFAULT_GOALS.fats),
            carbs=data.get("carbs", DEFAULT_GOALS.carbs),
        )
    except ValidationError:
        return None


def goals_to_document(goals: GoalSettings) -> dict[str, float]:
    """Full goals document, calories included as derived at write time."""
    return {
        "proteins": goals.proteins,
        "fats": goals.fats,
        "carbs": goals.carbs,
        "calories": goals.calories,
    }
