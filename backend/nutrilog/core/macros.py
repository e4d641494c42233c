"""Macro Calculations - Pure functions for nutrition math.

All functions are pure: same input always produces same output, no side effects.
"""

from collections.abc import Iterable
from datetime import datetime, timezone

from .energy import calories_from_macros
from .models import DailyTotals, FoodEntry, GoalProgress, GoalSettings, MacroAmounts, MacroDensity


def scale_density(density: MacroDensity, grams: float) -> MacroAmounts:
    """Scale per-100 g macros to an actual portion.

    Performs no validation; callers must ensure grams > 0.

    Args:
        density: Macros per 100 grams
        grams: Portion weight in grams

    Returns:
        MacroAmounts for the portion, with calories derived from the macros
    """
    scale = grams / 100
    proteins = density.proteins * scale
    fats = density.fats * scale
    carbs = density.carbs * scale

    return MacroAmounts(
        proteins=proteins,
        fats=fats,
        carbs=carbs,
        calories=calories_from_macros(proteins, fats, carbs),
    )


def calculate_daily_totals(entries: Iterable[FoodEntry]) -> DailyTotals:
    """Sum macros and calories over a day's entries.

    Args:
        entries: Food entries for a day (any order)

    Returns:
        DailyTotals; all zeros for no entries
    """
    totals = DailyTotals()
    for entry in entries:
        totals = DailyTotals(
            proteins=totals.proteins + entry.proteins,
            fats=totals.fats + entry.fats,
            carbs=totals.carbs + entry.carbs,
            calories=totals.calories + entry.calories,
        )
    return totals


def calculate_goal_progress(totals: DailyTotals, goals: GoalSettings) -> list[GoalProgress]:
    """Compare daily totals against goals, one row per metric.

    Percent is capped at 100 and is 0 when the goal is 0.

    Args:
        totals: The day's totals
        goals: The user's goals

    Returns:
        Progress for calories, proteins, fats and carbs (in that order)
    """
    progress = []
    for metric in ("calories", "proteins", "fats", "carbs"):
        consumed = getattr(totals, metric)
        goal = getattr(goals, metric)
        percent = min(consumed / goal * 100, 100) if goal > 0 else 0
        progress.append(
            GoalProgress(
                metric=metric,
                consumed=consumed,
                goal=goal,
                percent=percent,
                remaining=goal - consumed,
            )
        )
    return progress


def sort_newest_first(entries: Iterable[FoodEntry]) -> list[FoodEntry]:
    """Order entries by creation time, most recent first."""
    return sorted(entries, key=_aware_created_at, reverse=True)


def _aware_created_at(entry: FoodEntry) -> datetime:
    # Naive timestamps are treated as UTC so they compare with stored ones
    if entry.created_at.tzinfo is None:
        return entry.created_at.replace(tzinfo=timezone.utc)
    return entry.created_at
