"""Entry Construction - Pure functions for creating food entries.

All functions are pure: timestamps and dates are passed in by the caller.
"""

from datetime import date, datetime

from .errors import InputValidationError
from .macros import scale_density
from .models import FoodEntry, MacroDensity


def validate_entry_input(name: str, grams: float) -> str:
    """Check the add-entry form before anything is computed or stored.

    Args:
        name: Food name as typed
        grams: Portion weight

    Returns:
        The name normalized for storage (stripped, lowercased)

    Raises:
        InputValidationError: If the name is blank or grams is not positive
    """
    normalized = (name or "").strip().lower()
    if not normalized:
        raise InputValidationError("Food name is required")
    if grams is None or grams <= 0:
        raise InputValidationError("Weight must be greater than 0 grams")
    return normalized


def build_food_entry(
    entry_date: date,
    name: str,
    grams: float,
    density: MacroDensity,
    created_at: datetime,
) -> FoodEntry:
    """Create an unsaved entry with macros scaled to the portion.

    Raises:
        InputValidationError: If the name or weight is invalid
    """
    normalized = validate_entry_input(name, grams)
    amounts = scale_density(density, grams)

    return FoodEntry(
        name=normalized,
        grams=float(grams),
        proteins=amounts.proteins,
        fats=amounts.fats,
        carbs=amounts.carbs,
        calories=amounts.calories,
        date=entry_date.isoformat(),
        created_at=created_at,
    )


def duplicate_entry(entry: FoodEntry, today: date, created_at: datetime) -> FoodEntry:
    """Copy an entry onto today with a fresh timestamp and no id.

    The original's date is never carried over, and the original is untouched.
    """
    return FoodEntry(
        name=entry.name,
        grams=entry.grams,
        proteins=entry.proteins,
        fats=entry.fats,
        carbs=entry.carbs,
        calories=entry.calories,
        date=today.isoformat(),
        created_at=created_at,
    )
