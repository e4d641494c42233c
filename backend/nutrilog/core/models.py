"""Core Data Models - Pydantic models for type safety.

Models carry validation only; all arithmetic lives in macros and goals.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .energy import calories_from_macros


ISO_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class MacroDensity(BaseModel):
    """Macronutrient grams per 100 grams of a food."""

    proteins: float = Field(default=20, ge=0, le=100, description="Protein per 100 g")
    fats: float = Field(default=5, ge=0, le=100, description="Fat per 100 g")
    carbs: float = Field(default=0, ge=0, le=100, description="Carbohydrates per 100 g")


class MacroAmounts(BaseModel):
    """Absolute macros for an actual portion, with derived calories."""

    proteins: float = Field(ge=0)
    fats: float = Field(ge=0)
    carbs: float = Field(ge=0)
    calories: float = Field(ge=0)


class FoodEntry(BaseModel):
    """A single food item logged on a calendar day."""

    id: Optional[str] = Field(default=None, description="Assigned by the store on creation")
    name: str = Field(min_length=1, description="Lowercased name of the food")
    grams: float = Field(gt=0, description="Portion weight in grams")
    proteins: float = Field(ge=0, description="Protein in grams for this portion")
    fats: float = Field(ge=0, description="Fat in grams for this portion")
    carbs: float = Field(ge=0, description="Carbohydrates in grams for this portion")
    calories: float = Field(ge=0, description="proteins*4 + fats*9 + carbs*4")
    date: str = Field(pattern=ISO_DATE_PATTERN, description="Calendar day (YYYY-MM-DD)")
    created_at: datetime = Field(default_factory=utc_now)


class GoalSettings(BaseModel):
    """Daily macro targets. Calories are always derived from the macros."""

    model_config = ConfigDict(frozen=True)

    proteins: float = Field(default=200, ge=0, description="Daily protein target in grams")
    fats: float = Field(default=80, ge=0, description="Daily fat target in grams")
    carbs: float = Field(default=300, ge=0, description="Daily carbohydrate target in grams")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def calories(self) -> float:
        return calories_from_macros(self.proteins, self.fats, self.carbs)


class DailyTotals(BaseModel):
    """Summed macros for a day's entries."""

    proteins: float = 0.0
    fats: float = 0.0
    carbs: float = 0.0
    calories: float = 0.0


class GoalProgress(BaseModel):
    """Progress of one metric towards its daily goal."""

    metric: str
    consumed: float
    goal: float
    percent: float = Field(ge=0, le=100, description="Capped at 100")
    remaining: float = Field(description="Negative if over goal")


class DayOverview(BaseModel):
    """Everything the overview screen shows for one day."""

    date: str = Field(pattern=ISO_DATE_PATTERN)
    entries: list[FoodEntry] = Field(default_factory=list)
    totals: DailyTotals
    goals: GoalSettings
    progress: list[GoalProgress] = Field(default_factory=list)
