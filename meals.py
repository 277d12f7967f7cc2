"""
Meal entries, daily totals and the text commands that correct them.
"""

import math
import re
from datetime import date
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

NUTRIENT_FIELDS = ("calories", "protein_g", "carbs_g", "fat_g", "fiber_g")

# Field corrections like "calories 450" or "protein 32 fat 10"
CORRECTION_PATTERNS = {
    "calories": re.compile(r"calories?\s+(\d+)", re.IGNORECASE),
    "protein_g": re.compile(r"proteins?\s+(\d+)", re.IGNORECASE),
    "carbs_g": re.compile(r"carbs?\s+(\d+)", re.IGNORECASE),
    "fat_g": re.compile(r"fat\s+(\d+)", re.IGNORECASE),
    "fiber_g": re.compile(r"fiber\s+(\d+)", re.IGNORECASE),
}


class MealEntry(BaseModel):
    """One meal as estimated from a photo (and possibly corrected)."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    meal: str = "Meal"
    calories: float = 0
    protein_g: float = 0
    carbs_g: float = 0
    fat_g: float = 0
    fiber_g: float = 0

    @field_validator("meal", mode="before")
    @classmethod
    def _default_name(cls, value):
        return "Meal" if value is None else value

    @field_validator(*NUTRIENT_FIELDS, mode="before")
    @classmethod
    def _missing_is_zero(cls, value):
        return 0 if value is None else value

    def corrected(self, edits: Dict[str, int]) -> "MealEntry":
        return self.model_copy(update=edits)


class Totals(BaseModel):
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    fiber: float = 0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def aggregate_meals(meals: Iterable[MealEntry]) -> Totals:
    """
    Sums the nutrient fields across meals. Values are kept unrounded.
    """
    totals = Totals()
    for meal in meals:
        totals.calories += meal.calories
        totals.protein += meal.protein_g
        totals.carbs += meal.carbs_g
        totals.fat += meal.fat_g
        totals.fiber += meal.fiber_g
    return totals


def parse_corrections(text: str) -> Optional[Dict[str, int]]:
    """
    Scans text for field corrections.

    :return: mapping of field name to new value, or None if nothing matched.
    """
    edits = {}
    for key, pattern in CORRECTION_PATTERNS.items():
        match = pattern.search(text)
        if match:
            edits[key] = int(match.group(1))
    return edits or None


def build_ledger_row(day: date, meals: List[MealEntry]) -> dict:
    """
    Builds the row written to the ledger: rounded totals plus meal names.
    """
    totals = aggregate_meals(meals)
    return {
        "date": day.isoformat(),
        "calories": round_half_up(totals.calories),
        "protein": round_half_up(totals.protein),
        "carbs": round_half_up(totals.carbs),
        "fat": round_half_up(totals.fat),
        "fiber": round_half_up(totals.fiber),
        "meals": ", ".join(meal.meal for meal in meals),
    }
