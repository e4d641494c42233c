"""Energy Density - Calories per gram of each macronutrient.

Shared by entry calculations and goal derivation so both use one formula.
"""

PROTEIN_KCAL_PER_G = 4
FAT_KCAL_PER_G = 9
CARB_KCAL_PER_G = 4


def calories_from_macros(proteins: float, fats: float, carbs: float) -> float:
    """Calculate calories from macronutrient grams.

    Args:
        proteins: Grams of protein
        fats: Grams of fat
        carbs: Grams of carbohydrates

    Returns:
        Calories (not rounded)
    """
    return (
        proteins * PROTEIN_KCAL_PER_G
        + fats * FAT_KCAL_PER_G
        + carbs * CARB_KCAL_PER_G
    )
