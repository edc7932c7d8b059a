"""Meal percentage matrices: share of each family's daily exchanges per meal slot.

Static tables are selected by meals per day and exchange system, then the
carb/protein rows are swapped for goal-specific rows. The hybrid sport
focus builds its matrix from base meal shares instead.
"""

from typing import Dict, List, Optional

from exchange_planner.data_layer.bucket_codes import BucketFamily, ensure_exhaustive
from exchange_planner.data_layer.models import PatientProfile

F = BucketFamily
Matrix = Dict[BucketFamily, List[float]]

BREAKFAST = "Desayuno"
MORNING_SNACK = "Colacion AM"
LUNCH = "Comida"
AFTERNOON_SNACK = "Colacion PM"
DINNER = "Cena"

MEAL_NAMES: Dict[int, List[str]] = {
    3: [BREAKFAST, LUNCH, DINNER],
    4: [BREAKFAST, MORNING_SNACK, LUNCH, DINNER],
    5: [BREAKFAST, MORNING_SNACK, LUNCH, AFTERNOON_SNACK, DINNER],
}

MAIN_MEALS = (BREAKFAST, LUNCH, DINNER)
MX_SYSTEM_ID = "mx_smae"


def meal_names(meals_per_day: int) -> List[str]:
    return list(MEAL_NAMES.get(meals_per_day, MEAL_NAMES[3]))


# --- Static matrices ---

GENERIC_MATRICES: Dict[int, Matrix] = {
    3: {
        F.VEGETABLE: [15, 45, 40],
        F.FRUIT: [50, 25, 25],
        F.CARB: [30, 40, 30],
        F.LEGUME: [20, 45, 35],
        F.PROTEIN: [25, 40, 35],
        F.MILK: [50, 0, 50],
        F.FAT: [30, 35, 35],
        F.SUGAR: [50, 50, 0],
    },
    4: {
        F.VEGETABLE: [10, 5, 45, 40],
        F.FRUIT: [35, 30, 20, 15],
        F.CARB: [25, 15, 35, 25],
        F.LEGUME: [20, 0, 50, 30],
        F.PROTEIN: [25, 0, 40, 35],
        F.MILK: [40, 30, 0, 30],
        F.FAT: [25, 15, 30, 30],
        F.SUGAR: [30, 40, 30, 0],
    },
    5: {
        F.VEGETABLE: [10, 0, 40, 5, 45],
        F.FRUIT: [25, 25, 15, 25, 10],
        F.CARB: [25, 10, 30, 10, 25],
        F.LEGUME: [15, 0, 45, 0, 40],
        F.PROTEIN: [20, 5, 35, 5, 35],
        F.MILK: [35, 25, 0, 25, 15],
        F.FAT: [25, 10, 30, 10, 25],
        F.SUGAR: [25, 25, 25, 25, 0],
    },
}

# Keyed by (meals per day, dairy in snacks)
MX_MATRICES: Dict[tuple, Matrix] = {
    (4, True): {
        F.VEGETABLE: [15, 0, 45, 40],
        F.FRUIT: [30, 40, 15, 15],
        F.CARB: [30, 10, 35, 25],
        F.LEGUME: [15, 0, 50, 35],
        F.PROTEIN: [30, 0, 40, 30],
        F.MILK: [35, 40, 0, 25],
        F.FAT: [25, 10, 35, 30],
        F.SUGAR: [30, 10, 40, 20],
    },
    (5, True): {
        F.VEGETABLE: [15, 0, 40, 0, 45],
        F.FRUIT: [25, 30, 10, 25, 10],
        F.CARB: [25, 10, 30, 10, 25],
        F.LEGUME: [15, 0, 45, 0, 40],
        F.PROTEIN: [25, 5, 35, 5, 30],
        F.MILK: [30, 25, 0, 30, 15],
        F.FAT: [25, 5, 35, 5, 30],
        F.SUGAR: [25, 10, 35, 10, 20],
    },
}
MX_MATRICES[(4, False)] = {**MX_MATRICES[(4, True)], F.MILK: [50, 0, 0, 50]}
MX_MATRICES[(5, False)] = {**MX_MATRICES[(5, True)], F.MILK: [50, 0, 0, 0, 50]}

for _meals, _matrix in GENERIC_MATRICES.items():
    ensure_exhaustive(_matrix, f"GENERIC_MATRICES[{_meals}]")
for _key, _matrix in MX_MATRICES.items():
    ensure_exhaustive(_matrix, f"MX_MATRICES[{_key}]")

# lose_fat moves carbs toward dinner; gain_muscle loads protein at dinner
GOAL_ROW_OVERRIDES: Dict[int, Dict[str, Matrix]] = {
    3: {
        "lose_fat": {F.CARB: [25, 40, 35]},
        "gain_muscle": {F.PROTEIN: [25, 35, 40]},
    },
    4: {
        "lose_fat": {F.CARB: [20, 10, 40, 30]},
        "gain_muscle": {F.PROTEIN: [20, 5, 35, 40]},
    },
    5: {
        "lose_fat": {F.CARB: [20, 10, 30, 10, 30]},
        "gain_muscle": {F.PROTEIN: [20, 5, 30, 5, 40]},
    },
}


def static_matrix(meals_per_day: int, system_id: str, goal: str, dairy_in_snacks: bool) -> Matrix:
    meals = meals_per_day if meals_per_day in GENERIC_MATRICES else 3
    if system_id == MX_SYSTEM_ID and (meals, dairy_in_snacks) in MX_MATRICES:
        base = MX_MATRICES[(meals, dairy_in_snacks)]
    else:
        base = GENERIC_MATRICES[meals]
    matrix = {family: list(row) for family, row in base.items()}
    for family, row in GOAL_ROW_OVERRIDES[meals].get(goal, {}).items():
        matrix[family] = list(row)
    return matrix


# --- Hybrid sport matrix ---

HYBRID_BASE_SHARES: Dict[int, List[float]] = {
    3: [33, 34, 33],
    4: [30, 10, 30, 30],
    5: [28, 8, 28, 8, 28],
}

TRAINING_MAIN_MEAL = {"morning": BREAKFAST, "afternoon": LUNCH, "evening": DINNER}
TRAINING_SNACK = {"morning": MORNING_SNACK, "afternoon": AFTERNOON_SNACK, "evening": AFTERNOON_SNACK}

TRAINING_SHIFT_PCT = 5.0
TRAINING_BONUS_PCT = 10.0
TRAINING_BONUS_FAMILIES = (F.CARB, F.PROTEIN, F.FRUIT)
MAIN_MEAL_ONLY_FAMILIES = (F.VEGETABLE, F.LEGUME)


def _normalize_row(row: List[float]) -> List[float]:
    total = sum(row)
    if total <= 0:
        return row
    return [value * 100 / total for value in row]


def training_adjacent_slots(meals_per_day: int, training_window: str) -> List[int]:
    """Slot indexes that share the training bonus: aligned main meal plus its snack."""
    names = meal_names(meals_per_day)
    main = TRAINING_MAIN_MEAL.get(training_window)
    if main is None:
        return []
    slots = [names.index(main)]
    snack = TRAINING_SNACK.get(training_window)
    if snack in names:
        slots.append(names.index(snack))
    return slots


def hybrid_meal_shares(meals_per_day: int, training_window: str) -> List[float]:
    """Base meal shares with 5pp shifted to the training-aligned main meal."""
    names = meal_names(meals_per_day)
    shares = list(HYBRID_BASE_SHARES.get(meals_per_day, HYBRID_BASE_SHARES[3]))
    aligned: Optional[str] = TRAINING_MAIN_MEAL.get(training_window)
    if aligned is None:
        return shares
    others = [names.index(m) for m in MAIN_MEALS if m != aligned]
    shares[names.index(aligned)] += TRAINING_SHIFT_PCT
    for index in others:
        shares[index] -= TRAINING_SHIFT_PCT / len(others)
    return shares


def hybrid_matrix(meals_per_day: int, training_window: str) -> Matrix:
    names = meal_names(meals_per_day)
    shares = hybrid_meal_shares(meals_per_day, training_window)
    bonus_slots = training_adjacent_slots(meals_per_day, training_window)

    matrix: Matrix = {}
    for family in BucketFamily:
        row = list(shares)
        if family in TRAINING_BONUS_FAMILIES and bonus_slots:
            for index in bonus_slots:
                row[index] += TRAINING_BONUS_PCT / len(bonus_slots)
        if family in MAIN_MEAL_ONLY_FAMILIES:
            row = [0.0 if name not in MAIN_MEALS else value for name, value in zip(names, row)]
        matrix[family] = _normalize_row(row)
    return matrix


def select_matrix(profile: PatientProfile) -> Matrix:
    """Distribution matrix for a profile's meals, focus, goal and system."""
    if profile.planning_focus == "hybrid_sport":
        return hybrid_matrix(profile.meals_per_day, profile.training_window)
    return static_matrix(
        profile.meals_per_day,
        profile.system_id,
        profile.goal,
        profile.dairy_in_snacks,
    )
