"""Energy target calculator: BMR, TDEE, goal-adjusted calories and macro grams."""
import math
from typing import Dict

from exchange_planner.data_layer.models import EnergyTargets, PatientProfile
from exchange_planner.nutrition.rounding import clamp, round_half_up


class EnergyTargetCalculator:
    """Calculator deriving daily energy targets from a patient profile."""

    ACTIVITY_MULTIPLIERS: Dict[str, float] = {
        "low": 1.375,
        "medium": 1.55,
        "high": 1.725,
    }

    # Share of target calories as (carbs, protein, fat)
    MACRO_RATIOS: Dict[str, tuple] = {
        "maintain": (0.45, 0.25, 0.30),
        "lose_fat": (0.40, 0.30, 0.30),
        "gain_muscle": (0.50, 0.25, 0.25),
    }

    # Healthy weekly change, kg/week (min, max)
    WEEKLY_DELTA_RANGES: Dict[str, tuple] = {
        "lose_fat": (0.25, 0.75),
        "gain_muscle": (0.10, 0.40),
    }

    KCAL_PER_KG = 7700
    DAYS_PER_WEEK = 7
    GAIN_CALORIE_CAP_FACTOR = 1.35
    CALORIE_FLOOR_BY_SEX = {"female": 1200, "male": 1500}

    def calculate(self, profile: PatientProfile) -> EnergyTargets:
        """Calculate energy targets for a profile.

        BMR, TDEE and target calories are rounded to whole kcal and macros to
        one decimal; every intermediate step uses unrounded values.

        Args:
            profile: PatientProfile with anthropometry, activity and goal

        Returns:
            EnergyTargets for the day
        """
        bmr = calculate_bmr(
            profile.formula_id,
            profile.sex,
            profile.weight_kg,
            profile.height_cm,
            profile.age,
        )
        tdee = bmr * self.ACTIVITY_MULTIPLIERS.get(profile.activity_level, self.ACTIVITY_MULTIPLIERS["medium"])
        daily_delta = self.daily_delta_kcal(profile.goal, profile.goal_delta_kg_per_week)

        raw_target = tdee
        if profile.goal == "lose_fat":
            raw_target = tdee - daily_delta
        elif profile.goal == "gain_muscle":
            raw_target = tdee + daily_delta

        floor = self.CALORIE_FLOOR_BY_SEX.get(profile.sex, self.CALORIE_FLOOR_BY_SEX["female"])
        cap = tdee * self.GAIN_CALORIE_CAP_FACTOR if profile.goal == "gain_muscle" else math.inf
        target_calories = clamp(raw_target, floor, cap)

        carbs_ratio, protein_ratio, fat_ratio = self.MACRO_RATIOS.get(
            profile.goal, self.MACRO_RATIOS["maintain"]
        )
        return EnergyTargets(
            bmr=int(round_half_up(bmr)),
            tdee=int(round_half_up(tdee)),
            target_calories=int(round_half_up(target_calories)),
            carbs_g=round_half_up(target_calories * carbs_ratio / 4, 1),
            protein_g=round_half_up(target_calories * protein_ratio / 4, 1),
            fat_g=round_half_up(target_calories * fat_ratio / 9, 1),
        )

    def normalize_weekly_delta(self, goal: str, weekly_delta_kg: float) -> float:
        """Clamp the requested weekly change into the goal's healthy range.

        Maintain and non-finite deltas resolve to 0.
        """
        if goal not in self.WEEKLY_DELTA_RANGES:
            return 0.0
        if weekly_delta_kg is None or not math.isfinite(weekly_delta_kg):
            return 0.0
        low, high = self.WEEKLY_DELTA_RANGES[goal]
        return clamp(weekly_delta_kg, low, high)

    def daily_delta_kcal(self, goal: str, weekly_delta_kg: float) -> float:
        weekly = self.normalize_weekly_delta(goal, weekly_delta_kg)
        return weekly * self.KCAL_PER_KG / self.DAYS_PER_WEEK


# --- BMR formulas ---


def mifflin_st_jeor(sex: str, weight_kg: float, height_cm: float, age: float) -> float:
    base = 10 * weight_kg + 6.25 * height_cm - 5 * age
    return base + 5 if sex == "male" else base - 161


def harris_benedict_revised(sex: str, weight_kg: float, height_cm: float, age: float) -> float:
    if sex == "male":
        return 88.362 + 13.397 * weight_kg + 4.799 * height_cm - 5.677 * age
    return 447.593 + 9.247 * weight_kg + 3.098 * height_cm - 4.33 * age


def schofield(sex: str, weight_kg: float, age: float) -> float:
    """Schofield equation; three age bands (<30, 30-59, 60+)."""
    if sex == "male":
        if age < 30:
            return 15.057 * weight_kg + 692.2
        if age < 60:
            return 11.472 * weight_kg + 873.1
        return 11.711 * weight_kg + 587.7

    if age < 30:
        return 14.818 * weight_kg + 486.6
    if age < 60:
        return 8.126 * weight_kg + 845.6
    return 9.082 * weight_kg + 658.5


def calculate_bmr(formula_id: str, sex: str, weight_kg: float, height_cm: float, age: float) -> float:
    """Unrounded BMR for the given formula id.

    Ids match case-insensitively; unknown ids fall back to Mifflin-St Jeor.
    """
    formula = (formula_id or "").strip().lower()
    if formula == "harris_benedict_rev":
        return harris_benedict_revised(sex, weight_kg, height_cm, age)
    if formula == "schofield":
        return schofield(sex, weight_kg, age)
    return mifflin_st_jeor(sex, weight_kg, height_cm, age)
