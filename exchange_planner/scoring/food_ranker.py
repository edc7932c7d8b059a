"""Food ranking: hard filters plus an additive score with reason codes.

Filters remove a food outright (diet pattern, clinical exclusions,
allergens, intolerances, hard kcal outliers). Every other signal adds or
subtracts points and records a RankReason with its signed impact.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from exchange_planner.data_layer.models import (
    FoodItem,
    KcalSelectionPolicy,
    PatientProfile,
    RankedFoodItem,
    RankReason,
)
from exchange_planner.data_layer.text_normalizer import matches_any_phrase, normalize_text
from exchange_planner.nutrition.rounding import clamp, round_half_up
from exchange_planner.scoring import diet_rules

# Points per signal
COUNTRY_MATCH = 25
STATE_MATCH = 12
NO_GEO_FALLBACK = 5
BUDGET_MATCH = 8
PREP_TIME_MATCH = 7
DIET_TAG_MATCH = 10
LIKED = 10
DISLIKED = -12
VEGETARIAN_HIGH_FAT_AOA = -8
DYSLIPIDEMIA_PENALTY = -10
HYPERTENSION_PENALTY = -8
MAX_KCAL_PENALTY = 24

# Protein grams per kcal above which a food counts as protein dense
LOSE_FAT_PROTEIN_DENSITY = 0.08
GAIN_MUSCLE_PROTEIN_DENSITY = 0.08
MAINTAIN_PROTEIN_DENSITY = 0.06


@dataclass
class RankingOptions:
    """Optional context for ranking.

    Attributes:
        subgroup_score_adjustments: bucket key -> additive score
        target_calories: day's target kcal, positions the kcal tolerance band
        bucket_kcal_targets: bucket key -> expected kcal per exchange
        kcal_policy: tolerance band; kcal fit is skipped without it
    """

    subgroup_score_adjustments: Dict[str, float] = field(default_factory=dict)
    target_calories: Optional[float] = None
    bucket_kcal_targets: Dict[str, float] = field(default_factory=dict)
    kcal_policy: Optional[KcalSelectionPolicy] = None


def goal_compatibility_score(goal: str, food: FoodItem) -> int:
    protein_density = food.protein_g / max(1.0, food.calories_kcal)
    if goal == "lose_fat":
        if food.calories_kcal <= 200:
            return 10
        return 6 if protein_density > LOSE_FAT_PROTEIN_DENSITY else -6
    if goal == "gain_muscle":
        if protein_density > GAIN_MUSCLE_PROTEIN_DENSITY:
            return 10
        return 6 if food.carbs_g > 20 else 0
    return 6 if protein_density > MAINTAIN_PROTEIN_DENSITY else 2


def has_geo_metadata(food: FoodItem) -> bool:
    has_weight = food.geo_weight is not None and math.isfinite(food.geo_weight)
    return bool(food.country_availability) or bool(food.state_availability) or has_weight


@dataclass(frozen=True)
class KcalFit:
    """Outcome of comparing a food's kcal to its bucket's reference kcal."""

    excluded: bool
    penalty: int


def kcal_fit(
    food_kcal: float,
    ref_kcal: float,
    target_calories: float,
    policy: KcalSelectionPolicy,
) -> KcalFit:
    """Tolerance interpolated on where ``target_calories`` sits in the policy band.

    Beyond ``allowed * hard_outlier_multiplier`` the food is excluded (when
    the policy asks for it); beyond ``allowed`` a soft penalty grows with the
    overage, capped at -24.
    """
    span = max(1.0, policy.high_target_kcal - policy.low_target_kcal)
    alpha = clamp((target_calories - policy.low_target_kcal) / span, 0.0, 1.0)
    tolerance_pct = policy.min_tolerance_pct + (policy.max_tolerance_pct - policy.min_tolerance_pct) * alpha
    allowed = max(policy.min_tolerance_kcal, ref_kcal * tolerance_pct)
    hard = allowed * policy.hard_outlier_multiplier
    diff = abs(food_kcal - ref_kcal)

    if policy.exclude_hard_outliers and diff > hard:
        return KcalFit(excluded=True, penalty=0)
    if diff <= allowed:
        return KcalFit(excluded=False, penalty=0)

    over_pct = (diff - allowed) / max(ref_kcal, 1.0)
    raw_penalty = over_pct / 0.1 * policy.soft_penalty_per_10pct
    return KcalFit(excluded=False, penalty=-int(min(MAX_KCAL_PENALTY, round_half_up(raw_penalty))))


class FoodRankingEngine:
    """Ranks bucket-resolved foods for one profile."""

    def passes_hard_filters(self, food: FoodItem, profile: PatientProfile) -> bool:
        if not diet_rules.is_diet_compatible(food, profile.diet_pattern):
            return False
        if diet_rules.excluded_by_clinical_flags(food, profile):
            return False
        for allergy in profile.allergies:
            if diet_rules.has_tag(food, "allergen", allergy):
                return False
        for intolerance in profile.intolerances:
            if diet_rules.has_tag(food, "intolerance", intolerance):
                return False
        return True

    def evaluate(
        self,
        food: FoodItem,
        profile: PatientProfile,
        options: Optional[RankingOptions] = None,
    ) -> Optional[RankedFoodItem]:
        """Score one food, or None if any hard filter excludes it."""
        options = options or RankingOptions()
        if not self.passes_hard_filters(food, profile):
            return None

        reasons: List[RankReason] = []

        def add(code: str, impact: float) -> None:
            reasons.append(RankReason(code=code, impact=impact))

        country = normalize_text(profile.country_code)
        if any(normalize_text(c) == country for c in food.country_availability):
            add("country_match", COUNTRY_MATCH)
        if profile.state_code and profile.state_code in food.state_availability:
            add("state_match", STATE_MATCH)
        if food.geo_weight:
            add("geo_weight", food.geo_weight)
        if not has_geo_metadata(food):
            add("fallback_neutral", NO_GEO_FALLBACK)

        add("goal_support", goal_compatibility_score(profile.goal, food))

        if diet_rules.has_tag(food, "budget", profile.budget_level):
            add("budget_match", BUDGET_MATCH)
        if diet_rules.has_tag(food, "prep_time", profile.prep_time_level):
            add("prep_match", PREP_TIME_MATCH)
        if diet_rules.has_tag(food, "diet", profile.diet_pattern):
            add("diet_pattern", DIET_TAG_MATCH)
        if matches_any_phrase([food.name], profile.likes):
            add("liked", LIKED)
        if matches_any_phrase([food.name], profile.dislikes):
            add("disliked_penalty", DISLIKED)

        code = diet_rules.subgroup_code(food)
        if profile.diet_pattern == "vegetarian" and code == diet_rules.HIGH_FAT_ANIMAL_SUBGROUP:
            add("subgroup_goal_fit", VEGETARIAN_HIGH_FAT_AOA)
        if profile.has_dyslipidemia and code in diet_rules.DYSLIPIDEMIA_PENALIZED_SUBGROUPS:
            add("subgroup_goal_fit", DYSLIPIDEMIA_PENALTY)
        if profile.has_hypertension and diet_rules.is_high_sodium(food):
            add("subgroup_goal_fit", HYPERTENSION_PENALTY)

        adjustment = options.subgroup_score_adjustments.get(food.bucket_key)
        if adjustment:
            add("subgroup_goal_fit", adjustment)

        ref_kcal = options.bucket_kcal_targets.get(food.bucket_key)
        target = options.target_calories
        if (
            ref_kcal is not None
            and ref_kcal > 0
            and target is not None
            and math.isfinite(target)
            and options.kcal_policy is not None
        ):
            fit = kcal_fit(food.calories_kcal, ref_kcal, target, options.kcal_policy)
            if fit.excluded:
                return None
            if fit.penalty != 0:
                add("kcal_fit", fit.penalty)

        return RankedFoodItem(food=food, score=sum(r.impact for r in reasons), reasons=reasons)

    def rank(
        self,
        foods: Sequence[FoodItem],
        profile: PatientProfile,
        options: Optional[RankingOptions] = None,
    ) -> List[RankedFoodItem]:
        """Ranked foods: score descending, then name ascending, then id.

        Args:
            foods: Bucket-resolved food catalog
            profile: Patient profile
            options: Subgroup adjustments and kcal-fit context

        Returns:
            List of RankedFoodItem that passed every hard filter
        """
        ranked = []
        for food in foods:
            result = self.evaluate(food, profile, options)
            if result is not None:
                ranked.append(result)
        ranked.sort(key=lambda item: (-item.score, item.food.name.casefold(), item.food.id))
        return ranked


def group_top_foods(ranked: Sequence[RankedFoodItem], top_n: int) -> Dict[str, List[RankedFoodItem]]:
    """First ``top_n`` ranked foods per bucket key, preserving rank order."""
    grouped: Dict[str, List[RankedFoodItem]] = {}
    for item in ranked:
        bucket = grouped.setdefault(item.bucket_key, [])
        if len(bucket) < top_n:
            bucket.append(item)
    return grouped
