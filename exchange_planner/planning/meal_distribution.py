"""Meal distribution: spread each bucket's daily exchanges over named meal slots.

Exchanges are handled as integer half units so the per-bucket sum across
slots always equals the bucket's daily exchanges exactly.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from exchange_planner.data_layer.bucket_codes import BucketFamily, BucketType
from exchange_planner.data_layer.exceptions import UnknownBucketFamilyError
from exchange_planner.data_layer.models import BucketPlanRow, MealSlot, PatientProfile
from exchange_planner.nutrition.rounding import from_half_units, round_half_up, to_half_units
from exchange_planner.planning.hybrid_rebalance import HybridRebalancer
from exchange_planner.planning.meal_matrices import (
    AFTERNOON_SNACK,
    MORNING_SNACK,
    MX_SYSTEM_ID,
    Matrix,
    meal_names,
    select_matrix,
)

logger = logging.getLogger(__name__)

# Buckets at or below this many half units land in a single slot
CONCENTRATE_MAX_UNITS = 2


def effective_plan_rows(rows: Sequence[BucketPlanRow]) -> List[BucketPlanRow]:
    """Drop group rows whose subgroup children are present in the plan."""
    parents_with_children = {
        row.parent_group_id
        for row in rows
        if row.bucket_type == BucketType.SUBGROUP and row.parent_group_id is not None
    }
    return [
        row for row in rows
        if not (row.bucket_type == BucketType.GROUP and row.bucket_id in parents_with_children)
    ]


def resolve_row_family(row: BucketPlanRow, rows: Sequence[BucketPlanRow]) -> BucketFamily:
    """Row family from its own code, else from its parent group's code."""
    family = row.family
    if family is not None:
        return family
    if row.parent_group_id is not None:
        parent = next(
            (r for r in rows if r.bucket_type == BucketType.GROUP and r.bucket_id == row.parent_group_id),
            None,
        )
        if parent is not None and parent.family is not None:
            return parent.family
    raise UnknownBucketFamilyError(row.bucket_key, row.legacy_code or "")


def largest_remainder(units: int, percentages: Sequence[float]) -> List[int]:
    """Split ``units`` across slots proportionally to ``percentages``.

    Percentages are converted to integer basis points so the split is exact
    and platform independent. Leftover units go to the largest remainders;
    ties prefer the higher percentage, then the earlier slot.
    """
    if units <= 0:
        return [0] * len(percentages)
    basis = [max(0, int(round_half_up(pct * 100))) for pct in percentages]
    total = sum(basis)
    if total == 0:
        basis = [1] * len(percentages)
        total = len(percentages)

    quotas = [units * bp for bp in basis]
    allocated = [q // total for q in quotas]
    remainders = [q % total for q in quotas]
    leftover = units - sum(allocated)
    order = sorted(range(len(basis)), key=lambda i: (-remainders[i], -basis[i], i))
    for index in order[:leftover]:
        allocated[index] += 1
    return allocated


def _first_max_index(values: Sequence[float]) -> int:
    best = 0
    for index, value in enumerate(values):
        if value > values[best]:
            best = index
    return best


class MealDistributionEngine:
    """Distributes a bucket plan across the day's meal slots."""

    def __init__(self, rebalancer: Optional[HybridRebalancer] = None):
        self.rebalancer = rebalancer or HybridRebalancer()

    def designated_snack(self, family: BucketFamily, profile: PatientProfile) -> Optional[str]:
        """Snack slot that receives a tiny fruit/dairy bucket whole (MX plans only)."""
        if profile.system_id != MX_SYSTEM_ID or profile.planning_focus == "hybrid_sport":
            return None
        if profile.meals_per_day not in (4, 5):
            return None
        if family == BucketFamily.FRUIT:
            return MORNING_SNACK
        if family == BucketFamily.MILK and profile.dairy_in_snacks:
            return MORNING_SNACK if profile.meals_per_day == 4 else AFTERNOON_SNACK
        return None

    def distribute_bucket(
        self,
        exchanges: float,
        family: BucketFamily,
        matrix: Matrix,
        names: Sequence[str],
        profile: PatientProfile,
    ) -> List[float]:
        units = max(0, to_half_units(exchanges))
        percentages = matrix[family]
        if units == 0:
            return [0.0] * len(names)

        if units <= CONCENTRATE_MAX_UNITS:
            allocated = [0] * len(names)
            snack = self.designated_snack(family, profile)
            index = names.index(snack) if snack in names else _first_max_index(percentages)
            allocated[index] = units
        else:
            allocated = largest_remainder(units, percentages)
        return [from_half_units(u) for u in allocated]

    def distribute(self, plan_rows: Sequence[BucketPlanRow], profile: PatientProfile) -> List[MealSlot]:
        """Meal slots for the profile's meals per day.

        Args:
            plan_rows: Bucket plan; parent groups with subgroup rows are skipped
            profile: Profile (meals per day, goal, focus, training, system)

        Returns:
            One MealSlot per meal, each holding every effective bucket key
        """
        names = meal_names(profile.meals_per_day)
        matrix = select_matrix(profile)
        rows = effective_plan_rows(plan_rows)
        slots = [MealSlot(name=name) for name in names]

        for row in rows:
            family = resolve_row_family(row, plan_rows)
            values = self.distribute_bucket(row.exchanges_per_day, family, matrix, names, profile)
            for slot, value in zip(slots, values):
                slot.distribution[row.bucket_key] = value

        if profile.planning_focus == "hybrid_sport":
            slots = self.rebalancer.rebalance(slots, rows)
        return slots
