"""Split group-level exchanges into subgroup exchanges by weighted shares."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from exchange_planner.data_layer.bucket_codes import (
    BucketFamily,
    BucketType,
    is_animal_origin,
    normalize_code,
)
from exchange_planner.data_layer.models import (
    BucketDefinition,
    BucketPlanRow,
    SubgroupSelectionPolicy,
)
from exchange_planner.nutrition.rounding import round_half

logger = logging.getLogger(__name__)

ANY_DIET_PATTERN = "any"

# Weight overrides (by subgroup legacy code) applied when a floor is active
FAT_FLOOR_WEIGHTS = {"grasa_sin_proteina": 60.0, "grasa_con_proteina": 40.0}
SUGAR_FLOOR_WEIGHTS = {"azucar_sin_grasa": 100.0, "azucar_con_grasa": 0.0}


@dataclass(frozen=True)
class WeightedShare:
    subgroup_id: int
    weight: float


def select_policies(
    policies: Iterable[SubgroupSelectionPolicy],
    goal: str,
    diet_pattern: str,
) -> List[SubgroupSelectionPolicy]:
    """Policies for the goal: exact diet-pattern rows if any exist, else ``any`` rows."""
    by_goal = [p for p in policies if p.goal == goal]
    exact = [p for p in by_goal if p.diet_pattern == diet_pattern]
    if exact:
        return exact
    return [p for p in by_goal if p.diet_pattern == ANY_DIET_PATTERN]


def resolve_policies(
    policies: Iterable[SubgroupSelectionPolicy],
    subgroups: Iterable[BucketDefinition],
    goal: str,
    diet_pattern: str,
) -> Dict[int, SubgroupSelectionPolicy]:
    """Active policy per subgroup id, restricted to subgroups in the catalog."""
    known_ids = {s.bucket_id for s in subgroups}
    return {
        p.subgroup_id: p
        for p in select_policies(policies, goal, diet_pattern)
        if p.subgroup_id in known_ids
    }


def distribute_by_shares(total_exchanges: float, shares: Sequence[WeightedShare]) -> Dict[int, float]:
    """Split ``total_exchanges`` across shares in half steps, conserving the total.

    Each normalized share is rounded to the nearest 0.5; the leftover is then
    corrected 0.5 at a time, visiting shares by descending weight (ties keep
    input order) and never taking a share below zero.
    """
    result: Dict[int, float] = {}
    if total_exchanges <= 0 or not shares:
        return result

    total_weight = sum(s.weight for s in shares)
    if total_weight > 0:
        normalized = [WeightedShare(s.subgroup_id, s.weight / total_weight) for s in shares]
    else:
        normalized = [WeightedShare(s.subgroup_id, 1 / len(shares)) for s in shares]

    for share in normalized:
        result[share.subgroup_id] = round_half(total_exchanges * share.weight)

    target = round_half(total_exchanges)
    diff = target - sum(result.values())
    priority = sorted(normalized, key=lambda s: -s.weight)

    while abs(diff) >= 0.5:
        changed = False
        for share in priority:
            if abs(diff) < 0.5:
                break
            existing = result[share.subgroup_id]
            if diff > 0:
                result[share.subgroup_id] = existing + 0.5
                diff -= 0.5
                changed = True
            elif existing > 0:
                result[share.subgroup_id] = max(0.0, existing - 0.5)
                diff += 0.5
                changed = True
        if not changed or sum(result.values()) == target:
            break

    return result


def _weight_overrides(
    family: Optional[BucketFamily],
    fat_floor_active: bool,
    sugar_floor_active: bool,
) -> Dict[str, float]:
    if family == BucketFamily.FAT and fat_floor_active:
        return FAT_FLOOR_WEIGHTS
    if family == BucketFamily.SUGAR and sugar_floor_active:
        return SUGAR_FLOOR_WEIGHTS
    return {}


def split_subgroups(
    group_rows: Sequence[BucketPlanRow],
    subgroups: Sequence[BucketDefinition],
    policies_by_subgroup: Dict[int, SubgroupSelectionPolicy],
    *,
    fat_floor_active: bool = False,
    sugar_floor_active: bool = False,
    exclude_animal_origin: bool = False,
) -> List[BucketPlanRow]:
    """Subgroup plan rows for every parent group with children and exchanges > 0.

    Subgroup weight is the floor override if one applies, else the policy's
    target share, else the subgroup's sample size. With
    ``exclude_animal_origin`` the AOA children receive nothing; a parent left
    without eligible children emits no subgroup rows and keeps its exchanges.
    """
    rows: List[BucketPlanRow] = []
    for group in group_rows:
        candidates = sorted(
            (s for s in subgroups if s.parent_group_id == group.bucket_id),
            key=lambda s: s.bucket_id,
        )
        if not candidates or group.exchanges_per_day <= 0:
            continue

        overrides = _weight_overrides(group.family, fat_floor_active, sugar_floor_active)
        eligible = [
            c for c in candidates
            if not (exclude_animal_origin and is_animal_origin(c.legacy_code))
        ]
        if not eligible:
            logger.warning(
                "No eligible subgroups under %s; keeping %.1f exchanges on the group",
                group.bucket_key, group.exchanges_per_day,
            )
            continue
        shares = []
        for candidate in eligible:
            code = normalize_code(candidate.legacy_code)
            policy = policies_by_subgroup.get(candidate.bucket_id)
            if code in overrides:
                weight = overrides[code]
            elif policy is not None:
                weight = policy.target_share_pct
            else:
                weight = float(candidate.sample_size)
            shares.append(WeightedShare(candidate.bucket_id, weight))

        distribution = distribute_by_shares(group.exchanges_per_day, shares)
        for candidate in candidates:
            exchanges = distribution.get(candidate.bucket_id, 0.0)
            rows.append(
                BucketPlanRow(
                    bucket_type=BucketType.SUBGROUP,
                    bucket_id=candidate.bucket_id,
                    bucket_name=candidate.name,
                    exchanges_per_day=exchanges,
                    cho_g=exchanges * candidate.cho_g,
                    pro_g=exchanges * candidate.pro_g,
                    fat_g=exchanges * candidate.fat_g,
                    kcal=exchanges * candidate.kcal_per_exchange,
                    legacy_code=candidate.legacy_code,
                    parent_group_id=group.bucket_id,
                )
            )
    return rows
