"""Bucket allocation: daily exchanges per bucket under a macro budget.

Groups are allocated in family order as a fold over a MacroBudget: fixed
quotas first, then goal floors, then every remaining family is estimated
from whatever budget is left. Group totals are then split into subgroups.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from exchange_planner.data_layer.bucket_codes import (
    FAMILY_SORT_ORDER,
    BucketFamily,
    BucketType,
    is_animal_origin,
)
from exchange_planner.data_layer.exceptions import (
    MissingBucketFamilyError,
    UnknownBucketFamilyError,
)
from exchange_planner.data_layer.models import (
    BucketDefinition,
    BucketPlanRow,
    EnergyTargets,
    ExchangeSystemCatalog,
    PatientProfile,
    SubgroupSelectionPolicy,
)
from exchange_planner.data_layer.text_normalizer import contains_any, normalize_text
from exchange_planner.nutrition.rounding import clamp, round_half
from exchange_planner.planning.subgroup_split import resolve_policies, split_subgroups

logger = logging.getLogger(__name__)

FIXED_GROUP_EXCHANGES: Dict[BucketFamily, float] = {
    BucketFamily.VEGETABLE: 3.0,
    BucketFamily.FRUIT: 2.0,
}

FAT_FLOOR_EXCHANGES = 1.0
SUGAR_FLOOR_EXCHANGES = 0.5
MAX_EXCHANGES_PER_GROUP = 30.0

DEFAULT_REQUIRED_FAMILIES: Tuple[BucketFamily, ...] = (
    BucketFamily.VEGETABLE,
    BucketFamily.FRUIT,
    BucketFamily.CARB,
    BucketFamily.LEGUME,
    BucketFamily.FAT,
    BucketFamily.PROTEIN,
)

SWEET_PREFERENCE_KEYWORDS = (
    "nieve",
    "helado",
    "postre",
    "dulce",
    "chocolate",
    "cajeta",
    "miel",
    "caramelo",
    "azucar",
)


def has_sweet_preference(likes: Iterable[str]) -> bool:
    normalized = [normalize_text(like) for like in likes if like and like.strip()]
    return any(contains_any(like, SWEET_PREFERENCE_KEYWORDS) for like in normalized)


def fat_floor_applies(profile: PatientProfile) -> bool:
    return profile.goal == "lose_fat" and not profile.has_dyslipidemia


def sugar_floor_applies(profile: PatientProfile) -> bool:
    if profile.goal != "lose_fat" or profile.has_diabetes:
        return False
    return has_sweet_preference(profile.likes)


# --- Macro budget fold ---


@dataclass(frozen=True)
class MacroBudget:
    """Remaining macro grams while groups are allocated. May go negative."""

    cho_g: float
    pro_g: float
    fat_g: float

    @classmethod
    def from_targets(cls, targets: EnergyTargets) -> "MacroBudget":
        return cls(targets.carbs_g, targets.protein_g, targets.fat_g)

    def consume(self, bucket: BucketDefinition, exchanges: float) -> "MacroBudget":
        return MacroBudget(
            self.cho_g - exchanges * bucket.cho_g,
            self.pro_g - exchanges * bucket.pro_g,
            self.fat_g - exchanges * bucket.fat_g,
        )


@dataclass(frozen=True)
class GroupAllocation:
    group: BucketDefinition
    family: BucketFamily
    exchanges: float


def estimate_exchanges(family: BucketFamily, group: BucketDefinition, budget: MacroBudget) -> float:
    """Unrounded exchanges the remaining budget affords for one group."""
    if family == BucketFamily.PROTEIN and group.pro_g > 0:
        return budget.pro_g / group.pro_g
    if family == BucketFamily.FAT and group.fat_g > 0:
        return budget.fat_g / group.fat_g
    if family == BucketFamily.LEGUME:
        by_pro = budget.pro_g / group.pro_g if group.pro_g > 0 else math.inf
        by_cho = budget.cho_g / group.cho_g if group.cho_g > 0 else math.inf
        estimate = min(by_pro, by_cho)
        return 0.0 if math.isinf(estimate) else estimate
    if group.cho_g > 0:
        return budget.cho_g / group.cho_g
    if group.pro_g > 0:
        return budget.pro_g / group.pro_g
    if group.fat_g > 0:
        return budget.fat_g / group.fat_g
    return 0.0


def allocate_estimated(
    family: BucketFamily,
    group: BucketDefinition,
    budget: MacroBudget,
    profile: PatientProfile,
) -> float:
    if family == BucketFamily.SUGAR and profile.has_diabetes:
        return 0.0
    estimate = estimate_exchanges(family, group, budget)
    return round_half(clamp(estimate, 0.0, MAX_EXCHANGES_PER_GROUP))


def floor_exchanges(profile: PatientProfile) -> Dict[BucketFamily, float]:
    floors: Dict[BucketFamily, float] = {}
    if fat_floor_applies(profile):
        floors[BucketFamily.FAT] = FAT_FLOOR_EXCHANGES
    if sugar_floor_applies(profile):
        floors[BucketFamily.SUGAR] = SUGAR_FLOOR_EXCHANGES
    return floors


def fold_group_allocations(
    targets: EnergyTargets,
    groups: Sequence[Tuple[BucketDefinition, BucketFamily]],
    profile: PatientProfile,
    zeroed_group_ids: Iterable[int] = (),
) -> Tuple[List[GroupAllocation], MacroBudget]:
    """Allocate every group; returns allocations in input order and the leftover budget.

    ``groups`` must already be in family sort order. Groups listed in
    ``zeroed_group_ids`` get 0 exchanges and consume no budget.
    """
    budget = MacroBudget.from_targets(targets)
    decided: Dict[int, float] = {gid: 0.0 for gid in zeroed_group_ids}

    for group, family in groups:
        fixed = FIXED_GROUP_EXCHANGES.get(family)
        if fixed is None or group.bucket_id in decided:
            continue
        decided[group.bucket_id] = fixed
        budget = budget.consume(group, fixed)

    for floor_family, minimum in floor_exchanges(profile).items():
        match = next(((g, f) for g, f in groups if f == floor_family), None)
        if match is None or match[0].bucket_id in decided:
            continue
        floor = round_half(clamp(minimum, 0.0, MAX_EXCHANGES_PER_GROUP))
        decided[match[0].bucket_id] = floor
        budget = budget.consume(match[0], floor)

    for group, family in groups:
        if group.bucket_id in decided:
            continue
        exchanges = allocate_estimated(family, group, budget, profile)
        decided[group.bucket_id] = exchanges
        budget = budget.consume(group, exchanges)

    allocations = [GroupAllocation(g, f, decided[g.bucket_id]) for g, f in groups]
    return allocations, budget


def _group_row(allocation: GroupAllocation) -> BucketPlanRow:
    group, exchanges = allocation.group, allocation.exchanges
    return BucketPlanRow(
        bucket_type=BucketType.GROUP,
        bucket_id=group.bucket_id,
        bucket_name=group.name,
        exchanges_per_day=exchanges,
        cho_g=exchanges * group.cho_g,
        pro_g=exchanges * group.pro_g,
        fat_g=exchanges * group.fat_g,
        kcal=exchanges * group.kcal_per_exchange,
        legacy_code=allocation.family.value,
    )


class BucketAllocationEngine:
    """Allocates daily exchanges to every group and subgroup of one catalog."""

    def __init__(self, catalog: ExchangeSystemCatalog):
        """Initialize engine with an exchange system catalog.

        Args:
            catalog: Buckets and subgroup policies of one exchange system

        Raises:
            UnknownBucketFamilyError: If a group's legacy code has no family
            MissingBucketFamilyError: If a required family has no group
        """
        self.catalog = catalog
        self._groups = self._resolve_groups(catalog.groups)
        self._check_required_families()

    @staticmethod
    def _resolve_groups(groups: Sequence[BucketDefinition]) -> List[Tuple[BucketDefinition, BucketFamily]]:
        resolved = []
        for group in groups:
            family = group.family
            if family is None:
                raise UnknownBucketFamilyError(group.key, group.legacy_code or "")
            resolved.append((group, family))
        return sorted(resolved, key=lambda gf: (FAMILY_SORT_ORDER[gf[1]], gf[0].bucket_id))

    def _check_required_families(self) -> None:
        required = self.catalog.required_families or list(DEFAULT_REQUIRED_FAMILIES)
        present = {family for _, family in self._groups}
        missing = [f.value for f in required if f not in present]
        if missing:
            raise MissingBucketFamilyError(self.catalog.system_id, missing)

    def sorted_groups(self) -> List[Tuple[BucketDefinition, BucketFamily]]:
        return list(self._groups)

    def resolved_policies(self, profile: PatientProfile) -> Dict[int, SubgroupSelectionPolicy]:
        return resolve_policies(
            self.catalog.subgroup_policies,
            self.catalog.subgroups,
            profile.goal,
            profile.diet_pattern,
        )

    def _vegan_zeroed_groups(self, profile: PatientProfile) -> List[int]:
        """Protein groups whose children are all animal-origin get nothing for vegans."""
        if profile.diet_pattern != "vegan":
            return []
        zeroed = []
        for group, family in self._groups:
            if family != BucketFamily.PROTEIN:
                continue
            children = [s for s in self.catalog.subgroups if s.parent_group_id == group.bucket_id]
            if children and all(is_animal_origin(c.legacy_code) for c in children):
                zeroed.append(group.bucket_id)
        return zeroed

    def allocate_groups(self, targets: EnergyTargets, profile: PatientProfile) -> List[BucketPlanRow]:
        allocations, remaining = fold_group_allocations(
            targets, self._groups, profile, self._vegan_zeroed_groups(profile)
        )
        logger.debug(
            "Group allocation left cho=%.1f pro=%.1f fat=%.1f g unassigned",
            remaining.cho_g, remaining.pro_g, remaining.fat_g,
        )
        return [_group_row(a) for a in allocations]

    def allocate(
        self,
        targets: EnergyTargets,
        profile: PatientProfile,
        policies_by_subgroup: Optional[Dict[int, SubgroupSelectionPolicy]] = None,
    ) -> List[BucketPlanRow]:
        """Full bucket plan: group rows in family order followed by subgroup rows.

        Args:
            targets: Daily energy targets
            profile: Patient profile (goal, diet pattern, clinical flags, likes)
            policies_by_subgroup: Pre-resolved policies; resolved from the
                catalog when omitted

        Returns:
            List of BucketPlanRow
        """
        group_rows = self.allocate_groups(targets, profile)
        return group_rows + self.split_group_rows(group_rows, profile, policies_by_subgroup)

    def split_group_rows(
        self,
        group_rows: Sequence[BucketPlanRow],
        profile: PatientProfile,
        policies_by_subgroup: Optional[Dict[int, SubgroupSelectionPolicy]] = None,
    ) -> List[BucketPlanRow]:
        """Subgroup rows for ``group_rows`` under the profile's policies and floors."""
        if policies_by_subgroup is None:
            policies_by_subgroup = self.resolved_policies(profile)
        return split_subgroups(
            group_rows,
            self.catalog.subgroups,
            policies_by_subgroup,
            fat_floor_active=fat_floor_applies(profile),
            sugar_floor_active=sugar_floor_applies(profile),
            exclude_animal_origin=profile.diet_pattern == "vegan",
        )
