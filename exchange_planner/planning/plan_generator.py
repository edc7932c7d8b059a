"""Equivalent plan generation: targets, bucket plan, meal slots and ranked foods."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from exchange_planner.config import (
    DEFAULT_EXTENDED_FOODS_LIMIT,
    DEFAULT_TOP_FOODS_PER_BUCKET,
    EngineSettings,
)
from exchange_planner.data_layer.bucket_codes import BucketType, parse_bucket_key
from exchange_planner.data_layer.catalog_db import ExchangeCatalogDB
from exchange_planner.data_layer.food_db import FoodCatalogDB
from exchange_planner.data_layer.models import (
    BucketDefinition,
    BucketPlanRow,
    EnergyTargets,
    ExchangeSystemCatalog,
    FoodItem,
    MealSlot,
    PatientProfile,
    RankedFoodItem,
)
from exchange_planner.nutrition.energy import EnergyTargetCalculator
from exchange_planner.nutrition.rounding import parse_equivalent_quantity
from exchange_planner.planning.bucket_allocation import BucketAllocationEngine
from exchange_planner.planning.meal_distribution import MealDistributionEngine
from exchange_planner.planning.subgroup_split import split_subgroups
from exchange_planner.scoring.food_ranker import FoodRankingEngine, RankingOptions, group_top_foods

logger = logging.getLogger(__name__)

SplitChildren = Callable[[Sequence[BucketPlanRow]], List[BucketPlanRow]]


@dataclass
class PlanResult:
    """Everything downstream consumers need from one generated plan."""

    profile: PatientProfile
    targets: EnergyTargets
    bucket_catalog: List[BucketDefinition]
    bucket_plan: List[BucketPlanRow]
    meal_slots: List[MealSlot]
    top_foods_by_bucket: Dict[str, List[RankedFoodItem]] = field(default_factory=dict)
    extended_foods: List[RankedFoodItem] = field(default_factory=list)


def sort_bucket_catalog(buckets: Sequence[BucketDefinition]) -> List[BucketDefinition]:
    """Groups first by id, then subgroups by parent id and id."""
    def key(bucket: BucketDefinition):
        if bucket.bucket_type == BucketType.GROUP:
            return (0, 0, bucket.bucket_id)
        parent = bucket.parent_group_id if bucket.parent_group_id is not None else float("inf")
        return (1, parent, bucket.bucket_id)

    return sorted(buckets, key=key)


def _with_exchanges(row: BucketPlanRow, bucket: BucketDefinition, exchanges: float) -> BucketPlanRow:
    return dataclasses.replace(
        row,
        exchanges_per_day=exchanges,
        cho_g=exchanges * bucket.cho_g,
        pro_g=exchanges * bucket.pro_g,
        fat_g=exchanges * bucket.fat_g,
        kcal=exchanges * bucket.kcal_per_exchange,
    )


def apply_manual_adjustments(
    rows: Sequence[BucketPlanRow],
    catalog: ExchangeSystemCatalog,
    adjustments: Mapping[str, Any],
    split_children: Optional[SplitChildren] = None,
) -> List[BucketPlanRow]:
    """Override exchanges for selected buckets, recomputing their macros.

    Values may be numbers or strings such as "2,5"; they are snapped to the
    nearest half step. An adjusted group is split again into subgroups with
    ``split_children`` (sample-size weights when omitted). An adjusted
    subgroup sets its parent group to the sum of the parent's subgroup rows.

    Raises:
        ValueError: If a key is malformed, names a bucket not in the plan, or
            adjusts a group together with one of its subgroups
    """
    if not adjustments:
        return list(rows)
    if split_children is None:
        def split_children(parents):
            return split_subgroups(parents, catalog.subgroups, {})

    by_key = {bucket.key: bucket for bucket in catalog.buckets}
    wanted = {parse_bucket_key(key).key: parse_equivalent_quantity(value) for key, value in adjustments.items()}
    plan_keys = {row.bucket_key for row in rows}
    unknown = sorted(set(wanted) - plan_keys)
    if unknown:
        raise ValueError(f"Adjustment for bucket not in plan: {', '.join(unknown)}")

    adjusted = [
        _with_exchanges(row, by_key[row.bucket_key], wanted[row.bucket_key]) if row.bucket_key in wanted else row
        for row in rows
    ]
    groups = [row for row in adjusted if row.bucket_type == BucketType.GROUP]
    resplit_ids = {row.bucket_id for row in groups if row.bucket_key in wanted}
    summed_ids = {
        row.parent_group_id
        for row in adjusted
        if row.bucket_type == BucketType.SUBGROUP and row.bucket_key in wanted
    }
    conflicts = sorted(resplit_ids & summed_ids)
    if conflicts:
        keys = ", ".join(f"{BucketType.GROUP.value}:{group_id}" for group_id in conflicts)
        raise ValueError(f"Adjust a group or its subgroups, not both: {keys}")

    children = [
        row for row in adjusted
        if row.bucket_type == BucketType.SUBGROUP and row.parent_group_id not in resplit_ids
    ]
    children.extend(split_children([row for row in groups if row.bucket_id in resplit_ids]))

    totals: Dict[int, float] = {}
    for child in children:
        if child.parent_group_id in summed_ids:
            totals[child.parent_group_id] = totals.get(child.parent_group_id, 0.0) + child.exchanges_per_day
    groups = [
        _with_exchanges(row, by_key[row.bucket_key], totals[row.bucket_id]) if row.bucket_id in totals else row
        for row in groups
    ]

    # Subgroup rows follow their parents' order, then subgroup id
    position = {row.bucket_id: index for index, row in enumerate(groups)}
    children.sort(key=lambda row: (position.get(row.parent_group_id, len(position)), row.bucket_id))
    if resplit_ids or summed_ids:
        logger.debug("Re-derived subgroup rows for groups %s", sorted(resplit_ids | summed_ids))
    return groups + children


class EquivalentPlanGenerator:
    """Runs the full pipeline for one exchange system catalog."""

    def __init__(
        self,
        catalog: ExchangeSystemCatalog,
        top_foods_per_bucket: int = DEFAULT_TOP_FOODS_PER_BUCKET,
        extended_foods_limit: int = DEFAULT_EXTENDED_FOODS_LIMIT,
    ):
        """Initialize generator with a catalog.

        Args:
            catalog: Exchange system catalog (buckets and policies)
            top_foods_per_bucket: Ranked foods kept per bucket
            extended_foods_limit: Length of the extended ranked list

        Raises:
            ConfigurationError: If the catalog lacks required structure
        """
        self.catalog = catalog
        self.top_foods_per_bucket = top_foods_per_bucket
        self.extended_foods_limit = extended_foods_limit
        self.energy_calculator = EnergyTargetCalculator()
        self.allocation_engine = BucketAllocationEngine(catalog)
        self.meal_engine = MealDistributionEngine()
        self.ranking_engine = FoodRankingEngine()

    def ranking_options(self, profile: PatientProfile, targets: EnergyTargets) -> RankingOptions:
        policies = self.allocation_engine.resolved_policies(profile)
        adjustments = {
            f"{BucketType.SUBGROUP.value}:{subgroup_id}": policy.score_adjustment
            for subgroup_id, policy in policies.items()
        }
        return RankingOptions(
            subgroup_score_adjustments=adjustments,
            target_calories=targets.target_calories,
            bucket_kcal_targets={b.key: b.kcal_per_exchange for b in self.catalog.buckets},
            kcal_policy=self.catalog.kcal_policy,
        )

    def generate(
        self,
        profile: PatientProfile,
        foods: Sequence[FoodItem],
        adjustments: Optional[Mapping[str, Any]] = None,
    ) -> PlanResult:
        """Generate a complete plan.

        Args:
            profile: Patient profile; its system_id should match the catalog
            foods: Bucket-resolved foods to rank
            adjustments: Optional manual overrides, bucket key -> exchanges

        Returns:
            PlanResult
        """
        if profile.system_id != self.catalog.system_id:
            logger.warning(
                "Profile system %s differs from catalog %s; using the catalog",
                profile.system_id, self.catalog.system_id,
            )
        targets = self.energy_calculator.calculate(profile)
        bucket_plan = self.allocation_engine.allocate(targets, profile)
        bucket_plan = apply_manual_adjustments(
            bucket_plan,
            self.catalog,
            adjustments or {},
            split_children=lambda parents: self.allocation_engine.split_group_rows(parents, profile),
        )
        meal_slots = self.meal_engine.distribute(bucket_plan, profile)

        ranked = self.ranking_engine.rank(foods, profile, self.ranking_options(profile, targets))
        bucket_catalog = sort_bucket_catalog(self.catalog.buckets)
        top_foods = group_top_foods(ranked, self.top_foods_per_bucket)
        for bucket in bucket_catalog:
            top_foods.setdefault(bucket.key, [])

        logger.info(
            "Generated plan system=%s goal=%s target=%d kcal buckets=%d ranked=%d",
            self.catalog.system_id, profile.goal, targets.target_calories,
            len(bucket_plan), len(ranked),
        )
        return PlanResult(
            profile=profile,
            targets=targets,
            bucket_catalog=bucket_catalog,
            bucket_plan=bucket_plan,
            meal_slots=meal_slots,
            top_foods_by_bucket=top_foods,
            extended_foods=ranked[: self.extended_foods_limit],
        )


def generate_plan(
    profile: PatientProfile,
    settings: Optional[EngineSettings] = None,
    adjustments: Optional[Mapping[str, Any]] = None,
) -> PlanResult:
    """Load the catalog and foods named by ``settings`` and generate a plan.

    Raises:
        CatalogNotFoundError: If the profile's system is not in the catalog
        ConfigurationError: If the catalog is structurally unusable
        ValueError: If an adjustment is malformed or names a bucket not in the plan
    """
    settings = settings or EngineSettings()
    catalog = ExchangeCatalogDB(settings.catalog_path).get_system(profile.system_id)
    foods = FoodCatalogDB(settings.foods_path).get_all_foods(profile.system_id)
    generator = EquivalentPlanGenerator(
        catalog,
        top_foods_per_bucket=settings.top_foods_per_bucket,
        extended_foods_limit=settings.extended_foods_limit,
    )
    return generator.generate(profile, foods, adjustments)
