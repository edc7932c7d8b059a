"""Tests for meal matrices, MealDistributionEngine and the hybrid rebalancer."""
from typing import Dict, List, Optional

import pytest

from exchange_planner.data_layer.bucket_codes import BucketFamily, BucketType
from exchange_planner.data_layer.exceptions import UnknownBucketFamilyError
from exchange_planner.data_layer.models import BucketPlanRow, MealSlot, PatientProfile
from exchange_planner.planning.hybrid_rebalance import HybridRebalancer
from exchange_planner.planning.meal_distribution import (
    MealDistributionEngine,
    effective_plan_rows,
    largest_remainder,
)
from exchange_planner.planning.meal_matrices import (
    hybrid_matrix,
    hybrid_meal_shares,
    meal_names,
    static_matrix,
    training_adjacent_slots,
)


def _row(
    key: str,
    code: Optional[str],
    exchanges: float,
    kcal_per_exchange: float = 0.0,
    parent: Optional[int] = None,
) -> BucketPlanRow:
    kind, _, raw_id = key.partition(":")
    return BucketPlanRow(
        bucket_type=BucketType(kind),
        bucket_id=int(raw_id),
        bucket_name=code or key,
        exchanges_per_day=exchanges,
        cho_g=0.0,
        pro_g=0.0,
        fat_g=0.0,
        kcal=exchanges * kcal_per_exchange,
        legacy_code=code,
        parent_group_id=parent,
    )


def _profile(**overrides) -> PatientProfile:
    base = dict(meals_per_day=4, goal="maintain", system_id="us_usda")
    base.update(overrides)
    return PatientProfile(**base)


def _sum_by_bucket(slots: List[MealSlot], key: str) -> float:
    return sum(slot.distribution.get(key, 0.0) for slot in slots)


def _energy_pct(slots: List[MealSlot], rows: List[BucketPlanRow]) -> Dict[str, float]:
    kcal = {row.bucket_key: row.kcal_per_exchange for row in rows}
    totals = [sum(v * kcal.get(k, 0.0) for k, v in slot.distribution.items()) for slot in slots]
    day = sum(totals)
    return {slot.name: total * 100 / day for slot, total in zip(slots, totals)}


@pytest.fixture
def engine() -> MealDistributionEngine:
    return MealDistributionEngine()


class TestMealMatrices:
    """Tests for matrix selection and hybrid shares."""

    def test_meal_names(self):
        assert meal_names(3) == ["Desayuno", "Comida", "Cena"]
        assert meal_names(5) == ["Desayuno", "Colacion AM", "Comida", "Colacion PM", "Cena"]

    @pytest.mark.parametrize("meals", [3, 4, 5])
    @pytest.mark.parametrize("system_id", ["mx_smae", "us_usda"])
    def test_static_rows_cover_every_family(self, meals, system_id):
        matrix = static_matrix(meals, system_id, "maintain", True)
        assert set(matrix) == set(BucketFamily)
        assert all(len(row) == meals for row in matrix.values())

    def test_goal_overrides_replace_rows(self):
        assert static_matrix(4, "us_usda", "lose_fat", False)[BucketFamily.CARB] == [20, 10, 40, 30]
        assert static_matrix(3, "us_usda", "gain_muscle", False)[BucketFamily.PROTEIN] == [25, 35, 40]

    def test_mx_milk_row_depends_on_dairy_in_snacks(self):
        assert static_matrix(4, "mx_smae", "maintain", False)[BucketFamily.MILK] == [50, 0, 0, 50]
        assert static_matrix(4, "mx_smae", "maintain", True)[BucketFamily.MILK] == [35, 40, 0, 25]

    def test_hybrid_shares_shift_toward_training_meal(self):
        assert hybrid_meal_shares(5, "none") == [28, 8, 28, 8, 28]
        assert hybrid_meal_shares(5, "afternoon") == [25.5, 8, 33, 8, 25.5]

    def test_training_adjacent_slots(self):
        assert training_adjacent_slots(5, "afternoon") == [2, 3]
        assert training_adjacent_slots(3, "morning") == [0]
        assert training_adjacent_slots(4, "none") == []

    def test_hybrid_rows_are_normalized_and_keep_vegetables_in_main_meals(self):
        matrix = hybrid_matrix(5, "evening")
        for row in matrix.values():
            assert sum(row) == pytest.approx(100)
        assert matrix[BucketFamily.VEGETABLE][1] == 0
        assert matrix[BucketFamily.LEGUME][3] == 0


class TestLargestRemainder:
    """Tests for the exact integer split."""

    def test_split_conserves_units(self):
        assert largest_remainder(7, [25, 15, 35, 25]) == [2, 1, 2, 2]

    def test_ties_prefer_higher_percentage(self):
        assert largest_remainder(8, [25, 10, 35, 30]) == [2, 1, 3, 2]

    def test_zero_percentages_split_evenly(self):
        assert largest_remainder(3, [0, 0, 0]) == [1, 1, 1]

    def test_nothing_to_split(self):
        assert largest_remainder(0, [50, 50]) == [0, 0]


class TestMealDistributionEngine:
    """Tests for distributing bucket plans across meal slots."""

    def test_legume_reaches_breakfast_in_four_meals(self, engine):
        slots = engine.distribute([_row("subgroup:201", "legume", 7)], _profile())
        assert slots[0].distribution["subgroup:201"] > 0
        assert _sum_by_bucket(slots, "subgroup:201") == 7

    def test_small_bucket_is_concentrated(self, engine):
        slots = engine.distribute([_row("subgroup:301", "grasa_con_proteina", 1)], _profile())
        values = [slot.distribution["subgroup:301"] for slot in slots]
        assert [v for v in values if v > 0] == [1.0]
        assert values[2] == 1.0

    def test_half_step_totals_are_exact(self, engine):
        rows = [_row("group:8", "carb", 3.5), _row("group:2", "fruit", 2.5)]
        slots = engine.distribute(rows, _profile())
        assert [s.distribution["group:8"] for s in slots] == [1.0, 0.5, 1.0, 1.0]
        for row in rows:
            assert _sum_by_bucket(slots, row.bucket_key) == row.exchanges_per_day
            for slot in slots:
                assert (slot.distribution[row.bucket_key] * 2).is_integer()

    def test_parent_group_with_subgroups_is_skipped(self, engine):
        rows = [_row("group:6", "milk", 2), _row("subgroup:16", "leche_semidescremada", 1, parent=6)]
        assert [r.bucket_key for r in effective_plan_rows(rows)] == ["subgroup:16"]
        slots = engine.distribute(rows, _profile())
        assert all("group:6" not in slot.distribution for slot in slots)
        assert _sum_by_bucket(slots, "subgroup:16") == 1

    def test_subgroup_without_parent_keeps_group(self, engine):
        rows = [_row("group:6", "milk", 2), _row("subgroup:16", "leche_semidescremada", 1)]
        slots = engine.distribute(rows, _profile())
        assert all("group:6" in slot.distribution for slot in slots)
        assert all("subgroup:16" in slot.distribution for slot in slots)

    def test_subgroup_family_falls_back_to_parent(self, engine):
        rows = [_row("group:3", "carb", 4), _row("subgroup:90", "pan_dulce_nuevo", 4, parent=3)]
        slots = engine.distribute(rows, _profile())
        assert _sum_by_bucket(slots, "subgroup:90") == 4

    def test_unresolvable_family_is_fatal(self, engine):
        with pytest.raises(UnknownBucketFamilyError):
            engine.distribute([_row("subgroup:91", "misterio", 2)], _profile())

    def test_mx_snack_receives_fruit_and_milk(self, engine):
        rows = [_row("group:2", "fruit", 1), _row("subgroup:8", "leche_semidescremada", 1)]
        profile = _profile(system_id="mx_smae", dairy_in_snacks=True)
        slots = engine.distribute(rows, profile)
        snack = next(s for s in slots if s.name == "Colacion AM")
        assert snack.distribution["group:2"] == 1.0
        assert snack.distribution["subgroup:8"] == 1.0

    def test_mx_five_meal_milk_goes_to_afternoon_snack(self, engine):
        profile = _profile(system_id="mx_smae", dairy_in_snacks=True, meals_per_day=5)
        slots = engine.distribute([_row("subgroup:8", "leche_semidescremada", 0.5)], profile)
        snack = next(s for s in slots if s.name == "Colacion PM")
        assert snack.distribution["subgroup:8"] == 0.5

    def test_mx_snack_sugar_and_fat_below_lunch(self, engine):
        rows = [_row("subgroup:11", "azucar_sin_grasa", 4), _row("subgroup:13", "grasa_sin_proteina", 4)]
        profile = _profile(system_id="mx_smae", dairy_in_snacks=True)
        slots = {s.name: s.distribution for s in engine.distribute(rows, profile)}
        assert slots["Colacion AM"]["subgroup:11"] < slots["Comida"]["subgroup:11"]
        assert slots["Colacion AM"]["subgroup:13"] < slots["Comida"]["subgroup:13"]

    def test_every_slot_lists_every_bucket(self, engine):
        rows = [_row("group:1", "vegetable", 0), _row("group:7", "fat", 3)]
        slots = engine.distribute(rows, _profile(meals_per_day=3))
        assert len(slots) == 3
        for slot in slots:
            assert set(slot.distribution) == {"group:1", "group:7"}

    def test_clinical_focus_matches_default(self, engine):
        rows = [_row("group:2", "fruit", 2), _row("subgroup:2", "aoa_bajo_grasa", 4), _row("subgroup:13", "grasa_sin_proteina", 2)]
        default = engine.distribute(rows, _profile(system_id="mx_smae", dairy_in_snacks=True))
        clinical = engine.distribute(
            rows, _profile(system_id="mx_smae", dairy_in_snacks=True, planning_focus="clinical")
        )
        assert clinical == default


class TestHybridSport:
    """Tests for hybrid sport distribution and rebalancing."""

    def test_five_meals_main_spread_and_light_snacks(self, engine):
        rows = [
            _row("group:1", "vegetable", 6, 25),
            _row("group:2", "fruit", 5, 60),
            _row("subgroup:5", "cereal_sin_grasa", 8, 70),
            _row("subgroup:2", "aoa_bajo_grasa", 7, 55),
            _row("group:4", "legume", 4, 120),
            _row("subgroup:13", "grasa_sin_proteina", 3, 45),
        ]
        slots = engine.distribute(rows, _profile(meals_per_day=5, planning_focus="hybrid_sport"))
        pct = _energy_pct(slots, rows)
        mains = [pct["Desayuno"], pct["Comida"], pct["Cena"]]
        assert max(mains) - min(mains) <= 5
        assert pct["Colacion AM"] <= 10
        assert pct["Colacion PM"] <= 10
        assert pct["Colacion AM"] + pct["Colacion PM"] <= 20
        for row in rows:
            assert _sum_by_bucket(slots, row.bucket_key) == row.exchanges_per_day

    def test_afternoon_training_loads_lunch(self, engine):
        rows = [
            _row("subgroup:5", "cereal_sin_grasa", 10, 70),
            _row("subgroup:2", "aoa_bajo_grasa", 10, 55),
            _row("subgroup:13", "grasa_sin_proteina", 2, 45),
        ]
        profile = _profile(meals_per_day=5, planning_focus="hybrid_sport", training_window="afternoon")
        slots = {s.name: s.distribution for s in engine.distribute(rows, profile)}
        load = {name: d["subgroup:5"] + d["subgroup:2"] for name, d in slots.items()}
        assert load["Comida"] >= load["Desayuno"]
        assert load["Comida"] >= load["Cena"]

    def test_four_meals_single_snack_cap(self, engine):
        rows = [
            _row("subgroup:5", "cereal_sin_grasa", 8, 70),
            _row("subgroup:2", "aoa_bajo_grasa", 8, 55),
            _row("group:2", "fruit", 4, 60),
            _row("subgroup:13", "grasa_sin_proteina", 3, 45),
        ]
        slots = engine.distribute(rows, _profile(meals_per_day=4, planning_focus="hybrid_sport"))
        pct = _energy_pct(slots, rows)
        mains = [pct["Desayuno"], pct["Comida"], pct["Cena"]]
        assert max(mains) - min(mains) <= 5
        assert pct["Colacion AM"] <= 12

    def test_rebalancer_moves_snack_excess_to_lightest_main(self):
        rows = [_row("group:3", "carb", 6, 70)]
        slots = [
            MealSlot("Desayuno", {"group:3": 1.0}),
            MealSlot("Colacion AM", {"group:3": 3.0}),
            MealSlot("Comida", {"group:3": 1.0}),
            MealSlot("Cena", {"group:3": 1.0}),
        ]
        result = HybridRebalancer().rebalance(slots, rows)
        values = [s.distribution["group:3"] for s in result]
        assert sum(values) == 6.0
        assert values[1] < 3.0
        assert slots[1].distribution["group:3"] == 3.0

    def test_rebalancer_respects_iteration_cap(self):
        rows = [_row("group:3", "carb", 4, 70)]
        slots = [
            MealSlot("Desayuno", {"group:3": 4.0}),
            MealSlot("Comida", {"group:3": 0.0}),
            MealSlot("Cena", {"group:3": 0.0}),
        ]
        result = HybridRebalancer(max_iterations=0).rebalance(slots, rows)
        assert result == slots
        assert result[0] is not slots[0]

    def test_unit_values_default_to_one_without_kcal(self):
        values = HybridRebalancer.unit_values([_row("group:3", "carb", 2), _row("group:7", "fat", 2, 45)])
        assert values == {"group:3": 1.0, "group:7": 45.0}
