"""Unit tests for output formatters."""

import pytest
import json
from exchange_planner.data_layer.bucket_codes import BucketType
from exchange_planner.data_layer.models import (
    BucketDefinition,
    BucketPlanRow,
    EnergyTargets,
    FoodItem,
    MealSlot,
    PatientProfile,
    RankedFoodItem,
    RankReason,
)
from exchange_planner.planning.plan_generator import PlanResult
from exchange_planner.output.formatters import (
    format_bucket_row,
    format_exchanges,
    format_plan_markdown,
    format_plan_json,
    format_plan_json_string
)


@pytest.fixture
def sample_plan_result():
    """Create a small plan result for testing."""
    fruit = BucketDefinition(
        bucket_type=BucketType.GROUP, bucket_id=2, name="Frutas",
        cho_g=15, pro_g=0, fat_g=0, kcal_per_exchange=60, legacy_code="fruit",
    )
    lean = BucketDefinition(
        bucket_type=BucketType.SUBGROUP, bucket_id=1, name="AOA muy bajo aporte de grasa",
        cho_g=0, pro_g=7, fat_g=1, kcal_per_exchange=40, parent_group_id=5,
        legacy_code="aoa_muy_bajo_grasa",
    )
    rows = [
        BucketPlanRow(BucketType.GROUP, 2, "Frutas", 2.0, 30.0, 0.0, 0.0, 120.0, "fruit"),
        BucketPlanRow(BucketType.SUBGROUP, 1, "AOA muy bajo aporte de grasa", 1.5, 0.0, 10.5, 1.5,
                      60.0, "aoa_muy_bajo_grasa", 5),
    ]
    slots = [
        MealSlot("Desayuno", {"group:2": 1.0, "subgroup:1": 0.5}),
        MealSlot("Comida", {"group:2": 1.0, "subgroup:1": 1.0}),
        MealSlot("Cena", {"group:2": 0.0, "subgroup:1": 0.0}),
    ]
    apple = FoodItem(id=10, name="Manzana", group_id=2, carbs_g=15, protein_g=0, fat_g=0,
                     calories_kcal=60, serving_qty=1, serving_unit="pieza", country_availability=["MX"])
    ranked = RankedFoodItem(
        food=apple, score=27.0,
        reasons=[RankReason("country_match", 25), RankReason("goal_support", 2)],
    )
    return PlanResult(
        profile=PatientProfile(),
        targets=EnergyTargets(bmr=1420, tdee=2201, target_calories=2201,
                              carbs_g=247.61, protein_g=137.56, fat_g=73.37),
        bucket_catalog=[fruit, lean],
        bucket_plan=rows,
        meal_slots=slots,
        top_foods_by_bucket={"group:2": [ranked], "subgroup:1": []},
        extended_foods=[ranked],
    )


class TestFormatExchanges:
    """Test exchange count formatting."""

    @pytest.mark.parametrize("value,expected", [(2.0, "2"), (1.5, "1.5"), (0.0, "0"), (12.5, "12.5")])
    def test_format_exchanges(self, value, expected):
        assert format_exchanges(value) == expected

    def test_format_bucket_row(self, sample_plan_result):
        """Test a daily exchanges table row."""
        row = format_bucket_row(sample_plan_result.bucket_plan[1])
        assert row == "| AOA muy bajo aporte de grasa | `subgroup:1` | 1.5 | 0.0 | 10.5 | 1.5 | 60 |"


class TestFormatPlanMarkdown:
    """Test Markdown formatting."""

    def test_format_markdown_sections(self, sample_plan_result):
        """Test that every section is rendered."""
        markdown = format_plan_markdown(sample_plan_result)
        assert markdown.startswith("# Equivalent Plan")
        for heading in ("## Energy Targets", "## Daily Exchanges", "## Meals", "## Suggested Foods"):
            assert heading in markdown
        assert "**Target Calories:** 2201 kcal" in markdown
        assert "**Carbs:** 247.6g" in markdown

    def test_format_markdown_meals(self, sample_plan_result):
        """Test meal slots list only served buckets."""
        markdown = format_plan_markdown(sample_plan_result)
        assert "### Desayuno\n- Frutas: 1\n- AOA muy bajo aporte de grasa: 0.5" in markdown
        assert "### Cena\n- (no exchanges)" in markdown

    def test_format_markdown_foods(self, sample_plan_result):
        """Test suggested foods with reasons; empty buckets are skipped."""
        markdown = format_plan_markdown(sample_plan_result)
        assert "- Manzana (1 pieza, 60 kcal) score 27 [country_match +25, goal_support +2]" in markdown
        assert "### AOA muy bajo aporte de grasa\n" not in markdown.split("## Suggested Foods")[1]


class TestFormatPlanJson:
    """Test JSON formatting."""

    def test_format_json_basic(self, sample_plan_result):
        """Test top-level JSON structure."""
        result = format_plan_json(sample_plan_result)
        assert set(result) == {
            "system_id", "targets", "bucket_catalog", "bucket_plan",
            "meal_slots", "top_foods_by_bucket", "extended_foods",
        }
        assert result["system_id"] == "mx_smae"
        assert result["targets"]["protein_g"] == 137.6

    def test_format_json_bucket_plan(self, sample_plan_result):
        """Test bucket rows carry type, id and parent."""
        row = format_plan_json(sample_plan_result)["bucket_plan"][1]
        assert row["bucket_key"] == "subgroup:1"
        assert row["bucket_type"] == "subgroup"
        assert row["parent_group_id"] == 5
        assert row["exchanges_per_day"] == 1.5

    def test_format_json_meal_slots(self, sample_plan_result):
        """Test meal distributions are copied per slot."""
        slots = format_plan_json(sample_plan_result)["meal_slots"]
        assert [s["name"] for s in slots] == ["Desayuno", "Comida", "Cena"]
        assert slots[1]["distribution"] == {"group:2": 1.0, "subgroup:1": 1.0}

    def test_format_json_foods(self, sample_plan_result):
        """Test ranked foods and their reasons."""
        result = format_plan_json(sample_plan_result)
        food = result["top_foods_by_bucket"]["group:2"][0]
        assert food["id"] == 10
        assert food["bucket_key"] == "group:2"
        assert food["reasons"] == [
            {"code": "country_match", "impact": 25},
            {"code": "goal_support", "impact": 2},
        ]
        assert result["top_foods_by_bucket"]["subgroup:1"] == []

    def test_format_json_string(self, sample_plan_result):
        """Test JSON string is valid and keeps accents."""
        sample_plan_result.bucket_catalog[0] = BucketDefinition(
            bucket_type=BucketType.GROUP, bucket_id=2, name="Frutas tropicales y cítricos",
            cho_g=15, pro_g=0, fat_g=0, kcal_per_exchange=60, legacy_code="fruit",
        )
        text = format_plan_json_string(sample_plan_result)
        assert "cítricos" in text
        assert json.loads(text)["bucket_catalog"][0]["bucket_key"] == "group:2"
