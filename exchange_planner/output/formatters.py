"""Formatters for equivalent plan output (JSON and Markdown)."""

import json
from typing import Any, Dict, List

from exchange_planner.data_layer.models import BucketPlanRow, RankedFoodItem
from exchange_planner.planning.plan_generator import PlanResult


def format_exchanges(value: float) -> str:
    """Format an exchange count (e.g., 2.0 -> "2", 1.5 -> "1.5").

    Args:
        value: Exchanges, a multiple of 0.5

    Returns:
        Formatted string without a trailing ".0"
    """
    if value == int(value):
        return str(int(value))
    return f"{value:.1f}".rstrip("0").rstrip(".")


def format_bucket_row(row: BucketPlanRow) -> str:
    return (
        f"| {row.bucket_name} | `{row.bucket_key}` | {format_exchanges(row.exchanges_per_day)} "
        f"| {row.cho_g:.1f} | {row.pro_g:.1f} | {row.fat_g:.1f} | {row.kcal:.0f} |"
    )


def format_plan_markdown(result: PlanResult) -> str:
    """Format a PlanResult as Markdown.

    Args:
        result: PlanResult from plan generation

    Returns:
        Formatted Markdown string
    """
    targets = result.targets
    names = {row.bucket_key: row.bucket_name for row in result.bucket_plan}
    lines = ["# Equivalent Plan\n"]

    lines.append("## Energy Targets")
    lines.append(f"**BMR:** {targets.bmr} kcal")
    lines.append(f"**TDEE:** {targets.tdee} kcal")
    lines.append(f"**Target Calories:** {targets.target_calories} kcal")
    lines.append(f"**Carbs:** {targets.carbs_g:.1f}g")
    lines.append(f"**Protein:** {targets.protein_g:.1f}g")
    lines.append(f"**Fat:** {targets.fat_g:.1f}g")
    lines.append("")

    lines.append("## Daily Exchanges")
    lines.append("| Bucket | Key | Exchanges | CHO (g) | PRO (g) | FAT (g) | kcal |")
    lines.append("|---|---|---|---|---|---|---|")
    for row in result.bucket_plan:
        lines.append(format_bucket_row(row))
    lines.append("")

    lines.append("## Meals")
    for slot in result.meal_slots:
        lines.append(f"### {slot.name}")
        served = [(key, value) for key, value in slot.distribution.items() if value > 0]
        if not served:
            lines.append("- (no exchanges)")
        for key, value in served:
            lines.append(f"- {names.get(key, key)}: {format_exchanges(value)}")
        lines.append("")

    lines.append("## Suggested Foods")
    for bucket in result.bucket_catalog:
        foods = result.top_foods_by_bucket.get(bucket.key, [])
        if not foods:
            continue
        lines.append(f"### {bucket.name}")
        for item in foods:
            food = item.food
            reasons = ", ".join(f"{r.code} {r.impact:+g}" for r in item.reasons)
            lines.append(
                f"- {food.name} ({format_exchanges(food.serving_qty)} {food.serving_unit}, "
                f"{food.calories_kcal:.0f} kcal) score {item.score:g} [{reasons}]"
            )
        lines.append("")

    return "\n".join(lines)


def _ranked_food_json(item: RankedFoodItem) -> Dict[str, Any]:
    food = item.food
    return {
        "id": food.id,
        "name": food.name,
        "bucket_key": item.bucket_key,
        "group_id": food.group_id,
        "subgroup_id": food.subgroup_id,
        "serving_qty": food.serving_qty,
        "serving_unit": food.serving_unit,
        "calories_kcal": round(food.calories_kcal, 1),
        "carbs_g": round(food.carbs_g, 1),
        "protein_g": round(food.protein_g, 1),
        "fat_g": round(food.fat_g, 1),
        "score": item.score,
        "reasons": [{"code": r.code, "impact": r.impact} for r in item.reasons],
    }


def format_plan_json(result: PlanResult) -> Dict[str, Any]:
    """Format a PlanResult as JSON (for API usage).

    Args:
        result: PlanResult from plan generation

    Returns:
        Dictionary ready for JSON serialization
    """
    targets = result.targets
    bucket_plan: List[Dict[str, Any]] = [
        {
            "bucket_key": row.bucket_key,
            "bucket_type": row.bucket_type.value,
            "bucket_id": row.bucket_id,
            "bucket_name": row.bucket_name,
            "legacy_code": row.legacy_code,
            "parent_group_id": row.parent_group_id,
            "exchanges_per_day": row.exchanges_per_day,
            "cho_g": round(row.cho_g, 1),
            "pro_g": round(row.pro_g, 1),
            "fat_g": round(row.fat_g, 1),
            "kcal": round(row.kcal, 1),
        }
        for row in result.bucket_plan
    ]
    bucket_catalog = [
        {
            "bucket_key": bucket.key,
            "bucket_type": bucket.bucket_type.value,
            "bucket_id": bucket.bucket_id,
            "name": bucket.name,
            "legacy_code": bucket.legacy_code,
            "parent_group_id": bucket.parent_group_id,
            "cho_g": bucket.cho_g,
            "pro_g": bucket.pro_g,
            "fat_g": bucket.fat_g,
            "kcal_per_exchange": bucket.kcal_per_exchange,
        }
        for bucket in result.bucket_catalog
    ]

    return {
        "system_id": result.profile.system_id,
        "targets": {
            "bmr": targets.bmr,
            "tdee": targets.tdee,
            "target_calories": targets.target_calories,
            "carbs_g": round(targets.carbs_g, 1),
            "protein_g": round(targets.protein_g, 1),
            "fat_g": round(targets.fat_g, 1),
        },
        "bucket_catalog": bucket_catalog,
        "bucket_plan": bucket_plan,
        "meal_slots": [
            {"name": slot.name, "distribution": dict(slot.distribution)}
            for slot in result.meal_slots
        ],
        "top_foods_by_bucket": {
            key: [_ranked_food_json(item) for item in items]
            for key, items in result.top_foods_by_bucket.items()
        },
        "extended_foods": [_ranked_food_json(item) for item in result.extended_foods],
    }


def format_plan_json_string(result: PlanResult, indent: int = 2) -> str:
    """Format a PlanResult as a JSON string.

    Args:
        result: PlanResult from plan generation
        indent: JSON indentation (default: 2)

    Returns:
        JSON string
    """
    return json.dumps(format_plan_json(result), indent=indent, ensure_ascii=False)
