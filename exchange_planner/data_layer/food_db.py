"""Food catalog loaded from JSON."""
import json
import logging
from pathlib import Path
from typing import List, Optional

from exchange_planner.data_layer.models import FoodItem, FoodTag

logger = logging.getLogger(__name__)

DEFAULT_FOODS_PATH = Path(__file__).resolve().parent.parent / "data" / "foods_mx_smae.json"


class FoodCatalogDB:
    """Database of bucket-resolved foods loaded from JSON."""

    def __init__(self, json_path: Optional[str] = None):
        """Initialize food catalog from JSON file.

        Args:
            json_path: Path to JSON file containing a "foods" list
        """
        self.json_path = Path(json_path) if json_path else DEFAULT_FOODS_PATH
        self._foods: List[FoodItem] = []
        self._system_ids: List[Optional[str]] = []
        self._load_foods()

    def _load_foods(self):
        with open(self.json_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        for food_data in data.get("foods", []):
            self._foods.append(self._parse_food(food_data))
            self._system_ids.append(food_data.get("system_id"))
        logger.debug("Loaded %d foods from %s", len(self._foods), self.json_path)

    def _parse_food(self, food_data: dict) -> FoodItem:
        """Parse a single food from dictionary data.

        Args:
            food_data: Dictionary containing food data

        Returns:
            FoodItem object
        """
        tags = [
            FoodTag(
                tag_type=str(tag["type"]),
                value=str(tag["value"]),
                weight=tag.get("weight"),
            )
            for tag in food_data.get("tags", [])
        ]
        subgroup_id = food_data.get("subgroup_id")
        geo_weight = food_data.get("geo_weight")
        return FoodItem(
            id=int(food_data["id"]),
            name=str(food_data["name"]),
            group_id=int(food_data["group_id"]),
            carbs_g=float(food_data.get("carbs_g", 0)),
            protein_g=float(food_data.get("protein_g", 0)),
            fat_g=float(food_data.get("fat_g", 0)),
            calories_kcal=float(food_data.get("calories_kcal", 0)),
            serving_qty=float(food_data.get("serving_qty", 1)),
            serving_unit=str(food_data.get("serving_unit", "porcion")),
            subgroup_id=int(subgroup_id) if subgroup_id is not None else None,
            group_code=food_data.get("group_code"),
            subgroup_code=food_data.get("subgroup_code"),
            tags=tags,
            country_availability=[str(c) for c in food_data.get("country_availability", [])],
            state_availability=[str(s) for s in food_data.get("state_availability", [])],
            geo_weight=float(geo_weight) if geo_weight is not None else None,
        )

    def get_all_foods(self, system_id: Optional[str] = None) -> List[FoodItem]:
        """All foods, or only those for ``system_id`` (untagged foods always match)."""
        if system_id is None:
            return list(self._foods)
        return [
            food for food, food_system in zip(self._foods, self._system_ids)
            if food_system in (None, system_id)
        ]

    def get_food_by_id(self, food_id: int) -> Optional[FoodItem]:
        for food in self._foods:
            if food.id == food_id:
                return food
        return None
