"""Patient profile loader for loading plan inputs from YAML."""
import math
from pathlib import Path
from typing import Any, Dict, List, Sequence

import yaml

from exchange_planner.data_layer.models import (
    ACTIVITY_LEVELS,
    BUDGET_LEVELS,
    DIET_PATTERNS,
    GOALS,
    MEALS_PER_DAY_OPTIONS,
    PLANNING_FOCUSES,
    PREP_TIME_LEVELS,
    SEXES,
    TRAINING_WINDOWS,
    PatientProfile,
)


def _choice(data: Dict[str, Any], key: str, options: Sequence[Any], default: Any) -> Any:
    value = data.get(key, default)
    if isinstance(value, str):
        value = value.strip().lower()
    if value not in options:
        raise ValueError(f"Invalid {key}: {value!r} (expected one of {', '.join(map(str, options))})")
    return value


def _number(data: Dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid {key}: {value!r} (expected a number)") from exc
    if not math.isfinite(number) or number < 0:
        raise ValueError(f"Invalid {key}: {value!r} (expected a non-negative number)")
    return number


def _text_list(data: Dict[str, Any], key: str) -> List[str]:
    values = data.get(key) or []
    if isinstance(values, str):
        values = [v for v in values.split(",")]
    return [str(v).strip() for v in values if str(v).strip()]


def profile_from_dict(data: Dict[str, Any]) -> PatientProfile:
    """Build and validate a PatientProfile from plain data.

    Args:
        data: Mapping with snake_case profile fields; missing fields take
            PatientProfile defaults

    Returns:
        PatientProfile

    Raises:
        ValueError: If an enumerated field, number or meals_per_day is invalid
    """
    defaults = PatientProfile()
    meals = data.get("meals_per_day", defaults.meals_per_day)
    try:
        meals = int(meals)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid meals_per_day: {meals!r}") from exc
    if meals not in MEALS_PER_DAY_OPTIONS:
        raise ValueError(f"Invalid meals_per_day: {meals} (expected 3, 4 or 5)")

    clinical = data.get("clinical", {}) or {}

    return PatientProfile(
        goal=_choice(data, "goal", GOALS, defaults.goal),
        goal_delta_kg_per_week=_number(data, "goal_delta_kg_per_week", defaults.goal_delta_kg_per_week),
        sex=_choice(data, "sex", SEXES, defaults.sex),
        age=int(_number(data, "age", defaults.age)),
        weight_kg=_number(data, "weight_kg", defaults.weight_kg),
        height_cm=_number(data, "height_cm", defaults.height_cm),
        activity_level=_choice(data, "activity_level", ACTIVITY_LEVELS, defaults.activity_level),
        meals_per_day=meals,
        country_code=str(data.get("country_code", defaults.country_code)).strip().upper(),
        state_code=str(data.get("state_code", defaults.state_code) or "").strip().upper(),
        system_id=str(data.get("system_id", defaults.system_id)).strip(),
        formula_id=str(data.get("formula_id", defaults.formula_id)).strip(),
        diet_pattern=_choice(data, "diet_pattern", DIET_PATTERNS, defaults.diet_pattern),
        allergies=_text_list(data, "allergies"),
        intolerances=_text_list(data, "intolerances"),
        likes=_text_list(data, "likes"),
        dislikes=_text_list(data, "dislikes"),
        budget_level=_choice(data, "budget_level", BUDGET_LEVELS, defaults.budget_level),
        prep_time_level=_choice(data, "prep_time_level", PREP_TIME_LEVELS, defaults.prep_time_level),
        training_window=_choice(data, "training_window", TRAINING_WINDOWS, defaults.training_window),
        dairy_in_snacks=bool(data.get("dairy_in_snacks", defaults.dairy_in_snacks)),
        planning_focus=_choice(data, "planning_focus", PLANNING_FOCUSES, defaults.planning_focus),
        has_diabetes=bool(clinical.get("diabetes", data.get("has_diabetes", False))),
        has_hypertension=bool(clinical.get("hypertension", data.get("has_hypertension", False))),
        has_dyslipidemia=bool(clinical.get("dyslipidemia", data.get("has_dyslipidemia", False))),
    )


class PatientProfileLoader:
    """Loader for patient profile configuration from YAML."""

    def __init__(self, yaml_path: str):
        """Initialize patient profile loader from YAML file.

        Args:
            yaml_path: Path to YAML file containing a patient profile
        """
        self.yaml_path = Path(yaml_path)

    def load(self) -> PatientProfile:
        """Load patient profile from YAML file.

        Returns:
            PatientProfile object

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            ValueError: If a field has an invalid value
        """
        data = self._read()
        profile_data = data.get("profile", data)
        if not isinstance(profile_data, dict):
            raise ValueError(f"profile in {self.yaml_path} must be a mapping")
        return profile_from_dict(profile_data)

    def load_adjustments(self) -> Dict[str, Any]:
        """Manual bucket adjustments (bucket key -> exchanges) from the same YAML."""
        adjustments = self._read().get("adjustments") or {}
        if not isinstance(adjustments, dict):
            raise ValueError(f"adjustments in {self.yaml_path} must be a mapping")
        return dict(adjustments)

    def _read(self) -> Dict[str, Any]:
        with open(self.yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Profile file {self.yaml_path} must contain a mapping")
        return data
