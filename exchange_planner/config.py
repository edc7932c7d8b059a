"""Runtime settings for the exchange planner."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from exchange_planner.data_layer.catalog_db import DEFAULT_CATALOG_PATH
from exchange_planner.data_layer.food_db import DEFAULT_FOODS_PATH

DEFAULT_TOP_FOODS_PER_BUCKET = 6
DEFAULT_EXTENDED_FOODS_LIMIT = 300


@dataclass(frozen=True)
class EngineSettings:
    """File locations and output limits for plan generation."""

    catalog_path: str = str(DEFAULT_CATALOG_PATH)
    foods_path: str = str(DEFAULT_FOODS_PATH)
    top_foods_per_bucket: int = DEFAULT_TOP_FOODS_PER_BUCKET
    extended_foods_limit: int = DEFAULT_EXTENDED_FOODS_LIMIT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """Create settings from environment variables.

        Reads EXCHANGE_PLANNER_CATALOG, EXCHANGE_PLANNER_FOODS,
        EXCHANGE_PLANNER_TOP_N and EXCHANGE_PLANNER_EXTENDED_LIMIT; unset
        variables keep their defaults.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            EngineSettings instance

        Raises:
            ValueError: If a numeric variable is not a positive integer
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            catalog_path=env.get("EXCHANGE_PLANNER_CATALOG") or defaults.catalog_path,
            foods_path=env.get("EXCHANGE_PLANNER_FOODS") or defaults.foods_path,
            top_foods_per_bucket=_positive_int(env, "EXCHANGE_PLANNER_TOP_N", defaults.top_foods_per_bucket),
            extended_foods_limit=_positive_int(
                env, "EXCHANGE_PLANNER_EXTENDED_LIMIT", defaults.extended_foods_limit
            ),
        )


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer; got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"Environment variable {name} must be positive; got {value}")
    return value
