"""Exchange system catalog loaded from YAML."""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from exchange_planner.data_layer.bucket_codes import BucketFamily, BucketType
from exchange_planner.data_layer.exceptions import CatalogNotFoundError, ConfigurationError
from exchange_planner.data_layer.models import (
    BucketDefinition,
    ExchangeSystemCatalog,
    KcalSelectionPolicy,
    SubgroupSelectionPolicy,
)

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "exchange_systems.yaml"


class ExchangeCatalogDB:
    """Catalog of exchange systems: buckets, subgroup policies and kcal policy."""

    def __init__(self, yaml_path: Optional[str] = None):
        """Initialize catalog from a YAML file.

        Args:
            yaml_path: Path to catalog YAML; the packaged default when omitted
        """
        self.yaml_path = Path(yaml_path) if yaml_path else DEFAULT_CATALOG_PATH
        self._systems: Dict[str, Dict[str, Any]] = {}
        self._load()

    def _load(self):
        with open(self.yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        systems = data.get("systems") if isinstance(data, dict) else data
        if not isinstance(systems or {}, dict):
            raise ConfigurationError(f"Catalog {self.yaml_path} must map system ids under 'systems'")
        self._systems = systems or {}
        logger.debug("Loaded %d exchange systems from %s", len(self._systems), self.yaml_path)

    def system_ids(self) -> List[str]:
        return sorted(self._systems)

    def describe_systems(self) -> List[Dict[str, str]]:
        return [
            {
                "id": system_id,
                "name": str(self._systems[system_id].get("name", system_id)),
                "country_code": str(self._systems[system_id].get("country_code", "")),
            }
            for system_id in self.system_ids()
        ]

    def get_system(self, system_id: str) -> ExchangeSystemCatalog:
        """Parsed catalog for one exchange system.

        Raises:
            CatalogNotFoundError: If the system is unknown or has no groups
            ConfigurationError: If a subgroup or policy references something
                the catalog does not define
        """
        raw = self._systems.get(system_id)
        if not raw or not raw.get("groups"):
            raise CatalogNotFoundError(system_id)

        groups = [self._parse_group(g) for g in raw["groups"]]
        group_ids_by_code = {g.legacy_code: g.bucket_id for g in groups}
        subgroups = [self._parse_subgroup(s, group_ids_by_code, system_id) for s in raw.get("subgroups", []) or []]
        subgroup_ids_by_code = {s.legacy_code: s.bucket_id for s in subgroups}
        policies = [
            self._parse_policy(p, subgroup_ids_by_code, system_id)
            for p in raw.get("subgroup_policies", []) or []
        ]

        return ExchangeSystemCatalog(
            system_id=system_id,
            name=str(raw.get("name", system_id)),
            country_code=str(raw.get("country_code", "")),
            buckets=groups + subgroups,
            subgroup_policies=policies,
            kcal_policy=self._parse_kcal_policy(raw.get("kcal_policy") or {}),
            required_families=[BucketFamily(f) for f in raw.get("required_families", []) or []],
        )

    @staticmethod
    def _parse_group(data: dict) -> BucketDefinition:
        return BucketDefinition(
            bucket_type=BucketType.GROUP,
            bucket_id=int(data["id"]),
            name=str(data.get("name", data["code"])),
            cho_g=float(data.get("cho_g", 0)),
            pro_g=float(data.get("pro_g", 0)),
            fat_g=float(data.get("fat_g", 0)),
            kcal_per_exchange=float(data.get("kcal", 0)),
            legacy_code=str(data["code"]),
            sample_size=int(data.get("sample_size", 0)),
        )

    @staticmethod
    def _parse_subgroup(data: dict, group_ids_by_code: Dict[str, int], system_id: str) -> BucketDefinition:
        parent = data.get("parent_group_id")
        if parent is None:
            parent_code = data.get("parent_group")
            if parent_code not in group_ids_by_code:
                raise ConfigurationError(
                    f"Subgroup '{data.get('code')}' in {system_id} references unknown group '{parent_code}'"
                )
            parent = group_ids_by_code[parent_code]
        return BucketDefinition(
            bucket_type=BucketType.SUBGROUP,
            bucket_id=int(data["id"]),
            name=str(data.get("name", data.get("code", data["id"]))),
            cho_g=float(data.get("cho_g", 0)),
            pro_g=float(data.get("pro_g", 0)),
            fat_g=float(data.get("fat_g", 0)),
            kcal_per_exchange=float(data.get("kcal", 0)),
            parent_group_id=int(parent),
            legacy_code=data.get("code"),
            sample_size=int(data.get("sample_size", 0)),
        )

    @staticmethod
    def _parse_policy(data: Any, subgroup_ids_by_code: Dict[str, int], system_id: str) -> SubgroupSelectionPolicy:
        # Rows are either [goal, diet, subgroup, share, adjustment] or mappings
        if isinstance(data, (list, tuple)):
            goal, diet_pattern, subgroup, share, adjustment = data
        else:
            goal = data["goal"]
            diet_pattern = data.get("diet_pattern", "any")
            subgroup = data.get("subgroup_id", data.get("subgroup"))
            share = data.get("target_share_pct", 0)
            adjustment = data.get("score_adjustment", 0)

        if isinstance(subgroup, int):
            subgroup_id = subgroup
        elif subgroup in subgroup_ids_by_code:
            subgroup_id = subgroup_ids_by_code[subgroup]
        else:
            raise ConfigurationError(f"Policy in {system_id} references unknown subgroup '{subgroup}'")

        return SubgroupSelectionPolicy(
            goal=str(goal),
            diet_pattern=str(diet_pattern),
            subgroup_id=subgroup_id,
            target_share_pct=float(share),
            score_adjustment=float(adjustment),
        )

    @staticmethod
    def _parse_kcal_policy(data: dict) -> KcalSelectionPolicy:
        defaults = KcalSelectionPolicy()
        return KcalSelectionPolicy(
            low_target_kcal=float(data.get("low_target_kcal", defaults.low_target_kcal)),
            high_target_kcal=float(data.get("high_target_kcal", defaults.high_target_kcal)),
            min_tolerance_pct=float(data.get("min_tolerance_pct", defaults.min_tolerance_pct)),
            max_tolerance_pct=float(data.get("max_tolerance_pct", defaults.max_tolerance_pct)),
            min_tolerance_kcal=float(data.get("min_tolerance_kcal", defaults.min_tolerance_kcal)),
            soft_penalty_per_10pct=float(data.get("soft_penalty_per_10pct", defaults.soft_penalty_per_10pct)),
            hard_outlier_multiplier=float(data.get("hard_outlier_multiplier", defaults.hard_outlier_multiplier)),
            exclude_hard_outliers=bool(data.get("exclude_hard_outliers", defaults.exclude_hard_outliers)),
        )
