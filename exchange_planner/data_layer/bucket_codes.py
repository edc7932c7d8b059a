"""Bucket identity: families, bucket types and the legacy code mapping.

A bucket is addressed two ways in catalog data: a typed numeric key
(``group:3``, ``subgroup:12``) and an optional legacy code
(``carb``, ``aoa_bajo_grasa``). Both are resolved here and nowhere else.
The legacy codes are a migration leftover and should eventually be folded
into the typed key.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional


class BucketFamily(str, Enum):
    """Exchange family a group or subgroup belongs to."""

    VEGETABLE = "vegetable"
    FRUIT = "fruit"
    CARB = "carb"
    LEGUME = "legume"
    PROTEIN = "protein"
    MILK = "milk"
    FAT = "fat"
    SUGAR = "sugar"


class BucketType(str, Enum):
    GROUP = "group"
    SUBGROUP = "subgroup"


@dataclass(frozen=True)
class BucketRef:
    """Typed bucket identifier; ``key`` is the ``"{type}:{id}"`` form."""

    bucket_type: BucketType
    bucket_id: int

    @property
    def key(self) -> str:
        return f"{self.bucket_type.value}:{self.bucket_id}"

    def __str__(self) -> str:
        return self.key


def parse_bucket_key(key: str) -> BucketRef:
    """Parse ``"group:3"`` / ``"subgroup:12"`` into a BucketRef.

    Raises:
        ValueError: If the key is not in ``type:id`` form.
    """
    kind, sep, raw_id = key.partition(":")
    if not sep:
        raise ValueError(f"Bucket key must look like 'group:<id>'; got '{key}'")
    try:
        return BucketRef(BucketType(kind.strip()), int(raw_id))
    except ValueError as exc:
        raise ValueError(f"Invalid bucket key '{key}'") from exc


def ensure_exhaustive(table: Mapping[BucketFamily, object], table_name: str) -> None:
    """Fail at import time if a family-keyed table misses a family.

    Raises:
        ValueError: If any BucketFamily member is missing from ``table``.
    """
    missing = [family.value for family in BucketFamily if family not in table]
    if missing:
        raise ValueError(f"{table_name} has no entry for: {', '.join(missing)}")


# --- Family ordering for sequential allocation ---

FAMILY_SORT_ORDER: Dict[BucketFamily, int] = {
    BucketFamily.VEGETABLE: 1,
    BucketFamily.FRUIT: 2,
    BucketFamily.LEGUME: 3,
    BucketFamily.PROTEIN: 4,
    BucketFamily.MILK: 5,
    BucketFamily.SUGAR: 6,
    BucketFamily.FAT: 7,
    BucketFamily.CARB: 8,
}
ensure_exhaustive(FAMILY_SORT_ORDER, "FAMILY_SORT_ORDER")


# --- Legacy code table ---

LEGACY_CODE_FAMILY: Dict[str, BucketFamily] = {
    **{family.value: family for family in BucketFamily},
    "aoa_muy_bajo_grasa": BucketFamily.PROTEIN,
    "aoa_bajo_grasa": BucketFamily.PROTEIN,
    "aoa_moderado_grasa": BucketFamily.PROTEIN,
    "aoa_alto_grasa": BucketFamily.PROTEIN,
    "cereal_sin_grasa": BucketFamily.CARB,
    "cereal_con_grasa": BucketFamily.CARB,
    "leche_descremada": BucketFamily.MILK,
    "leche_semidescremada": BucketFamily.MILK,
    "leche_entera": BucketFamily.MILK,
    "leche_con_azucar": BucketFamily.MILK,
    "azucar_sin_grasa": BucketFamily.SUGAR,
    "azucar_con_grasa": BucketFamily.SUGAR,
    "grasa_sin_proteina": BucketFamily.FAT,
    "grasa_con_proteina": BucketFamily.FAT,
}

# Catalog imports may carry subgroup codes newer than the table above.
LEGACY_PREFIX_FAMILY: Dict[str, BucketFamily] = {
    "aoa_": BucketFamily.PROTEIN,
    "cereal_": BucketFamily.CARB,
    "leche_": BucketFamily.MILK,
    "azucar_": BucketFamily.SUGAR,
    "grasa_": BucketFamily.FAT,
}

ANIMAL_ORIGIN_PREFIX = "aoa_"
DAIRY_PREFIX = "leche_"


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().lower()


def family_for_code(code: Optional[str]) -> Optional[BucketFamily]:
    """Resolve a legacy group/subgroup code to its family, or None."""
    normalized = normalize_code(code)
    if not normalized:
        return None
    family = LEGACY_CODE_FAMILY.get(normalized)
    if family is not None:
        return family
    for prefix, prefix_family in LEGACY_PREFIX_FAMILY.items():
        if normalized.startswith(prefix):
            return prefix_family
    return None


def is_animal_origin(code: Optional[str]) -> bool:
    return normalize_code(code).startswith(ANIMAL_ORIGIN_PREFIX)


def is_dairy(code: Optional[str]) -> bool:
    return normalize_code(code).startswith(DAIRY_PREFIX)
