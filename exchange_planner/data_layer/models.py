"""Data models for the exchange planner."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from exchange_planner.data_layer.bucket_codes import (
    BucketFamily,
    BucketRef,
    BucketType,
    family_for_code,
)


GOALS = ("maintain", "lose_fat", "gain_muscle")
SEXES = ("male", "female")
ACTIVITY_LEVELS = ("low", "medium", "high")
DIET_PATTERNS = ("omnivore", "vegetarian", "vegan", "pescatarian")
BUDGET_LEVELS = ("low", "medium", "high")
PREP_TIME_LEVELS = ("short", "medium", "long")
TRAINING_WINDOWS = ("none", "morning", "afternoon", "evening")
PLANNING_FOCUSES = ("clinical", "hybrid_sport")
MEALS_PER_DAY_OPTIONS = (3, 4, 5)


@dataclass(frozen=True)
class PatientProfile:
    """Patient/trainee inputs for one plan. Never mutated by the engine."""

    goal: str = "maintain"  # maintain | lose_fat | gain_muscle
    goal_delta_kg_per_week: float = 0.5
    sex: str = "female"
    age: int = 30
    weight_kg: float = 70.0
    height_cm: float = 165.0
    activity_level: str = "medium"  # low | medium | high
    meals_per_day: int = 3  # 3 | 4 | 5
    country_code: str = "MX"
    state_code: str = ""
    system_id: str = "mx_smae"
    formula_id: str = "mifflin_st_jeor"
    diet_pattern: str = "omnivore"
    allergies: List[str] = field(default_factory=list)
    intolerances: List[str] = field(default_factory=list)
    likes: List[str] = field(default_factory=list)
    dislikes: List[str] = field(default_factory=list)
    budget_level: str = "medium"
    prep_time_level: str = "medium"
    training_window: str = "none"  # none | morning | afternoon | evening
    dairy_in_snacks: bool = False
    planning_focus: str = "clinical"  # clinical | hybrid_sport
    has_diabetes: bool = False
    has_hypertension: bool = False
    has_dyslipidemia: bool = False


@dataclass(frozen=True)
class EnergyTargets:
    """Daily energy and macro targets derived from a profile."""

    bmr: int
    tdee: int
    target_calories: int
    carbs_g: float
    protein_g: float
    fat_g: float


@dataclass(frozen=True)
class BucketDefinition:
    """Macro-per-exchange profile of one group or subgroup bucket."""

    bucket_type: BucketType
    bucket_id: int
    name: str
    cho_g: float
    pro_g: float
    fat_g: float
    kcal_per_exchange: float
    parent_group_id: Optional[int] = None  # subgroups only
    legacy_code: Optional[str] = None  # e.g. "carb", "aoa_bajo_grasa"
    sample_size: int = 0  # foods backing this profile; fallback subgroup weight

    @property
    def ref(self) -> BucketRef:
        return BucketRef(self.bucket_type, self.bucket_id)

    @property
    def key(self) -> str:
        return self.ref.key

    @property
    def family(self) -> Optional[BucketFamily]:
        return family_for_code(self.legacy_code)


@dataclass(frozen=True)
class BucketPlanRow:
    """Daily exchanges for one bucket and the macros they contribute."""

    bucket_type: BucketType
    bucket_id: int
    bucket_name: str
    exchanges_per_day: float  # non-negative multiple of 0.5
    cho_g: float
    pro_g: float
    fat_g: float
    kcal: float
    legacy_code: Optional[str] = None
    parent_group_id: Optional[int] = None

    @property
    def bucket_key(self) -> str:
        return BucketRef(self.bucket_type, self.bucket_id).key

    @property
    def family(self) -> Optional[BucketFamily]:
        return family_for_code(self.legacy_code)

    @property
    def kcal_per_exchange(self) -> float:
        if self.exchanges_per_day <= 0:
            return 0.0
        return self.kcal / self.exchanges_per_day


@dataclass
class MealSlot:
    """One named meal and its share of each bucket's daily exchanges."""

    name: str  # e.g. "Desayuno", "Colacion AM"
    distribution: Dict[str, float] = field(default_factory=dict)  # bucket key -> exchanges

    @property
    def is_snack(self) -> bool:
        return self.name.startswith("Colacion")


@dataclass(frozen=True)
class SubgroupSelectionPolicy:
    """Goal/diet-specific target share and ranking bonus for a subgroup."""

    goal: str
    diet_pattern: str  # a diet pattern or "any"
    subgroup_id: int
    target_share_pct: float
    score_adjustment: float


@dataclass(frozen=True)
class KcalSelectionPolicy:
    """Tolerance band bounding how far a food's kcal may stray from its bucket."""

    low_target_kcal: float = 1600
    high_target_kcal: float = 3000
    min_tolerance_pct: float = 0.2
    max_tolerance_pct: float = 0.6
    min_tolerance_kcal: float = 25
    soft_penalty_per_10pct: float = 2.5
    hard_outlier_multiplier: float = 2.8
    exclude_hard_outliers: bool = True


@dataclass(frozen=True)
class ExchangeSystemCatalog:
    """Everything the engine needs about one exchange system."""

    system_id: str
    name: str
    country_code: str
    buckets: List[BucketDefinition]
    subgroup_policies: List[SubgroupSelectionPolicy] = field(default_factory=list)
    kcal_policy: KcalSelectionPolicy = field(default_factory=KcalSelectionPolicy)
    required_families: List[BucketFamily] = field(default_factory=list)

    @property
    def groups(self) -> List[BucketDefinition]:
        return [b for b in self.buckets if b.bucket_type == BucketType.GROUP]

    @property
    def subgroups(self) -> List[BucketDefinition]:
        return [b for b in self.buckets if b.bucket_type == BucketType.SUBGROUP]


@dataclass(frozen=True)
class FoodTag:
    tag_type: str  # allergen | intolerance | diet | prep_time | budget | keyword
    value: str
    weight: Optional[float] = None


@dataclass(frozen=True)
class FoodItem:
    """A catalog food already resolved to its bucket."""

    id: int
    name: str
    group_id: int
    carbs_g: float
    protein_g: float
    fat_g: float
    calories_kcal: float
    serving_qty: float = 1.0
    serving_unit: str = "porcion"
    subgroup_id: Optional[int] = None
    group_code: Optional[str] = None
    subgroup_code: Optional[str] = None
    tags: List[FoodTag] = field(default_factory=list)
    country_availability: List[str] = field(default_factory=list)
    state_availability: List[str] = field(default_factory=list)
    geo_weight: Optional[float] = None

    @property
    def bucket_key(self) -> str:
        if self.subgroup_id is not None:
            return BucketRef(BucketType.SUBGROUP, self.subgroup_id).key
        return BucketRef(BucketType.GROUP, self.group_id).key


@dataclass(frozen=True)
class RankReason:
    code: str  # e.g. "country_match", "kcal_fit"
    impact: float


@dataclass(frozen=True)
class RankedFoodItem:
    """A food that passed the hard filters, with its score breakdown."""

    food: FoodItem
    score: float
    reasons: List[RankReason]

    @property
    def bucket_key(self) -> str:
        return self.food.bucket_key
