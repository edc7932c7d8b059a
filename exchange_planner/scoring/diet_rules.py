"""Diet-pattern and clinical keyword rules applied to food names and subgroups."""

from typing import Optional

from exchange_planner.data_layer.bucket_codes import is_animal_origin, is_dairy, normalize_code
from exchange_planner.data_layer.models import FoodItem, FoodTag, PatientProfile
from exchange_planner.data_layer.text_normalizer import contains_word_start, normalize_text

MEAT_KEYWORDS = (
    "res", "cerdo", "pollo", "pavo", "carne", "tocino", "chorizo",
    "salchicha", "jamon", "carnitas", "barbacoa", "cordero", "borrego",
)
SEAFOOD_KEYWORDS = (
    "atun", "salmon", "tilapia", "trucha", "bacalao",
    "camaron", "pulpo", "pescado", "marisco", "sardina",
)
DAIRY_KEYWORDS = ("leche", "queso", "yogur", "yogurt", "kefir", "mantequilla", "crema", "yakult")
EGG_KEYWORDS = ("huevo", "clara", "yema")
VEGAN_ALLOWLIST_KEYWORDS = ("tofu", "tempeh", "soya", "soja", "edamame", "garbanzo", "lenteja", "frijol")
HIGH_SODIUM_PROCESSED_KEYWORDS = (
    "jamon", "salchicha", "chorizo", "tocino", "carnitas",
    "aderezo", "mayonesa", "salsa", "embutido",
)

DIABETES_EXCLUDED_SUBGROUPS = ("azucar_sin_grasa", "azucar_con_grasa")
DYSLIPIDEMIA_PENALIZED_SUBGROUPS = ("aoa_alto_grasa", "grasa_con_proteina", "cereal_con_grasa")
HIGH_FAT_ANIMAL_SUBGROUP = "aoa_alto_grasa"


def subgroup_code(food: FoodItem) -> str:
    return normalize_code(food.subgroup_code)


def has_tag(food: FoodItem, tag_type: str, value: Optional[str]) -> bool:
    if not value:
        return False
    wanted_type = normalize_text(tag_type)
    wanted_value = normalize_text(value)
    return any(_tag_matches(tag, wanted_type, wanted_value) for tag in food.tags)


def _tag_matches(tag: FoodTag, tag_type: str, value: str) -> bool:
    return normalize_text(tag.tag_type) == tag_type and normalize_text(tag.value) == value


def is_diet_compatible(food: FoodItem, diet_pattern: str) -> bool:
    """Whether a food may appear for a diet pattern.

    Animal-origin subgroups are never vegan, even when the food carries a
    ``diet:vegan`` tag. Otherwise a matching diet tag admits the food
    before any name keyword is checked.
    """
    code = subgroup_code(food)
    if diet_pattern == "vegan" and is_animal_origin(code):
        return False
    if has_tag(food, "diet", diet_pattern):
        return True

    name = normalize_text(food.name)
    if diet_pattern == "vegan":
        if is_dairy(code):
            return False
        animal_keyword = (
            contains_word_start(name, MEAT_KEYWORDS)
            or contains_word_start(name, SEAFOOD_KEYWORDS)
            or contains_word_start(name, DAIRY_KEYWORDS)
            or contains_word_start(name, EGG_KEYWORDS)
        )
        return not (animal_keyword and not contains_word_start(name, VEGAN_ALLOWLIST_KEYWORDS))
    if diet_pattern == "vegetarian":
        return not (contains_word_start(name, MEAT_KEYWORDS) or contains_word_start(name, SEAFOOD_KEYWORDS))
    if diet_pattern == "pescatarian":
        return not contains_word_start(name, MEAT_KEYWORDS)
    return True


def excluded_by_clinical_flags(food: FoodItem, profile: PatientProfile) -> bool:
    return profile.has_diabetes and subgroup_code(food) in DIABETES_EXCLUDED_SUBGROUPS


def is_high_sodium(food: FoodItem) -> bool:
    return contains_word_start(normalize_text(food.name), HIGH_SODIUM_PROCESSED_KEYWORDS)
