"""Planning module for bucket allocation, meal distribution and plan generation."""

from .bucket_allocation import BucketAllocationEngine
from .meal_distribution import MealDistributionEngine
from .plan_generator import EquivalentPlanGenerator, PlanResult, generate_plan

__all__ = [
    "BucketAllocationEngine",
    "MealDistributionEngine",
    "EquivalentPlanGenerator",
    "PlanResult",
    "generate_plan"
]
