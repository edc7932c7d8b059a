"""Energy targets and half-step rounding."""

from .energy import EnergyTargetCalculator, calculate_bmr

__all__ = [
    "EnergyTargetCalculator",
    "calculate_bmr"
]
