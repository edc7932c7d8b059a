"""Scoring module for food ranking."""

from .food_ranker import FoodRankingEngine, RankingOptions, group_top_foods

__all__ = [
    "FoodRankingEngine",
    "RankingOptions",
    "group_top_foods"
]
