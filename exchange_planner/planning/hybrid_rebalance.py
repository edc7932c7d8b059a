"""Hybrid sport rebalancer: nudge meal slots toward energy-share tolerances.

Moves 0.5 exchange at a time. Snack caps are fixed first (the offending
snack donates to the lightest main meal); then the heaviest main meal
donates to the lightest one until main meals sit within the spread limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from exchange_planner.data_layer.models import BucketPlanRow, MealSlot

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 400
MAIN_MEAL_SPREAD_PCT = 5.0
SINGLE_SNACK_CAP_PCT = 12.0
DOUBLE_SNACK_CAP_PCT = 10.0
DOUBLE_SNACK_COMBINED_CAP_PCT = 20.0
MOVE_UNIT = 0.5


@dataclass(frozen=True)
class Move:
    bucket_key: str
    donor: int
    recipient: int


def _copy_slots(slots: Sequence[MealSlot]) -> List[MealSlot]:
    return [MealSlot(name=s.name, distribution=dict(s.distribution)) for s in slots]


class HybridRebalancer:
    """Iteratively moves half exchanges between meal slots."""

    def __init__(self, max_iterations: int = MAX_ITERATIONS):
        self.max_iterations = max_iterations

    @staticmethod
    def unit_values(rows: Sequence[BucketPlanRow]) -> Dict[str, float]:
        """kcal per exchange per bucket key; 1 where kcal data is missing."""
        values = {}
        for row in rows:
            kcal = row.kcal_per_exchange
            values[row.bucket_key] = kcal if kcal > 0 else 1.0
        return values

    @staticmethod
    def slot_values(slots: Sequence[MealSlot], values: Dict[str, float]) -> List[float]:
        return [
            sum(exchanges * values.get(key, 1.0) for key, exchanges in slot.distribution.items())
            for slot in slots
        ]

    @staticmethod
    def slot_shares(slot_values: Sequence[float]) -> List[float]:
        total = sum(slot_values)
        if total <= 0:
            return [0.0] * len(slot_values)
        return [value * 100 / total for value in slot_values]

    def snack_violation(self, slots: Sequence[MealSlot], shares: Sequence[float]) -> Optional[int]:
        """Index of the snack that must give exchanges away, if any."""
        snacks = [i for i, slot in enumerate(slots) if slot.is_snack]
        if not snacks:
            return None
        if len(snacks) == 1:
            index = snacks[0]
            return index if shares[index] > SINGLE_SNACK_CAP_PCT else None

        over = [i for i in snacks if shares[i] > DOUBLE_SNACK_CAP_PCT]
        if not over and sum(shares[i] for i in snacks) > DOUBLE_SNACK_COMBINED_CAP_PCT:
            over = snacks
        if not over:
            return None
        return max(over, key=lambda i: (shares[i], -i))

    @staticmethod
    def main_extremes(slots: Sequence[MealSlot], shares: Sequence[float]) -> Tuple[int, int]:
        """(heaviest, lightest) main meal; ties resolve to the earlier slot."""
        mains = [i for i, slot in enumerate(slots) if not slot.is_snack]
        heaviest = min(mains, key=lambda i: (-shares[i], i))
        lightest = min(mains, key=lambda i: (shares[i], i))
        return heaviest, lightest

    def main_spread_ok(self, slots: Sequence[MealSlot], shares: Sequence[float]) -> bool:
        heaviest, lightest = self.main_extremes(slots, shares)
        return shares[heaviest] - shares[lightest] <= MAIN_MEAL_SPREAD_PCT

    def is_balanced(self, slots: Sequence[MealSlot], values: Dict[str, float]) -> bool:
        shares = self.slot_shares(self.slot_values(slots, values))
        return self.snack_violation(slots, shares) is None and self.main_spread_ok(slots, shares)

    @staticmethod
    def pick_bucket(
        slot: MealSlot,
        values: Dict[str, float],
        max_moved_value: Optional[float] = None,
    ) -> Optional[str]:
        """Highest-value bucket with a half exchange to give.

        With ``max_moved_value`` only moves strictly below it are allowed, so
        a move never widens the gap it is meant to close.
        """
        best_key = None
        best_value = 0.0
        for key, exchanges in slot.distribution.items():
            if exchanges < MOVE_UNIT:
                continue
            moved = values.get(key, 1.0) * MOVE_UNIT
            if max_moved_value is not None and moved >= max_moved_value:
                continue
            if best_key is None or moved > best_value:
                best_key, best_value = key, moved
        return best_key

    def next_move(self, slots: Sequence[MealSlot], values: Dict[str, float]) -> Optional[Move]:
        slot_values = self.slot_values(slots, values)
        shares = self.slot_shares(slot_values)
        heaviest, lightest = self.main_extremes(slots, shares)

        snack = self.snack_violation(slots, shares)
        if snack is not None:
            key = self.pick_bucket(slots[snack], values)
            return Move(key, snack, lightest) if key is not None else None

        if shares[heaviest] - shares[lightest] <= MAIN_MEAL_SPREAD_PCT:
            return None
        gap = slot_values[heaviest] - slot_values[lightest]
        key = self.pick_bucket(slots[heaviest], values, max_moved_value=gap)
        return Move(key, heaviest, lightest) if key is not None else None

    def rebalance(self, slots: Sequence[MealSlot], rows: Sequence[BucketPlanRow]) -> List[MealSlot]:
        """Return rebalanced copies of ``slots``; per-bucket totals are unchanged."""
        result = _copy_slots(slots)
        values = self.unit_values(rows)

        for iteration in range(self.max_iterations):
            if self.is_balanced(result, values):
                logger.debug("Hybrid rebalance converged after %d moves", iteration)
                return result
            move = self.next_move(result, values)
            if move is None:
                logger.debug("Hybrid rebalance stopped after %d moves: no move available", iteration)
                return result
            donor = result[move.donor].distribution
            recipient = result[move.recipient].distribution
            donor[move.bucket_key] = donor[move.bucket_key] - MOVE_UNIT
            recipient[move.bucket_key] = recipient.get(move.bucket_key, 0.0) + MOVE_UNIT

        if not self.is_balanced(result, values):
            logger.warning(
                "Hybrid rebalance hit the %d-iteration cap without meeting meal tolerances",
                self.max_iterations,
            )
        return result
