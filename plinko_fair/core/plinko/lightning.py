"""
Lightning board generation.

A lightning board is derived from one chain link: multiplier pegs are
placed pseudo-randomly from the link, then the payout table is reshaped so
that the expected return, multipliers included, still equals the target
RTP. A payout for a path is ``payouts[hole]`` times the product of every
multiplier peg the path passes through.

Candidates that fail validation are regenerated from a re-salted hash; after
``max_attempts`` failures the flat guaranteed table is served with no pegs.
"""

import math
from typing import List, Optional, Sequence, Tuple

from plinko_fair.config import LightningConfig
from plinko_fair.core.exceptions import PayoutTableError
from plinko_fair.core.logger import get_logger
from plinko_fair.core.models import LightningBoard, SpecialCell
from plinko_fair.core.plinko.payout_list import (
    LIGHTNING_BASE_CURVE,
    REFERENCE_EDGE,
    guaranteed_payouts,
    lightning_base_payouts,
)
from plinko_fair.core.plinko.probability import hole_probabilities, mean_multiplier_by_hole
from plinko_fair.core.rng import RandomPool, hash_rng

logger = get_logger("plinko.lightning")


# ==================== Expected value redistribution ====================

def redistribute_payouts(
    payouts: Sequence[float],
    hole: int,
    new_payout: float,
    probabilities: Sequence[float],
    excluded: Sequence[int] = (),
) -> List[float]:
    """
    Set ``payouts[hole]`` to ``new_payout`` and hand the expected value it
    gained or lost to every other hole not in ``excluded``. Each recipient
    gets an equal share of the expected value, so its payout moves by
    ``share / probability``. The total expected value is unchanged.
    """
    recipients = [i for i in range(len(payouts)) if i != hole and i not in excluded]
    if not recipients:
        raise PayoutTableError(f"no hole left to take the payout of hole {hole}")

    delta = (payouts[hole] - new_payout) * probabilities[hole]
    share = delta / len(recipients)

    result = list(payouts)
    result[hole] = new_payout
    for i in recipients:
        result[i] += share / probabilities[i]
    return result


def redistribute_minding_zeros(
    payouts: Sequence[float],
    hole: int,
    new_payout: float,
    probabilities: Sequence[float],
    excluded: Sequence[int] = (),
) -> List[float]:
    """Like ``redistribute_payouts``, never feeding holes that pay nothing."""
    zero_holes = [i for i, payout in enumerate(payouts) if payout <= 0]
    return redistribute_payouts(
        payouts, hole, new_payout, probabilities, set(excluded) | set(zero_holes)
    )


def zero_out_holes(
    payouts: Sequence[float], probabilities: Sequence[float], holes: Sequence[int]
) -> List[float]:
    result = list(payouts)
    for hole in holes:
        result = redistribute_minding_zeros(result, hole, 0, probabilities)
    return result


def cap_payouts(
    payouts: Sequence[float], probabilities: Sequence[float], maximum: float
) -> List[float]:
    """Clamp holes above ``maximum``; a clamped hole never receives again."""
    result = list(payouts)
    maxed: List[int] = []
    while True:
        over = [i for i, payout in enumerate(result) if payout > maximum and i not in maxed]
        if not over:
            return result
        hole = over[0]
        result = redistribute_minding_zeros(result, hole, maximum, probabilities, maxed)
        maxed.append(hole)


# ==================== Multiplier adjustments ====================

def payout_adjustments(
    rows: int, cells: Sequence[SpecialCell], payouts: Sequence[float]
) -> List[float]:
    """
    Per-hole factor by which the multiplier pegs inflate that hole's average
    payout. Holes paying nothing keep a factor of 1.
    """
    factors = mean_multiplier_by_hole(rows, cells)
    return [1.0 if payout == 0 else factor for payout, factor in zip(payouts, factors)]


def round_to_cents(
    payouts: Sequence[float],
    probabilities: Sequence[float],
    adjustments: Sequence[float],
    maximum: float,
) -> List[float]:
    """
    Round payouts to two decimals, keeping the expected value in place up to
    the final rounding.

    Holes are finalized from the least to the most likely (by probability
    times adjustment). Each rounding error is spread over the holes not yet
    finalized as an equal payout increment. The most likely hole absorbs
    what remains and is rounded last, so the expected value can drift by at
    most half a cent times that hole's weight; the RTP check bounds it.
    """
    weights = [p * a for p, a in zip(probabilities, adjustments)]
    result = list(payouts)

    remaining = sorted(
        (i for i, payout in enumerate(result) if 0 < payout < maximum),
        key=lambda i: weights[i],
    )
    while len(remaining) > 1:
        hole = remaining.pop(0)
        value = result[hole]
        cents = round(value, 2)
        result[hole] = cents

        lost = (value - cents) * weights[hole]
        increment = lost / sum(weights[i] for i in remaining)
        for i in remaining:
            result[i] += increment
    for hole in remaining:
        result[hole] = round(result[hole], 2)
    return result


def verify_average_with_multipliers(
    payouts: Sequence[float],
    probabilities: Sequence[float],
    adjustments: Sequence[float],
    edge: float,
    tolerance: float,
) -> Tuple[bool, str, float]:
    for hole, adjustment in enumerate(adjustments):
        if adjustment < 0 or math.isnan(adjustment) or math.isinf(adjustment):
            return False, f"payout adjustment for hole {hole} is {adjustment}", 0.0
    for hole, payout in enumerate(payouts):
        if payout < 0 or math.isnan(payout):
            return False, f"payout for hole {hole} is {payout}", 0.0

    average = sum(
        payout * adjustment * probability
        for payout, adjustment, probability in zip(payouts, adjustments, probabilities)
    )
    expected = 1 - edge / 100
    if abs(average - expected) > tolerance:
        return False, f"Expected payout average {expected} but got {average:.4f}", average
    return True, f"Payout average: {average:.6f}", average


# ==================== Generator ====================

class LightningBoardGenerator:
    def __init__(
        self,
        config: LightningConfig,
        edge: float,
        rows: int = 16,
        reference_edge: float = REFERENCE_EDGE,
    ):
        if rows != len(LIGHTNING_BASE_CURVE) - 1:
            raise PayoutTableError(
                f"lightning boards have {len(LIGHTNING_BASE_CURVE) - 1} rows, got {rows}"
            )
        if config.min_peg_row < 2 or config.min_peg_row + config.peg_row_range - 1 > rows:
            raise PayoutTableError("multiplier peg rows fall outside the board")
        self.config = config
        self.edge = edge
        self.rows = rows
        self.reference_edge = reference_edge
        self.probabilities = hole_probabilities(rows)

    def generate(
        self, hash_hex: str, preset_cells: Sequence[SpecialCell] = ()
    ) -> LightningBoard:
        """
        Board for one epoch hash. With ``preset_cells`` no pegs are drawn and
        the table is fitted around the given cells instead.
        """
        for attempt in range(self.config.max_attempts):
            salted = f"{attempt}{hash_hex}" if attempt > 0 else hash_hex
            candidate = self._attempt(salted, preset_cells)
            if candidate is not None:
                payouts, cells = candidate
                logger.debug(
                    f"Lightning board accepted on attempt {attempt + 1}",
                    extra={"pegs": len(cells)},
                )
                return LightningBoard(payouts=payouts, multiplier_cells=cells, attempts=attempt + 1)

        logger.warning(
            "Lightning board did not converge, serving guaranteed payouts",
            extra={"attempts": self.config.max_attempts, "edge": self.edge},
        )
        return LightningBoard(
            payouts=guaranteed_payouts(self.rows, self.edge),
            multiplier_cells=[],
            attempts=self.config.max_attempts,
            fallback=True,
        )

    def _attempt(
        self, hash_hex: str, preset_cells: Sequence[SpecialCell]
    ) -> Optional[Tuple[List[float], List[SpecialCell]]]:
        pool = RandomPool.from_hash(hash_hex, self.config.random_pool_size)
        probabilities = self.probabilities

        payouts = lightning_base_payouts(self.edge, self.reference_edge)
        payouts = zero_out_holes(payouts, probabilities, self.config.zero_payout_holes)
        payouts = cap_payouts(payouts, probabilities, self.config.max_hole_payout)

        cells = self.place_multiplier_pegs(pool, preset_cells)
        if cells is None:
            logger.debug("Multiplier peg placement ran out of retries")
            return None

        adjustments = payout_adjustments(self.rows, cells, payouts)
        if any(a < 0 or math.isnan(a) or math.isinf(a) for a in adjustments):
            logger.debug(f"Rejected board with adjustments {adjustments}")
            return None

        payouts = [payout / adjustment for payout, adjustment in zip(payouts, adjustments)]
        payouts = round_to_cents(payouts, probabilities, adjustments, self.config.max_hole_payout)

        accepted, message, _ = verify_average_with_multipliers(
            payouts, probabilities, adjustments, self.edge, self.config.rtp_tolerance
        )
        if not accepted:
            logger.debug(f"Rejected board: {message}")
            return None
        return payouts, cells

    def place_multiplier_pegs(
        self, pool: RandomPool, preset_cells: Sequence[SpecialCell] = ()
    ) -> Optional[List[SpecialCell]]:
        """
        Draw peg count, multiplier values and positions from ``pool``.
        Positions closer than ``min_peg_distance`` (Manhattan) to a placed peg
        are redrawn; returns None once ``peg_placement_retries`` is spent.
        """
        config = self.config
        cells = list(preset_cells)

        if cells:
            count = 0
        else:
            spread = config.multiplier_pegs_max - config.multiplier_pegs_min + 1
            count = config.multiplier_pegs_min + int(pool.next() * spread)
        count = min(count, len(config.multiplier_peg_values))

        values = config.multiplier_peg_values
        values = hash_rng.shuffle(values, pool.take(len(values)))

        retries = 0
        placed = 0
        while placed < count:
            row = config.min_peg_row + int(pool.next() * config.peg_row_range)
            column = 1 + int(pool.next() * (row - 1))

            too_close = any(
                abs(cell.row - row) + abs(cell.column - column) < config.min_peg_distance
                for cell in cells
            )
            if too_close:
                retries += 1
                if retries > config.peg_placement_retries:
                    return None
                continue

            cells.append(SpecialCell(row=row, column=column, multiplier=values[placed]))
            placed += 1
        return cells
