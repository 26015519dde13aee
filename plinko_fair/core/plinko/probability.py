"""
Landing probabilities for a plinko board.

Rows are 1-based: after row ``r`` the ball sits in a column in ``[0, r]``
and the final column after the last row is the hole. Each peg sends the
ball left or right with equal probability, so hole ``k`` of an ``n`` row
board has probability ``C(n, k) / 2^n``.
"""

from functools import lru_cache
from typing import Iterable, List, Sequence

from plinko_fair.core.models import PathCell, SpecialCell


@lru_cache(maxsize=64)
def _triangle(rows: int) -> tuple:
    triangle = [(1,)]
    for _ in range(rows):
        previous = triangle[-1]
        triangle.append(
            tuple([1] + [previous[i - 1] + previous[i] for i in range(1, len(previous))] + [1])
        )
    return tuple(triangle)


def pascal_triangle(rows: int) -> List[List[int]]:
    """
    Unreduced binomial triangle, ``rows + 1`` lines. Entries are Python ints,
    so large boards stay exact until ``hole_probabilities`` normalizes them.
    """
    if rows < 0:
        raise ValueError("rows must be >= 0")
    return [list(line) for line in _triangle(rows)]


def hole_probabilities(rows: int) -> List[float]:
    last = _triangle(rows)[-1]
    total = sum(last)
    return [count / total for count in last]


def cumulative_hole_probabilities(rows: int) -> List[float]:
    running = 0.0
    cumulative = []
    for probability in hole_probabilities(rows):
        running += probability
        cumulative.append(running)
    cumulative[-1] = 1.0
    return cumulative


def hole_from_roll(roll: float, cumulative: Sequence[float]) -> int:
    """Map a roll in [0, 99.99] onto a hole through the cumulative distribution."""
    fraction = roll / 100
    for hole, bound in enumerate(cumulative):
        if fraction < bound:
            return hole
    return len(cumulative) - 1


def probability_of_cell(cell: PathCell) -> float:
    """Probability that a path passes through ``cell``."""
    if cell.column < 0 or cell.column > cell.row:
        return 0.0
    return hole_probabilities(cell.row)[cell.column]


def hole_probabilities_given_cell(rows: int, cell: PathCell) -> List[float]:
    """Hole distribution for paths known to pass through ``cell``."""
    remaining = hole_probabilities(rows - cell.row)
    probabilities = [0.0] * (rows + 1)
    for offset, probability in enumerate(remaining):
        probabilities[cell.column + offset] = probability
    return probabilities


def payout_adjustment_factors(rows: int, cell: SpecialCell) -> List[float]:
    """
    Extra expected value each hole receives from a single multiplier cell,
    per unit of payout. Summing these over several cells only approximates
    their joint effect; ``mean_multiplier_by_hole`` gives the exact one.
    """
    reach = probability_of_cell(cell.cell)
    given = hole_probabilities_given_cell(rows, cell.cell)
    return [reach * p * (cell.multiplier - 1) for p in given]


def cell_probability_given_hole(rows: int, cell: PathCell, hole: int) -> float:
    """P(path passes ``cell`` | path ends in ``hole``)."""
    p_hole = hole_probabilities(rows)[hole]
    if p_hole == 0:
        return 0.0
    return probability_of_cell(cell) * hole_probabilities_given_cell(rows, cell)[hole] / p_hole


def cell_probability_given_cell(first: PathCell, second: PathCell) -> float:
    """P(path passes ``second`` | path passed ``first``), for ``second`` below ``first``."""
    if second.row < first.row:
        return 0.0
    offset = second.column - first.column
    steps = second.row - first.row
    if offset < 0 or offset > steps:
        return 0.0
    return hole_probabilities(steps)[offset]


def mean_multiplier_by_hole(rows: int, cells: Iterable[SpecialCell]) -> List[float]:
    """
    For each hole, the average over all ``2^rows`` equally likely paths ending
    there of the product of the multipliers struck on the way (1 when none
    is struck). Computed column by column instead of path by path; both give
    the same numbers.
    """
    multipliers = {(c.row, c.column): c.multiplier for c in cells}

    mass = [1.0]  # probability of each column
    weighted = [1.0]  # probability times accumulated multiplier product
    for row in range(1, rows + 1):
        next_mass = [0.0] * (row + 1)
        next_weighted = [0.0] * (row + 1)
        for column in range(row + 1):
            if column < row:
                next_mass[column] += mass[column] / 2
                next_weighted[column] += weighted[column] / 2
            if column > 0:
                next_mass[column] += mass[column - 1] / 2
                next_weighted[column] += weighted[column - 1] / 2
            factor = multipliers.get((row, column))
            if factor is not None:
                next_weighted[column] *= factor
        mass, weighted = next_mass, next_weighted

    return [w / m if m > 0 else 1.0 for w, m in zip(weighted, mass)]
