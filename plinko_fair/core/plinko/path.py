"""Turning a hash into the ball's path through the board."""

from itertools import product
from typing import Iterator, List, Sequence

from plinko_fair.core.models import PathCell, SpecialCell
from plinko_fair.core.rng import hash_rng

LEFT = 1
RIGHT = 0


def calculate_ball_path(bits: Sequence[int]) -> List[PathCell]:
    """
    Walk one decision per row. A left bounce keeps the column, a right
    bounce moves one column over.
    """
    path = []
    column = 0
    for row, bit in enumerate(bits, start=1):
        if bit != LEFT:
            column += 1
        path.append(PathCell(row=row, column=column))
    return path


def sample_path(hash_hex: str, rows: int) -> List[PathCell]:
    """Deterministic path for ``rows`` rows; raises when the hash is too short."""
    return calculate_ball_path(hash_rng.random_bools(rows, hash_hex))


def hole_from_path(path: Sequence[PathCell]) -> int:
    return path[-1].column if path else 0


def every_possible_path(rows: int) -> Iterator[List[PathCell]]:
    """All ``2^rows`` paths, each equally likely."""
    for bits in product((LEFT, RIGHT), repeat=rows):
        yield calculate_ball_path(bits)


def multipliers_hit_on_path(
    cells: Sequence[SpecialCell], path: Sequence[PathCell]
) -> List[SpecialCell]:
    visited = set(path)
    return [cell for cell in cells if cell.cell in visited]


def cells_multiplier(hit: Sequence[SpecialCell]) -> float:
    total = 1.0
    for cell in hit:
        total *= cell.multiplier
    return total
