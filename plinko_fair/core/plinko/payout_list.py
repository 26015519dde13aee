"""
Payout tables for the standard (non-lightning) board.

The canonical curves below were tuned for a 1% house edge. Any other edge
uses the same curve scaled by ``(1 - edge/100) / (1 - reference/100)``;
without multiplier pegs the expected value is linear in that one factor.
"""

from typing import Dict, List, Sequence, Tuple

from plinko_fair.core.exceptions import PayoutTableError
from plinko_fair.core.models import RiskLevel
from plinko_fair.core.plinko.probability import hole_probabilities

REFERENCE_EDGE = 1.0
RTP_TOLERANCE = 0.005

LIGHTNING_BASE_CURVE = [
    1000, 130, 26, 9, 4, 2, 0.2, 0.2, 0.2, 0.2, 0.2, 2, 4, 9, 26, 130, 1000,
]

PAYOUT_TABLES: Dict[int, Dict[RiskLevel, List[float]]] = {
    8: {
        RiskLevel.LOW: [5.6, 2.1, 1.1, 1, 0.5, 1, 1.1, 2.1, 5.6],
        RiskLevel.MEDIUM: [13, 3, 1.3, 0.7, 0.4, 0.7, 1.3, 3, 13],
        RiskLevel.HIGH: [29, 4, 1.5, 0.3, 0.2, 0.3, 1.5, 4, 29],
    },
    9: {
        RiskLevel.LOW: [5.6, 2, 1.6, 1, 0.7, 0.7, 1, 1.6, 2, 5.6],
        RiskLevel.MEDIUM: [18, 4, 1.7, 0.9, 0.5, 0.5, 0.9, 1.7, 4, 18],
        RiskLevel.HIGH: [43, 7, 2, 0.6, 0.2, 0.2, 0.6, 2, 7, 43],
    },
    10: {
        RiskLevel.LOW: [8.9, 3, 1.4, 1.1, 1, 0.5, 1, 1.1, 1.4, 3, 8.9],
        RiskLevel.MEDIUM: [22, 5, 2, 1.4, 0.6, 0.4, 0.6, 1.4, 2, 5, 22],
        RiskLevel.HIGH: [76, 10, 3, 0.9, 0.3, 0.2, 0.3, 0.9, 3, 10, 76],
    },
    11: {
        RiskLevel.LOW: [8.4, 3, 1.9, 1.3, 1, 0.7, 0.7, 1, 1.3, 1.9, 3, 8.4],
        RiskLevel.MEDIUM: [24, 6, 3, 1.8, 0.7, 0.5, 0.5, 0.7, 1.8, 3, 6, 24],
        RiskLevel.HIGH: [120, 14, 5.2, 1.4, 0.4, 0.2, 0.2, 0.4, 1.4, 5.2, 14, 120],
    },
    12: {
        RiskLevel.LOW: [10, 3, 1.6, 1.4, 1.1, 1, 0.5, 1, 1.1, 1.4, 1.6, 3, 10],
        RiskLevel.MEDIUM: [33, 11, 4, 2, 1.1, 0.6, 0.3, 0.6, 1.1, 2, 4, 11, 33],
        RiskLevel.HIGH: [170, 24, 8.1, 2, 0.7, 0.2, 0.2, 0.2, 0.7, 2, 8.1, 24, 170],
    },
    13: {
        RiskLevel.LOW: [8.1, 4, 3, 1.9, 1.2, 0.9, 0.7, 0.7, 0.9, 1.2, 1.9, 3, 4, 8.1],
        RiskLevel.MEDIUM: [43, 13, 6, 3, 1.3, 0.7, 0.4, 0.4, 0.7, 1.3, 3, 6, 13, 43],
        RiskLevel.HIGH: [260, 37, 11, 4, 1, 0.2, 0.2, 0.2, 0.2, 1, 4, 11, 37, 260],
    },
    14: {
        RiskLevel.LOW: [7.1, 4, 1.9, 1.4, 1.3, 1.1, 1, 0.5, 1, 1.1, 1.3, 1.4, 1.9, 4, 7.1],
        RiskLevel.MEDIUM: [58, 15, 7, 4, 1.9, 1, 0.5, 0.2, 0.5, 1, 1.9, 4, 7, 15, 58],
        RiskLevel.HIGH: [420, 56, 18, 5, 1.9, 0.3, 0.2, 0.2, 0.2, 0.3, 1.9, 5, 18, 56, 420],
    },
    15: {
        RiskLevel.LOW: [15, 8, 3, 2, 1.5, 1.1, 1, 0.7, 0.7, 1, 1.1, 1.5, 2, 3, 8, 15],
        RiskLevel.MEDIUM: [88, 18, 11, 5, 3, 1.3, 0.5, 0.3, 0.3, 0.5, 1.3, 3, 5, 11, 18, 88],
        RiskLevel.HIGH: [620, 83, 27, 8, 3, 0.5, 0.2, 0.2, 0.2, 0.2, 0.5, 3, 8, 27, 83, 620],
    },
    16: {
        RiskLevel.LOW: [16, 9, 2, 1.4, 1.4, 1.2, 1.1, 1, 0.5, 1, 1.1, 1.2, 1.4, 1.4, 2, 9, 16],
        RiskLevel.MEDIUM: [110, 41, 10, 5, 3, 1.5, 1, 0.5, 0.3, 0.5, 1, 1.5, 3, 5, 10, 41, 110],
        RiskLevel.HIGH: [1000, 130, 26, 9, 4, 2, 0.2, 0.2, 0.2, 0.2, 0.2, 2, 4, 9, 26, 130, 1000],
    },
}

SUPPORTED_ROWS = tuple(sorted(PAYOUT_TABLES))


def edge_scale(edge: float, reference_edge: float = REFERENCE_EDGE) -> float:
    return (1 - edge / 100) / (1 - reference_edge / 100)


def payout_list(
    rows: int, risk: RiskLevel, edge: float, reference_edge: float = REFERENCE_EDGE
) -> List[float]:
    """Standard payout table for ``rows`` and ``risk``, scaled to ``edge``."""
    risk = RiskLevel(risk)
    if risk.is_lightning:
        raise PayoutTableError("lightning payouts are generated per board epoch")
    if rows not in PAYOUT_TABLES:
        raise PayoutTableError(
            f"rows must be between {SUPPORTED_ROWS[0]} and {SUPPORTED_ROWS[-1]}, got {rows}"
        )
    scale = edge_scale(edge, reference_edge)
    return [payout * scale for payout in PAYOUT_TABLES[rows][risk]]


def lightning_base_payouts(edge: float, reference_edge: float = REFERENCE_EDGE) -> List[float]:
    """The high-risk 16 row curve, the starting point of every lightning board."""
    scale = edge_scale(edge, reference_edge)
    return [payout * scale for payout in LIGHTNING_BASE_CURVE]


def guaranteed_payouts(rows: int, edge: float) -> List[float]:
    """Flat table paying ``1 - edge/100`` in every hole."""
    return [1 - edge / 100] * (rows + 1)


def calculate_payout_average(payouts: Sequence[float], probabilities: Sequence[float]) -> float:
    return sum(payout * probability for payout, probability in zip(payouts, probabilities))


def verify_payout_average(
    payouts: Sequence[float],
    probabilities: Sequence[float],
    edge: float,
    tolerance: float = RTP_TOLERANCE,
) -> Tuple[bool, str]:
    """Check a table's expected value against ``1 - edge/100``."""
    if len(payouts) != len(probabilities):
        return False, (
            f"payout table has {len(payouts)} holes, probabilities have {len(probabilities)}"
        )
    average = calculate_payout_average(payouts, probabilities)
    expected = 1 - edge / 100
    if abs(average - expected) > tolerance:
        return False, f"Expected payout average {expected} but got {average:.4f}"
    return True, f"Payout average: {average:.6f} with {len(payouts)} holes"


def verify_payout_list(rows: int, risk: RiskLevel, edge: float) -> Tuple[bool, str]:
    return verify_payout_average(payout_list(rows, risk, edge), hole_probabilities(rows), edge)
