"""Plinko board math, lightning boards, rolls and verification."""

from .epoch import BoardEpochs
from .lightning import LightningBoardGenerator
from .payout_list import guaranteed_payouts, payout_list, verify_payout_average
from .roll import BetSettlement, HistorySettlement, RollEngine, RollResult
from .verify import VerificationEngine, VerificationResult

__all__ = [
    "BoardEpochs",
    "LightningBoardGenerator",
    "guaranteed_payouts",
    "payout_list",
    "verify_payout_average",
    "BetSettlement",
    "HistorySettlement",
    "RollEngine",
    "RollResult",
    "VerificationEngine",
    "VerificationResult",
]
