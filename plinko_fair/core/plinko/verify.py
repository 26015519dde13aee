"""
Replay of a settled plinko bet from revealed seeds.

Verifying a bet whose round is still open closes that round, since the
seed cannot be shown otherwise. Lightning boards are always regenerated
from the chain, never read from the epoch cache.
"""

import hashlib
import math
from dataclasses import dataclass, field
from typing import List, Optional

from plinko_fair.config import PlinkoConfig
from plinko_fair.core.logger import get_logger
from plinko_fair.core.models import PathCell, RiskLevel, SpecialCell
from plinko_fair.core.plinko.epoch import BoardEpochs
from plinko_fair.core.plinko.path import (
    cells_multiplier,
    hole_from_path,
    multipliers_hit_on_path,
    sample_path,
)
from plinko_fair.core.plinko.payout_list import payout_list
from plinko_fair.core.plinko.roll import clamp_payout_multiplier
from plinko_fair.core.provably_fair.rounds import RoundSeedManager
from plinko_fair.core.result import Err, ErrorKind, Ok, Result

logger = get_logger("plinko.verify")


@dataclass
class ReplayedRoll:
    hole: int
    path: List[PathCell]
    payout_multiplier: float
    multipliers_hit: List[SpecialCell] = field(default_factory=list)


@dataclass
class VerificationResult:
    server_seed: str
    hashed_server_seed: str
    nonce: int
    client_seed: str
    result: ReplayedRoll
    game_hash: Optional[str] = None


class VerificationEngine:
    def __init__(self, bets, rounds: RoundSeedManager, epochs: BoardEpochs, config: PlinkoConfig):
        self.bets = bets
        self.rounds = rounds
        self.epochs = epochs
        self.config = config

    def verify_bet(self, game_name: str, bet_id: str) -> Result[VerificationResult]:
        bet = self.bets.get_bet(bet_id)
        if bet is None or bet.game_name != game_name:
            return Err(ErrorKind.BET_NOT_FOUND, f"No {game_name} bet {bet_id}")

        bet_round = self.rounds.get_round(bet.round_id)
        if bet_round is None:
            return Err(ErrorKind.ROUND_NOT_FOUND, f"Round {bet.round_id} does not exist")

        if bet_round.round_over:
            seed = bet_round.seed
        else:
            reveal = self.rounds.end_round(bet_round.id)
            if reveal is None:
                return Err(ErrorKind.ROUND_NOT_CLOSABLE, f"Round {bet_round.id} could not be closed")
            seed = reveal.seed

        hashed_seed = hashlib.sha256(seed.encode("utf-8")).hexdigest()
        if hashed_seed != bet_round.hash or bet_round.hash != bet.round_hash:
            logger.error(f"Round hash mismatch for bet {bet_id}", extra={"round_id": bet_round.id})
            return Err(ErrorKind.ROUND_HASH_MISMATCH, "Revealed seed does not match the round hash")

        risk = RiskLevel(bet.risk)
        if risk.is_lightning and bet.rows != self.config.lightning_rows:
            return Err(ErrorKind.ROWS_MISMATCH, f"Lightning bet recorded with {bet.rows} rows")

        roll_hash = RoundSeedManager.roll_hash_from_seed(seed, bet.client_seed, bet.nonce)
        path = sample_path(roll_hash, bet.rows)
        hole = hole_from_path(path)
        if len(path) != bet.rows:
            return Err(ErrorKind.ROWS_MISMATCH, f"Replayed {len(path)} rows, bet has {bet.rows}")
        if hole != bet.hole:
            logger.error(
                f"Hole mismatch for bet {bet_id}",
                extra={"replayed_hole": hole, "recorded_hole": bet.hole},
            )
            return Err(ErrorKind.HOLE_MISMATCH, f"Replayed hole {hole}, bet landed in {bet.hole}")

        game_hash = None
        cells: List[SpecialCell] = []
        if risk.is_lightning:
            epoch_hash, board = self.epochs.board_for_index(game_name, bet.board_index)
            payouts, cells = board.payouts, board.multiplier_cells
            # Links of later epochs in this cycle follow from an earlier one.
            current_index, _, _ = self.epochs.locate()
            if bet.board_index < current_index:
                game_hash = epoch_hash
        else:
            payouts = payout_list(bet.rows, risk, self.config.edge, self.config.reference_edge)

        hit = multipliers_hit_on_path(cells, path)
        payout_multiplier, _ = clamp_payout_multiplier(
            payouts[hole] * cells_multiplier(hit), bet.amount, self.config.max_profit
        )
        if not math.isclose(payout_multiplier, bet.payout_multiplier, rel_tol=1e-9, abs_tol=1e-9):
            return Err(
                ErrorKind.PAYOUT_MISMATCH,
                f"Replayed multiplier {payout_multiplier}, bet paid {bet.payout_multiplier}",
            )

        logger.info(f"Verified bet {bet_id}", extra={"round_id": bet_round.id})
        return Ok(
            VerificationResult(
                server_seed=seed,
                hashed_server_seed=hashed_seed,
                nonce=bet.nonce,
                client_seed=bet.client_seed,
                result=ReplayedRoll(
                    hole=hole,
                    path=path,
                    payout_multiplier=payout_multiplier,
                    multipliers_hit=hit,
                ),
                game_hash=game_hash,
            )
        )
