"""
One plinko play, from board resolution to the settled bet record.

The caller must hold the (user, game) lock for the duration of ``roll``:
the round nonce is read, used and incremented here.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

from plinko_fair.config import PlinkoConfig
from plinko_fair.core.exceptions import InvalidBetError, PayoutTableError
from plinko_fair.core.logger import get_logger
from plinko_fair.core.models import (
    BetRecord,
    HouseGame,
    PathCell,
    RiskLevel,
    SpecialCell,
)
from plinko_fair.core.plinko.epoch import BoardEpochs
from plinko_fair.core.plinko.path import (
    cells_multiplier,
    hole_from_path,
    multipliers_hit_on_path,
    sample_path,
)
from plinko_fair.core.plinko.payout_list import payout_list
from plinko_fair.core.provably_fair.rounds import RoundSeedManager

logger = get_logger("plinko.roll")


class BetSettlement(Protocol):
    """Receives every roll. Owns the bet record and any balance effects."""

    def settle(self, record: BetRecord) -> BetRecord:
        ...


class HistorySettlement:
    """Settlement that only records the bet in history."""

    def __init__(self, db):
        self.db = db

    def settle(self, record: BetRecord) -> BetRecord:
        return self.db.insert_bet(record)


@dataclass
class RollResult:
    bet_id: str
    hole: int
    path: List[PathCell]
    payouts: List[float]
    hole_multiplier: float
    cells_multiplier: float
    payout_multiplier: float
    payout: float
    clamped: bool
    round_id: str
    round_hash: str
    nonce: int
    client_seed: str
    rows: int
    risk: RiskLevel
    board_index: Optional[int] = None
    multipliers_hit: List[SpecialCell] = field(default_factory=list)


def clamp_payout_multiplier(
    multiplier: float, amount: float, max_profit: float
) -> Tuple[float, bool]:
    if amount > 0 and multiplier * amount > max_profit:
        return max_profit / amount, True
    return multiplier, False


class RollEngine:
    def __init__(
        self,
        rounds: RoundSeedManager,
        epochs: BoardEpochs,
        settlement: BetSettlement,
        config: PlinkoConfig,
    ):
        self.rounds = rounds
        self.epochs = epochs
        self.settlement = settlement
        self.config = config

    def validate(self, amount: float, rows: int, risk: RiskLevel):
        if not math.isfinite(amount) or not self.config.min_bet <= amount <= self.config.max_bet:
            raise InvalidBetError(
                f"Bet must be between {self.config.min_bet} and {self.config.max_bet}"
            )
        self.validate_board(rows, risk)

    def validate_board(self, rows: int, risk: RiskLevel):
        if risk.is_lightning:
            if rows != self.config.lightning_rows:
                raise PayoutTableError(
                    f"Lightning boards have {self.config.lightning_rows} rows"
                )
        elif not self.config.rows_min <= rows <= self.config.rows_max:
            raise PayoutTableError(
                f"Rows must be between {self.config.rows_min} and {self.config.rows_max}"
            )

    def board(
        self, game_name: str, rows: int, risk: RiskLevel
    ) -> Tuple[List[float], Sequence[SpecialCell], Optional[int]]:
        """Payout table, multiplier pegs and board index in effect right now."""
        if risk.is_lightning:
            epoch = self.epochs.current(game_name)
            return epoch.payload.payouts, epoch.payload.multiplier_cells, epoch.board_index
        return payout_list(rows, risk, self.config.edge, self.config.reference_edge), (), None

    def roll(
        self,
        user_id: str,
        amount: float,
        rows: int,
        risk: RiskLevel,
        client_seed: str,
        auto_bet: bool = False,
        game_name: str = HouseGame.PLINKO.value,
    ) -> RollResult:
        risk = RiskLevel(risk)
        self.validate(amount, rows, risk)

        payouts, cells, board_index = self.board(game_name, rows, risk)
        current = self.rounds.get_or_create_round(user_id, game_name)
        nonce = current.nonce

        roll_hash = self.rounds.roll_hash(current.id, client_seed, nonce)
        path = sample_path(roll_hash, rows)
        hole = hole_from_path(path)
        hit = multipliers_hit_on_path(cells, path)

        hole_multiplier = payouts[hole]
        extra = cells_multiplier(hit)
        payout_multiplier, clamped = clamp_payout_multiplier(
            hole_multiplier * extra, amount, self.config.max_profit
        )
        if clamped:
            logger.info(
                f"Clamped payout for {user_id} to max profit",
                extra={
                    "original_multiplier": hole_multiplier * extra,
                    "clamped_multiplier": payout_multiplier,
                    "bet_amount": amount,
                    "max_profit": self.config.max_profit,
                },
            )

        record = self.settlement.settle(
            BetRecord(
                id="",
                user_id=user_id,
                game_name=game_name,
                amount=amount,
                risk=risk.value,
                rows=rows,
                payout_multiplier=payout_multiplier,
                payout=round(amount * payout_multiplier, 2),
                hole=hole,
                client_seed=client_seed,
                round_id=current.id,
                round_hash=current.hash,
                nonce=nonce,
                board_index=board_index,
                auto_bet=auto_bet,
            )
        )
        self.rounds.increment_nonce(user_id, game_name)

        logger.debug(
            f"Roll for {user_id}: hole {hole}, multiplier {payout_multiplier}",
            extra={"round_id": current.id, "nonce": nonce},
        )
        return RollResult(
            bet_id=record.id,
            hole=hole,
            path=path,
            payouts=list(payouts),
            hole_multiplier=hole_multiplier,
            cells_multiplier=extra,
            payout_multiplier=payout_multiplier,
            payout=record.payout,
            clamped=clamped,
            round_id=current.id,
            round_hash=current.hash,
            nonce=nonce,
            client_seed=client_seed,
            rows=rows,
            risk=risk,
            board_index=board_index,
            multipliers_hit=hit,
        )
