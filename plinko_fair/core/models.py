"""Shared data shapes for rounds, chain links, boards and bet history."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class HouseGame(str, Enum):
    """Games with provably-fair rounds served by this engine."""
    PLINKO = "plinko"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    LIGHTNING = "lightning"

    @property
    def is_lightning(self) -> bool:
        return self is RiskLevel.LIGHTNING


MANUAL_RISK_LEVELS = (RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH)


@dataclass(frozen=True)
class PathCell:
    row: int  # 1-based
    column: int


@dataclass(frozen=True)
class SpecialCell:
    row: int
    column: int
    multiplier: float

    @property
    def cell(self) -> PathCell:
        return PathCell(self.row, self.column)


@dataclass
class HashLink:
    index: int
    hash: str
    previous_hash: Optional[str]


@dataclass
class Round:
    id: str
    user_id: str
    game_name: str
    hash: str
    nonce: int = 0
    round_over: bool = False
    seed: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def public_view(self) -> dict:
        """Round data safe to send to a player: the seed only once revealed."""
        data = asdict(self)
        if not self.round_over:
            data["seed"] = None
        return data


@dataclass
class LightningBoard:
    payouts: List[float]
    multiplier_cells: List[SpecialCell] = field(default_factory=list)
    attempts: int = 1
    fallback: bool = False


@dataclass
class Epoch(Generic[T]):
    """One real-time window during which a single chain link is active."""
    game_name: str
    board_index: int
    chain_index: int
    hash: str
    commitment: str
    starts_at: float
    ends_at: float
    payload: T

    def seconds_left(self, now: float) -> float:
        return max(self.ends_at - now, 0.0)


@dataclass
class BetRecord:
    """Roll-derived fields persisted on bet history for later verification."""
    id: str
    user_id: str
    game_name: str
    amount: float
    risk: str
    rows: int
    payout_multiplier: float
    payout: float
    hole: int
    client_seed: str
    round_id: str
    round_hash: str
    nonce: int
    board_index: Optional[int] = None
    auto_bet: bool = False
    created_at: Optional[datetime] = None
