import threading
from dataclasses import asdict
from typing import Dict, Optional, Tuple

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from plinko_fair.config import RateLimitConfig, settings
from plinko_fair.core.engine import PlinkoEngine
from plinko_fair.core.logger import get_logger
from plinko_fair.core.models import HouseGame, RiskLevel
from plinko_fair.core.plinko.payout_list import payout_list
from plinko_fair.core.result import ErrorKind
from plinko_fair.core.rng import hash_rng

limiter = Limiter(key_func=get_remote_address)

logger = get_logger("api")

router = APIRouter()

GAME = HouseGame.PLINKO.value

# ==================== Request Models ====================

class RollRequest(BaseModel):
    bet: float = Field(gt=0, allow_inf_nan=False)
    rows: int = 16
    risk: RiskLevel = RiskLevel.MEDIUM
    client_seed: Optional[str] = Field(default=None, max_length=64)
    auto_bet: bool = False

class VerifyRequest(BaseModel):
    game_name: HouseGame = HouseGame.PLINKO
    bet_id: str

# ==================== Helpers ====================

class UserGameLocks:
    """One lock per (user, game); round mutations happen under it."""

    def __init__(self):
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, user_id: str, game: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault((user_id, game), threading.Lock())


round_locks = UserGameLocks()


def get_user_id(request: Request) -> str:
    """Get user ID from cookie."""
    user_id = request.cookies.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not logged in")
    return user_id

def get_engine(request: Request) -> PlinkoEngine:
    return request.app.state.engine

rate_limits: RateLimitConfig = settings.rate_limit

def configure_rate_limits(config: RateLimitConfig):
    """Point the endpoint limits at the config of the app being built."""
    global rate_limits
    rate_limits = config

def get_rate_limit():
    """Get rate limit string from config."""
    return rate_limits.game_requests if rate_limits.enabled else "1000/minute"

def get_end_round_limit():
    return rate_limits.end_round_requests if rate_limits.enabled else "1000/minute"

def cell_view(cell) -> dict:
    return asdict(cell)

def round_view(game_round) -> dict:
    data = game_round.public_view()
    return {
        "id": data["id"],
        "gameName": data["game_name"],
        "hash": data["hash"],
        "seed": data["seed"],
        "nonce": data["nonce"],
        "roundOver": data["round_over"],
        "createdAt": data["created_at"],
        "completedAt": data["completed_at"],
    }

VERIFY_STATUS = {
    ErrorKind.BET_NOT_FOUND: 404,
    ErrorKind.ROUND_NOT_FOUND: 404,
}

# ==================== Board Endpoints ====================

@router.get("/games/plinko/payouts")
def plinko_payouts(request: Request, rows: int = 16, risk: RiskLevel = RiskLevel.MEDIUM):
    engine = get_engine(request)
    if risk.is_lightning:
        epoch = engine.epochs.current(GAME)
        return {
            "rows": engine.config.plinko.lightning_rows,
            "risk": risk.value,
            "payouts": epoch.payload.payouts,
            "multiplierCells": [cell_view(c) for c in epoch.payload.multiplier_cells],
            "boardIndex": epoch.board_index,
        }

    engine.roller.validate_board(rows, risk)
    plinko = engine.config.plinko
    return {
        "rows": rows,
        "risk": risk.value,
        "payouts": payout_list(rows, risk, plinko.edge, plinko.reference_edge),
    }

@router.get("/games/plinko/board")
def plinko_board(request: Request):
    """Active lightning board and its public commitment."""
    engine = get_engine(request)
    epoch = engine.epochs.current(GAME)
    return {
        "boardIndex": epoch.board_index,
        "commitment": epoch.commitment,
        "previousHash": engine.epochs.previous_hash(GAME),
        "payouts": epoch.payload.payouts,
        "multiplierCells": [cell_view(c) for c in epoch.payload.multiplier_cells],
        "fallback": epoch.payload.fallback,
        "endsAt": epoch.ends_at,
    }

# ==================== Round Endpoints ====================

@router.get("/games/plinko/currentRoundHash")
def current_round_hash(request: Request):
    user_id = get_user_id(request)
    engine = get_engine(request)
    with round_locks.get(user_id, GAME):
        current = engine.rounds.get_or_create_round(user_id, GAME)
    return {"roundId": current.id, "hash": current.hash, "nonce": current.nonce}

@router.post("/games/plinko/endRound")
@limiter.limit(get_end_round_limit)
def end_round(request: Request):
    """Reveal the current round's seed and open a new round."""
    user_id = get_user_id(request)
    engine = get_engine(request)
    with round_locks.get(user_id, GAME):
        started = engine.rounds.start_round(user_id, GAME)

    previous = None
    if started.previous_round:
        previous = {"roundId": started.previous_round.round_id, "seed": started.previous_round.seed}
    return {"hash": started.hash, "roundId": started.round.id, "previousRound": previous}

@router.get("/games/rounds/{round_id}")
def get_round_by_id(request: Request, round_id: str):
    engine = get_engine(request)
    game_round = engine.rounds.get_round(round_id)
    if game_round is None:
        raise HTTPException(status_code=404, detail="Round not found")
    return round_view(game_round)

# ==================== Play Endpoints ====================

@router.post("/games/plinko/roll")
@limiter.limit(get_rate_limit)
def plinko_roll(request: Request, data: RollRequest):
    user_id = get_user_id(request)
    engine = get_engine(request)
    client_seed = data.client_seed or hash_rng.client_seed()

    with round_locks.get(user_id, GAME):
        result = engine.roller.roll(
            user_id,
            data.bet,
            data.rows,
            data.risk,
            client_seed,
            auto_bet=data.auto_bet,
        )

    return {
        "betId": result.bet_id,
        "hole": result.hole,
        "path": [cell_view(c) for c in result.path],
        "payoutMultiplier": result.payout_multiplier,
        "payout": result.payout,
        "bet": data.bet,
        "clamped": result.clamped,
        "multipliersHit": [cell_view(c) for c in result.multipliers_hit],
        "roundId": result.round_id,
        "roundHash": result.round_hash,
        "nonce": result.nonce,
        "clientSeed": result.client_seed,
        "boardIndex": result.board_index,
        "rows": result.rows,
        "risk": result.risk.value,
    }

@router.get("/games/plinko/history")
def plinko_history(request: Request, limit: int = 50):
    user_id = get_user_id(request)
    engine = get_engine(request)
    bets = engine.db.list_bets(user_id, GAME, min(max(limit, 1), 200))
    return {"bets": [asdict(bet) for bet in bets]}

@router.post("/games/verify")
def verify_bet(request: Request, data: VerifyRequest):
    engine = get_engine(request)
    bet = engine.db.get_bet(data.bet_id)
    if bet is None:
        raise HTTPException(status_code=404, detail="Bet not found")

    with round_locks.get(bet.user_id, data.game_name.value):
        outcome = engine.verifier.verify_bet(data.game_name.value, data.bet_id)

    if not outcome.ok:
        logger.warning(f"Verification failed for bet {data.bet_id}: {outcome.message}")
        raise HTTPException(
            status_code=VERIFY_STATUS.get(outcome.kind, 400),
            detail={"kind": outcome.kind.value, "message": outcome.message},
        )

    verified = outcome.value
    body = {
        "serverSeed": verified.server_seed,
        "hashedServerSeed": verified.hashed_server_seed,
        "nonce": verified.nonce,
        "clientSeed": verified.client_seed,
        "result": {
            "hole": verified.result.hole,
            "path": [cell_view(c) for c in verified.result.path],
            "payoutMultiplier": verified.result.payout_multiplier,
            "multipliersHit": [cell_view(c) for c in verified.result.multipliers_hit],
        },
    }
    if verified.game_hash is not None:
        body["gameHash"] = verified.game_hash
    return body
