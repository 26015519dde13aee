"""
Per-user provably-fair rounds.

A round publishes ``sha256(seed)`` before the first play and reveals ``seed``
only once it is closed. Every play in between uses the round's nonce and
increments it by exactly one.

Callers must hold a per (user, game) lock around the round mutations here;
the engine does not serialize them itself.
"""

import sqlite3
import uuid
from dataclasses import dataclass
from typing import Optional

from plinko_fair.core.exceptions import RoundStateError
from plinko_fair.core.logger import get_logger
from plinko_fair.core.models import Round
from plinko_fair.core.provably_fair.hashing import (
    generate_hash,
    noncify,
    salt_with_client_seed,
    salt_with_new_seed,
)

logger = get_logger("provably_fair.rounds")


@dataclass
class RoundReveal:
    round_id: str
    seed: str


@dataclass
class RoundStart:
    round: Round
    previous_round: Optional[RoundReveal]

    @property
    def hash(self) -> str:
        return self.round.hash


class RoundSeedManager:
    def __init__(self, db, server_seed: str):
        self.db = db
        self._server_seed = server_seed

    def _round_seed(self, round_id: str) -> str:
        # Secret until the round is closed; never return it for an open round.
        return salt_with_new_seed(self._server_seed, round_id)

    def round_hash(self, game_name: str, round_id: str) -> str:
        """Public commitment for a round."""
        return generate_hash(game_name, self._round_seed(round_id))

    def get_current_round(self, user_id: str, game_name: str) -> Optional[Round]:
        return self.db.get_open_round(user_id, game_name)

    def get_round(self, round_id: str) -> Optional[Round]:
        return self.db.get_round(round_id)

    def start_round(self, user_id: str, game_name: str) -> RoundStart:
        """Close any open round for the user, then open a fresh one."""
        previous = self.end_current_round(user_id, game_name)

        round_id = uuid.uuid4().hex
        try:
            new_round = self.db.create_round(
                round_id, user_id, game_name, self.round_hash(game_name, round_id)
            )
        except sqlite3.IntegrityError:
            raise RoundStateError(f"{user_id} already has an open {game_name} round")

        logger.info(f"Started {game_name} round {round_id} for {user_id}")
        return RoundStart(round=new_round, previous_round=previous)

    def get_or_create_round(self, user_id: str, game_name: str) -> Round:
        current = self.get_current_round(user_id, game_name)
        if current is not None:
            return current
        return self.start_round(user_id, game_name).round

    def increment_nonce(self, user_id: str, game_name: str) -> Round:
        updated = self.db.increment_round_nonce(user_id, game_name)
        if updated is None:
            raise RoundStateError(f"{user_id} has no open {game_name} round")
        return updated

    def end_round(self, round_id: str) -> Optional[RoundReveal]:
        """
        Close a round and reveal its seed. Returns None when the round does
        not exist or was already closed, so a seed is revealed at most once.
        """
        seed = self._round_seed(round_id)
        if not self.db.close_round(round_id, seed):
            return None
        logger.info(f"Closed round {round_id}")
        return RoundReveal(round_id=round_id, seed=seed)

    def end_current_round(self, user_id: str, game_name: str) -> Optional[RoundReveal]:
        current = self.get_current_round(user_id, game_name)
        if current is None:
            return None
        return self.end_round(current.id)

    def roll_hash(self, round_id: str, client_seed: str, nonce: int) -> str:
        """Hash that drives a single play."""
        return self.roll_hash_from_seed(self._round_seed(round_id), client_seed, nonce)

    @staticmethod
    def roll_hash_from_seed(round_seed: str, client_seed: str, nonce: int) -> str:
        return salt_with_client_seed(round_seed, noncify(client_seed, nonce))
