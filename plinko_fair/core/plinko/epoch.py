"""
Board epochs: fixed wall-clock windows, each bound to one chain link.

    epoch_number = floor(unix_seconds / window)
    board_index  = epoch_number % game_count
"""

import time
from typing import Callable, Optional, Tuple

from plinko_fair.core.cache import TTLCache
from plinko_fair.core.logger import get_logger
from plinko_fair.core.models import Epoch, LightningBoard
from plinko_fair.core.plinko.lightning import LightningBoardGenerator
from plinko_fair.core.provably_fair.hash_chain import HashChainGenerator

logger = get_logger("plinko.epoch")


class BoardEpochs:
    def __init__(
        self,
        chain: HashChainGenerator,
        generator: LightningBoardGenerator,
        cache: TTLCache,
        epoch_minutes: int,
        clock: Callable[[], float] = time.time,
    ):
        self.chain = chain
        self.generator = generator
        self.cache = cache
        self.window = epoch_minutes * 60
        self._clock = clock

    @property
    def game_count(self) -> int:
        return self.chain.plinko.game_count

    def locate(self, now: Optional[float] = None) -> Tuple[int, float, float]:
        """(board_index, window start, window end) for a timestamp."""
        if now is None:
            now = self._clock()
        epoch_number = int(now // self.window)
        starts_at = epoch_number * self.window
        return epoch_number % self.game_count, starts_at, starts_at + self.window

    def is_active(self, board_index: int, now: Optional[float] = None) -> bool:
        return self.locate(now)[0] == board_index

    def current(self, game_name: str) -> Epoch[LightningBoard]:
        """Active epoch with its board, computed once per window."""
        now = self._clock()
        board_index, starts_at, ends_at = self.locate(now)

        def build() -> Epoch[LightningBoard]:
            epoch_hash, board = self.board_for_index(game_name, board_index)
            logger.info(
                f"Generated lightning board for {game_name} epoch {board_index}",
                extra={"attempts": board.attempts, "fallback": board.fallback},
            )
            return Epoch(
                game_name=game_name,
                board_index=board_index,
                chain_index=self.chain.chain_index(board_index),
                hash=epoch_hash,
                commitment=self.chain.commitment(game_name, epoch_hash),
                starts_at=starts_at,
                ends_at=ends_at,
                payload=board,
            )

        return self.cache.get_or_compute(f"{game_name}:{board_index}", ends_at - now, build)

    def board_for_index(self, game_name: str, board_index: int) -> Tuple[str, LightningBoard]:
        """Regenerate a board straight from the chain, bypassing the cache."""
        epoch_hash = self.chain.get_epoch_hash(game_name, board_index)
        return epoch_hash, self.generator.generate(epoch_hash)

    def previous_hash(self, game_name: str) -> Optional[str]:
        """
        Link of the epoch that just ended. It is ``sha256`` of the active
        link, so players can check the next reveal against it. None for the
        first epoch of a cycle, whose predecessor would be the chain root.
        """
        board_index, _, _ = self.locate()
        if board_index == 0:
            return None
        link = self.chain.db.get_hash(game_name, self.chain.chain_index(board_index - 1))
        return link.hash if link else None
