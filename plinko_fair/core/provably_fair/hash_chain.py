"""
Pregenerated hash chain, one link per board epoch.

Link 0 is the configured root seed and every following link is
``sha256(previous)``. Epochs consume the chain from the end, so a link that
has been revealed never lets anyone compute a link still to come.
"""

import sqlite3
import time
from typing import Callable, List, Optional

from plinko_fair.config import PlinkoConfig, HashChainConfig
from plinko_fair.core.exceptions import MissingEpochHashError
from plinko_fair.core.logger import get_logger
from plinko_fair.core.models import HashLink
from plinko_fair.core.provably_fair.hashing import generate_hash, salt_hash

logger = get_logger("provably_fair.chain")


class HashChainGenerator:
    def __init__(
        self,
        db,
        plinko: PlinkoConfig,
        chain: HashChainConfig,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.plinko = plinko
        self.chain = chain
        self._sleep = sleep

    def commitment(self, game_name: str, hash_hex: str) -> str:
        """Public value shown to players while ``hash_hex`` is still secret."""
        return salt_hash(game_name, hash_hex, self.plinko.salt)

    def is_complete(self, game_name: str) -> bool:
        return self.db.count_hashes(game_name) >= self.plinko.game_count

    def build(self, game_name: str, stop_after_batches: Optional[int] = None) -> int:
        """
        Generate and store missing links for ``game_name``.

        Resumes after the highest stored index and stops at ``game_count``
        links. Batches are committed one at a time with a pause in between;
        a failed insert is retried after a longer pause until it goes through.
        Returns the number of links written.
        """
        highest = self.db.get_highest_hash(game_name)
        if highest is None:
            next_index, previous = 0, None
        else:
            next_index, previous = highest.index + 1, highest.hash

        if next_index >= self.plinko.game_count:
            logger.debug(f"Hash chain for {game_name} already complete")
            return 0

        logger.info(
            f"Building hash chain for {game_name} from index {next_index}",
            extra={"game_count": self.plinko.game_count},
        )

        written = 0
        batches = 0
        while next_index < self.plinko.game_count:
            batch: List[HashLink] = []
            stop = min(next_index + self.chain.batch_size, self.plinko.game_count)
            for index in range(next_index, stop):
                if previous is None:
                    current = self.plinko.seed
                else:
                    current = generate_hash(game_name, previous)
                batch.append(HashLink(index, current, previous))
                previous = current

            self._insert_with_retry(game_name, batch)
            written += len(batch)
            next_index = stop
            batches += 1

            if stop_after_batches is not None and batches >= stop_after_batches:
                break
            if next_index < self.plinko.game_count:
                self._sleep(self.chain.batch_pause_seconds)

        logger.info(f"Hash chain for {game_name} now holds {next_index} links")
        return written

    def _insert_with_retry(self, game_name: str, batch: List[HashLink]):
        while True:
            try:
                self.db.insert_hash_batch(game_name, batch)
                logger.debug(
                    "Stored hash batch",
                    extra={"first_index": batch[0].index, "last_index": batch[-1].index},
                )
                return
            except sqlite3.Error as e:
                logger.error(
                    f"Failed to store hash batch starting at {batch[0].index}: {e}"
                )
                self._sleep(self.chain.insert_retry_seconds)

    def get_link(self, game_name: str, index: int) -> HashLink:
        link = self.db.get_hash(game_name, index)
        if link is None:
            raise MissingEpochHashError(game_name, index)
        return link

    def chain_index(self, board_index: int) -> int:
        return self.plinko.game_count - 1 - board_index

    def get_epoch_hash(self, game_name: str, board_index: int) -> str:
        """Chain link active for ``board_index``. Raises if it was never generated."""
        return self.get_link(game_name, self.chain_index(board_index)).hash
