import argparse
import os
import sys

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from plinko_fair.config import settings
from plinko_fair.core.database import Database
from plinko_fair.core.logger import init_logging
from plinko_fair.core.models import HouseGame
from plinko_fair.core.provably_fair.hash_chain import HashChainGenerator


def build_hash_chain(game: str):
    """Builds (or resumes) the pregenerated hash chain for one game."""
    db = Database(settings.paths.get_db_path())
    chain = HashChainGenerator(db, settings.plinko, settings.hash_chain)

    written = chain.build(game)
    total = db.count_hashes(game)
    print(f"Wrote {written} links, {game} chain holds {total}/{settings.plinko.game_count}.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Build the pregenerated hash chain")
    parser.add_argument(
        "--game",
        default=HouseGame.PLINKO.value,
        choices=[game.value for game in HouseGame],
    )
    args = parser.parse_args()

    init_logging(level=settings.logging.level, formatter=settings.logging.formatter)
    build_hash_chain(args.game)
