from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from plinko_fair.core.logger import get_logger
from plinko_fair.core.models import HouseGame
from plinko_fair.core.provably_fair.hash_chain import HashChainGenerator

logger = get_logger("scheduler")


class HashChainScheduler:
    """Keeps every game's hash chain built, in a background thread."""

    def __init__(self, chain: HashChainGenerator, check_interval_minutes: int = 60):
        self.chain = chain
        self.check_interval_minutes = check_interval_minutes
        self.scheduler = BackgroundScheduler()

    def start(self):
        self.scheduler.add_job(
            self.ensure_chains,
            IntervalTrigger(minutes=self.check_interval_minutes),
            id="ensure_hash_chains",
            name="Build pregenerated hash chains",
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Hash chain scheduler started")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Hash chain scheduler shutdown")

    def ensure_chains(self):
        """Resume any chain that is not complete yet."""
        for game in HouseGame:
            try:
                if not self.chain.is_complete(game.value):
                    self.chain.build(game.value)
            except Exception as e:
                logger.error(f"Error building hash chain for {game.value}: {e}", exc_info=True)
