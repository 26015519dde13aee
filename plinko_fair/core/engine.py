"""Wiring of the plinko engine from configuration and storage."""

from dataclasses import dataclass
from typing import Optional

from plinko_fair.config import AppConfig
from plinko_fair.core.cache import TTLCache
from plinko_fair.core.database import Database
from plinko_fair.core.plinko.epoch import BoardEpochs
from plinko_fair.core.plinko.lightning import LightningBoardGenerator
from plinko_fair.core.plinko.roll import BetSettlement, HistorySettlement, RollEngine
from plinko_fair.core.plinko.verify import VerificationEngine
from plinko_fair.core.provably_fair.hash_chain import HashChainGenerator
from plinko_fair.core.provably_fair.rounds import RoundSeedManager


@dataclass
class PlinkoEngine:
    config: AppConfig
    db: Database
    chain: HashChainGenerator
    rounds: RoundSeedManager
    epochs: BoardEpochs
    roller: RollEngine
    verifier: VerificationEngine


def build_engine(
    config: AppConfig,
    db: Database,
    cache: Optional[TTLCache] = None,
    settlement: Optional[BetSettlement] = None,
) -> PlinkoEngine:
    plinko = config.plinko
    chain = HashChainGenerator(db, plinko, config.hash_chain)
    rounds = RoundSeedManager(db, plinko.seed)
    generator = LightningBoardGenerator(
        config.lightning,
        edge=plinko.lightning_edge,
        rows=plinko.lightning_rows,
        reference_edge=plinko.reference_edge,
    )
    if cache is None:
        cache = TTLCache()
    epochs = BoardEpochs(chain, generator, cache, config.lightning.epoch_minutes)
    return PlinkoEngine(
        config=config,
        db=db,
        chain=chain,
        rounds=rounds,
        epochs=epochs,
        roller=RollEngine(rounds, epochs, settlement or HistorySettlement(db), plinko),
        verifier=VerificationEngine(db, rounds, epochs, plinko),
    )
