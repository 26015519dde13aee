"""Commit/reveal schemes: the per-epoch hash chain and per-user rounds."""

from .hash_chain import HashChainGenerator
from .rounds import RoundReveal, RoundSeedManager, RoundStart

__all__ = [
    "HashChainGenerator",
    "RoundReveal",
    "RoundSeedManager",
    "RoundStart",
]
