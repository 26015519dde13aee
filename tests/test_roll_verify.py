import hashlib
import tempfile
import unittest
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock

from plinko_fair.config import AppConfig, HashChainConfig, PlinkoConfig
from plinko_fair.core.database import Database
from plinko_fair.core.engine import build_engine
from plinko_fair.core.exceptions import InvalidBetError, PayoutTableError
from plinko_fair.core.models import RiskLevel
from plinko_fair.core.plinko.payout_list import payout_list
from plinko_fair.core.plinko.roll import clamp_payout_multiplier
from plinko_fair.core.result import ErrorKind


def make_config(**plinko) -> AppConfig:
    plinko.setdefault("game_count", 20)
    plinko.setdefault("seed", "chain-root")
    plinko.setdefault("salt", "public-salt")
    return AppConfig(
        plinko=PlinkoConfig(**plinko),
        hash_chain=HashChainConfig(batch_size=10, batch_pause_seconds=0),
    )


class EngineTestCase(unittest.TestCase):
    plinko_overrides = {}

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db = Database(Path(self.tmp.name) / "engine.db")
        self.config = make_config(**self.plinko_overrides)
        self.engine = build_engine(self.config, self.db)
        self.engine.chain.build("plinko")
        self.now = 900 * 3 + 5
        self.engine.epochs._clock = lambda: self.now

    def tearDown(self):
        self.db.close()
        self.tmp.cleanup()

    def tamper(self, bet_id: str, column: str, value):
        conn = self.db._get_connection()
        with conn:
            conn.execute(f"UPDATE bet_history SET {column} = ? WHERE id = ?", (value, bet_id))


class TestRollEngine(EngineTestCase):

    def test_standard_roll(self):
        roller = self.engine.roller
        first = roller.roll("alice", 2.0, 12, RiskLevel.MEDIUM, "client")
        second = roller.roll("alice", 2.0, 12, RiskLevel.MEDIUM, "client")

        self.assertEqual((first.nonce, second.nonce), (0, 1))
        self.assertEqual(first.round_id, second.round_id)
        self.assertEqual(len(first.path), 12)
        self.assertEqual(first.hole, first.path[-1].column)
        payouts = payout_list(12, RiskLevel.MEDIUM, 2.0)
        self.assertEqual(first.payout_multiplier, payouts[first.hole])
        self.assertEqual(first.payout, round(2.0 * payouts[first.hole], 2))
        self.assertIsNone(first.board_index)
        self.assertEqual(self.engine.rounds.get_current_round("alice", "plinko").nonce, 2)

        stored = self.db.get_bet(first.bet_id)
        self.assertEqual(stored.hole, first.hole)
        self.assertEqual(stored.round_hash, first.round_hash)
        self.assertEqual(stored.created_at.utcoffset(), timedelta(0))

    def test_invalid_bets(self):
        roller = self.engine.roller
        with self.assertRaises(InvalidBetError):
            roller.roll("alice", 0, 12, RiskLevel.LOW, "client")
        with self.assertRaises(InvalidBetError):
            roller.roll("alice", 5000, 12, RiskLevel.LOW, "client")
        with self.assertRaises(PayoutTableError):
            roller.roll("alice", 1, 17, RiskLevel.LOW, "client")
        with self.assertRaises(PayoutTableError):
            roller.roll("alice", 1, 12, RiskLevel.LIGHTNING, "client")
        self.assertIsNone(self.engine.rounds.get_current_round("alice", "plinko"))

    def test_non_finite_bets(self):
        roller = self.engine.roller
        for amount in (float("nan"), float("inf"), float("-inf")):
            with self.assertRaises(InvalidBetError):
                roller.roll("alice", amount, 16, RiskLevel.HIGH, "client")
        self.assertIsNone(self.engine.rounds.get_current_round("alice", "plinko"))
        self.assertEqual(self.db.list_bets("alice", "plinko"), [])

    def test_max_profit_clamp(self):
        self.config.plinko.max_profit = 5
        with self.assertLogs("plinko-fair.plinko.roll", level="INFO") as logs:
            result = self.engine.roller.roll("alice", 1000, 8, RiskLevel.LOW, "client")

        self.assertTrue(result.clamped)
        self.assertAlmostEqual(result.payout_multiplier, 0.005)
        self.assertAlmostEqual(result.payout, 5)
        self.assertIn("max profit", logs.output[0])

        self.assertTrue(self.engine.verifier.verify_bet("plinko", result.bet_id).ok)

    def test_clamp_helper(self):
        self.assertEqual(clamp_payout_multiplier(10, 1, 100), (10, False))
        self.assertEqual(clamp_payout_multiplier(10, 20, 100), (5, True))

    def test_custom_settlement(self):
        settlement = MagicMock()

        def settle(record):
            record.id = "external-1"
            return record

        settlement.settle.side_effect = settle
        engine = build_engine(self.config, self.db, settlement=settlement)
        result = engine.roller.roll("bob", 1, 8, RiskLevel.HIGH, "client")

        self.assertEqual(result.bet_id, "external-1")
        settlement.settle.assert_called_once()
        self.assertIsNone(self.db.get_bet("external-1"))
        self.assertEqual(engine.rounds.get_current_round("bob", "plinko").nonce, 1)

    def test_lightning_roll_uses_active_board(self):
        epoch = self.engine.epochs.current("plinko")
        result = self.engine.roller.roll("alice", 1, 16, RiskLevel.LIGHTNING, "client")

        self.assertEqual(result.board_index, 3)
        self.assertEqual(result.payouts, epoch.payload.payouts)
        self.assertEqual(result.hole_multiplier, epoch.payload.payouts[result.hole])
        for cell in result.multipliers_hit:
            self.assertIn(cell.cell, result.path)


class TestVerificationEngine(EngineTestCase):

    def test_verify_standard_bet(self):
        result = self.engine.roller.roll("alice", 3, 16, RiskLevel.HIGH, "lucky")
        outcome = self.engine.verifier.verify_bet("plinko", result.bet_id)

        self.assertTrue(outcome.ok)
        verified = outcome.value
        self.assertEqual(verified.hashed_server_seed, result.round_hash)
        self.assertEqual(hashlib.sha256(verified.server_seed.encode()).hexdigest(), result.round_hash)
        self.assertEqual(verified.result.hole, result.hole)
        self.assertEqual(verified.result.path, result.path)
        self.assertEqual(verified.result.payout_multiplier, result.payout_multiplier)
        self.assertIsNone(verified.game_hash)

        # Verification revealed the seed, so the round is over
        self.assertTrue(self.engine.rounds.get_round(result.round_id).round_over)
        self.assertTrue(self.engine.verifier.verify_bet("plinko", result.bet_id).ok)

        # Next roll starts a fresh round
        following = self.engine.roller.roll("alice", 3, 16, RiskLevel.HIGH, "lucky")
        self.assertNotEqual(following.round_id, result.round_id)
        self.assertEqual(following.nonce, 0)

    def test_verify_lightning_bet(self):
        result = self.engine.roller.roll("alice", 1, 16, RiskLevel.LIGHTNING, "client")
        outcome = self.engine.verifier.verify_bet("plinko", result.bet_id)
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.value.result.payout_multiplier, result.payout_multiplier)
        self.assertEqual(outcome.value.result.multipliers_hit, result.multipliers_hit)
        # Epoch still active: its link stays secret
        self.assertIsNone(outcome.value.game_hash)

        self.now += 900
        self.engine.epochs.cache.clear()
        later = self.engine.verifier.verify_bet("plinko", result.bet_id)
        self.assertTrue(later.ok)
        self.assertEqual(later.value.game_hash, self.engine.chain.get_link("plinko", 16).hash)

    def test_unknown_bet(self):
        outcome = self.engine.verifier.verify_bet("plinko", "missing")
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.kind, ErrorKind.BET_NOT_FOUND)

        result = self.engine.roller.roll("alice", 1, 8, RiskLevel.LOW, "client")
        outcome = self.engine.verifier.verify_bet("dice", result.bet_id)
        self.assertEqual(outcome.kind, ErrorKind.BET_NOT_FOUND)

    def test_tampered_hole(self):
        result = self.engine.roller.roll("alice", 1, 8, RiskLevel.LOW, "client")
        self.tamper(result.bet_id, "hole", (result.hole + 1) % 9)
        outcome = self.engine.verifier.verify_bet("plinko", result.bet_id)
        self.assertEqual(outcome.kind, ErrorKind.HOLE_MISMATCH)

    def test_tampered_round_hash(self):
        result = self.engine.roller.roll("alice", 1, 8, RiskLevel.LOW, "client")
        self.tamper(result.bet_id, "round_hash", "0" * 64)
        outcome = self.engine.verifier.verify_bet("plinko", result.bet_id)
        self.assertEqual(outcome.kind, ErrorKind.ROUND_HASH_MISMATCH)

    def test_tampered_payout(self):
        result = self.engine.roller.roll("alice", 1, 8, RiskLevel.LOW, "client")
        self.tamper(result.bet_id, "payout_multiplier", result.payout_multiplier + 1)
        outcome = self.engine.verifier.verify_bet("plinko", result.bet_id)
        self.assertEqual(outcome.kind, ErrorKind.PAYOUT_MISMATCH)

    def test_missing_round(self):
        result = self.engine.roller.roll("alice", 1, 8, RiskLevel.LOW, "client")
        self.tamper(result.bet_id, "round_id", "gone")
        outcome = self.engine.verifier.verify_bet("plinko", result.bet_id)
        self.assertEqual(outcome.kind, ErrorKind.ROUND_NOT_FOUND)


if __name__ == "__main__":
    unittest.main()
