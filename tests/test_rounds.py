import hashlib
import sqlite3
import tempfile
import unittest
from datetime import timedelta
from pathlib import Path

from plinko_fair.core.database import Database
from plinko_fair.core.exceptions import RoundStateError
from plinko_fair.core.provably_fair.hashing import salt_with_client_seed, salt_with_new_seed
from plinko_fair.core.provably_fair.rounds import RoundSeedManager

GAME = "plinko"


class TestRoundSeedManager(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db = Database(Path(self.tmp.name) / "rounds.db")
        self.rounds = RoundSeedManager(self.db, "server-seed")

    def tearDown(self):
        self.db.close()
        self.tmp.cleanup()

    def test_round_is_created_lazily(self):
        self.assertIsNone(self.rounds.get_current_round("alice", GAME))
        first = self.rounds.get_or_create_round("alice", GAME)
        again = self.rounds.get_or_create_round("alice", GAME)

        self.assertEqual(first.id, again.id)
        self.assertEqual(first.nonce, 0)
        self.assertFalse(first.round_over)
        self.assertIsNone(first.seed)

    def test_hash_commits_to_revealed_seed(self):
        current = self.rounds.get_or_create_round("alice", GAME)
        reveal = self.rounds.end_round(current.id)

        self.assertEqual(reveal.seed, salt_with_new_seed("server-seed", current.id))
        self.assertEqual(hashlib.sha256(reveal.seed.encode()).hexdigest(), current.hash)

        closed = self.rounds.get_round(current.id)
        self.assertTrue(closed.round_over)
        self.assertEqual(closed.seed, reveal.seed)
        self.assertIsNotNone(closed.completed_at)

    def test_timestamps_are_utc_aware(self):
        current = self.rounds.get_or_create_round("alice", GAME)
        self.rounds.end_round(current.id)
        closed = self.rounds.get_round(current.id)
        for stamp in (closed.created_at, closed.completed_at):
            self.assertEqual(stamp.utcoffset(), timedelta(0))
        self.assertLessEqual(closed.created_at, closed.completed_at)

    def test_seed_hidden_while_open(self):
        current = self.rounds.get_or_create_round("alice", GAME)
        self.assertIsNone(current.public_view()["seed"])
        self.rounds.end_round(current.id)
        self.assertIsNotNone(self.rounds.get_round(current.id).public_view()["seed"])

    def test_nonce_increments_by_one(self):
        self.rounds.get_or_create_round("alice", GAME)
        for expected in range(1, 6):
            self.assertEqual(self.rounds.increment_nonce("alice", GAME).nonce, expected)

    def test_increment_without_round(self):
        with self.assertRaises(RoundStateError):
            self.rounds.increment_nonce("nobody", GAME)

    def test_end_round_is_idempotent(self):
        current = self.rounds.get_or_create_round("alice", GAME)
        self.assertIsNotNone(self.rounds.end_round(current.id))
        self.assertIsNone(self.rounds.end_round(current.id))
        self.assertIsNone(self.rounds.end_round("missing"))

    def test_start_round_closes_previous(self):
        first = self.rounds.get_or_create_round("alice", GAME)
        started = self.rounds.start_round("alice", GAME)

        self.assertEqual(started.previous_round.round_id, first.id)
        self.assertNotEqual(started.round.id, first.id)
        self.assertTrue(self.rounds.get_round(first.id).round_over)
        self.assertEqual(self.rounds.get_current_round("alice", GAME).id, started.round.id)

    def test_rounds_are_per_user_and_game(self):
        alice = self.rounds.get_or_create_round("alice", GAME)
        bob = self.rounds.get_or_create_round("bob", GAME)
        dice = self.rounds.get_or_create_round("alice", "dice")
        self.assertEqual(len({alice.id, bob.id, dice.id}), 3)

    def test_single_open_round_enforced_by_storage(self):
        self.rounds.get_or_create_round("alice", GAME)
        with self.assertRaises(sqlite3.IntegrityError):
            self.db.create_round("manual", "alice", GAME, "hash")

    def test_roll_hash(self):
        current = self.rounds.get_or_create_round("alice", GAME)
        seed = salt_with_new_seed("server-seed", current.id)
        self.assertEqual(
            self.rounds.roll_hash(current.id, "client", 4),
            salt_with_client_seed(seed, "client - 4"),
        )
        self.assertEqual(
            RoundSeedManager.roll_hash_from_seed(seed, "client", 4),
            self.rounds.roll_hash(current.id, "client", 4),
        )


if __name__ == "__main__":
    unittest.main()
