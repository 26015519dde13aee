import unittest

from plinko_fair.core.exceptions import InsufficientRandomnessError
from plinko_fair.core.models import PathCell, SpecialCell
from plinko_fair.core.plinko.path import (
    calculate_ball_path,
    cells_multiplier,
    every_possible_path,
    hole_from_path,
    multipliers_hit_on_path,
    sample_path,
)
from plinko_fair.core.provably_fair.hashing import salt_with_client_seed

# Regression pin for this package's own bit order: bits are read MSB first
# from the hex-decoded roll hash and a 1 keeps the column. Paths from other
# plinko implementations that extract bits differently will not match it.
GOLDEN_HASH = "b26c0165551bf13460b8873787d666c0a98c42f93b2e39677169fa7e2bb308a9"
GOLDEN_PATH = [
    (1, 0), (2, 1), (3, 1), (4, 1), (5, 2), (6, 3), (7, 3), (8, 4),
    (9, 5), (10, 5), (11, 5), (12, 6), (13, 6), (14, 6), (15, 7), (16, 8),
]


class TestSamplePath(unittest.TestCase):

    def test_golden_path(self):
        roll_hash = salt_with_client_seed("veryrandomhashyesyouare", "0")
        self.assertEqual(roll_hash, GOLDEN_HASH)

        path = sample_path(roll_hash, 16)
        self.assertEqual([(c.row, c.column) for c in path], GOLDEN_PATH)
        self.assertEqual(hole_from_path(path), 8)

    def test_path_invariants(self):
        for nonce in range(200):
            roll_hash = salt_with_client_seed("seed", f"client - {nonce}")
            for rows in (8, 12, 16):
                path = sample_path(roll_hash, rows)
                self.assertEqual(len(path), rows)
                for i, cell in enumerate(path):
                    self.assertEqual(cell.row, i + 1)
                    self.assertTrue(0 <= cell.column <= cell.row)
                for previous, cell in zip(path, path[1:]):
                    self.assertIn(cell.column - previous.column, (0, 1))
                self.assertTrue(0 <= hole_from_path(path) <= rows)

    def test_deterministic(self):
        self.assertEqual(sample_path(GOLDEN_HASH, 16), sample_path(GOLDEN_HASH, 16))

    def test_insufficient_randomness(self):
        with self.assertRaises(InsufficientRandomnessError):
            sample_path("abcd", 17)
        # 4 hex digits carry exactly 16 bits
        self.assertEqual(len(sample_path("abcd", 16)), 16)

    def test_left_keeps_column(self):
        path = calculate_ball_path([1, 1, 0, 0])
        self.assertEqual([c.column for c in path], [0, 0, 1, 2])


class TestEveryPossiblePath(unittest.TestCase):

    def test_count_and_distribution(self):
        paths = list(every_possible_path(6))
        self.assertEqual(len(paths), 64)
        holes = [hole_from_path(p) for p in paths]
        self.assertEqual([holes.count(h) for h in range(7)], [1, 6, 15, 20, 15, 6, 1])


class TestMultipliersHit(unittest.TestCase):

    def test_product_of_struck_cells(self):
        path = [PathCell(1, 0), PathCell(2, 1), PathCell(3, 1), PathCell(4, 2)]
        cells = [
            SpecialCell(row=2, column=1, multiplier=5),
            SpecialCell(row=3, column=2, multiplier=7),
            SpecialCell(row=4, column=2, multiplier=3),
        ]
        hit = multipliers_hit_on_path(cells, path)
        self.assertEqual([c.multiplier for c in hit], [5, 3])
        self.assertEqual(cells_multiplier(hit), 15)

    def test_no_cells_struck(self):
        self.assertEqual(cells_multiplier([]), 1.0)


if __name__ == "__main__":
    unittest.main()
