import unittest

from plinko_fair.core.models import PathCell, SpecialCell
from plinko_fair.core.plinko.path import (
    cells_multiplier,
    every_possible_path,
    hole_from_path,
    multipliers_hit_on_path,
)
from plinko_fair.core.plinko.probability import (
    cell_probability_given_cell,
    cell_probability_given_hole,
    cumulative_hole_probabilities,
    hole_from_roll,
    hole_probabilities,
    hole_probabilities_given_cell,
    mean_multiplier_by_hole,
    pascal_triangle,
    payout_adjustment_factors,
    probability_of_cell,
)


class TestPascalTriangle(unittest.TestCase):

    def test_rows(self):
        triangle = pascal_triangle(4)
        self.assertEqual(len(triangle), 5)
        self.assertEqual(triangle[-1], [1, 4, 6, 4, 1])

    def test_large_boards_stay_exact(self):
        last = pascal_triangle(200)[-1]
        self.assertEqual(sum(last), 2 ** 200)

    def test_negative_rows_rejected(self):
        with self.assertRaises(ValueError):
            pascal_triangle(-1)


class TestHoleProbabilities(unittest.TestCase):

    def test_sum_to_one(self):
        for rows in range(1, 33):
            self.assertAlmostEqual(sum(hole_probabilities(rows)), 1.0, places=12)

    def test_symmetry_and_length(self):
        probabilities = hole_probabilities(16)
        self.assertEqual(len(probabilities), 17)
        self.assertEqual(probabilities, probabilities[::-1])
        self.assertAlmostEqual(probabilities[0], 1 / 65536)
        self.assertAlmostEqual(probabilities[8], 12870 / 65536)

    def test_cumulative(self):
        cumulative = cumulative_hole_probabilities(8)
        self.assertEqual(cumulative[-1], 1.0)
        self.assertTrue(all(a <= b for a, b in zip(cumulative, cumulative[1:])))
        self.assertAlmostEqual(cumulative[0], 1 / 256)

    def test_hole_from_roll(self):
        cumulative = cumulative_hole_probabilities(2)  # 0.25, 0.75, 1.0
        self.assertEqual(hole_from_roll(0, cumulative), 0)
        self.assertEqual(hole_from_roll(24.99, cumulative), 0)
        self.assertEqual(hole_from_roll(25, cumulative), 1)
        self.assertEqual(hole_from_roll(74.99, cumulative), 1)
        self.assertEqual(hole_from_roll(99.99, cumulative), 2)


class TestCellProbabilities(unittest.TestCase):

    def test_probability_of_cell(self):
        self.assertAlmostEqual(probability_of_cell(PathCell(4, 2)), 6 / 16)
        self.assertEqual(probability_of_cell(PathCell(4, 5)), 0.0)

    def test_given_cell_shifts_distribution(self):
        given = hole_probabilities_given_cell(4, PathCell(2, 1))
        self.assertEqual(given[0], 0.0)
        self.assertEqual(given[4], 0.0)
        self.assertAlmostEqual(given[1], 0.25)
        self.assertAlmostEqual(given[2], 0.5)
        self.assertAlmostEqual(given[3], 0.25)

    def test_given_cell_matches_enumeration(self):
        rows, cell = 8, PathCell(5, 2)
        counts = [0] * (rows + 1)
        through = 0
        for path in every_possible_path(rows):
            if cell in path:
                through += 1
                counts[hole_from_path(path)] += 1
        expected = [count / through for count in counts]
        for a, b in zip(hole_probabilities_given_cell(rows, cell), expected):
            self.assertAlmostEqual(a, b)

    def test_cell_given_hole_is_bayes(self):
        rows, cell = 6, PathCell(3, 1)
        total = sum(
            cell_probability_given_hole(rows, cell, hole) * p
            for hole, p in enumerate(hole_probabilities(rows))
        )
        self.assertAlmostEqual(total, probability_of_cell(cell))
        # Hole 0 is only reachable through column 0
        self.assertEqual(cell_probability_given_hole(rows, cell, 0), 0.0)

    def test_cell_given_cell(self):
        self.assertAlmostEqual(cell_probability_given_cell(PathCell(2, 1), PathCell(4, 2)), 0.5)
        self.assertEqual(cell_probability_given_cell(PathCell(2, 1), PathCell(4, 0)), 0.0)
        self.assertEqual(cell_probability_given_cell(PathCell(4, 2), PathCell(2, 1)), 0.0)

    def test_adjustment_factors_single_cell(self):
        cell = SpecialCell(row=3, column=1, multiplier=5)
        factors = payout_adjustment_factors(6, cell)
        self.assertAlmostEqual(sum(factors), probability_of_cell(cell.cell) * 4)


class TestMeanMultiplierByHole(unittest.TestCase):

    def test_no_cells(self):
        self.assertEqual(mean_multiplier_by_hole(8, []), [1.0] * 9)

    def test_matches_enumeration(self):
        rows = 10
        cells = [
            SpecialCell(row=4, column=2, multiplier=5),
            SpecialCell(row=7, column=3, multiplier=12),
            SpecialCell(row=9, column=6, multiplier=2),
        ]
        totals = [0.0] * (rows + 1)
        counts = [0] * (rows + 1)
        for path in every_possible_path(rows):
            hole = hole_from_path(path)
            totals[hole] += cells_multiplier(multipliers_hit_on_path(cells, path))
            counts[hole] += 1
        expected = [t / c for t, c in zip(totals, counts)]

        for a, b in zip(mean_multiplier_by_hole(rows, cells), expected):
            self.assertAlmostEqual(a, b, places=9)


if __name__ == "__main__":
    unittest.main()
