import unittest

import numpy as np

from montepi.core.halton import halton, halton_sequence


class HaltonTests(unittest.TestCase):
    def test_known_values(self) -> None:
        self.assertEqual(halton(1, 2), 0.5)
        self.assertAlmostEqual(halton(1, 3), 1 / 3)
        self.assertAlmostEqual(halton(2, 3), 2 / 3)
        self.assertAlmostEqual(halton(3, 3), 1 / 9)
        self.assertEqual(halton(2, 2), 0.25)
        self.assertEqual(halton(3, 2), 0.75)

    def test_values_in_unit_interval(self) -> None:
        for base in (2, 3, 5, 7):
            for index in range(1, 500):
                value = halton(index, base)
                self.assertGreaterEqual(value, 0.0)
                self.assertLess(value, 1.0)

    def test_vectorised_matches_scalar_bitwise(self) -> None:
        for base in (2, 3):
            sequence = halton_sequence(1, 257, base)
            expected = np.array([halton(i, base) for i in range(1, 258)])
            np.testing.assert_array_equal(sequence, expected)

    def test_vectorised_with_offset(self) -> None:
        np.testing.assert_array_equal(halton_sequence(11, 5, 3), halton_sequence(1, 15, 3)[10:])

    def test_empty_sequence(self) -> None:
        self.assertEqual(halton_sequence(1, 0, 2).size, 0)

    def test_invalid_base(self) -> None:
        with self.assertRaises(ValueError):
            halton(1, 1)


if __name__ == "__main__":
    unittest.main()
