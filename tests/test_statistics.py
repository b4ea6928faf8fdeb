import unittest
from math import pi, sqrt

import numpy as np

from montepi.core import strategies
from montepi.core.registry import ScalingRule
from montepi.core.statistics import (
    CONVERGENCE_COLUMNS,
    ConvergencePoint,
    ConvergenceRecorder,
    OnlineStatistics,
    RunningAggregate,
    convergence_frame,
    standard_error_on_pi_scale,
)


class RunningAggregateTests(unittest.TestCase):
    def test_empty(self) -> None:
        aggregate = RunningAggregate()
        self.assertEqual(aggregate.count, 0)
        self.assertIsNone(aggregate.mean)
        self.assertIsNone(aggregate.variance)

    def test_batch_split_is_bit_identical(self) -> None:
        values = np.random.default_rng(11).random(1001) * 4.0
        whole = RunningAggregate()
        whole.extend(values)
        split = RunningAggregate()
        split.extend(values[:337])
        split.extend(values[337:])
        self.assertEqual(whole, split)

    def test_push_matches_extend(self) -> None:
        values = np.random.default_rng(12).random(50)
        pushed = RunningAggregate()
        for value in values:
            pushed.push(value)
        extended = RunningAggregate()
        extended.extend(values)
        self.assertEqual(pushed, extended)

    def test_variance_clamped_non_negative(self) -> None:
        aggregate = RunningAggregate()
        aggregate.extend([0.1] * 10)
        self.assertGreaterEqual(aggregate.variance, 0.0)


class ConvergenceFrameTests(unittest.TestCase):
    def test_quarter_scenario(self) -> None:
        frame = convergence_frame([1, 0, 1, 1], ScalingRule.QUARTER_CIRCLE)
        self.assertEqual(list(frame.columns), CONVERGENCE_COLUMNS)
        self.assertEqual(list(frame["index"]), [1, 2, 3, 4])
        np.testing.assert_allclose(frame["estimate"], [4.0, 2.0, 8 / 3, 3.0])
        last = frame.iloc[-1]
        # mean 0.75, variance 0.1875, se = sqrt(0.1875 / 4)
        se = np.sqrt(0.1875 / 4)
        self.assertAlmostEqual(last["variance"], 0.1875)
        self.assertAlmostEqual(last["standard_error"], se)
        self.assertAlmostEqual(last["lower_bound"], 3.0 - 4 * se)
        self.assertAlmostEqual(last["upper_bound"], 3.0 + 4 * se)

    def test_first_row_has_zero_width(self) -> None:
        frame = convergence_frame([1.0], ScalingRule.QUARTER_CIRCLE)
        self.assertEqual(frame.iloc[0]["lower_bound"], frame.iloc[0]["upper_bound"])

    def test_integral_scenario(self) -> None:
        frame = convergence_frame([4.0], ScalingRule.DIRECT_INTEGRAL)
        self.assertEqual(frame.iloc[0]["estimate"], 4.0)

    def test_empty_values(self) -> None:
        frame = convergence_frame([], ScalingRule.QUARTER_CIRCLE)
        self.assertTrue(frame.empty)
        self.assertEqual(list(frame.columns), CONVERGENCE_COLUMNS)

    def test_standard_error_on_pi_scale(self) -> None:
        self.assertAlmostEqual(
            standard_error_on_pi_scale([1, 0, 1, 1], ScalingRule.QUARTER_CIRCLE),
            4 * np.sqrt(0.1875 / 4),
        )
        self.assertIsNone(standard_error_on_pi_scale([], ScalingRule.DIRECT_INTEGRAL))


class OnlineStatisticsTests(unittest.TestCase):
    def test_no_data_sentinel(self) -> None:
        stats = OnlineStatistics(ScalingRule.QUARTER_CIRCLE)
        self.assertIsNone(stats.estimate)
        self.assertIsNone(stats.standard_error)
        self.assertIsNone(stats.snapshot())

    def test_incremental_rows_match_full_frame(self) -> None:
        values = np.random.default_rng(21).random(500)
        full = convergence_frame(values, ScalingRule.DIRECT_INTEGRAL)
        stats = OnlineStatistics(ScalingRule.DIRECT_INTEGRAL)
        parts = [stats.update(values[start:start + 64]) for start in range(0, 500, 64)]
        incremental = np.concatenate([part["estimate"].to_numpy() for part in parts])
        np.testing.assert_array_equal(incremental, full["estimate"].to_numpy())
        self.assertEqual(int(parts[-1]["index"].iloc[-1]), 500)

    def test_snapshot(self) -> None:
        stats = OnlineStatistics(ScalingRule.QUARTER_CIRCLE)
        stats.update([1, 0, 1, 1])
        point = stats.snapshot()
        self.assertIsInstance(point, ConvergencePoint)
        self.assertEqual(point.index, 4)
        self.assertAlmostEqual(point.estimate, 3.0)
        self.assertLess(point.lower_bound, point.estimate)
        self.assertGreater(point.upper_bound, point.estimate)

    def test_reset(self) -> None:
        stats = OnlineStatistics(ScalingRule.QUARTER_CIRCLE)
        stats.update([1, 1])
        stats.reset(ScalingRule.DIRECT_INTEGRAL)
        self.assertEqual(stats.count, 0)
        self.assertIs(stats.scaling_rule, ScalingRule.DIRECT_INTEGRAL)

    def test_quarter_converges_within_band(self) -> None:
        rng = np.random.default_rng(2024)
        xy = rng.random((200_000, 2))
        values = (xy[:, 0] ** 2 + xy[:, 1] ** 2 < 1.0).astype(float)
        stats = OnlineStatistics(ScalingRule.QUARTER_CIRCLE)
        stats.update(values)
        self.assertLess(abs(stats.estimate - pi), 4 * stats.standard_error)

    def test_quasi_error_decays_faster_than_random(self) -> None:
        n = 100_000
        values = strategies.quasi(n).values
        stats = OnlineStatistics(ScalingRule.QUARTER_CIRCLE)
        stats.update(values)
        quasi_error = abs(stats.estimate - pi)
        # 1/sqrt(n) with margin; random quarter sampling sits near 1.6/sqrt(n).
        self.assertLess(quasi_error, 0.5 / sqrt(n))
        self.assertLess(quasi_error, stats.standard_error / 3)


class ConvergenceRecorderTests(unittest.TestCase):
    def test_short_run_keeps_every_row(self) -> None:
        values = np.random.default_rng(4).random(50)
        recorder = ConvergenceRecorder(ScalingRule.DIRECT_INTEGRAL, 50, max_rows=100)
        stats = OnlineStatistics(ScalingRule.DIRECT_INTEGRAL)
        for start in range(0, 50, 20):
            recorder.add(stats.update(values[start:start + 20]))
        self.assertFalse(recorder.thinned)
        frame = recorder.frame()
        np.testing.assert_array_equal(
            frame["estimate"].to_numpy(),
            convergence_frame(values, ScalingRule.DIRECT_INTEGRAL)["estimate"].to_numpy(),
        )

    def test_long_run_is_thinned_to_log_spaced_rows(self) -> None:
        values = np.random.default_rng(5).random(10_000)
        recorder = ConvergenceRecorder(ScalingRule.DIRECT_INTEGRAL, 10_000, max_rows=25)
        stats = OnlineStatistics(ScalingRule.DIRECT_INTEGRAL)
        for start in range(0, 10_000, 999):
            recorder.add(stats.update(values[start:start + 999]))
        self.assertTrue(recorder.thinned)
        frame = recorder.frame()
        self.assertLessEqual(frame.shape[0], 25)
        self.assertEqual(list(frame.columns), CONVERGENCE_COLUMNS)
        self.assertEqual(int(frame["index"].iloc[0]), 1)
        self.assertEqual(int(frame["index"].iloc[-1]), 10_000)
        full = convergence_frame(values, ScalingRule.DIRECT_INTEGRAL)
        np.testing.assert_array_equal(
            frame["estimate"].to_numpy(),
            full["estimate"].to_numpy()[frame["index"].to_numpy() - 1],
        )

    def test_empty_run(self) -> None:
        recorder = ConvergenceRecorder(ScalingRule.QUARTER_CIRCLE, 0, max_rows=10)
        self.assertTrue(recorder.frame().empty)


if __name__ == "__main__":
    unittest.main()
