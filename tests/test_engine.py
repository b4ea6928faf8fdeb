import unittest
from math import pi
from unittest import mock

import numpy as np

from montepi import engine as engine_module
from montepi.config import EngineSettings
from montepi.core import strategies
from montepi.core.executor import stream_batches
from montepi.core.registry import ScalingRule, available_strategies
from montepi.core.statistics import standard_error_on_pi_scale
from montepi.core.validator import InvalidSampleCount, UnsupportedExecutionEnvironment
from montepi.engine import PiEngine
from montepi.models.stream import SimulationProgressEvent


class PiEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = PiEngine(EngineSettings(batch_size=250, random_seed=123))

    def test_defaults(self) -> None:
        self.assertEqual(self.engine.strategy.name, "quarter")
        self.assertIsNone(self.engine.estimate)
        self.assertIsNone(self.engine.last_result)

    def test_run_quarter(self) -> None:
        self.engine.set_sample_count(20_000)
        result = self.engine.run()
        self.assertEqual(result.samples, 20_000)
        self.assertEqual(result.convergence.shape[0], 20_000)
        self.assertAlmostEqual(result.estimate, pi, delta=0.1)
        self.assertLess(result.lower_bound, result.estimate)
        self.assertGreater(result.upper_bound, result.estimate)
        self.assertEqual(result.metadata["validation"]["status"], "PASS")
        self.assertEqual(self.engine.estimate, result.estimate)

    def test_zero_samples_reports_no_data(self) -> None:
        self.engine.set_sample_count(0)
        result = self.engine.run()
        self.assertEqual(result.samples, 0)
        self.assertIsNone(result.estimate)
        self.assertTrue(result.convergence.empty)

    def test_integral_mocked_draw(self) -> None:
        rng = mock.Mock(spec=np.random.Generator)
        rng.random.return_value = np.array([0.0])
        self.engine.set_strategy("integral")
        self.engine.set_sample_count(1)
        result = self.engine.run(rng=rng)
        self.assertEqual(result.estimate, 4.0)
        self.assertEqual(result.scaling_rule, "direct_integral")

    def test_quarter_mocked_draws(self) -> None:
        rng = mock.Mock(spec=np.random.Generator)
        rng.random.return_value = np.array([[0.1, 0.1], [0.9, 0.9], [0.5, 0.0], [0.0, 0.5]])
        self.engine.set_sample_count(4)
        self.engine.set_batch_size(4)
        result = self.engine.run(rng=rng)
        self.assertAlmostEqual(result.estimate, 3.0)

    def test_grid_run_uses_side_squared(self) -> None:
        self.engine.set_strategy("gpuGrid")
        self.engine.set_sample_count(30)
        result = self.engine.run()
        self.assertEqual(result.requested, 30)
        self.assertEqual(result.samples, 900)

    def test_quasi_is_batch_size_independent(self) -> None:
        self.engine.set_strategy("quasi")
        self.engine.set_sample_count(1000)
        self.engine.set_batch_size(7)
        small = self.engine.run()
        self.engine.set_batch_size(1000)
        large = self.engine.run()
        self.assertEqual(small.estimate, large.estimate)
        self.assertEqual(small.standard_error, large.standard_error)

    def test_unknown_strategy_falls_back(self) -> None:
        descriptor = self.engine.set_strategy("bogus")
        self.assertEqual(descriptor.name, "quarter")

    def test_strategy_change_resets_statistics(self) -> None:
        self.engine.set_sample_count(100)
        self.engine.run()
        self.assertIsNotNone(self.engine.estimate)
        self.engine.set_strategy("quasi")
        self.assertIsNone(self.engine.estimate)
        self.assertIsNone(self.engine.last_result)

    def test_sample_count_change_resets_statistics(self) -> None:
        self.engine.set_sample_count(100)
        self.engine.run()
        self.engine.set_sample_count(200)
        self.assertEqual(self.engine.statistics.count, 0)

    def test_invalid_counts(self) -> None:
        with self.assertRaises(InvalidSampleCount):
            self.engine.set_sample_count(-1)
        with self.assertRaises(InvalidSampleCount):
            self.engine.set_sample_count(1.5)  # type: ignore[arg-type]
        with self.assertRaises(InvalidSampleCount):
            self.engine.set_batch_size(0)

    def test_failed_run_keeps_previous_statistics(self) -> None:
        self.engine.set_strategy("gpuGrid")
        self.engine.set_sample_count(10)
        previous = self.engine.run()
        self.engine.settings.grid_backend = "cuda"
        with mock.patch.object(strategies, "accelerator_available", return_value=False):
            with self.assertRaises(UnsupportedExecutionEnvironment):
                self.engine.run()
        self.assertIs(self.engine.last_result, previous)
        self.assertEqual(self.engine.statistics.count, 100)

    def test_progress_reporting(self) -> None:
        events = []
        steps = []
        self.engine.set_sample_count(1000)
        self.engine.run(
            progress_observer=events.append,
            progress_callback=lambda step, total, message: steps.append((step, total)),
        )
        self.assertEqual(len(events), 4)
        self.assertIsInstance(events[0], SimulationProgressEvent)
        self.assertEqual([event.samples_seen for event in events], [250, 500, 750, 1000])
        self.assertEqual(events[-1].fraction_complete, 1.0)
        self.assertEqual(steps[-1], (1000, 1000))

    def test_record_convergence_disabled(self) -> None:
        engine = PiEngine(EngineSettings(batch_size=100, record_convergence=False))
        engine.set_sample_count(300)
        result = engine.run()
        self.assertTrue(result.convergence.empty)
        self.assertEqual(result.samples, 300)
        self.assertNotIn("validation", result.metadata)

    def test_long_run_convergence_is_bounded(self) -> None:
        engine = PiEngine(EngineSettings(batch_size=500, random_seed=5, convergence_rows=40))
        engine.set_sample_count(20_000)
        result = engine.run()
        self.assertEqual(result.samples, 20_000)
        self.assertLessEqual(result.convergence.shape[0], 40)
        self.assertEqual(int(result.convergence["index"].iloc[0]), 1)
        self.assertEqual(int(result.convergence["index"].iloc[-1]), 20_000)
        self.assertTrue(result.metadata["convergence_thinned"])
        self.assertEqual(result.metadata["validation"]["status"], "PASS")
        self.assertAlmostEqual(result.convergence["estimate"].iloc[-1], result.estimate)


class ComparisonTests(unittest.TestCase):
    def test_compare_all_strategies(self) -> None:
        engine = PiEngine(EngineSettings(random_seed=9))
        comparison = engine.compare(400)
        self.assertEqual(list(comparison.rows), available_strategies())
        self.assertEqual(comparison.rows["gpuGrid"].samples, 160_000)
        self.assertEqual(comparison.rows["quarter"].samples, 400)
        for key, error in comparison.standard_errors.items():
            self.assertIsNotNone(error, key)
            self.assertGreaterEqual(error, 0.0)
        frame = comparison.summary_frame()
        self.assertEqual(list(frame["strategy"]), available_strategies())

    def test_integral_beats_quarter(self) -> None:
        engine = PiEngine(EngineSettings(random_seed=1))
        comparison = engine.compare(10_000, keys=["quarter", "integral"])
        errors = comparison.standard_errors
        self.assertLess(errors["integral"], errors["quarter"])

    def test_deterministic_strategies_repeat(self) -> None:
        engine = PiEngine(EngineSettings())
        first = engine.compare(50, keys=["quasi", "gpuGrid"])
        second = engine.compare(50, keys=["quasi", "gpuGrid"])
        self.assertEqual(first.standard_errors, second.standard_errors)

    def test_zero_samples(self) -> None:
        comparison = PiEngine(EngineSettings()).compare(0, keys=["quarter"])
        self.assertIsNone(comparison.rows["quarter"].standard_error)

    def test_invalid_count(self) -> None:
        with self.assertRaises(InvalidSampleCount):
            PiEngine(EngineSettings()).compare(-2)

    def test_grid_side_override(self) -> None:
        comparison = PiEngine(EngineSettings()).compare(400, keys=["quarter", "gpuGrid"], grid_side=20)
        self.assertEqual(comparison.rows["quarter"].samples, 400)
        self.assertEqual(comparison.rows["gpuGrid"].samples, 400)

    def test_grid_comparison_is_folded_in_slices(self) -> None:
        engine = PiEngine(EngineSettings(batch_size=8))
        with mock.patch.object(engine_module, "COMPARE_CHUNK_SIZE", 16):
            with mock.patch.object(engine_module, "stream_batches", wraps=stream_batches) as streamed:
                comparison = engine.compare(100, keys=["gpuGrid"])
        self.assertEqual(streamed.call_args.args[2], 16)
        whole = strategies.gpu_grid(100).values
        row = comparison.rows["gpuGrid"]
        self.assertEqual(row.samples, 10_000)
        self.assertAlmostEqual(row.estimate, 4 * whole.mean())
        self.assertEqual(
            row.standard_error,
            standard_error_on_pi_scale(whole, ScalingRule.QUARTER_CIRCLE),
        )


if __name__ == "__main__":
    unittest.main()
