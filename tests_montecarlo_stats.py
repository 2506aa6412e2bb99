#!/usr/bin/env python3
"""
FATE'S ECHO — Monte Carlo & Statistics Test Suite

Run: python tests_montecarlo_stats.py
     python tests_montecarlo_stats.py TestStatistics

Test categories:
  TestAggregation      — pinned 200-game counters, progress, cancellation
  TestMerge            — split/merge equals a sequential run, parallel pool
  TestUniformity       — card-id histogram, chi-squared
  TestStatistics       — Wilson, EV, house edge, multipliers, variance, Kelly, ruin
  TestAnalysisReport   — analyze(), payout schema validation, rendering
  TestCLI              — subcommand exit codes and JSON output
"""

import io
import json
import sys
import unittest
from contextlib import redirect_stdout
from pathlib import Path

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from pydantic import ValidationError
from rich.console import Console

from config.analysis_schema import AnalysisOptions, PayoutRule
from sim_engine.fate.errors import DegenerateStatisticsError, InvalidSampleSizeError
from sim_engine.fate.game import simulate_game
from sim_engine.fate.montecarlo import (
    AggregateCounters, MonteCarloAggregator, card_frequency, chi_squared_uniformity,
    house_profit_trajectory, partition, run_monte_carlo, run_trials, validate_sample_size,
)
from sim_engine.fate.seed import trial_seed
from sim_engine.fate.stats import (
    UNDEFINED, OutcomeRates, analyze, expected_value, fair_multiplier, house_edge,
    kelly_fraction, multiplier_table, optimal_multiplier, payout_variance,
    ruin_probability, wilson_interval,
)
from tools.fate_cli import main as cli_main
from tools.fate_report import render_report

SAMPLE = 200
_RESULTS = None


def sample_results():
    """The first 200 trial games, simulated once per process."""
    global _RESULTS
    if _RESULTS is None:
        _RESULTS = [simulate_game(trial_seed(i)) for i in range(SAMPLE)]
    return _RESULTS


def fold(start, stop):
    counters = AggregateCounters(start_index=start)
    for result in sample_results()[start:stop]:
        counters.record(result)
    return counters


# ============================================================
# Aggregation
# ============================================================

class TestAggregation(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.counters = run_trials(0, SAMPLE)

    def test_pinned_outcomes(self):
        c = self.counters
        self.assertEqual((c.games, c.wins, c.draws, c.losses), (200, 95, 6, 99))
        self.assertEqual(c.wins + c.draws + c.losses, c.games)

    def test_pinned_streaks(self):
        self.assertEqual(self.counters.max_win_streak, 10)
        self.assertEqual(self.counters.max_lose_streak, 5)

    def test_pinned_combat_totals(self):
        c = self.counters
        self.assertEqual(c.early_finishes, 51)
        self.assertEqual(c.total_damage_dealt, 4312)
        self.assertEqual(c.total_damage_taken, 4500)
        self.assertEqual(c.total_major_cards, 512)
        self.assertEqual(c.total_player_final_hp, 2385)
        self.assertEqual(c.total_enemy_final_hp, 2560)
        self.assertEqual(c.total_hp_diff, 2385 - 2560)
        self.assertEqual(c.close_games, 28)
        self.assertEqual(c.blowouts, 67)

    def test_major_buckets(self):
        self.assertEqual(self.counters.major_bucket_total, [6, 23, 73, 56, 36, 5, 1, 0, 0, 0, 0])
        self.assertEqual(self.counters.major_bucket_wins, [2, 12, 29, 34, 18, 0, 0, 0, 0, 0, 0])

    def test_histograms_cover_every_game(self):
        c = self.counters
        self.assertEqual(sum(c.hp_diff_histogram.values()), c.games)
        self.assertEqual(sum(c.player_hp_histogram), c.games)
        self.assertEqual(sum(c.enemy_hp_histogram), c.games)
        self.assertEqual(c.hp_diff_histogram.get(0, 0), c.draws)

    def test_matches_recorded_results(self):
        self.assertEqual(self.counters, fold(0, SAMPLE))

    def test_progress_callback(self):
        calls = []
        run_trials(0, 40, progress_cb=lambda done, total: calls.append((done, total)),
                   progress_every=10)
        self.assertEqual(calls, [(10, 40), (20, 40), (30, 40), (40, 40)])

    def test_cancellation_returns_valid_prefix(self):
        calls = [0]

        def cancel():
            calls[0] += 1
            return calls[0] > 50

        counters = MonteCarloAggregator().run(SAMPLE, cancel_check=cancel)
        self.assertEqual(counters.games, 50)
        self.assertEqual(counters, fold(0, 50))

    def test_run_monte_carlo_offset(self):
        """Trials 100..159 as a standalone run, indexed from 100."""
        counters = run_monte_carlo(60, start_index=100)
        self.assertEqual(counters.start_index, 100)
        self.assertEqual(counters.end_index, 160)
        self.assertEqual(counters, fold(100, 160))

    def test_sample_size_validation(self):
        for bad in (0, -1, 1.5, True, "100"):
            with self.assertRaises(InvalidSampleSizeError, msg=repr(bad)):
                validate_sample_size(bad)
        with self.assertRaises(InvalidSampleSizeError):
            validate_sample_size(11, max_games=10)
        with self.assertRaises(InvalidSampleSizeError):
            MonteCarloAggregator().run(0)
        self.assertEqual(validate_sample_size(10, max_games=10), 10)

    def test_summary_and_dict(self):
        self.assertIn("95 W / 6 D / 99 L", self.counters.summary())
        data = self.counters.to_dict()
        self.assertEqual(data["games"], 200)
        json.dumps(data)


# ============================================================
# Merge
# ============================================================

class TestMerge(unittest.TestCase):

    def test_merge_equals_sequential(self):
        sequential = fold(0, SAMPLE)
        for cuts in ([100], [1, 199], [37, 120], [10, 11, 12, 150], list(range(20, 200, 20))):
            bounds = [0] + cuts + [SAMPLE]
            merged = AggregateCounters()
            for lo, hi in zip(bounds, bounds[1:]):
                merged.merge(fold(lo, hi))
            self.assertEqual(merged, sequential, msg=f"cuts={cuts}")

    def test_single_game_chunks(self):
        merged = AggregateCounters()
        for i in range(60):
            merged.merge(fold(i, i + 1))
        self.assertEqual(merged, fold(0, 60))

    def test_merge_empty_is_identity(self):
        counters = fold(0, 30)
        self.assertEqual(fold(0, 30).merge(AggregateCounters(start_index=30)), counters)

    def test_merge_rejects_gap(self):
        with self.assertRaises(ValueError):
            fold(0, 10).merge(fold(20, 30))

    def test_streak_spanning_seam(self):
        """A win streak split across two ranges is counted once, whole."""
        sequential = fold(0, SAMPLE)
        for cut in range(1, SAMPLE):
            merged = fold(0, cut).merge(fold(cut, SAMPLE))
            self.assertEqual(merged.max_win_streak, sequential.max_win_streak)
            self.assertEqual(merged.max_lose_streak, sequential.max_lose_streak)
            self.assertEqual(merged.current_win_streak, sequential.current_win_streak)

    def test_partition(self):
        self.assertEqual(partition(0, 10, 3), [(0, 4), (4, 7), (7, 10)])
        self.assertEqual(partition(5, 2, 8), [(5, 6), (6, 7)])
        self.assertEqual(partition(0, 7, 1), [(0, 7)])

    def test_parallel_run_matches_sequential(self):
        mc = MonteCarloAggregator(workers=2, parallel_threshold=1, chunk_size=10)
        self.assertEqual(mc.run(80), fold(0, 80))

    def test_parallel_cancellation_keeps_contiguous_prefix(self):
        """Chunks finishing out of order never leave a gap in the merged range."""
        calls = [0]

        def cancel():
            calls[0] += 1
            return calls[0] > 3

        mc = MonteCarloAggregator(workers=2, parallel_threshold=1, chunk_size=10)
        counters = mc.run(80, cancel_check=cancel)
        self.assertEqual(counters.start_index, 0)
        self.assertLessEqual(counters.games, 30)
        self.assertEqual(counters.games % 10, 0)
        self.assertEqual(counters, run_trials(0, counters.games))


# ============================================================
# Uniformity
# ============================================================

class TestUniformity(unittest.TestCase):

    def test_chi_squared_passes(self):
        hist = card_frequency(1000)
        self.assertEqual(sum(hist), 10_000)
        chi2, passed = chi_squared_uniformity(hist)
        self.assertAlmostEqual(chi2, 79.2848, places=3)
        self.assertTrue(passed)

    def test_chi_squared_detects_bias(self):
        hist = [0] * 78
        hist[0] = 1000
        chi2, passed = chi_squared_uniformity(hist)
        self.assertGreater(chi2, 108.8)
        self.assertFalse(passed)
        self.assertEqual(chi_squared_uniformity([0] * 78), (0.0, False))

    def test_chi_squared_requires_full_deck(self):
        for bins in (0, 10, 77, 79):
            with self.assertRaises(ValueError, msg=str(bins)):
                chi_squared_uniformity([5] * bins)


# ============================================================
# Statistics
# ============================================================

class TestStatistics(unittest.TestCase):

    def setUp(self):
        self.rates = OutcomeRates.from_counters(fold(0, SAMPLE))
        self.payout = PayoutRule(win_multiplier=1.9)

    def test_rates_sum_to_one(self):
        r = self.rates
        self.assertAlmostEqual(r.win + r.draw + r.lose, 1.0, places=12)
        self.assertEqual((r.win, r.draw, r.lose), (0.475, 0.03, 0.495))

    def test_wilson_known_value(self):
        low, high = wilson_interval(0.5, 100)
        self.assertAlmostEqual(low, 0.4038, places=4)
        self.assertAlmostEqual(high, 0.5962, places=4)

    def test_wilson_contains_estimate(self):
        for p in (0.0, 0.01, 0.3, 0.5, 0.97, 1.0):
            for n in (1, 10, 1000, 1_000_000):
                low, high = wilson_interval(p, n)
                self.assertLessEqual(low, p + 1e-12)
                self.assertGreaterEqual(high, p - 1e-12)
                self.assertTrue(-1e-12 <= low <= high <= 1 + 1e-12)
        with self.assertRaises(DegenerateStatisticsError):
            wilson_interval(0.5, 0)

    def test_scenario_five_percent_edge(self):
        rates = OutcomeRates.from_rates(0.55, 0.02)
        mult = optimal_multiplier(rates, 0.05)
        self.assertAlmostEqual(mult, 1.690909, places=6)
        ev = expected_value(rates, PayoutRule().with_win_multiplier(mult))
        self.assertAlmostEqual(ev, -0.05, places=12)

    def test_multiplier_respects_payout_rule(self):
        rates = OutcomeRates.from_rates(0.5, 0.1)
        payout = PayoutRule(draw_multiplier=0.5, loss_multiplier=0.1)
        mult = optimal_multiplier(rates, 0.05, payout)
        self.assertAlmostEqual(mult, 1.72, places=12)
        self.assertAlmostEqual(expected_value(rates, payout.with_win_multiplier(mult)), -0.05)

    def test_house_edge_and_variance(self):
        self.assertAlmostEqual(house_edge(self.rates, self.payout), 0.0675, places=12)
        self.assertAlmostEqual(payout_variance(self.rates, self.payout), 0.87519375, places=10)
        self.assertAlmostEqual(kelly_fraction(self.rates, 1.9), -0.108333, places=6)
        self.assertAlmostEqual(fair_multiplier(self.rates, self.payout), 0.97 / 0.475, places=12)

    def test_zero_wins_is_undefined(self):
        rates = OutcomeRates.from_rates(0.0, 0.1)
        self.assertIsNone(optimal_multiplier(rates, 0.05))
        rows = multiplier_table(rates, [1, 5])
        self.assertTrue(all(row.multiplier is None and row.ev is None for row in rows))

    def test_kelly_undefined_at_even_multiplier(self):
        self.assertIsNone(kelly_fraction(self.rates, 1.0))

    def test_ruin_probability(self):
        self.assertEqual(ruin_probability(-0.01, 0.9, 100), 1.0)
        self.assertEqual(ruin_probability(0.0, 0.9, 100), 1.0)
        self.assertIsNone(ruin_probability(0.05, 0.0, 100))
        p = ruin_probability(0.0675, 0.87519375, 100)
        self.assertTrue(0.0 < p < 1e-6)

    def test_empty_aggregate_rejected(self):
        with self.assertRaises(DegenerateStatisticsError):
            OutcomeRates.from_counters(AggregateCounters())
        with self.assertRaises(DegenerateStatisticsError):
            analyze(AggregateCounters())

    def test_invalid_rates_rejected(self):
        with self.assertRaises(ValueError):
            OutcomeRates.from_rates(0.8, 0.3)
        with self.assertRaises(ValueError):
            OutcomeRates.from_rates(-0.1, 0.0)


# ============================================================
# Analysis Report
# ============================================================

class TestAnalysisReport(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.counters = fold(0, SAMPLE)
        cls.trajectory = house_profit_trajectory(0, SAMPLE, 0.01, PayoutRule(), [100, 200, 500])
        cls.report = analyze(cls.counters, AnalysisOptions(major_min_samples=20), cls.trajectory)

    def test_core_figures(self):
        r = self.report
        self.assertEqual((r.games, r.wins, r.draws, r.losses), (200, 95, 6, 99))
        self.assertTrue(r.ci_low <= r.win_rate <= r.ci_high)
        self.assertAlmostEqual(r.house_edge_pct, 6.75, places=9)
        self.assertTrue(r.house_favoured)
        self.assertAlmostEqual(r.early_finish_rate, 0.255)

    def test_distribution_views(self):
        r = self.report
        self.assertEqual(sum(row["count"] for row in r.hp_diff_ranges), 200)
        self.assertEqual([row["majors"] for row in r.major_impact], [1, 2, 3, 4])
        self.assertEqual(len(r.multiplier_table), 11)
        self.assertEqual([row.edge_pct for row in r.recommendations], [3, 5, 8])

    def test_trajectory(self):
        self.assertEqual([p.bets for p in self.trajectory], [100, 200])
        self.assertAlmostEqual(self.trajectory[-1].house_profit, 0.135, places=9)
        self.assertAlmostEqual(self.trajectory[-1].edge_pct, 6.75, places=6)

    def test_to_dict_is_json(self):
        data = json.loads(json.dumps(self.report.to_dict()))
        self.assertEqual(data["payout"]["win_multiplier"], 1.9)
        self.assertEqual(data["trajectory"][1]["bets"], 200)

    def test_payout_schema_validation(self):
        with self.assertRaises(ValidationError):
            PayoutRule(win_multiplier=0)
        with self.assertRaises(ValidationError):
            PayoutRule(draw_multiplier=-1)
        with self.assertRaises(ValidationError):
            AnalysisOptions(target_edges_pct=[5, 150])
        with self.assertRaises(ValidationError):
            AnalysisOptions(trajectory_checkpoints=[0, 10])
        with self.assertRaises(ValueError):
            PayoutRule().payout_for("push")
        self.assertEqual(AnalysisOptions(target_edges_pct=[5, 1, 5]).target_edges_pct, [1, 5])

    def test_render_report(self):
        buf = io.StringIO()
        render_report(self.report, Console(file=buf, width=120), elapsed=1.5)
        text = buf.getvalue()
        self.assertIn("HOUSE EDGE", text)
        self.assertIn("Recommendation Summary", text)

    def test_render_undefined_figures(self):
        losses = AggregateCounters()
        for _ in range(10):
            losses.record(simulate_game(trial_seed(1)))
        report = analyze(losses)
        self.assertIsNone(report.fair_multiplier)
        self.assertIsNone(report.volatility_pct)
        self.assertIsNone(report.ruin_probability)
        buf = io.StringIO()
        render_report(report, Console(file=buf, width=160))
        self.assertIn(UNDEFINED, buf.getvalue())


# ============================================================
# CLI
# ============================================================

class TestCLI(unittest.TestCase):

    def run_cli(self, *argv):
        buf = io.StringIO()
        with redirect_stdout(buf):
            code = cli_main(["--log-level", "ERROR", *argv])
        return code, buf.getvalue()

    def test_verify(self):
        code, out = self.run_cli("verify")
        self.assertEqual(code, 0)
        self.assertIn("3 seed vectors", out)

    def test_card(self):
        code, out = self.run_cli("card", "0", "0")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["id"], 43)

    def test_preview_json(self):
        code, out = self.run_cli("preview", "0x290decd9548b62a8d60345a988386fc84ba6bc95484008f6362f93160ef3e563", "--json")
        self.assertEqual(code, 0)
        data = json.loads(out)
        self.assertEqual(data["player_cards"], [5, 39, 7, 28, 20])
        self.assertEqual(data["outcome"], "win")

    def test_simulate_json(self):
        code, out = self.run_cli("simulate", "60", "--json", "--no-trajectory")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["games"], 60)

    def test_bad_inputs_exit_2(self):
        self.assertEqual(self.run_cli("simulate", "0")[0], 2)
        self.assertEqual(self.run_cli("preview", "not-a-seed")[0], 2)
        self.assertEqual(self.run_cli("simulate", "10", "--multiplier", "0")[0], 2)


# ============================================================
# Main
# ============================================================

if __name__ == "__main__":
    import logging
    logging.disable(logging.WARNING)

    unittest.main(verbosity=2)
