"""
FATE'S ECHO — Monte Carlo Aggregator

Simulates N games with trial seeds keccak256(uint256(i)) and folds every
GameResult into AggregateCounters. Trial i depends only on i, so the
range [0, N) can be split across processes: each worker owns private
counters for a contiguous slice and the slices are merged in index
order. A merged run is identical to a sequential run.

Usage:
    from sim_engine.fate.montecarlo import MonteCarloAggregator
    mc = MonteCarloAggregator(workers=4)
    counters = mc.run(1_000_000)
    print(counters.summary())
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Optional

from config.settings import SimulationConfig
from sim_engine.fate.cards import DECK_SIZE, MAX_HP, TOTAL_ROUNDS
from sim_engine.fate.errors import InvalidSampleSizeError
from sim_engine.fate.game import GameResult, simulate_game
from sim_engine.fate.seed import derive_card_id, trial_seed

logger = logging.getLogger("fateecho.montecarlo")

MAJOR_BUCKETS = 11          # 0..10 major cards per game
CLOSE_GAME_MARGIN = 3       # |hp diff| <= 3
BLOWOUT_MARGIN = 15         # |hp diff| >= 15

# chi-squared critical value, 77 degrees of freedom, alpha = 0.01
CHI2_CRITICAL_77 = 108.8

ProgressCallback = Callable[[int, int], None]
CancelCheck = Callable[[], bool]


# ═══════════════════════════════════════════════════════════════
# Aggregate Counters
# ═══════════════════════════════════════════════════════════════

@dataclass
class AggregateCounters:
    """Running totals over a contiguous range of trials.

    `record` folds one game in; `merge` appends the counters of the range
    that immediately follows this one. Streak maxima survive merges because
    each range also remembers its leading and trailing run of identical
    outcomes.
    """
    start_index: int = 0
    games: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0

    total_hp_diff: int = 0
    total_player_final_hp: int = 0
    total_enemy_final_hp: int = 0
    total_damage_dealt: int = 0
    total_damage_taken: int = 0
    total_player_heal: int = 0
    total_enemy_heal: int = 0
    total_major_cards: int = 0
    early_finishes: int = 0
    close_games: int = 0
    blowouts: int = 0

    hp_diff_histogram: dict[int, int] = field(default_factory=dict)
    player_hp_histogram: list[int] = field(default_factory=lambda: [0] * (MAX_HP + 1))
    enemy_hp_histogram: list[int] = field(default_factory=lambda: [0] * (MAX_HP + 1))
    major_bucket_wins: list[int] = field(default_factory=lambda: [0] * MAJOR_BUCKETS)
    major_bucket_total: list[int] = field(default_factory=lambda: [0] * MAJOR_BUCKETS)

    max_win_streak: int = 0
    max_lose_streak: int = 0
    head_outcome: str = ""      # leading run
    head_run: int = 0
    tail_outcome: str = ""      # trailing run (the current streak)
    tail_run: int = 0

    @property
    def end_index(self) -> int:
        return self.start_index + self.games

    @property
    def current_win_streak(self) -> int:
        return self.tail_run if self.tail_outcome == "win" else 0

    @property
    def current_lose_streak(self) -> int:
        return self.tail_run if self.tail_outcome == "lose" else 0

    def record(self, result: GameResult) -> None:
        outcome = result.outcome
        if outcome == "win":
            self.wins += 1
        elif outcome == "draw":
            self.draws += 1
        else:
            self.losses += 1

        # A draw is its own run, so it breaks both streaks.
        if self.games == 0:
            self.head_outcome, self.head_run = outcome, 1
        elif self.head_run == self.games and outcome == self.head_outcome:
            self.head_run += 1
        if outcome == self.tail_outcome:
            self.tail_run += 1
        else:
            self.tail_outcome, self.tail_run = outcome, 1
        if outcome == "win":
            self.max_win_streak = max(self.max_win_streak, self.tail_run)
        elif outcome == "lose":
            self.max_lose_streak = max(self.max_lose_streak, self.tail_run)
        self.games += 1

        diff = result.hp_diff
        self.total_hp_diff += diff
        self.total_player_final_hp += result.player_final_hp
        self.total_enemy_final_hp += result.enemy_final_hp
        self.total_damage_dealt += result.total_damage_dealt
        self.total_damage_taken += result.total_damage_taken
        self.total_player_heal += result.total_player_heal
        self.total_enemy_heal += result.total_enemy_heal
        self.total_major_cards += result.major_count
        if result.early_finish:
            self.early_finishes += 1

        self.hp_diff_histogram[diff] = self.hp_diff_histogram.get(diff, 0) + 1
        self.player_hp_histogram[result.player_final_hp] += 1
        self.enemy_hp_histogram[result.enemy_final_hp] += 1

        bucket = min(result.major_count, MAJOR_BUCKETS - 1)
        self.major_bucket_total[bucket] += 1
        if outcome == "win":
            self.major_bucket_wins[bucket] += 1

        margin = abs(diff)
        if margin <= CLOSE_GAME_MARGIN:
            self.close_games += 1
        if margin >= BLOWOUT_MARGIN:
            self.blowouts += 1

    def merge(self, other: "AggregateCounters") -> "AggregateCounters":
        """Append `other` (the range starting at self.end_index) in place."""
        if other.games == 0:
            return self
        if self.games and other.start_index != self.end_index:
            raise ValueError(f"Cannot merge trials [{other.start_index}, {other.end_index}) "
                             f"after [{self.start_index}, {self.end_index}): ranges not adjacent")
        if self.games == 0:
            self.start_index = other.start_index

        seam = self.tail_run + other.head_run if (
            self.games and self.tail_outcome == other.head_outcome) else 0
        max_win = max(self.max_win_streak, other.max_win_streak)
        max_lose = max(self.max_lose_streak, other.max_lose_streak)
        if other.head_outcome == "win":
            max_win = max(max_win, seam)
        elif other.head_outcome == "lose":
            max_lose = max(max_lose, seam)

        if self.games == 0:
            head_outcome, head_run = other.head_outcome, other.head_run
        elif self.head_run == self.games and other.head_outcome == self.head_outcome:
            head_outcome, head_run = self.head_outcome, self.games + other.head_run
        else:
            head_outcome, head_run = self.head_outcome, self.head_run

        if other.tail_run == other.games and self.games and self.tail_outcome == other.tail_outcome:
            tail_outcome, tail_run = other.tail_outcome, other.games + self.tail_run
        else:
            tail_outcome, tail_run = other.tail_outcome, other.tail_run

        for name in ("games", "wins", "draws", "losses", "total_hp_diff",
                     "total_player_final_hp", "total_enemy_final_hp",
                     "total_damage_dealt", "total_damage_taken",
                     "total_player_heal", "total_enemy_heal", "total_major_cards",
                     "early_finishes", "close_games", "blowouts"):
            setattr(self, name, getattr(self, name) + getattr(other, name))

        for diff, count in other.hp_diff_histogram.items():
            self.hp_diff_histogram[diff] = self.hp_diff_histogram.get(diff, 0) + count
        for name in ("player_hp_histogram", "enemy_hp_histogram",
                     "major_bucket_wins", "major_bucket_total"):
            mine = getattr(self, name)
            for i, count in enumerate(getattr(other, name)):
                mine[i] += count

        self.max_win_streak, self.max_lose_streak = max_win, max_lose
        self.head_outcome, self.head_run = head_outcome, head_run
        self.tail_outcome, self.tail_run = tail_outcome, tail_run
        return self

    def summary(self) -> str:
        if not self.games:
            return f"Trials [{self.start_index}, {self.end_index}): no games"
        return (f"Trials [{self.start_index}, {self.end_index}): "
                f"{self.wins:,} W / {self.draws:,} D / {self.losses:,} L, "
                f"streaks W{self.max_win_streak} L{self.max_lose_streak}")

    def to_dict(self) -> dict:
        return {
            "start_index": self.start_index,
            "games": self.games,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "max_win_streak": self.max_win_streak,
            "max_lose_streak": self.max_lose_streak,
            "early_finishes": self.early_finishes,
            "close_games": self.close_games,
            "blowouts": self.blowouts,
            "hp_diff_histogram": {str(k): v for k, v in sorted(self.hp_diff_histogram.items())},
            "player_hp_histogram": list(self.player_hp_histogram),
            "enemy_hp_histogram": list(self.enemy_hp_histogram),
            "major_bucket_wins": list(self.major_bucket_wins),
            "major_bucket_total": list(self.major_bucket_total),
        }


# ═══════════════════════════════════════════════════════════════
# Trial Loop
# ═══════════════════════════════════════════════════════════════

def validate_sample_size(num_games, max_games: int = SimulationConfig.MAX_GAMES) -> int:
    if isinstance(num_games, bool) or not isinstance(num_games, int):
        raise InvalidSampleSizeError(num_games, "must be an integer")
    if num_games <= 0:
        raise InvalidSampleSizeError(num_games, "must be at least 1")
    if num_games > max_games:
        raise InvalidSampleSizeError(
            num_games, f"exceeds the configured ceiling of {max_games:,} games")
    return num_games


def run_trials(start: int, stop: int,
               progress_cb: Optional[ProgressCallback] = None,
               cancel_check: Optional[CancelCheck] = None,
               progress_every: int = SimulationConfig.PROGRESS_EVERY,
               total: Optional[int] = None) -> AggregateCounters:
    """Sequentially fold trials [start, stop). Stops cleanly between trials."""
    counters = AggregateCounters(start_index=start)
    total = total if total is not None else stop - start
    for i in range(start, stop):
        if cancel_check and cancel_check():
            logger.info(f"Cancelled after {counters.games:,} of {total:,} games")
            break
        counters.record(simulate_game(trial_seed(i)))
        if progress_cb and progress_every and counters.games % progress_every == 0:
            progress_cb(counters.games, total)
    return counters


def _run_chunk(start: int, stop: int) -> AggregateCounters:
    """Process-pool entry point (module level so it pickles)."""
    return run_trials(start, stop, progress_every=0)


def partition(start: int, count: int, n_chunks: int) -> list[tuple[int, int]]:
    """Split [start, start + count) into at most n_chunks contiguous slices."""
    n_chunks = max(1, min(n_chunks, count))
    base, remainder = divmod(count, n_chunks)
    slices = []
    lo = start
    for i in range(n_chunks):
        hi = lo + base + (1 if i < remainder else 0)
        slices.append((lo, hi))
        lo = hi
    return slices


class MonteCarloAggregator:
    """Runs N independently seeded games and returns their AggregateCounters."""

    def __init__(self, workers: int = SimulationConfig.WORKERS,
                 progress_every: int = SimulationConfig.PROGRESS_EVERY,
                 parallel_threshold: int = SimulationConfig.PARALLEL_THRESHOLD,
                 max_games: int = SimulationConfig.MAX_GAMES,
                 chunk_size: int = 50_000):
        self.workers = max(1, workers)
        self.progress_every = progress_every
        self.parallel_threshold = parallel_threshold
        self.max_games = max_games
        self.chunk_size = chunk_size
        self.last_duration = 0.0

    def run(self, num_games: int,
            progress_cb: Optional[ProgressCallback] = None,
            cancel_check: Optional[CancelCheck] = None,
            start_index: int = 0) -> AggregateCounters:
        validate_sample_size(num_games, self.max_games)
        t0 = time.time()
        if self.workers <= 1 or num_games < self.parallel_threshold:
            counters = run_trials(start_index, start_index + num_games,
                                  progress_cb, cancel_check, self.progress_every, num_games)
        else:
            counters = self._run_parallel(num_games, progress_cb, cancel_check, start_index)
        self.last_duration = time.time() - t0
        rate = counters.games / self.last_duration if self.last_duration > 0 else 0
        logger.info(f"Simulated {counters.games:,} games in {self.last_duration:.2f}s "
                    f"({rate:,.0f} games/sec)")
        return counters

    def _run_parallel(self, num_games: int,
                      progress_cb: Optional[ProgressCallback],
                      cancel_check: Optional[CancelCheck],
                      start_index: int) -> AggregateCounters:
        # Enough chunks for smooth progress, capped to bound scheduling overhead
        n_chunks = min(max(self.workers * 4, num_games // self.chunk_size), 256)
        slices = partition(start_index, num_games, n_chunks)
        logger.info(f"Running {num_games:,} games on {self.workers} workers "
                    f"({len(slices)} chunks)")

        results: dict[int, AggregateCounters] = {}
        completed = 0
        with ProcessPoolExecutor(max_workers=self.workers) as executor:
            future_to_idx = {
                executor.submit(_run_chunk, lo, hi): idx
                for idx, (lo, hi) in enumerate(slices)
            }
            for future in as_completed(future_to_idx):
                if cancel_check and cancel_check():
                    for f in future_to_idx:
                        f.cancel()
                    logger.info(f"Cancelled after {completed:,} of {num_games:,} games")
                    break
                chunk = future.result()
                results[future_to_idx[future]] = chunk
                completed += chunk.games
                if progress_cb:
                    progress_cb(completed, num_games)

        # Only the contiguous prefix of finished chunks is a valid aggregate
        merged = AggregateCounters(start_index=start_index)
        for idx in range(len(slices)):
            if idx not in results:
                break
            merged.merge(results[idx])
        return merged


def run_monte_carlo(num_games: int, workers: int = 1,
                    progress_cb: Optional[ProgressCallback] = None,
                    cancel_check: Optional[CancelCheck] = None,
                    start_index: int = 0) -> AggregateCounters:
    return MonteCarloAggregator(workers=workers).run(
        num_games, progress_cb, cancel_check, start_index)


# ═══════════════════════════════════════════════════════════════
# House Profit Trajectory & RNG Uniformity
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TrajectoryPoint:
    bets: int
    house_profit: float
    edge_pct: float     # profit / amount wagered


def house_profit_trajectory(start_index: int, bets: int, bet_size: float, payout,
                            checkpoints: list[int]) -> list[TrajectoryPoint]:
    """Replay `bets` fresh games (trial seeds from start_index) at a flat stake.

    The house keeps the stake and pays back stake x payout multiplier.
    """
    marks = sorted(c for c in set(checkpoints) if 0 < c <= bets)
    points = []
    profit = 0.0
    next_mark = 0
    for i in range(bets):
        result = simulate_game(trial_seed(start_index + i))
        profit += bet_size * (1.0 - payout.payout_for(result.outcome))
        n = i + 1
        if next_mark < len(marks) and n == marks[next_mark]:
            points.append(TrajectoryPoint(n, profit, profit / (n * bet_size) * 100))
            next_mark += 1
    return points


def card_frequency(num_trials: int, draws_per_trial: int = TOTAL_ROUNDS * 2) -> list[int]:
    """Histogram of card ids over every draw of the first num_trials games."""
    hist = [0] * DECK_SIZE
    for i in range(num_trials):
        seed = trial_seed(i)
        for nonce in range(draws_per_trial):
            hist[derive_card_id(seed, nonce)] += 1
    return hist


def chi_squared_uniformity(hist: list[int]) -> tuple[float, bool]:
    """Chi-squared statistic against a uniform deck, and pass/fail at alpha = 0.01.

    Only full-deck histograms (DECK_SIZE bins, 77 degrees of freedom) are
    accepted; the critical value is fixed for that shape.
    """
    if len(hist) != DECK_SIZE:
        raise ValueError(f"Expected a {DECK_SIZE}-bin card histogram, got {len(hist)} bins")
    total = sum(hist)
    if total == 0:
        return 0.0, False
    expected = total / len(hist)
    chi2 = sum((obs - expected) ** 2 / expected for obs in hist)
    return chi2, chi2 < CHI2_CRITICAL_77
