"""
FATE'S ECHO — Statistics Engine

Pure functions over AggregateCounters: outcome rates, Wilson confidence
interval, EV / house edge under a payout rule, single-bet variance,
required multiplier for a target house edge, Kelly fraction and a
simplified gambler's-ruin estimate.

A statistic whose divisor is zero is reported as None ("undefined"),
never as NaN or infinity. An empty aggregate is rejected outright with
DegenerateStatisticsError.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Optional

from config.analysis_schema import AnalysisOptions, PayoutRule
from sim_engine.fate.errors import DegenerateStatisticsError

Z_95 = 1.96
UNDEFINED = "undefined — insufficient win samples"

HP_DIFF_RANGES = (
    ("≤ -20 (enemy crushes)", -30, -20),
    ("-19 to -10 (enemy wins big)", -19, -10),
    (" -9 to  -1 (enemy wins)", -9, -1),
    ("     0     (draw)", 0, 0),
    (" +1 to  +9 (player wins)", 1, 9),
    ("+10 to +19 (player wins big)", 10, 19),
    ("≥ +20 (player crushes)", 20, 30),
)


# ═══════════════════════════════════════════════════════════════
# Outcome Rates
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OutcomeRates:
    win: float
    draw: float
    lose: float
    n: int = 0

    @classmethod
    def from_counters(cls, counters) -> "OutcomeRates":
        n = counters.games
        if n <= 0:
            raise DegenerateStatisticsError("win rate", "no games simulated")
        return cls(counters.wins / n, counters.draws / n, counters.losses / n, n)

    @classmethod
    def from_rates(cls, win: float, draw: float, n: int = 0) -> "OutcomeRates":
        if not (0.0 <= win <= 1.0 and 0.0 <= draw <= 1.0 and win + draw <= 1.0 + 1e-12):
            raise ValueError(f"Invalid rates win={win}, draw={draw}")
        return cls(win, draw, max(0.0, 1.0 - win - draw), n)


def wilson_interval(p: float, n: int, z: float = Z_95) -> tuple[float, float]:
    """Wilson score interval for a binomial proportion."""
    if n <= 0:
        raise DegenerateStatisticsError("confidence interval", "sample size is zero")
    z2 = z * z
    denom = 1 + z2 / n
    center = (p + z2 / (2 * n)) / denom
    margin = z * math.sqrt((p * (1 - p) + z2 / (4 * n)) / n) / denom
    return center - margin, center + margin


def standard_error(p: float, n: int) -> float:
    if n <= 0:
        raise DegenerateStatisticsError("standard error", "sample size is zero")
    return math.sqrt(p * (1 - p) / n)


# ═══════════════════════════════════════════════════════════════
# Payout Math
# ═══════════════════════════════════════════════════════════════

def expected_value(rates: OutcomeRates, payout: PayoutRule) -> float:
    """EV per unit stake: Σ P(outcome) × multiplier − 1."""
    return (rates.win * payout.win_multiplier
            + rates.draw * payout.draw_multiplier
            + rates.lose * payout.loss_multiplier
            - 1.0)


def house_edge(rates: OutcomeRates, payout: PayoutRule) -> float:
    """House edge as a fraction of stake (−EV)."""
    return -expected_value(rates, payout)


def payout_variance(rates: OutcomeRates, payout: PayoutRule) -> float:
    """Var[X] = E[X²] − E[X]² for the single-bet return X."""
    ex = (rates.win * payout.win_multiplier
          + rates.draw * payout.draw_multiplier
          + rates.lose * payout.loss_multiplier)
    ex2 = (rates.win * payout.win_multiplier ** 2
           + rates.draw * payout.draw_multiplier ** 2
           + rates.lose * payout.loss_multiplier ** 2)
    return max(ex2 - ex * ex, 0.0)


def volatility(rates: OutcomeRates, payout: PayoutRule) -> Optional[float]:
    """Standard deviation relative to the expected return."""
    ex = expected_value(rates, payout) + 1.0
    if ex <= 0:
        return None
    return math.sqrt(payout_variance(rates, payout)) / ex


def optimal_multiplier(rates: OutcomeRates, target_edge: float,
                       payout: Optional[PayoutRule] = None) -> Optional[float]:
    """Win multiplier that yields `target_edge` (fraction, 0.05 = 5%).

    Solves P(win)·m + P(draw)·d + P(lose)·l − 1 = −e for m. None when
    there were no wins to price.
    """
    payout = payout or PayoutRule()
    if rates.win <= 0:
        return None
    return (1.0 - rates.draw * payout.draw_multiplier
            - rates.lose * payout.loss_multiplier - target_edge) / rates.win


def fair_multiplier(rates: OutcomeRates, payout: Optional[PayoutRule] = None) -> Optional[float]:
    return optimal_multiplier(rates, 0.0, payout)


def kelly_fraction(rates: OutcomeRates, multiplier: float) -> Optional[float]:
    """Player's Kelly stake: (p·m − 1) / (m − 1). Negative favours the house."""
    if multiplier == 1.0:
        return None
    return (rates.win * multiplier - 1.0) / (multiplier - 1.0)


def ruin_probability(edge: float, variance: float, bankroll: float) -> Optional[float]:
    """Simplified gambler's ruin for the house: P ≈ exp(−2·h·B / σ²)."""
    if variance <= 0:
        return None
    exponent = -2.0 * edge * bankroll / variance
    if exponent >= 0:
        return 1.0
    return math.exp(exponent)


@dataclass(frozen=True)
class MultiplierRow:
    edge_pct: float
    multiplier: Optional[float]
    ev: Optional[float]
    house_per_1000: Optional[float]


def multiplier_table(rates: OutcomeRates, target_edges_pct: list[float],
                     payout: Optional[PayoutRule] = None) -> list[MultiplierRow]:
    payout = payout or PayoutRule()
    rows = []
    for edge_pct in target_edges_pct:
        mult = optimal_multiplier(rates, edge_pct / 100, payout)
        if mult is None:
            rows.append(MultiplierRow(edge_pct, None, None, None))
            continue
        ev = expected_value(rates, payout.with_win_multiplier(mult))
        rows.append(MultiplierRow(edge_pct, mult, ev, -ev * 1000))
    return rows


# ═══════════════════════════════════════════════════════════════
# Distribution Views
# ═══════════════════════════════════════════════════════════════

def hp_diff_ranges(counters) -> list[dict]:
    n = counters.games
    rows = []
    for label, lo, hi in HP_DIFF_RANGES:
        count = sum(counters.hp_diff_histogram.get(d, 0) for d in range(lo, hi + 1))
        rows.append({"label": label, "min": lo, "max": hi, "count": count,
                     "pct": count / n * 100 if n else 0.0})
    return rows


def major_impact(counters, min_samples: int = 100) -> list[dict]:
    """Win rate by number of major arcana seen in the game (buckets with enough data)."""
    rows = []
    for majors, total in enumerate(counters.major_bucket_total):
        if total > min_samples:
            rows.append({
                "majors": majors,
                "games": total,
                "win_rate": counters.major_bucket_wins[majors] / total,
                "share_pct": total / counters.games * 100,
            })
    return rows


# ═══════════════════════════════════════════════════════════════
# Full Report
# ═══════════════════════════════════════════════════════════════

@dataclass
class StatisticsReport:
    games: int
    wins: int
    draws: int
    losses: int
    win_rate: float
    draw_rate: float
    lose_rate: float
    ci_low: float
    ci_high: float
    std_error: float
    max_win_streak: int
    max_lose_streak: int

    avg_damage_dealt: float
    avg_damage_taken: float
    avg_player_heal: float
    avg_enemy_heal: float
    avg_player_final_hp: float
    avg_enemy_final_hp: float
    avg_hp_diff: float
    avg_major_cards: float
    early_finish_rate: float
    close_game_rate: float
    blowout_rate: float

    payout: PayoutRule
    expected_value: float
    house_edge_pct: float
    fair_multiplier: Optional[float]
    variance: float
    std_dev: float
    volatility_pct: Optional[float]
    bankroll: float
    ruin_probability: Optional[float]
    kelly_fraction: Optional[float]

    multiplier_table: list[MultiplierRow] = field(default_factory=list)
    recommendations: list[MultiplierRow] = field(default_factory=list)
    hp_diff_ranges: list[dict] = field(default_factory=list)
    major_impact: list[dict] = field(default_factory=list)
    trajectory: list = field(default_factory=list)

    @property
    def house_favoured(self) -> bool:
        return self.house_edge_pct > 0

    def summary(self) -> str:
        fair = f"{self.fair_multiplier:.6f}x" if self.fair_multiplier is not None else UNDEFINED
        return (f"{self.games:,} games | win {self.win_rate*100:.4f}% "
                f"[{self.ci_low*100:.4f}%, {self.ci_high*100:.4f}%] "
                f"draw {self.draw_rate*100:.4f}% lose {self.lose_rate*100:.4f}% | "
                f"{self.payout.win_multiplier}x → edge {self.house_edge_pct:.4f}% | fair {fair}")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["payout"] = self.payout.model_dump()
        return data


def analyze(counters, options: Optional[AnalysisOptions] = None,
            trajectory: Optional[list] = None) -> StatisticsReport:
    """Turn final aggregate counters into every figure of the report."""
    options = options or AnalysisOptions()
    payout = options.payout
    rates = OutcomeRates.from_counters(counters)
    n = rates.n

    ci_low, ci_high = wilson_interval(rates.win, n)
    ev = expected_value(rates, payout)
    variance = payout_variance(rates, payout)
    vol = volatility(rates, payout)

    return StatisticsReport(
        games=n,
        wins=counters.wins,
        draws=counters.draws,
        losses=counters.losses,
        win_rate=rates.win,
        draw_rate=rates.draw,
        lose_rate=rates.lose,
        ci_low=ci_low,
        ci_high=ci_high,
        std_error=standard_error(rates.win, n),
        max_win_streak=counters.max_win_streak,
        max_lose_streak=counters.max_lose_streak,
        avg_damage_dealt=counters.total_damage_dealt / n,
        avg_damage_taken=counters.total_damage_taken / n,
        avg_player_heal=counters.total_player_heal / n,
        avg_enemy_heal=counters.total_enemy_heal / n,
        avg_player_final_hp=counters.total_player_final_hp / n,
        avg_enemy_final_hp=counters.total_enemy_final_hp / n,
        avg_hp_diff=counters.total_hp_diff / n,
        avg_major_cards=counters.total_major_cards / n,
        early_finish_rate=counters.early_finishes / n,
        close_game_rate=counters.close_games / n,
        blowout_rate=counters.blowouts / n,
        payout=payout,
        expected_value=ev,
        house_edge_pct=-ev * 100,
        fair_multiplier=fair_multiplier(rates, payout),
        variance=variance,
        std_dev=math.sqrt(variance),
        volatility_pct=vol * 100 if vol is not None else None,
        bankroll=options.bankroll,
        ruin_probability=ruin_probability(-ev, variance, options.bankroll),
        kelly_fraction=kelly_fraction(rates, payout.win_multiplier),
        multiplier_table=multiplier_table(rates, options.target_edges_pct, payout),
        recommendations=multiplier_table(rates, options.suggested_edges_pct, payout),
        hp_diff_ranges=hp_diff_ranges(counters),
        major_impact=major_impact(counters, options.major_min_samples),
        trajectory=list(trajectory or []),
    )
