"""
FATE'S ECHO — Off-chain Reproduction & Validation Engine

Reproduces the contract's seed → card → combat computation bit-for-bit
(so a client can preview a game before paying settlement gas) and runs
the Monte Carlo analysis used to price the win multiplier.

Usage:
    from sim_engine.fate import simulate_game, trial_seed, MonteCarloAggregator, analyze
    result = simulate_game(trial_seed(0))
    counters = MonteCarloAggregator().run(100_000)
    report = analyze(counters)
"""

from sim_engine.fate.cards import (
    COUNTER_BONUS, DECK_SIZE, MAX_HP, TOTAL_ROUNDS,
    EffectType, Suit, card_name, does_counter, get_card, is_major,
)
from sim_engine.fate.combat import RoundOutcome, resolve_round
from sim_engine.fate.errors import (
    DegenerateStatisticsError, FateEngineError, HashMismatchError,
    InvalidCardError, InvalidSampleSizeError, InvalidSeedError,
)
from sim_engine.fate.game import GameResult, simulate_cards, simulate_game
from sim_engine.fate.montecarlo import AggregateCounters, MonteCarloAggregator, run_monte_carlo
from sim_engine.fate.seed import derive_card_id, parse_seed, trial_seed, verify_vectors
from sim_engine.fate.stats import OutcomeRates, StatisticsReport, analyze

__all__ = [
    "COUNTER_BONUS", "DECK_SIZE", "MAX_HP", "TOTAL_ROUNDS",
    "EffectType", "Suit", "card_name", "does_counter", "get_card", "is_major",
    "RoundOutcome", "resolve_round",
    "DegenerateStatisticsError", "FateEngineError", "HashMismatchError",
    "InvalidCardError", "InvalidSampleSizeError", "InvalidSeedError",
    "GameResult", "simulate_cards", "simulate_game",
    "AggregateCounters", "MonteCarloAggregator", "run_monte_carlo",
    "derive_card_id", "parse_seed", "trial_seed", "verify_vectors",
    "OutcomeRates", "StatisticsReport", "analyze",
]
