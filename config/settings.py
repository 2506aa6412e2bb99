"""
Fate's Echo Engine - Configuration

Runtime knobs for the Monte Carlo analysis tool. Everything here can be
overridden from the environment (or a .env file).

Game rules (MAX_HP, TOTAL_ROUNDS, COUNTER_BONUS) are NOT here: they are
fixed by the deployed contract and live in sim_engine.fate.cards.
"""

import logging
import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _float_list(raw: str) -> list[float]:
    return [float(x) for x in raw.split(",") if x.strip()]


def _int_list(raw: str) -> list[int]:
    return [int(x) for x in raw.split(",") if x.strip()]


# ============================================================
# Simulation
# ============================================================

class SimulationConfig:
    DEFAULT_GAMES = int(os.getenv("FATE_DEFAULT_GAMES", "1000000"))
    # Ceiling on a single run; beyond this the histogram memory is fine
    # but wall-clock time is not.
    MAX_GAMES = int(os.getenv("FATE_MAX_GAMES", "50000000"))
    WORKERS = int(os.getenv("FATE_WORKERS", "1"))
    # Below this many games the process pool costs more than it saves
    PARALLEL_THRESHOLD = int(os.getenv("FATE_PARALLEL_THRESHOLD", "100000"))
    PROGRESS_EVERY = int(os.getenv("FATE_PROGRESS_EVERY", "100000"))


# ============================================================
# Payout Analysis
# ============================================================

class PayoutConfig:
    WIN_MULTIPLIER = float(os.getenv("FATE_WIN_MULTIPLIER", "1.9"))
    DRAW_MULTIPLIER = float(os.getenv("FATE_DRAW_MULTIPLIER", "1.0"))   # refund
    LOSS_MULTIPLIER = float(os.getenv("FATE_LOSS_MULTIPLIER", "0.0"))
    HOUSE_BANKROLL = float(os.getenv("FATE_HOUSE_BANKROLL", "100"))     # ETH

    TARGET_EDGES_PCT = _float_list(os.getenv("FATE_TARGET_EDGES", "1,2,3,4,5,6,7,8,10,15,20"))
    SUGGESTED_EDGES_PCT = _float_list(os.getenv("FATE_SUGGESTED_EDGES", "3,5,8"))

    # House profit trajectory replayed after the main sample
    TRAJECTORY_BETS = int(os.getenv("FATE_TRAJECTORY_BETS", "10000"))
    TRAJECTORY_BET_SIZE = float(os.getenv("FATE_TRAJECTORY_BET_SIZE", "0.01"))
    TRAJECTORY_CHECKPOINTS = _int_list(
        os.getenv("FATE_TRAJECTORY_CHECKPOINTS", "100,500,1000,2000,5000,10000"))


# ============================================================
# Logging
# ============================================================

class LogConfig:
    LEVEL = os.getenv("FATE_LOG_LEVEL", "INFO").upper()
    FORMAT = "[%(asctime)s] %(levelname)s %(message)s"
    DATEFMT = "%H:%M:%S"

    @classmethod
    def setup(cls, level: Optional[str] = None) -> logging.Logger:
        """Attach one stream handler to the `fateecho` logger tree."""
        logger = logging.getLogger("fateecho")
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(cls.FORMAT, datefmt=cls.DATEFMT))
            logger.addHandler(handler)
        logger.setLevel(getattr(logging, (level or cls.LEVEL).upper(), logging.INFO))
        return logger
