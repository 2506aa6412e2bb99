"""
FATE'S ECHO — Engine Error Taxonomy

Every failure the core can report is one of these. Nothing in the engine
retries: inputs are validated up front and the computation is pure.
"""


class FateEngineError(Exception):
    """Base class for all engine errors."""


class InvalidSeedError(FateEngineError, ValueError):
    """Seed or nonce is not a well-formed uint256."""

    def __init__(self, value, reason: str = "not a non-negative integer"):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid seed {value!r}: {reason}")


class InvalidSampleSizeError(FateEngineError, ValueError):
    """Requested number of games is non-positive or above the configured ceiling."""

    def __init__(self, value, reason: str = "must be a positive integer"):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid sample size {value!r}: {reason}")


class InvalidCardError(FateEngineError, ValueError):
    """Card id outside [0, 78)."""

    def __init__(self, card_id):
        self.card_id = card_id
        super().__init__(f"Invalid card id {card_id!r}: expected an integer in [0, 78)")


class DegenerateStatisticsError(FateEngineError, ArithmeticError):
    """A rate required as a divisor is zero (typically an empty aggregate)."""

    def __init__(self, statistic: str, reason: str = "no samples"):
        self.statistic = statistic
        self.reason = reason
        super().__init__(f"{statistic} is undefined: {reason}")


class HashMismatchError(FateEngineError):
    """Off-chain card derivation disagrees with known on-chain vectors."""

    def __init__(self, mismatches: list):
        # [(seed, nonce, expected, actual), ...]
        self.mismatches = mismatches
        detail = ", ".join(
            f"(seed={s}, nonce={n}) expected {e} got {a}" for s, n, e, a in mismatches
        )
        super().__init__(f"{len(mismatches)} hash vector mismatch(es): {detail}")
