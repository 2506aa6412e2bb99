"""
Fate's Echo Engine - Analysis Schema

Pydantic models for the payout rule and the report options. The payout
rule is a parameter of every EV / variance / multiplier computation so
alternative schedules can be analysed without code changes.

Usage:
    from config.analysis_schema import PayoutRule, AnalysisOptions
    payout = PayoutRule(win_multiplier=1.85)
    options = AnalysisOptions(payout=payout, bankroll=250)
    json_str = options.model_dump_json(indent=2)
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from config.settings import PayoutConfig


class PayoutRule(BaseModel):
    """Return per unit stake for each game outcome."""
    win_multiplier: float = Field(PayoutConfig.WIN_MULTIPLIER, gt=0.0)
    draw_multiplier: float = Field(PayoutConfig.DRAW_MULTIPLIER, ge=0.0)   # 1.0 = refund
    loss_multiplier: float = Field(PayoutConfig.LOSS_MULTIPLIER, ge=0.0)

    def payout_for(self, outcome: str) -> float:
        if outcome == "win":
            return self.win_multiplier
        if outcome == "draw":
            return self.draw_multiplier
        if outcome == "lose":
            return self.loss_multiplier
        raise ValueError(f"Unknown outcome: {outcome}. Expected win/draw/lose")

    def with_win_multiplier(self, multiplier: float) -> "PayoutRule":
        return self.model_copy(update={"win_multiplier": multiplier})


class AnalysisOptions(BaseModel):
    """Everything the statistics report needs beyond the aggregate counters."""
    payout: PayoutRule = Field(default_factory=PayoutRule)
    bankroll: float = Field(PayoutConfig.HOUSE_BANKROLL, gt=0.0)
    target_edges_pct: list[float] = Field(
        default_factory=lambda: list(PayoutConfig.TARGET_EDGES_PCT))
    suggested_edges_pct: list[float] = Field(
        default_factory=lambda: list(PayoutConfig.SUGGESTED_EDGES_PCT))
    trajectory_bets: int = Field(PayoutConfig.TRAJECTORY_BETS, ge=0)
    trajectory_bet_size: float = Field(PayoutConfig.TRAJECTORY_BET_SIZE, gt=0.0)
    trajectory_checkpoints: list[int] = Field(
        default_factory=lambda: list(PayoutConfig.TRAJECTORY_CHECKPOINTS))
    major_min_samples: int = Field(100, ge=0)

    @field_validator("target_edges_pct", "suggested_edges_pct")
    @classmethod
    def check_edges(cls, v):
        for edge in v:
            if not 0.0 <= edge < 100.0:
                raise ValueError(f"House edge {edge}% must be in [0, 100)")
        return sorted(set(v))

    @field_validator("trajectory_checkpoints")
    @classmethod
    def check_checkpoints(cls, v):
        if any(c <= 0 for c in v):
            raise ValueError("Trajectory checkpoints must be positive bet counts")
        return sorted(set(v))
