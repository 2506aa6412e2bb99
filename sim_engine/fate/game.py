"""
FATE'S ECHO — Game Simulator

Plays one full game (up to 5 rounds) exactly as the contract settles it.

Per round:
  1. stop if either side is already at 0 HP
  2. resolve the two cards
  3. subtract damage, clamping at 0
  4. add heal, clamping at MAX_HP

The player wins when final player HP > final enemy HP; equal HP is a
draw, including both sides reaching 0 in the same round.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from sim_engine.fate.cards import MAX_HP, TOTAL_ROUNDS, check_card_id, is_major
from sim_engine.fate.combat import RoundOutcome, resolve_round, round_kind
from sim_engine.fate.seed import draw_hands


@dataclass(frozen=True)
class RoundRecord:
    index: int
    player_card: int
    enemy_card: int
    kind: str
    outcome: RoundOutcome
    player_hp: int   # after the round
    enemy_hp: int

    def to_dict(self) -> dict:
        return {
            "round": self.index + 1,
            "player_card": self.player_card,
            "enemy_card": self.enemy_card,
            "kind": self.kind,
            **self.outcome.to_dict(),
            "player_hp": self.player_hp,
            "enemy_hp": self.enemy_hp,
        }


@dataclass(frozen=True)
class GameResult:
    player_final_hp: int
    enemy_final_hp: int
    rounds: int
    early_finish: bool
    total_damage_dealt: int    # player → enemy
    total_damage_taken: int    # enemy → player
    total_player_heal: int
    total_enemy_heal: int
    major_count: int
    player_cards: tuple[int, ...] = ()
    enemy_cards: tuple[int, ...] = ()
    round_log: tuple[RoundRecord, ...] = ()

    @property
    def hp_diff(self) -> int:
        return self.player_final_hp - self.enemy_final_hp

    @property
    def player_won(self) -> bool:
        return self.player_final_hp > self.enemy_final_hp

    @property
    def is_draw(self) -> bool:
        return self.player_final_hp == self.enemy_final_hp

    @property
    def outcome(self) -> str:
        if self.is_draw:
            return "draw"
        return "win" if self.player_won else "lose"

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "player_final_hp": self.player_final_hp,
            "enemy_final_hp": self.enemy_final_hp,
            "hp_diff": self.hp_diff,
            "rounds": self.rounds,
            "early_finish": self.early_finish,
            "total_damage_dealt": self.total_damage_dealt,
            "total_damage_taken": self.total_damage_taken,
            "total_player_heal": self.total_player_heal,
            "total_enemy_heal": self.total_enemy_heal,
            "major_count": self.major_count,
            "player_cards": list(self.player_cards),
            "enemy_cards": list(self.enemy_cards),
            "round_log": [r.to_dict() for r in self.round_log],
        }


def simulate_cards(player_cards: Sequence[int], enemy_cards: Sequence[int]) -> GameResult:
    """Run the combat rules over explicit card sequences (one card per round)."""
    if len(player_cards) != TOTAL_ROUNDS or len(enemy_cards) != TOTAL_ROUNDS:
        raise ValueError(f"Expected {TOTAL_ROUNDS} cards per side, got "
                         f"{len(player_cards)} and {len(enemy_cards)}")
    for c in (*player_cards, *enemy_cards):
        check_card_id(c)

    player_hp = MAX_HP
    enemy_hp = MAX_HP
    dealt = taken = p_heal = e_heal = majors = 0
    log = []

    for i in range(TOTAL_ROUNDS):
        if player_hp == 0 or enemy_hp == 0:
            break

        p_card = player_cards[i]
        e_card = enemy_cards[i]
        majors += is_major(p_card) + is_major(e_card)

        out = resolve_round(p_card, e_card)
        dealt += out.player_damage
        taken += out.enemy_damage
        p_heal += out.player_heal
        e_heal += out.enemy_heal

        enemy_hp = max(enemy_hp - out.player_damage, 0)
        player_hp = max(player_hp - out.enemy_damage, 0)
        player_hp = min(player_hp + out.player_heal, MAX_HP)
        enemy_hp = min(enemy_hp + out.enemy_heal, MAX_HP)

        log.append(RoundRecord(i, p_card, e_card, round_kind(p_card, e_card),
                               out, player_hp, enemy_hp))

    return GameResult(
        player_final_hp=player_hp,
        enemy_final_hp=enemy_hp,
        rounds=len(log),
        early_finish=len(log) < TOTAL_ROUNDS,
        total_damage_dealt=dealt,
        total_damage_taken=taken,
        total_player_heal=p_heal,
        total_enemy_heal=e_heal,
        major_count=majors,
        player_cards=tuple(player_cards),
        enemy_cards=tuple(enemy_cards),
        round_log=tuple(log),
    )


def simulate_game(seed: int) -> GameResult:
    """Reproduce the on-chain game for a validated uint256 seed."""
    player_cards, enemy_cards = draw_hands(seed)
    return simulate_cards(player_cards, enemy_cards)
