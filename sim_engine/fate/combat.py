"""
FATE'S ECHO — Round Resolution

Pure combat rules for one round. Given the player's and the enemy's card,
returns how much damage each side deals and how much each side heals.

    Major  vs Major  → clash: damage re-derived from keccak256(pCard, eCard)
    Major  vs Minor  → major side attacks or heals; minor side retaliates rank // 2
    Minor  vs Minor  → rank + suit counter bonus; winner deals margin + 2, loser 1
"""

from __future__ import annotations

from dataclasses import dataclass

from sim_engine.fate.cards import (
    COUNTER_BONUS, EffectType, does_counter, is_major, major_effect,
    minor_rank, minor_suit,
)
from sim_engine.fate.seed import keccak_uint


@dataclass(frozen=True)
class RoundOutcome:
    """Damage and healing produced by one round.

    player_damage is dealt BY the player (taken off the enemy's HP) and
    enemy_damage is dealt by the enemy. Heals apply to the named side.
    """
    player_damage: int = 0
    enemy_damage: int = 0
    player_heal: int = 0
    enemy_heal: int = 0

    def to_dict(self) -> dict:
        return {
            "player_damage": self.player_damage,
            "enemy_damage": self.enemy_damage,
            "player_heal": self.player_heal,
            "enemy_heal": self.enemy_heal,
        }


def round_kind(player_card: int, enemy_card: int) -> str:
    p_major = is_major(player_card)
    e_major = is_major(enemy_card)
    if p_major and e_major:
        return "clash"
    if p_major:
        return "major_minor"
    if e_major:
        return "minor_major"
    return "minor"


def resolve_major_clash(player_card: int, enemy_card: int) -> RoundOutcome:
    h = keccak_uint(player_card, enemy_card)
    return RoundOutcome(
        player_damage=5 + h % 11,
        enemy_damage=5 + (h >> 8) % 11,
    )


def resolve_major_vs_minor(major_card: int, minor_card: int,
                           major_is_player: bool) -> RoundOutcome:
    effect = major_effect(major_card)
    retaliation = minor_rank(minor_card) // 2

    attack = effect.value if effect.effect_type == EffectType.DAMAGE else 0
    heal = effect.value if effect.effect_type == EffectType.HEAL else 0

    if major_is_player:
        return RoundOutcome(player_damage=attack, enemy_damage=retaliation, player_heal=heal)
    return RoundOutcome(player_damage=retaliation, enemy_damage=attack, enemy_heal=heal)


def resolve_minor_vs_minor(player_card: int, enemy_card: int) -> RoundOutcome:
    p_value = minor_rank(player_card)
    e_value = minor_rank(enemy_card)
    p_suit = minor_suit(player_card)
    e_suit = minor_suit(enemy_card)

    if does_counter(p_suit, e_suit):
        p_value += COUNTER_BONUS
    if does_counter(e_suit, p_suit):
        e_value += COUNTER_BONUS

    if p_value > e_value:
        return RoundOutcome(player_damage=p_value - e_value + 2, enemy_damage=1)
    if e_value > p_value:
        return RoundOutcome(player_damage=1, enemy_damage=e_value - p_value + 2)
    return RoundOutcome(player_damage=2, enemy_damage=2)


def resolve_round(player_card: int, enemy_card: int) -> RoundOutcome:
    kind = round_kind(player_card, enemy_card)
    if kind == "clash":
        return resolve_major_clash(player_card, enemy_card)
    if kind == "major_minor":
        return resolve_major_vs_minor(player_card, enemy_card, major_is_player=True)
    if kind == "minor_major":
        return resolve_major_vs_minor(enemy_card, player_card, major_is_player=False)
    return resolve_minor_vs_minor(player_card, enemy_card)
