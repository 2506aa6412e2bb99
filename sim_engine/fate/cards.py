"""
FATE'S ECHO — Card Space

Static knowledge of the 78-card tarot deck used by the game contract.

    id  0 – 21   Major Arcana   effect_type = id % 2, value = 5 + (id*3) % 16
    id 22 – 77   Minor Arcana   suit = (id-22) // 14, rank = (id-22) % 14 + 1

Everything here is a pure function of the card id. The effect table is a
flat tuple indexed by arcana id, mirroring the contract's arithmetic.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from sim_engine.fate.errors import InvalidCardError


# ═══════════════════════════════════════════════════════════════
# Rule Constants (fixed by the deployed contract)
# ═══════════════════════════════════════════════════════════════

DECK_SIZE = 78
MAJOR_COUNT = 22
RANKS_PER_SUIT = 14

MAX_HP = 30
TOTAL_ROUNDS = 5
COUNTER_BONUS = 3


# ═══════════════════════════════════════════════════════════════
# Enums & Records
# ═══════════════════════════════════════════════════════════════

class EffectType(IntEnum):
    DAMAGE = 0
    HEAL = 1


class Suit(IntEnum):
    CUPS = 0
    PENTACLES = 1
    SWORDS = 2
    WANDS = 3


@dataclass(frozen=True)
class MajorEffect:
    effect_type: EffectType
    value: int


@dataclass(frozen=True)
class Card:
    id: int
    name: str
    effect: Optional[MajorEffect] = None   # majors only
    suit: Optional[Suit] = None            # minors only
    rank: Optional[int] = None             # minors only, 1-14

    @property
    def is_major(self) -> bool:
        return self.effect is not None

    def to_dict(self) -> dict:
        data = {"id": self.id, "name": self.name, "type": "major" if self.is_major else "minor"}
        if self.is_major:
            data["effect"] = self.effect.effect_type.name.lower()
            data["value"] = self.effect.value
        else:
            data["suit"] = self.suit.name.title()
            data["rank"] = self.rank
        return data


# ═══════════════════════════════════════════════════════════════
# Lookup Tables
# ═══════════════════════════════════════════════════════════════

MAJOR_EFFECTS: tuple[MajorEffect, ...] = tuple(
    MajorEffect(EffectType(i % 2), 5 + (i * 3) % 16) for i in range(MAJOR_COUNT)
)

# suit i counters suit (i + 3) % 4: Cups > Wands > Swords > Pentacles > Cups
COUNTERS: dict[Suit, Suit] = {s: Suit((s + 3) % 4) for s in Suit}

MAJOR_NAMES = (
    "The Fool", "The Magician", "The High Priestess", "The Empress",
    "The Emperor", "The Hierophant", "The Lovers", "The Chariot",
    "Strength", "The Hermit", "Wheel of Fortune", "Justice",
    "The Hanged Man", "Death", "Temperance", "The Devil",
    "The Tower", "The Star", "The Moon", "The Sun",
    "Judgement", "The World",
)

RANK_NAMES = {
    1: "Ace", 2: "II", 3: "III", 4: "IV", 5: "V", 6: "VI", 7: "VII",
    8: "VIII", 9: "IX", 10: "X", 11: "Page", 12: "Knight", 13: "Queen", 14: "King",
}


# ═══════════════════════════════════════════════════════════════
# Classification
# ═══════════════════════════════════════════════════════════════

def check_card_id(card_id: int) -> int:
    if isinstance(card_id, bool) or not isinstance(card_id, int) or not 0 <= card_id < DECK_SIZE:
        raise InvalidCardError(card_id)
    return card_id


def is_major(card_id: int) -> bool:
    return check_card_id(card_id) < MAJOR_COUNT


def major_effect(card_id: int) -> MajorEffect:
    if not is_major(card_id):
        raise InvalidCardError(card_id)
    return MAJOR_EFFECTS[card_id]


def minor_suit(card_id: int) -> Suit:
    if is_major(card_id):
        raise InvalidCardError(card_id)
    return Suit((card_id - MAJOR_COUNT) // RANKS_PER_SUIT)


def minor_rank(card_id: int) -> int:
    if is_major(card_id):
        raise InvalidCardError(card_id)
    return (card_id - MAJOR_COUNT) % RANKS_PER_SUIT + 1


def does_counter(attacker: Suit, defender: Suit) -> bool:
    """True when `attacker` earns the counter bonus against `defender`."""
    return COUNTERS[Suit(attacker)] == defender


def card_name(card_id: int) -> str:
    if is_major(card_id):
        return MAJOR_NAMES[card_id]
    return f"{RANK_NAMES[minor_rank(card_id)]} of {minor_suit(card_id).name.title()}"


def get_card(card_id: int) -> Card:
    if is_major(card_id):
        return Card(id=card_id, name=card_name(card_id), effect=MAJOR_EFFECTS[card_id])
    return Card(
        id=card_id,
        name=card_name(card_id),
        suit=minor_suit(card_id),
        rank=minor_rank(card_id),
    )


FULL_DECK: tuple[Card, ...] = tuple(get_card(i) for i in range(DECK_SIZE))
