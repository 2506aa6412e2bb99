#!/usr/bin/env python3
"""
FATE'S ECHO — Core Rule Test Suite

Run: python tests.py
     python tests.py -v              # verbose
     python tests.py TestSeedDerivation

Test categories:
  TestCardSpace        — major/minor classification, effects, names, suit counters
  TestSeedDerivation   — keccak vectors, seed validation at every entry point, nonce layout
  TestRoundResolver    — clash, major vs minor, minor vs minor, non-negativity
  TestGameSimulator    — pinned games, clamping, heal after lethal damage, early finish,
                         mutual destruction
"""

import sys
import unittest
from pathlib import Path
from unittest.mock import patch

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from sim_engine.fate import cards
from sim_engine.fate.cards import (
    COUNTERS, DECK_SIZE, FULL_DECK, MAX_HP, EffectType, Suit,
    card_name, does_counter, get_card, is_major, major_effect, minor_rank, minor_suit,
)
from sim_engine.fate.combat import (
    RoundOutcome, resolve_major_clash, resolve_round, round_kind,
)
from sim_engine.fate.errors import HashMismatchError, InvalidCardError, InvalidSeedError
from sim_engine.fate.game import simulate_cards, simulate_game
from sim_engine.fate.seed import (
    UINT256_MAX, derive_card_id, draw_hands, keccak256, keccak_uint,
    parse_seed, trial_seed, verify_vectors,
)

# keccak256(abi.encodePacked(uint256(0)))
SEED_ZERO = 18569430475105882587588266137607568536673111973893317399460219858819262702947


# ============================================================
# Card Space
# ============================================================

class TestCardSpace(unittest.TestCase):

    def test_deck_partition(self):
        """22 majors, 56 minors, 14 ranks in each of 4 suits."""
        majors = [c for c in FULL_DECK if c.is_major]
        minors = [c for c in FULL_DECK if not c.is_major]
        self.assertEqual(len(FULL_DECK), DECK_SIZE)
        self.assertEqual(len(majors), 22)
        self.assertEqual(len(minors), 56)
        for suit in Suit:
            ranks = sorted(c.rank for c in minors if c.suit == suit)
            self.assertEqual(ranks, list(range(1, 15)))

    def test_major_effects(self):
        """effect type = id % 2, value = 5 + (id*3) % 16."""
        self.assertEqual(major_effect(0).effect_type, EffectType.DAMAGE)
        self.assertEqual(major_effect(0).value, 5)
        self.assertEqual(major_effect(5).effect_type, EffectType.HEAL)
        self.assertEqual(major_effect(5).value, 20)
        self.assertEqual(major_effect(10).value, 19)
        for i in range(22):
            self.assertTrue(5 <= major_effect(i).value <= 20)

    def test_minor_suit_and_rank(self):
        self.assertEqual((minor_suit(22), minor_rank(22)), (Suit.CUPS, 1))
        self.assertEqual((minor_suit(35), minor_rank(35)), (Suit.CUPS, 14))
        self.assertEqual((minor_suit(39), minor_rank(39)), (Suit.PENTACLES, 4))
        self.assertEqual((minor_suit(64), minor_rank(64)), (Suit.WANDS, 1))
        self.assertEqual((minor_suit(77), minor_rank(77)), (Suit.WANDS, 14))

    def test_card_names(self):
        self.assertEqual(card_name(0), "The Fool")
        self.assertEqual(card_name(21), "The World")
        self.assertEqual(card_name(22), "Ace of Cups")
        self.assertEqual(card_name(46), "Page of Pentacles")
        self.assertEqual(card_name(77), "King of Wands")

    def test_invalid_card_ids(self):
        for bad in (-1, 78, 1000, True, 3.0, "5"):
            with self.assertRaises(InvalidCardError):
                is_major(bad)
        with self.assertRaises(InvalidCardError):
            major_effect(22)
        with self.assertRaises(InvalidCardError):
            minor_rank(0)

    def test_counter_cycle_closure(self):
        """Exactly one directed 4-cycle; no suit counters itself."""
        for suit in Suit:
            beaten = [other for other in Suit if does_counter(suit, other)]
            self.assertEqual(len(beaten), 1)
            self.assertNotEqual(beaten[0], suit)
        self.assertTrue(does_counter(0, 3))
        self.assertTrue(does_counter(3, 2))
        self.assertTrue(does_counter(2, 1))
        self.assertTrue(does_counter(1, 0))

        visited = []
        suit = Suit.CUPS
        for _ in range(4):
            visited.append(suit)
            suit = COUNTERS[suit]
        self.assertEqual(suit, Suit.CUPS)
        self.assertEqual(sorted(visited), sorted(Suit))

    def test_card_to_dict(self):
        self.assertEqual(get_card(5).to_dict(),
                         {"id": 5, "name": "The Hierophant", "type": "major",
                          "effect": "heal", "value": 20})
        self.assertEqual(get_card(64).to_dict()["suit"], "Wands")


# ============================================================
# Seed Derivation
# ============================================================

class TestSeedDerivation(unittest.TestCase):

    def test_keccak_is_not_sha3(self):
        """Empty-input digest is the Keccak-256 one, not SHA3-256."""
        self.assertEqual(
            keccak256(b"").hex(),
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470",
        )

    def test_trial_seed_zero(self):
        self.assertEqual(trial_seed(0), SEED_ZERO)
        self.assertEqual(
            hex(trial_seed(0)),
            "0x290decd9548b62a8d60345a988386fc84ba6bc95484008f6362f93160ef3e563",
        )

    def test_pinned_card_vectors(self):
        self.assertEqual(derive_card_id(0, 0), 43)
        self.assertEqual(derive_card_id(0, 1), 9)
        self.assertEqual(derive_card_id(1, 1), 45)
        self.assertEqual(verify_vectors(), 3)

    def test_verify_vectors_reports_mismatch(self):
        with self.assertRaises(HashMismatchError) as ctx:
            verify_vectors([(0, 0, 43), (0, 1, 10)])
        self.assertEqual(ctx.exception.mismatches, [(0, 1, 10, 9)])

    def test_card_id_range(self):
        for seed in (0, 1, 2 ** 128, UINT256_MAX, SEED_ZERO):
            for nonce in range(12):
                self.assertIn(derive_card_id(seed, nonce), range(DECK_SIZE))

    def test_draw_hands_nonce_layout(self):
        """Player uses nonces 0,2,4,6,8; enemy 1,3,5,7,9."""
        player, enemy = draw_hands(SEED_ZERO)
        self.assertEqual(player, [5, 39, 7, 28, 20])
        self.assertEqual(enemy, [35, 28, 62, 64, 54])
        self.assertEqual(player[2], derive_card_id(SEED_ZERO, 4))
        self.assertEqual(enemy[2], derive_card_id(SEED_ZERO, 5))

    def test_keccak_uint_matches_packed_encoding(self):
        self.assertEqual(keccak_uint(0, 0) % 78, 43)
        self.assertEqual(keccak_uint(0), SEED_ZERO)

    def test_hash_entry_points_reject_bad_seeds(self):
        """Out-of-range or non-integer seeds raise InvalidSeedError, not OverflowError."""
        for bad in (-1, UINT256_MAX + 1, 1.5, True, "7"):
            with self.assertRaises(InvalidSeedError, msg=repr(bad)):
                simulate_game(bad)
            with self.assertRaises(InvalidSeedError, msg=repr(bad)):
                derive_card_id(bad, 0)
        with self.assertRaises(InvalidSeedError):
            derive_card_id(0, -5)
        with self.assertRaises(InvalidSeedError):
            trial_seed(-1)
        self.assertIn(derive_card_id(UINT256_MAX, UINT256_MAX), range(DECK_SIZE))

    def test_parse_seed_accepts(self):
        self.assertEqual(parse_seed(0), 0)
        self.assertEqual(parse_seed("42"), 42)
        self.assertEqual(parse_seed(" 42 "), 42)
        self.assertEqual(parse_seed("0x10"), 16)
        self.assertEqual(parse_seed("0XfF"), 255)
        self.assertEqual(parse_seed(str(UINT256_MAX)), UINT256_MAX)

    def test_parse_seed_rejects(self):
        for bad in (-1, "-5", "", "abc", "0x", "1.5", 1.5, True, None, [1], UINT256_MAX + 1):
            with self.assertRaises(InvalidSeedError, msg=repr(bad)):
                parse_seed(bad)


# ============================================================
# Round Resolver
# ============================================================

class TestRoundResolver(unittest.TestCase):

    def test_major_clash_is_hash_derived(self):
        self.assertEqual(resolve_major_clash(0, 21), RoundOutcome(9, 8, 0, 0))
        self.assertEqual(resolve_major_clash(5, 5), RoundOutcome(9, 6, 0, 0))
        self.assertEqual(resolve_round(19, 11), RoundOutcome(15, 12, 0, 0))
        h = keccak_uint(3, 7)
        self.assertEqual(resolve_round(3, 7),
                         RoundOutcome(5 + h % 11, 5 + (h >> 8) % 11, 0, 0))

    def test_player_major_heal_takes_retaliation(self):
        """The Hierophant heals 20; King of Cups retaliates 14 // 2."""
        self.assertEqual(resolve_round(5, 35), RoundOutcome(0, 7, 20, 0))

    def test_player_major_damage(self):
        self.assertEqual(resolve_round(10, 30), RoundOutcome(19, 4, 0, 0))

    def test_enemy_major_damage(self):
        self.assertEqual(resolve_round(30, 6), RoundOutcome(4, 7, 0, 0))

    def test_enemy_major_heal(self):
        self.assertEqual(resolve_round(22, 3), RoundOutcome(0, 0, 0, 14))

    def test_minor_counter_bonus(self):
        """Ace of Cups counters Ace of Wands: 1+3 vs 1 → 5 and 1."""
        self.assertEqual(resolve_round(22, 64), RoundOutcome(5, 1, 0, 0))
        self.assertEqual(resolve_round(64, 22), RoundOutcome(1, 5, 0, 0))

    def test_minor_counter_can_force_tie(self):
        """IV of Pentacles (+3) vs VII of Cups."""
        self.assertEqual(resolve_round(39, 28), RoundOutcome(2, 2, 0, 0))

    def test_minor_neutral_tie(self):
        self.assertEqual(resolve_round(22, 50), RoundOutcome(2, 2, 0, 0))

    def test_minor_plain_win(self):
        """King of Cups vs Ace of Swords: no counter, 14 - 1 + 2."""
        self.assertEqual(resolve_round(35, 50), RoundOutcome(15, 1, 0, 0))

    def test_round_kind(self):
        self.assertEqual(round_kind(0, 1), "clash")
        self.assertEqual(round_kind(0, 22), "major_minor")
        self.assertEqual(round_kind(22, 0), "minor_major")
        self.assertEqual(round_kind(22, 23), "minor")

    def test_non_negative_for_every_pair(self):
        for p in range(DECK_SIZE):
            for e in range(DECK_SIZE):
                out = resolve_round(p, e)
                self.assertGreaterEqual(min(out.player_damage, out.enemy_damage,
                                            out.player_heal, out.enemy_heal), 0)
                if p >= 22 and e >= 22:
                    self.assertGreaterEqual(max(out.player_damage, out.enemy_damage), 1)


# ============================================================
# Game Simulator
# ============================================================

class TestGameSimulator(unittest.TestCase):

    def test_pinned_game_seed_zero(self):
        result = simulate_game(SEED_ZERO)
        outcomes = [r.outcome for r in result.round_log]
        self.assertEqual(outcomes, [
            RoundOutcome(0, 7, 20, 0),
            RoundOutcome(2, 2, 0, 0),
            RoundOutcome(0, 6, 10, 0),
            RoundOutcome(11, 1, 0, 0),
            RoundOutcome(17, 2, 0, 0),
        ])
        self.assertEqual([(r.player_hp, r.enemy_hp) for r in result.round_log],
                         [(30, 30), (28, 28), (30, 28), (29, 17), (27, 0)])
        self.assertEqual((result.player_final_hp, result.enemy_final_hp), (27, 0))
        self.assertEqual(result.total_damage_dealt, 30)
        self.assertEqual(result.total_damage_taken, 18)
        self.assertEqual(result.total_player_heal, 30)
        self.assertEqual(result.total_enemy_heal, 0)
        self.assertEqual(result.major_count, 3)
        self.assertEqual(result.rounds, 5)
        self.assertFalse(result.early_finish)
        self.assertEqual(result.outcome, "win")

    def test_early_finish_stops_rounds(self):
        """Trial 1: player reaches 0 HP in round 3; rounds 4-5 never run."""
        result = simulate_game(trial_seed(1))
        self.assertEqual(result.player_cards, (25, 19, 36, 23, 38))
        self.assertEqual(result.rounds, 3)
        self.assertEqual(len(result.round_log), 3)
        self.assertTrue(result.early_finish)
        self.assertEqual((result.player_final_hp, result.enemy_final_hp), (0, 14))
        self.assertEqual(result.outcome, "lose")
        self.assertEqual(result.major_count, 3)

    def test_determinism(self):
        for i in range(20):
            seed = trial_seed(i)
            self.assertEqual(simulate_game(seed), simulate_game(seed))

    def test_hp_bounds_every_round(self):
        for i in range(300):
            result = simulate_game(trial_seed(i))
            for rec in result.round_log:
                self.assertTrue(0 <= rec.player_hp <= MAX_HP)
                self.assertTrue(0 <= rec.enemy_hp <= MAX_HP)

    def test_heal_clamps_at_max_hp(self):
        """30 - 7 + 20 clamps back to 30."""
        result = simulate_cards([5, 22, 22, 22, 22], [35, 50, 50, 50, 50])
        self.assertEqual(result.round_log[0].player_hp, MAX_HP)

    def test_heal_applies_after_lethal_damage(self):
        """Damage clamps to 0 first, then the same round's heal lands and play continues."""
        result = simulate_cards([22, 22, 1, 22, 22], [10, 0, 35, 50, 50])
        third = result.round_log[2]
        self.assertEqual(third.outcome, RoundOutcome(0, 7, 8, 0))
        self.assertEqual([(r.player_hp, r.enemy_hp) for r in result.round_log],
                         [(11, 30), (6, 30), (8, 30), (6, 28), (4, 26)])
        self.assertEqual(result.rounds, 5)
        self.assertFalse(result.early_finish)
        self.assertEqual(result.total_player_heal, 8)
        self.assertEqual(result.outcome, "lose")

    def test_mutual_destruction_is_draw(self):
        result = simulate_cards([10, 22, 12, 22, 22], [22, 10, 22, 12, 50])
        self.assertEqual([(r.player_hp, r.enemy_hp) for r in result.round_log],
                         [(30, 11), (11, 11), (11, 2), (2, 2), (0, 0)])
        self.assertTrue(result.is_draw)
        self.assertFalse(result.player_won)
        self.assertEqual(result.outcome, "draw")

    def test_all_major_game_skips_suit_logic(self):
        with patch("sim_engine.fate.combat.does_counter", wraps=cards.does_counter) as spy:
            result = simulate_cards([0, 1, 2, 3, 4], [21, 20, 19, 18, 17])
            spy.assert_not_called()
            self.assertTrue(all(r.kind == "clash" for r in result.round_log))
            for rec in result.round_log:
                self.assertTrue(0 <= rec.player_hp <= MAX_HP)
                self.assertTrue(0 <= rec.enemy_hp <= MAX_HP)
            simulate_cards([22] * 5, [64] * 5)
            self.assertTrue(spy.called)

    def test_rejects_bad_hands(self):
        with self.assertRaises(ValueError):
            simulate_cards([1, 2, 3], [4, 5, 6])
        with self.assertRaises(InvalidCardError):
            simulate_cards([1, 2, 3, 4, 78], [4, 5, 6, 7, 8])

    def test_to_dict(self):
        data = simulate_game(SEED_ZERO).to_dict()
        self.assertEqual(data["outcome"], "win")
        self.assertEqual(data["hp_diff"], 27)
        self.assertEqual(len(data["round_log"]), 5)
        self.assertEqual(data["round_log"][0]["kind"], "major_minor")


# ============================================================
# Main
# ============================================================

if __name__ == "__main__":
    import logging
    logging.disable(logging.WARNING)

    unittest.main(verbosity=2)
