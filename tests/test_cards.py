import random
from collections import Counter

from pvpjack.games.cards import (
    create_deck, hand_value, is_blackjack, is_five_card_charlie, effective_hand_value,
    card_label, shuffle,
)

from helpers import card, hand


def test_hand_value_counts_faces_as_ten():
    assert hand_value(hand("K", "Q")) == 20
    assert hand_value(hand("10", "J", "2")) == 22


def test_aces_drop_to_one_only_when_needed():
    assert hand_value(hand("A", "9")) == 20
    assert hand_value(hand("A", "A")) == 12
    assert hand_value(hand("A", "A", "9")) == 21
    assert hand_value(hand("A", "5", "A", "5")) == 12
    assert hand_value(hand("A", "K", "Q")) == 21


def test_empty_hand_is_zero():
    assert hand_value([]) == 0


def test_blackjack_needs_exactly_two_cards():
    assert is_blackjack(hand("A", "K"))
    assert is_blackjack(hand("10", "A"))
    assert not is_blackjack(hand("7", "7", "7"))
    assert not is_blackjack(hand("K", "Q"))


def test_five_card_charlie():
    charlie = hand("2", "3", "4", "5", "6")
    assert is_five_card_charlie(charlie)
    assert hand_value(charlie) == 20
    assert effective_hand_value(charlie) == 21

    busted = hand("2", "3", "4", "5", "K")
    assert not is_five_card_charlie(busted)
    assert effective_hand_value(busted) == 24

    assert not is_five_card_charlie(hand("2", "3", "4", "5"))
    assert effective_hand_value(hand("K", "9")) == 19


def test_two_deck_shoe_holds_every_card_twice():
    deck = create_deck(2)
    assert len(deck) == 104
    counts = Counter((c.suit, c.rank) for c in deck)
    assert len(counts) == 52
    assert set(counts.values()) == {2}


def test_create_deck_is_reproducible_with_a_seeded_rng():
    a = create_deck(2, random.Random(7))
    b = create_deck(2, random.Random(7))
    assert a == b
    assert a != create_deck(2, random.Random(8))


def test_shuffle_returns_a_permutation_and_leaves_input_alone():
    cards = hand("A", "2", "3", "4", "5")
    out = shuffle(cards, random.Random(1))
    assert sorted(c.rank for c in out) == sorted(c.rank for c in cards)
    assert [c.rank for c in cards] == ["A", "2", "3", "4", "5"]


def test_card_label():
    assert card_label(card("10", "hearts")) == "10♥"
    assert card_label(card("A", "spades")) == "A♠"
