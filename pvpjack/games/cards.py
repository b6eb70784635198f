import random
from typing import List, Optional, Sequence

from ..schemas import Card, Suit

RANKS = ["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]
SUITS = [Suit.HEARTS, Suit.DIAMONDS, Suit.CLUBS, Suit.SPADES]

SHOE_DECKS = 2
MAX_CARDS = 5

SUIT_SYMBOLS = {Suit.HEARTS: "♥", Suit.DIAMONDS: "♦", Suit.CLUBS: "♣", Suit.SPADES: "♠"}


def create_deck(n_decks: int = SHOE_DECKS, rng: Optional[random.Random] = None) -> List[Card]:
    """Shuffled shoe of n_decks standard 52-card sets. Deal with ``pop()``."""
    cards = []
    for _ in range(n_decks):
        cards.extend(Card(suit=s, rank=r) for s in SUITS for r in RANKS)
    return shuffle(cards, rng)


def shuffle(cards: Sequence[Card], rng: Optional[random.Random] = None) -> List[Card]:
    # random.shuffle is an in-place Fisher-Yates; shuffle a copy
    out = list(cards)
    (rng or random).shuffle(out)
    return out


def rank_value(rank: str) -> int:
    if rank == "A":
        return 11
    if rank in ("K", "Q", "J", "10"):
        return 10
    return int(rank)


def hand_value(cards: Sequence[Card]) -> int:
    total = 0
    aces = 0
    for c in cards:
        total += rank_value(c.rank)
        if c.rank == "A":
            aces += 1
    while total > 21 and aces:
        total -= 10
        aces -= 1
    return total


def is_blackjack(cards: Sequence[Card]) -> bool:
    return len(cards) == 2 and hand_value(cards) == 21


def is_five_card_charlie(cards: Sequence[Card]) -> bool:
    return len(cards) == MAX_CARDS and hand_value(cards) <= 21


def effective_hand_value(cards: Sequence[Card]) -> int:
    """Ranking value: a five-card charlie counts as 21."""
    if is_five_card_charlie(cards):
        return 21
    return hand_value(cards)


def card_label(card: Card) -> str:
    return f"{card.rank}{SUIT_SYMBOLS[card.suit]}"

