"""
Turn advancement and round settlement.

Winner precedence: natural blackjack > effective 21 (five-card charlie or a
21 total) > lower totals. Winners split the losers' bets with floor
division; the remainder goes to nobody.
"""
import dataclasses
from typing import Dict, List, Optional, Sequence

from ..schemas import Room, PlayerInGame, User, GameStatus, PlayerStatus, TERMINAL_STATUSES
from .cards import card_label, effective_hand_value, is_blackjack, is_five_card_charlie
from .room_state import first_playable_index, transition, touch


@dataclasses.dataclass
class Settlement:
    winners: List[str]
    losers_pot: int
    winner_share: int
    remainder: int
    # user_id -> nominal balance change; losers are floored at 0 when applied
    deltas: Dict[str, int] = dataclasses.field(default_factory=dict)


def advance_turn(room: Room) -> Room:
    """Move to the next seat still playing. Past the end means the round is over."""
    room = room.model_copy(deep=True)
    room.current_turn_index = first_playable_index(room, room.current_turn_index + 1)
    if not round_over(room):
        touch(room, f"{room.players[room.current_turn_index].username} is playing...")
    return room


def round_over(room: Room) -> bool:
    return room.current_turn_index >= len(room.players)


def current_is_done(room: Room) -> bool:
    """True when the seat holding the turn has finished and the turn should move on."""
    if room.game_status != GameStatus.PLAYING:
        return False
    if round_over(room):
        return True
    return room.players[room.current_turn_index].status in TERMINAL_STATUSES


def determine_winners(players: Sequence[PlayerInGame]) -> List[str]:
    active = [p for p in players if p.status != PlayerStatus.BUST]
    if not active:
        return []
    naturals = [p.user_id for p in active if is_blackjack(p.hand)]
    if naturals:
        return naturals
    best = max(effective_hand_value(p.hand) for p in active)
    return [p.user_id for p in active if effective_hand_value(p.hand) == best]


def settle(players: Sequence[PlayerInGame], winners: Sequence[str]) -> Settlement:
    losers = [p for p in players if p.user_id not in winners]
    losers_pot = sum(p.bet for p in losers)
    if not winners:
        return Settlement(winners=[], losers_pot=losers_pot, winner_share=0, remainder=0)
    share = losers_pot // len(winners)
    s = Settlement(
        winners=list(winners),
        losers_pot=losers_pot,
        winner_share=share,
        remainder=losers_pot - share * len(winners),
    )
    for p in players:
        s.deltas[p.user_id] = share if p.user_id in winners else -p.bet
    return s


def apply_settlement(users: List[User], settlement: Settlement) -> List[User]:
    """New ledger with round results applied; balances never go below 0."""
    out = []
    for u in users:
        delta = settlement.deltas.get(u.id)
        if delta is None:
            out.append(u)
            continue
        out.append(u.model_copy(update={"balance": max(0, u.balance + delta)}))
    return out


def finish_round(room: Room, settlement: Settlement) -> Room:
    room = room.model_copy(deep=True)
    transition(room, GameStatus.ROUND_END)
    room.winners = list(settlement.winners)
    return touch(room, round_message(room.players, settlement.winners))


def round_message(players: Sequence[PlayerInGame], winners: Sequence[str]) -> str:
    if not winners:
        return "Everyone busted! Bets returned."
    by_id = {p.user_id: p for p in players}
    if len(winners) == 1:
        w = by_id[winners[0]]
        label = ""
        if is_blackjack(w.hand):
            label = " - BLACKJACK!"
        elif is_five_card_charlie(w.hand):
            label = " - FIVE CARDS!"
        return f"{w.username} wins! ({effective_hand_value(w.hand)}{label})"
    return "Tie: " + ", ".join(by_id[w].username for w in winners)


def notification_text(room: Room, settlement: Settlement) -> str:
    lines = [f"🎰 <b>Round #{room.round_number} - {room.name}</b>", ""]
    if not settlement.winners:
        lines.append("💥 Everyone busted. No balance changes.")
    for p in room.players:
        won = p.user_id in settlement.winners
        delta: Optional[int] = settlement.deltas.get(p.user_id)
        change = "0" if delta is None else (f"+{delta}" if delta >= 0 else str(delta))
        tag = " [5KC]" if is_five_card_charlie(p.hand) else ""
        icon = "🏆" if won else "❌"
        cards = " ".join(card_label(c) for c in p.hand)
        lines.append(f"{icon} {p.username}: {effective_hand_value(p.hand)}{tag} ({change} coin) | {cards}")
    if settlement.remainder:
        lines.append(f"Unsplit remainder: {settlement.remainder}")
    return "\n".join(lines)
