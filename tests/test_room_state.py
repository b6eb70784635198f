import pytest

from pvpjack.exceptions import InvalidBet, InsufficientBalance, InvalidStateTransition
from pvpjack.games import room_state
from pvpjack.games.settlement import determine_winners, round_over
from pvpjack.schemas import GameStatus, PlayerStatus, Spectator

from helpers import card, hand, player, make_room, StackedShuffle


def betting_room(*ids, bets=None):
    players = [player(uid, status=PlayerStatus.READY if bets else PlayerStatus.WAITING,
                      bet=(bets or {}).get(uid, 0)) for uid in ids]
    return make_room(*players, status=GameStatus.BETTING)


def test_new_room_seats_only_the_creator():
    room = room_state.new_room("u1", "alice", "Table", is_private=False, code="ignored")
    assert room.game_status == GameStatus.WAITING
    assert [p.user_id for p in room.players] == ["u1"]
    assert room.code == ""
    assert room.max_players == room_state.MAX_PLAYERS
    assert room.min_bet == room_state.DEFAULT_MIN_BET
    assert room.last_update > 0


def test_private_room_keeps_its_code():
    room = room_state.new_room("u1", "alice", "Secret", is_private=True, code="Abc1")
    assert room.is_private and room.code == "Abc1"


def test_transition_rejects_illegal_moves():
    room = make_room(player("u1"), player("u2"), status=GameStatus.WAITING)
    with pytest.raises(InvalidStateTransition):
        room_state.transition(room, GameStatus.PLAYING)
    assert room_state.can_transition(GameStatus.ROUND_END, GameStatus.BETTING)
    assert not room_state.can_transition(GameStatus.WAITING, GameStatus.ROUND_END)


def test_start_game_needs_the_driver_and_two_players():
    room = make_room(player("u1", status=PlayerStatus.WAITING), status=GameStatus.WAITING)
    assert room_state.start_game(room, "u1") is None

    room = make_room(player("u1", status=PlayerStatus.WAITING), player("u2", status=PlayerStatus.WAITING),
                     status=GameStatus.WAITING)
    assert room_state.start_game(room, "u2") is None
    started = room_state.start_game(room, "u1")
    assert started.game_status == GameStatus.BETTING
    assert started.message == "Place your bets!"
    assert room.game_status == GameStatus.WAITING


def test_first_seat_drives_when_creator_left():
    room = make_room(player("u2"), player("u3"), status=GameStatus.WAITING)
    room.creator_id = "u1"
    assert room_state.driver_id(room) == "u2"


def test_place_bet_marks_player_ready():
    room = betting_room("u1", "u2")
    updated = room_state.place_bet(room, "u1", 50, balance=1000)
    assert updated.players[0].status == PlayerStatus.READY
    assert updated.players[0].bet == 50
    assert updated.pot == 50
    assert not room_state.all_ready(updated)


def test_place_bet_validates_amount():
    room = betting_room("u1", "u2")
    with pytest.raises(InvalidBet):
        room_state.place_bet(room, "u1", 5, balance=1000)
    with pytest.raises(InsufficientBalance):
        room_state.place_bet(room, "u1", 500, balance=100)


def test_place_bet_outside_betting_is_stale():
    room = make_room(player("u1"), player("u2"))
    assert room_state.place_bet(room, "u1", 50, balance=1000) is None
    assert room_state.place_bet(betting_room("u1", "u2"), "stranger", 50, balance=1000) is None


def test_deal_gives_two_cards_each_and_starts_play():
    room = betting_room("u1", "u2", bets={"u1": 100, "u2": 50})
    rng = StackedShuffle(card("10"), card("7"), card("10", "hearts"), card("8", "hearts"))
    dealt = room_state.deal(room, rng)
    assert dealt.game_status == GameStatus.PLAYING
    assert dealt.players[0].hand == [card("10"), card("7")]
    assert dealt.players[1].hand == [card("10", "hearts"), card("8", "hearts")]
    assert all(p.status == PlayerStatus.PLAYING for p in dealt.players)
    assert dealt.current_turn_index == 0
    assert dealt.round_number == 1
    assert dealt.pot == 150
    assert len(dealt.deck) == 100


def test_deal_requires_everyone_ready():
    room = betting_room("u1", "u2")
    assert room_state.deal(room) is None


def test_natural_on_the_deal_ends_the_round():
    room = betting_room("u1", "u2", bets={"u1": 100, "u2": 100})
    rng = StackedShuffle(card("A"), card("K", "hearts"), card("9", "diamonds"), card("9", "clubs"))
    dealt = room_state.deal(room, rng)
    assert dealt.players[0].status == PlayerStatus.BLACKJACK
    assert dealt.players[1].status == PlayerStatus.STAND
    assert round_over(dealt)
    assert room_state.current_player(dealt) is None
    assert determine_winners(dealt.players) == ["u1"]


def test_hit_out_of_turn_is_a_silent_no_op():
    room = make_room(player("u1", ["K", "5"]), player("u2", ["9", "7"]), deck=hand("3"))
    assert room_state.hit(room, "u2") is None
    assert room.players[1].hand == hand("9", "7")
    assert len(room.deck) == 1


def test_hit_busts_over_21():
    room = make_room(player("u1", ["K", "Q"]), player("u2", ["9", "7"]), deck=hand("5"))
    after = room_state.hit(room, "u1")
    assert after.players[0].status == PlayerStatus.BUST
    assert after.deck == []


def test_hit_to_21_stands_automatically():
    room = make_room(player("u1", ["9", "2"]), player("u2", ["9", "7"]), deck=hand("K"))
    assert room_state.hit(room, "u1").players[0].status == PlayerStatus.STAND


def test_fifth_card_under_21_is_a_charlie():
    room = make_room(player("u1", ["2", "3", "4", "5"]), player("u2", ["9", "7"]), deck=hand("6"))
    assert room_state.hit(room, "u1").players[0].status == PlayerStatus.FIVECARD


def test_hit_on_a_finished_hand_is_rejected():
    room = make_room(player("u1", ["2", "3", "4", "5", "6"], status=PlayerStatus.FIVECARD),
                     player("u2", ["9", "7"]), deck=hand("6"))
    assert room_state.hit(room, "u1") is None


def test_stand_only_on_own_turn():
    room = make_room(player("u1", ["K", "7"]), player("u2", ["9", "7"]))
    assert room_state.stand(room, "u2") is None
    after = room_state.stand(room, "u1")
    assert after.players[0].status == PlayerStatus.STAND
    assert room_state.fingerprint(after) != room_state.fingerprint(room)


def test_leaving_down_to_one_player_reverts_to_waiting():
    room = make_room(player("u1", ["K", "7"]), player("u2", ["9", "7"]), deck=hand("2", "3"))
    after = room_state.unseat(room, "u2")
    assert after.game_status == GameStatus.WAITING
    assert [p.user_id for p in after.players] == ["u1"]
    assert after.players[0].hand == []
    assert after.players[0].bet == 0
    assert after.players[0].status == PlayerStatus.WAITING
    assert after.pot == 0 and after.deck == []


def test_last_player_leaving_empties_the_room():
    room = make_room(player("u1"), status=GameStatus.WAITING)
    assert room_state.unseat(room, "u1") is None


def test_leaving_before_the_current_seat_keeps_the_same_player_on_turn():
    room = make_room(player("u1", ["K", "7"], status=PlayerStatus.STAND),
                     player("u2", ["9", "7"]), player("u3", ["9", "5"]), turn=1)
    after = room_state.unseat(room, "u1")
    assert room_state.current_player(after).user_id == "u2"


def test_current_player_leaving_passes_the_turn_on():
    room = make_room(player("u1", ["K", "7"], status=PlayerStatus.STAND),
                     player("u2", ["9", "7"]), player("u3", ["9", "5"]), turn=1)
    after = room_state.unseat(room, "u2")
    assert room_state.current_player(after).user_id == "u3"
    assert after.pot == 200


def test_seating_a_spectator_removes_them_from_the_gallery():
    room = make_room(player("u1"), status=GameStatus.WAITING)
    room.spectators = [Spectator(user_id="boss", username="boss")]
    seated = room_state.seat_player(room, "boss", "boss")
    assert not seated.is_spectator("boss")
    assert seated.player("boss") is not None
