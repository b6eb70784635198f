from pvpjack.schemas import GameStatus, TelegramConfig
from pvpjack.store import ROOMS_KEY, USERS_KEY

from helpers import player, make_room, make_user


def test_load_falls_back_when_key_is_missing(store):
    assert store.load("nothing", []) == []
    store.save("prefs", {"a": 1})
    assert store.load("prefs", None) == {"a": 1}


def test_rooms_are_stored_with_camel_case_keys(repo, store):
    repo.add_room(make_room(player("u1"), player("u2")))
    raw = store.load(ROOMS_KEY)
    assert raw[0]["creatorId"] == "u1"
    assert raw[0]["gameStatus"] == "playing"
    assert repo.room("r1").players[1].user_id == "u2"


def test_put_room_does_not_resurrect_a_deleted_room(repo):
    room = make_room(player("u1"), player("u2"))
    repo.add_room(room)
    assert repo.delete_room("r1")
    assert not repo.delete_room("r1")
    assert not repo.put_room(room)
    assert repo.rooms() == []


def test_put_room_replaces_by_id(repo):
    repo.add_room(make_room(player("u1"), room_id="a"))
    repo.add_room(make_room(player("u2"), room_id="b"))
    changed = repo.room("b").model_copy(update={"message": "hello"})
    assert repo.put_room(changed)
    assert [r.id for r in repo.rooms()] == ["a", "b"]
    assert repo.room("b").message == "hello"


def test_put_user_upserts(repo):
    repo.put_user(make_user("u1", 100))
    repo.put_user(make_user("u1", 250))
    repo.put_user(make_user("u2", 10))
    assert [(u.id, u.balance) for u in repo.users()] == [("u1", 250), ("u2", 10)]


def test_commit_settlement_writes_users_and_room_together(repo, store):
    repo.add_room(make_room(player("u1"), player("u2")))
    seen = []
    store.subscribe(lambda change: seen.append(change.key))

    settled = repo.room("r1").model_copy(update={"game_status": GameStatus.ROUND_END})
    assert repo.commit_settlement(settled, [make_user("u1", 1100), make_user("u2", 900)])
    assert repo.room("r1").game_status == GameStatus.ROUND_END
    assert repo.user("u2").balance == 900
    assert sorted(seen) == [ROOMS_KEY, USERS_KEY]


def test_commit_settlement_skips_a_vanished_room(repo):
    repo.put_user(make_user("u1", 500))
    room = make_room(player("u1"), player("u2"))
    assert not repo.commit_settlement(room, [make_user("u1", 9999)])
    assert repo.user("u1").balance == 500


def test_malformed_blobs_fall_back_to_empty(repo, store):
    store.save(ROOMS_KEY, "not a list")
    assert repo.rooms() == []
    store.save(USERS_KEY, [{"username": "missing id"}])
    assert repo.users() == []
    store.save("telegramConfig", ["wrong", "shape"])
    assert repo.telegram_config() == TelegramConfig()


def test_subscribers_hear_every_write_until_they_unsubscribe(store):
    seen = []
    unsubscribe = store.subscribe(lambda change: seen.append((change.key, change.value)))
    store.save("k", 1)
    unsubscribe()
    store.save("k", 2)
    assert seen == [("k", 1)]


def test_a_failing_listener_does_not_break_writes(store):
    def boom(change):
        raise RuntimeError("listener bug")
    seen = []
    store.subscribe(boom)
    store.subscribe(lambda change: seen.append(change.key))
    store.save("k", 1)
    assert store.load("k") == 1
    assert seen == ["k"]


def test_telegram_config_round_trip(repo, store):
    assert repo.telegram_config() == TelegramConfig()
    repo.set_telegram_config(TelegramConfig(bot_token="123:abc", chat_id="-100"))
    assert store.load("telegramConfig") == {"botToken": "123:abc", "chatId": "-100"}
    assert repo.telegram_config().chat_id == "-100"
