import threading

import pytest

from sketchparty.game.errors import ConflictError, ValidationError


@pytest.fixture()
def playing(service, lobby):
    service.start_game(lobby["room_id"], lobby["host_id"])
    return lobby


def test_correct_guess_ignores_case_and_whitespace(service, playing, word_of, state_of):
    room_id = playing["room_id"]
    word = word_of(room_id)

    result = service.submit_guess(room_id, playing["guest_id"], f"  {word.upper()} ")
    assert result["accepted"] is True
    assert result["isCorrect"] is True
    assert result["pointsAwarded"] == 10
    assert result["guess"]["text"] == word.upper()

    room = state_of(room_id)
    scores = {p["id"]: p["score"] for p in room["players"]}
    assert scores == {playing["host_id"]: 0, playing["guest_id"]: 10}
    assert room["roundNumber"] == 2
    assert room["currentPlayerId"] == playing["guest_id"]


def test_wrong_guess_is_recorded_without_points(service, playing, state_of):
    room_id = playing["room_id"]
    result = service.submit_guess(room_id, playing["guest_id"], "definitely not it")
    assert result["isCorrect"] is False
    assert result["pointsAwarded"] == 0

    state = service.get_state(room_id, viewer_id=playing["host_id"])
    assert [g["text"] for g in state["guesses"]] == ["definitely not it"]
    assert state["room"]["roundNumber"] == 1
    assert all(p["score"] == 0 for p in state_of(room_id)["players"])


def test_drawer_cannot_guess(service, playing, word_of):
    room_id = playing["room_id"]
    with pytest.raises(ConflictError) as exc:
        service.submit_guess(room_id, playing["host_id"], word_of(room_id))
    assert exc.value.code == "is_drawer"
    assert service.get_state(room_id)["guesses"] == []


@pytest.mark.parametrize("text", ["", "   ", None, 42, "x" * 101])
def test_invalid_guess_text(service, playing, text):
    with pytest.raises(ValidationError):
        service.submit_guess(playing["room_id"], playing["guest_id"], text)
    assert service.get_state(playing["room_id"])["guesses"] == []


def test_guess_in_lobby_is_rejected(service, lobby):
    with pytest.raises(ConflictError) as exc:
        service.submit_guess(lobby["room_id"], lobby["guest_id"], "cat")
    assert exc.value.code == "room_not_active"


def test_guess_after_game_ended_is_rejected(service, playing):
    service.end_game(playing["room_id"], playing["host_id"])
    with pytest.raises(ConflictError) as exc:
        service.submit_guess(playing["room_id"], playing["guest_id"], "cat")
    assert exc.value.code == "room_not_active"


def test_concurrent_correct_guesses_score_once(make_service, word_of):
    service = make_service()
    created = service.create_room("Alice", max_rounds=1)
    room_id, host = created["roomId"], created["playerId"]
    guests = [service.join_room(room_id, f"Guest {i}")["playerId"] for i in range(4)]
    service.start_game(room_id, host)
    word = service.registry.get_room(room_id).snapshot.word

    barrier = threading.Barrier(len(guests))
    awarded = []
    rejected = []

    def _guess(player_id):
        barrier.wait()
        try:
            awarded.append(service.submit_guess(room_id, player_id, word)["pointsAwarded"])
        except ConflictError as exc:
            rejected.append(exc.code)

    threads = [threading.Thread(target=_guess, args=(pid,)) for pid in guests]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert awarded == [10]
    assert rejected == ["room_not_active"] * 3
    room = service.get_state(room_id)["room"]
    assert room["state"] == "game_ended"
    assert sum(p["score"] for p in room["players"]) == 10


def test_correct_guess_text_hidden_from_others(service, playing, recorder, word_of):
    room_id = playing["room_id"]
    word = word_of(room_id)
    recorder.clear()
    service.submit_guess(room_id, playing["guest_id"], word)

    [to_host] = recorder.payloads("guess:submitted", sid="sid-host")
    [to_guest] = recorder.payloads("guess:submitted", sid="sid-guest")
    assert to_host["guess"]["isCorrect"] is True
    assert to_host["guess"]["text"] is None
    assert to_guest["guess"]["text"] == word
    assert to_host["player"]["score"] == 10

    # Once the round is over the word is no secret.
    [history] = service.get_state(room_id, viewer_id=playing["host_id"])["guesses"]
    assert history["text"] == word


def test_guess_event_precedes_round_transition(service, playing, recorder, word_of):
    recorder.clear()
    service.submit_guess(playing["room_id"], playing["guest_id"], word_of(playing["room_id"]))
    assert recorder.events("sid-host") == [
        "guess:submitted",
        "round:ended",
        "strokes:cleared",
        "room:updated",
    ]
    [ended] = recorder.payloads("round:ended", sid="sid-host")
    assert ended["reason"] == "guessed"


def test_two_round_game_scenario(make_service, clock):
    service = make_service()
    created = service.create_room("Alice", max_rounds=2, time_per_round=1)
    room_id, alice = created["roomId"], created["playerId"]
    with pytest.raises(ConflictError) as exc:
        service.start_game(room_id, alice)
    assert exc.value.code == "not_enough_players"

    bob = service.join_room(room_id, "Bob")["playerId"]
    service.start_game(room_id, alice)
    first = service.get_state(room_id, viewer_id=alice)["room"]
    assert first["currentPlayerId"] == alice
    assert first["word"]

    service.submit_guess(room_id, bob, first["word"])
    second = service.get_state(room_id, viewer_id=bob)["room"]
    assert second["roundNumber"] == 2
    assert second["currentPlayerId"] == bob
    assert second["word"] != first["word"]

    clock.advance(1)
    service.tick()
    final = service.get_state(room_id)["room"]
    assert final["state"] == "game_ended"
    assert final["isActive"] is False
    assert final["roundNumber"] == 2
    assert {p["name"]: p["score"] for p in final["players"]} == {"Alice": 0, "Bob": 10}
