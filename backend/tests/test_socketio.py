import pytest


@pytest.fixture()
def sio(socketio_app):
    app, socketio = socketio_app

    def _connect():
        return socketio.test_client(app, flask_test_client=app.test_client())

    return _connect


def _received(client, name):
    return [msg["args"][0] for msg in client.get_received() if msg["name"] == name]


def _room(host, guest):
    created = host.emit("room:create", {"hostName": "Alice"}, callback=True)
    joined = guest.emit("room:join", {"roomId": created["roomId"], "playerName": "Bob"}, callback=True)
    return created, joined


def test_create_room_acks_and_syncs(sio):
    host = sio()
    ack = host.emit("room:create", {"hostName": "Alice", "maxRounds": 2}, callback=True)
    assert ack["ok"] is True
    assert ack["room"]["maxRounds"] == 2

    [sync] = _received(host, "room:sync")
    assert sync["roomId"] == ack["roomId"]
    assert sync["room"]["hostId"] == ack["playerId"]
    assert sync["strokes"] == []


def test_invalid_request_acks_error(sio):
    host = sio()
    ack = host.emit("room:create", {"hostName": ""}, callback=True)
    assert ack == {"ok": False, "error": "invalid_name", "message": ack["message"]}
    [err] = _received(host, "room:error")
    assert err["error"] == "invalid_name"

    ack = host.emit("room:join", {"playerName": "Bob"}, callback=True)
    assert ack["error"] == "invalid_room"


def test_join_notifies_host(sio):
    host, guest = sio(), sio()
    created, joined = _room(host, guest)
    assert joined["ok"] is True
    assert joined["roomId"] == created["roomId"]

    [event] = _received(host, "player:joined")
    assert event["player"]["id"] == joined["playerId"]
    assert event["roomId"] == created["roomId"]


def test_word_reaches_only_the_drawer(sio):
    host, guest = sio(), sio()
    created, _ = _room(host, guest)
    host.get_received()
    guest.get_received()

    ack = host.emit("game:start", {"roomId": created["roomId"]}, callback=True)
    assert ack["ok"] is True
    word = ack["room"]["word"]

    [host_update] = _received(host, "room:updated")
    [guest_update] = _received(guest, "room:updated")
    assert host_update["room"]["word"] == word
    assert "word" not in guest_update["room"]
    assert guest_update["room"]["state"] == "round_active"


def test_stroke_is_not_echoed_to_sender(sio):
    host, guest = sio(), sio()
    created, _ = _room(host, guest)
    host.emit("game:start", {"roomId": created["roomId"]}, callback=True)
    host.get_received()
    guest.get_received()

    points = [{"x": 1, "y": 1, "color": "#123", "strokeWidth": 2, "startsNewStroke": True}]
    ack = host.emit("draw:stroke", {"roomId": created["roomId"], "points": points}, callback=True)
    assert ack["ok"] is True

    assert _received(host, "stroke:appended") == []
    [appended] = _received(guest, "stroke:appended")
    assert appended["stroke"]["id"] == ack["stroke"]["id"]

    ack = guest.emit("draw:stroke", {"roomId": created["roomId"], "points": points}, callback=True)
    assert ack["error"] == "not_drawer"


def test_guess_over_socket(sio):
    host, guest = sio(), sio()
    created, _ = _room(host, guest)
    word = host.emit("game:start", {"roomId": created["roomId"]}, callback=True)["room"]["word"]
    host.get_received()

    ack = guest.emit("guess:submit", {"roomId": created["roomId"], "text": word}, callback=True)
    assert ack["isCorrect"] is True
    names = [msg["name"] for msg in host.get_received()]
    assert names[:3] == ["guess:submitted", "round:ended", "strokes:cleared"]


def test_disconnect_marks_player_offline(sio):
    host, guest = sio(), sio()
    _, joined = _room(host, guest)
    host.get_received()

    guest.disconnect()
    [left] = _received(host, "player:left")
    assert left["player"]["id"] == joined["playerId"]
    assert left["player"]["isOnline"] is False
    assert left["removed"] is False


def test_rejoin_with_player_id(sio):
    host, guest = sio(), sio()
    created, joined = _room(host, guest)
    guest.disconnect()
    host.get_received()

    again = sio()
    ack = again.emit(
        "room:join",
        {"roomId": created["roomId"], "playerId": joined["playerId"]},
        callback=True,
    )
    assert ack["ok"] is True
    assert ack["player"]["isOnline"] is True
    [event] = _received(host, "player:joined")
    assert event["reconnected"] is True


def test_spectator_gets_public_updates_only(sio):
    host, guest, spectator = sio(), sio(), sio()
    created, _ = _room(host, guest)
    ack = spectator.emit("room:watch", {"roomId": created["roomId"]}, callback=True)
    assert ack["ok"] is True
    [sync] = _received(spectator, "room:sync")
    assert "word" not in sync["room"]

    host.emit("game:start", {"roomId": created["roomId"]}, callback=True)
    [update] = _received(spectator, "room:updated")
    assert update["room"]["state"] == "round_active"
    assert "word" not in update["room"]


def test_watching_another_room_leaves_the_first(sio):
    host, guest, spectator = sio(), sio(), sio()
    first, _ = _room(host, guest)
    second = sio().emit("room:create", {"hostName": "Dana"}, callback=True)

    spectator.emit("room:watch", {"roomId": first["roomId"]}, callback=True)
    spectator.emit("room:watch", {"roomId": second["roomId"]}, callback=True)
    spectator.get_received()

    host.emit("game:start", {"roomId": first["roomId"]}, callback=True)
    assert _received(spectator, "room:updated") == []
