"""Live feed over WS /ws/logs."""
import time


def _subscribe(ws, **target):
    ws.send_json({"type": "subscribe", **target})
    return ws.receive_json()


def test_status_on_connect(client):
    with client.websocket_connect("/ws/logs") as ws:
        assert ws.receive_json() == {"type": "status", "status": "connected"}


def test_subscribe_ack_and_live_records(client, sample_trace):
    store = client.app.state.store
    pipeline = client.app.state.pipeline
    log_file = store.create_file(file_name="app.log", file_size=len(sample_trace))

    with client.websocket_connect("/ws/logs") as ws:
        ws.receive_json()
        ack = _subscribe(ws, fileId=log_file.id)
        assert ack == {"type": "subscribed", "fileId": log_file.id, "fileName": "app.log"}

        pipeline.ingest(log_file.id, sample_trace)

        messages = [ws.receive_json() for _ in range(3)]

    assert [m["type"] for m in messages] == ["logEntry"] * 3
    assert len({m["data"]["id"] for m in messages}) == 1
    assert messages[0]["data"]["message"] == "boom"
    assert messages[2]["data"]["stackTrace"] == "  at foo.bar(Baz.java:10)\n  at qux.quux(Quux.java:20)"


def test_subscribe_by_file_name_key(client):
    log_file = client.app.state.store.create_file(file_name="legacy.log", file_size=1)

    with client.websocket_connect("/ws/logs") as ws:
        ws.receive_json()
        ack = _subscribe(ws, fileName=log_file.id)

    assert ack["fileId"] == log_file.id
    assert ack["fileName"] == "legacy.log"


def test_subscribe_to_unknown_file_echoes_id(client):
    with client.websocket_connect("/ws/logs") as ws:
        ws.receive_json()
        ack = _subscribe(ws, fileId="not-uploaded-yet")

    assert ack == {"type": "subscribed", "fileId": "not-uploaded-yet", "fileName": "not-uploaded-yet"}


def test_malformed_messages_are_ignored(client):
    with client.websocket_connect("/ws/logs") as ws:
        ws.receive_json()
        ws.send_text("not json")
        ws.send_json({"type": "subscribe"})
        ws.send_json({"type": "unsubscribe", "fileId": "x"})
        ack = _subscribe(ws, fileId="f1")

    assert ack["type"] == "subscribed"
    assert ack["fileId"] == "f1"


def test_resubscribe_switches_file(client):
    store = client.app.state.store
    pipeline = client.app.state.pipeline
    first = store.create_file(file_name="a.log", file_size=1)
    second = store.create_file(file_name="b.log", file_size=1)

    with client.websocket_connect("/ws/logs") as ws:
        ws.receive_json()
        _subscribe(ws, fileId=first.id)
        _subscribe(ws, fileId=second.id)

        pipeline.ingest(first.id, b"2024-01-01 10:00:00.000 INFO [a] for first\n")
        pipeline.ingest(second.id, b"2024-01-01 10:00:00.000 INFO [b] for second\n")

        message = ws.receive_json()

    assert message["data"]["fileId"] == second.id
    assert message["data"]["message"] == "for second"


def test_disconnect_unregisters(client):
    broadcaster = client.app.state.broadcaster
    with client.websocket_connect("/ws/logs") as ws:
        ws.receive_json()
        _subscribe(ws, fileId="f1")
        assert broadcaster.subscriber_count("f1") == 1

    # the server side unwinds after the client closes
    for _ in range(50):
        if broadcaster.subscriber_count() == 0:
            break
        time.sleep(0.01)
    assert broadcaster.subscriber_count() == 0


def test_binary_frames_are_ignored(client):
    broadcaster = client.app.state.broadcaster
    with client.websocket_connect("/ws/logs") as ws:
        ws.receive_json()
        ws.send_bytes(b"\x00")
        ws.send_bytes(b"\xff\xfe")
        ack = _subscribe(ws, fileId="f1")
        assert broadcaster.subscriber_count("f1") == 1

    assert ack == {"type": "subscribed", "fileId": "f1", "fileName": "f1"}


def test_subscribe_sent_as_bytes_is_accepted(client):
    with client.websocket_connect("/ws/logs") as ws:
        ws.receive_json()
        ws.send_bytes(b'{"type": "subscribe", "fileId": "f2"}')
        ack = ws.receive_json()

    assert ack["fileId"] == "f2"


def test_ack_precedes_records_published_at_subscribe_time(client, make_record, monkeypatch):
    broadcaster = client.app.state.broadcaster
    subscribe = broadcaster.subscribe

    def subscribe_then_publish(subscriber, file_id):
        previous = subscribe(subscriber, file_id)
        # a record from an ingestion running in another thread lands right after binding
        broadcaster.publish(file_id, make_record(file_id=file_id, message="racing"))
        return previous

    monkeypatch.setattr(broadcaster, "subscribe", subscribe_then_publish)

    with client.websocket_connect("/ws/logs") as ws:
        ws.receive_json()
        ws.send_json({"type": "subscribe", "fileId": "f1"})
        first = ws.receive_json()
        second = ws.receive_json()

    assert first["type"] == "subscribed"
    assert second["type"] == "logEntry"
    assert second["data"]["message"] == "racing"
