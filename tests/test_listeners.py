from agnost.errors import ListenerError
from agnost.realtime.listeners import ListenerRegistry
from agnost.realtime.types import EventData, MemberData


def _data(message="hi", channel="room"):
    return EventData(channel=channel, message=message)


def test_emit_runs_callbacks_in_registration_order():
    registry = ListenerRegistry()
    order = []
    registry.add("msg", lambda e: order.append(1))
    registry.add("msg", lambda e: order.append(2))

    registry.emit("msg", _data())

    assert order == [1, 2]


def test_same_callback_registered_twice_runs_twice():
    registry = ListenerRegistry()
    received = []
    registry.add("msg", received.append)
    registry.add("msg", received.append)

    registry.emit("msg", _data())
    registry.remove("msg", received.append)
    registry.emit("msg", _data("again"))

    assert [e.message for e in received] == ["hi", "hi", "again"]


def test_remove_without_callback_clears_event():
    registry = ListenerRegistry()
    received = []
    registry.add("msg", received.append)
    registry.add("msg", lambda e: received.append(e))

    registry.remove("msg")
    registry.emit("msg", _data())

    assert received == []


def test_removing_unknown_callback_is_ignored():
    registry = ListenerRegistry()
    received = []
    registry.add("msg", received.append)

    registry.remove("msg", lambda e: None)
    registry.remove("other", received.append)
    registry.remove_any(lambda event, e: None)
    registry.remove_presence("join", lambda e: None)
    registry.remove_error(lambda e: None)
    registry.emit("msg", _data())

    assert len(received) == 1


def test_callback_added_during_emit_runs_next_time():
    registry = ListenerRegistry()
    received = []

    def register(event):
        registry.add("msg", received.append)

    registry.add("msg", register)
    registry.emit("msg", _data("first"))
    registry.emit("msg", _data("second"))

    assert [e.message for e in received] == ["second"]


def test_failing_callback_is_reported_and_isolated():
    registry = ListenerRegistry()
    received, errors = [], []

    def broken(event):
        raise ValueError("bad payload")

    registry.add("msg", broken)
    registry.add("msg", received.append)
    registry.add_error(errors.append)

    registry.emit("msg", _data())

    assert len(received) == 1
    assert isinstance(errors[0], ListenerError)
    assert errors[0].event == "msg"
    assert isinstance(errors[0].cause, ValueError)


def test_failing_error_callback_is_only_logged(caplog):
    registry = ListenerRegistry()
    reached = []

    def broken(error):
        raise RuntimeError("boom")

    registry.add_error(broken)
    registry.add_error(reached.append)
    registry.add("msg", lambda e: 1 / 0)

    registry.emit("msg", _data())

    assert len(reached) == 1
    assert "Error in error callback" in caplog.text


def test_any_listeners_run_after_event_listeners():
    registry = ListenerRegistry()
    order = []
    registry.add_any(lambda event, data: order.append(("any", event)))
    registry.add("msg", lambda e: order.append(("msg", e.message)))

    registry.emit("msg", _data())

    assert order == [("msg", "hi"), ("any", "msg")]


def test_presence_listeners_filter_by_channel():
    registry = ListenerRegistry()
    everywhere, lobby = [], []
    registry.add_presence("leave", everywhere.append)
    registry.add_presence("leave", lobby.append, channel="lobby")
    member = MemberData(id="m1")

    registry.emit_presence("leave", EventData(channel="room", message=member))
    registry.emit_presence("leave", EventData(channel="lobby", message=member))

    assert [e.channel for e in everywhere] == ["room", "lobby"]
    assert [e.channel for e in lobby] == ["lobby"]


def test_remove_presence_needs_matching_channel():
    registry = ListenerRegistry()
    received = []
    registry.add_presence("join", received.append, channel="lobby")

    registry.remove_presence("join", received.append)
    registry.emit_presence("join", EventData(channel="lobby", message=MemberData(id="m1")))
    registry.remove_presence("join", received.append, channel="lobby")
    registry.emit_presence("join", EventData(channel="lobby", message=MemberData(id="m2")))

    assert [e.message.id for e in received] == ["m1"]


def test_connection_change_listeners():
    registry = ListenerRegistry()
    states = []
    registry.add_connection(states.append)

    registry.emit_connection_change("connecting")
    registry.remove_connection(states.append)
    registry.emit_connection_change("connected")

    assert states == ["connecting"]
