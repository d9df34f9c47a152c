import pytest

from agnost.errors import BufferFullError
from agnost.realtime.buffer import OutboundBuffer
from agnost.realtime.messages import Envelope, JoinMessage


def _envelope(i):
    return Envelope(channel="room", event="tick", payload=i)


def test_fifo_order():
    buffer = OutboundBuffer()
    for i in range(3):
        buffer.append(_envelope(i))

    assert len(buffer) == 3
    assert [buffer.popleft().payload for _ in range(3)] == [0, 1, 2]
    assert not buffer


def test_requeue_puts_frame_back_at_head():
    buffer = OutboundBuffer()
    buffer.append(_envelope(0))
    buffer.append(_envelope(1))

    head = buffer.popleft()
    buffer.requeue(head)

    assert [buffer.popleft().payload for _ in range(2)] == [0, 1]


def test_drop_oldest_when_full(caplog):
    buffer = OutboundBuffer(limit=2)
    buffer.append(JoinMessage(channel="room"))
    buffer.append(_envelope(1))
    buffer.append(_envelope(2))

    assert [buffer.popleft().payload for _ in range(2)] == [1, 2]
    assert not buffer
    assert "dropped oldest join frame" in caplog.text


def test_reject_when_full():
    buffer = OutboundBuffer(limit=1, overflow="reject")
    buffer.append(_envelope(1))

    with pytest.raises(BufferFullError) as exc_info:
        buffer.append(_envelope(2))

    assert exc_info.value.code == "buffer_full"
    assert exc_info.value.details == {"limit": 1}
    assert len(buffer) == 1


def test_clear():
    buffer = OutboundBuffer()
    buffer.append(_envelope(1))

    buffer.clear()

    assert len(buffer) == 0
