import logging
from collections import deque
from typing import Optional

from .messages import OutgoingMessage
from ..errors import BufferFullError
from ..types import BufferOverflowPolicy

logger = logging.getLogger(__name__)


class OutboundBuffer:
    """FIFO of frames waiting for a usable connection.

    Unbounded unless ``limit`` is set. When full, ``drop_oldest`` discards the
    head of the queue with a warning and ``reject`` raises BufferFullError.
    """

    def __init__(self, limit: Optional[int] = None, overflow: BufferOverflowPolicy = "drop_oldest") -> None:
        self._queue: deque[OutgoingMessage] = deque()
        self._limit = limit
        self._overflow = overflow

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def append(self, message: OutgoingMessage) -> None:
        if self._limit is not None and len(self._queue) >= self._limit:
            if self._overflow == "reject":
                raise BufferFullError(self._limit)
            dropped = self._queue.popleft()
            logger.warning(f"Outbound buffer full ({self._limit}), dropped oldest {dropped.type} frame")
        self._queue.append(message)

    def popleft(self) -> OutgoingMessage:
        return self._queue.popleft()

    def requeue(self, message: OutgoingMessage) -> None:
        """Put a frame that failed to send back at the head of the queue."""
        self._queue.appendleft(message)

    def clear(self) -> None:
        self._queue.clear()
