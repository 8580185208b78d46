from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

Message = dict[str, Any]
Sender = Callable[[Message], Awaitable[None]]

_CLOSE: Message = {"type": "__close__"}


@dataclass(slots=True)
class LiveConnection:
    """Outbound mailbox for one subscriber.

    Publishers only ever `offer` (never blocks). A single writer task drains the
    queue; a send that exceeds `send_timeout_s` is abandoned and the writer moves
    on. A send that fails outright closes the connection. When the queue is
    full the oldest pending message is dropped.
    """

    connection_id: str
    queue_size: int = 100
    send_timeout_s: float = 5.0
    dropped: int = 0

    _queue: asyncio.Queue[Message] = field(init=False, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.queue_size < 1:
            raise ValueError(f"queue_size must be positive: {self.queue_size}")
        # Unbounded underneath; `offer` enforces queue_size so `close` never drops.
        self._queue = asyncio.Queue()

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, message: Message) -> bool:
        if self._closed:
            return False
        if self._queue.qsize() >= self.queue_size:
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(
                "Outbound queue full for %s; dropped oldest message",
                self.connection_id,
            )
        self._queue.put_nowait(message)
        return True

    def close(self) -> None:
        """Stop accepting messages; the writer exits after draining what is queued."""

        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSE)

    async def run_writer(self, send: Sender) -> None:
        while True:
            message = await self._queue.get()
            if message is _CLOSE:
                return
            try:
                await asyncio.wait_for(send(message), timeout=self.send_timeout_s)
            except asyncio.TimeoutError:
                self.dropped += 1
                logger.warning(
                    "Send to %s timed out after %.1fs; message abandoned",
                    self.connection_id,
                    self.send_timeout_s,
                )
            except Exception:
                logger.warning(
                    "Send to %s failed; closing connection",
                    self.connection_id,
                    exc_info=True,
                )
                self.close()
                return
