"""
In-process event bus with request/reply semantics.

- consumers register on a string address; several consumers on one address
  share the traffic round-robin (one consumer per service instance)
- `request()` hands a `Message` to one consumer, runs the handler on its own
  task and awaits the reply or the coded failure
- a message is answered once; later reply/fail calls are ignored
"""

from __future__ import annotations

import asyncio
import copy
import enum
import itertools
import logging
from typing import Any, Awaitable, Callable, Mapping

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 30.0


class ReplyFailure(str, enum.Enum):
    NO_HANDLERS = "NO_HANDLERS"
    TIMEOUT = "TIMEOUT"
    RECIPIENT_FAILURE = "RECIPIENT_FAILURE"


class ReplyError(RuntimeError):
    def __init__(self, failure_type: ReplyFailure, failure_code: int, message: str):
        super().__init__(message)
        self.failure_type = failure_type
        self.failure_code = int(failure_code)
        self.message = message

    def __repr__(self) -> str:
        return f"ReplyError({self.failure_type.value}, {self.failure_code}, {self.message!r})"


class Message:
    def __init__(self, address: str, body: Any, headers: Mapping[str, str] | None = None):
        self.address = address
        self.body = body
        self.headers: dict[str, str] = dict(headers or {})
        self._reply: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

    @property
    def replied(self) -> bool:
        return self._reply.done()

    def reply(self, body: Any = None) -> None:
        if self._reply.done():
            return
        self._reply.set_result(body)

    def fail(self, failure_code: int, message: str) -> None:
        if self._reply.done():
            return
        self._reply.set_exception(ReplyError(ReplyFailure.RECIPIENT_FAILURE, failure_code, message))


Handler = Callable[[Message], Awaitable[None]]


class Registration:
    def __init__(self, bus: "EventBus", address: str, handler: Handler):
        self.bus = bus
        self.address = address
        self.handler = handler

    @property
    def active(self) -> bool:
        return self in self.bus._consumers.get(self.address, [])

    def unregister(self) -> None:
        self.bus._remove(self)


class EventBus:
    def __init__(self) -> None:
        self._consumers: dict[str, list[Registration]] = {}
        self._cursors: dict[str, itertools.count] = {}
        self._tasks: set[asyncio.Task] = set()

    def consumer(self, address: str, handler: Handler) -> Registration:
        registration = Registration(self, address, handler)
        self._consumers.setdefault(address, []).append(registration)
        self._cursors.setdefault(address, itertools.count())
        return registration

    def consumer_count(self, address: str) -> int:
        return len(self._consumers.get(address, []))

    def _remove(self, registration: Registration) -> None:
        consumers = self._consumers.get(registration.address, [])
        if registration in consumers:
            consumers.remove(registration)
        if not consumers:
            self._consumers.pop(registration.address, None)
            self._cursors.pop(registration.address, None)

    def _next_consumer(self, address: str) -> Registration | None:
        consumers = self._consumers.get(address)
        if not consumers:
            return None
        return consumers[next(self._cursors[address]) % len(consumers)]

    async def request(
        self,
        address: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = DEFAULT_SEND_TIMEOUT,
    ) -> Any:
        registration = self._next_consumer(address)
        if registration is None:
            raise ReplyError(ReplyFailure.NO_HANDLERS, -1, f"No handlers for address {address}")

        # The handler works on its own copy; nothing is shared with the caller.
        message = Message(address, copy.deepcopy(body), headers)
        task = asyncio.create_task(self._deliver(registration, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        try:
            return await asyncio.wait_for(message._reply, timeout)
        except asyncio.TimeoutError:
            raise ReplyError(
                ReplyFailure.TIMEOUT,
                -1,
                f"Timed out after waiting {timeout}s for a reply on {address}",
            ) from None

    async def _deliver(self, registration: Registration, message: Message) -> None:
        try:
            await registration.handler(message)
        except Exception as exc:
            logger.exception("bus_handler_failed address=%s", message.address)
            message.fail(-1, str(exc) or type(exc).__name__)

    async def drain(self) -> None:
        """Wait for in-flight handler tasks to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
