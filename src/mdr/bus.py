from __future__ import annotations

from asyncio import Event
from collections import deque
from dataclasses import dataclass, field
from types import TracebackType
from typing import Type, Union

DEFAULT_CAPACITY = 32


@dataclass(frozen=True, slots=True)
class Reload:
    sequence: int


@dataclass(frozen=True, slots=True)
class Lagged:
    skipped: int


@dataclass(frozen=True, slots=True)
class Closed:
    pass


Received = Union[Reload, Lagged, Closed]


@dataclass(eq=False)
class Subscription:
    bus: ReloadBus = field(repr=False)
    pending: deque[int]

    skipped: int = 0
    wakeup: Event = field(default_factory=Event, repr=False)

    def push(self, sequence: int) -> None:
        if len(self.pending) == self.pending.maxlen:
            self.skipped += 1
        self.pending.append(sequence)
        self.wakeup.set()

    async def recv(self) -> Received:
        while True:
            if self.skipped:
                skipped, self.skipped = self.skipped, 0
                return Lagged(skipped=skipped)

            if self.pending:
                return Reload(sequence=self.pending.popleft())

            if self.bus.closed:
                return Closed()

            self.wakeup.clear()
            await self.wakeup.wait()

    def close(self) -> None:
        self.bus.unsubscribe(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(
        self,
        exc_type: Type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class ReloadBus:
    """
    Fans a payload-free "reload" signal out to every live subscription.

    Publishing never waits on subscribers.
    A subscription that falls more than ``capacity`` notices behind
    loses the oldest ones and observes a single :class:`Lagged` before
    resuming; it only observes :class:`Closed` once the bus is closed.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Bus capacity must be at least 1, not {capacity}")

        self.capacity = capacity
        self.subscriptions: list[Subscription] = []
        self.sequence = 0
        self.closed = False

    def subscribe(self) -> Subscription:
        subscription = Subscription(bus=self, pending=deque(maxlen=self.capacity))

        if not self.closed:
            self.subscriptions.append(subscription)

        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        try:
            self.subscriptions.remove(subscription)
        except ValueError:
            pass

    def publish(self) -> int:
        if self.closed:
            return 0

        self.sequence += 1
        for subscription in self.subscriptions:
            subscription.push(self.sequence)

        return len(self.subscriptions)

    def close(self) -> None:
        self.closed = True

        for subscription in self.subscriptions:
            subscription.wakeup.set()

        self.subscriptions.clear()

    def __len__(self) -> int:
        return len(self.subscriptions)
