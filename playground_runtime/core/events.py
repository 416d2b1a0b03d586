from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Iterable, Literal

Channel = Literal["log", "exit"]
CHANNELS: tuple[Channel, ...] = ("log", "exit")


@dataclass(frozen=True)
class DevLogEvent:
    id: str
    chunk: str
    channel: Channel = "log"

    def payload(self) -> dict[str, Any]:
        return {"id": self.id, "chunk": self.chunk}


@dataclass(frozen=True)
class DevExitEvent:
    id: str
    code: int | None
    signal: str | None
    channel: Channel = "exit"

    def payload(self) -> dict[str, Any]:
        return {"id": self.id, "code": self.code, "signal": self.signal}


DevEvent = DevLogEvent | DevExitEvent


def format_sse(event: DevEvent) -> str:
    payload = json.dumps(event.payload(), ensure_ascii=False)
    return f"event: dev.{event.channel}\ndata: {payload}\n\n"


class Subscription:
    def __init__(self, bus: "EventBus", channels: frozenset[str], playground_id: str | None):
        self._bus = bus
        self.channels = channels
        self.playground_id = playground_id
        self.queue: asyncio.Queue[DevEvent] = asyncio.Queue()

    def accepts(self, event: DevEvent) -> bool:
        if event.channel not in self.channels:
            return False
        return self.playground_id is None or event.id == self.playground_id

    async def get(self) -> DevEvent:
        return await self.queue.get()

    def pending(self) -> list[DevEvent]:
        drained: list[DevEvent] = []
        while not self.queue.empty():
            drained.append(self.queue.get_nowait())
        return drained

    def close(self) -> None:
        self._bus.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> DevEvent:
        return await self.get()


class EventBus:
    """Fan-out of dev log/exit events.

    Subscribers only see events published after they subscribed; there is no
    replay. Publishing never blocks.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscription] = []

    def subscribe(self, channels: Iterable[str] = CHANNELS, playground_id: str | None = None) -> Subscription:
        selected = frozenset(channels)
        unknown = selected - set(CHANNELS)
        if unknown:
            raise ValueError(f"Unknown event channel(s): {', '.join(sorted(unknown))}")
        subscription = Subscription(self, selected, playground_id)
        self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def publish(self, event: DevEvent) -> None:
        for subscription in list(self._subscribers):
            if subscription.accepts(event):
                subscription.queue.put_nowait(event)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
