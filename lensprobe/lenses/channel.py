"""Fan-out of lens snapshots pushed by the agent."""

import logging
import threading
from typing import Callable

from ..agent.types import Snapshot

logger = logging.getLogger(__name__)

LensSubscriber = Callable[[str, Snapshot], None]


class LensChannel:
    """Delivers each published snapshot to every subscriber, in publish order.

    Only the most recent snapshot per document is retained, for diagnostics
    and polling. Snapshots published while nobody is subscribed are recorded
    and otherwise dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[LensSubscriber] = []
        self._latest: dict[str, Snapshot] = {}
        self._latest_uri: str | None = None

    def subscribe(self, subscriber: LensSubscriber) -> LensSubscriber:
        with self._lock:
            self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: LensSubscriber) -> bool:
        with self._lock:
            try:
                self._subscribers.remove(subscriber)
                return True
            except ValueError:
                return False

    def publish(self, uri: str, snapshot: Snapshot) -> None:
        snapshot = list(snapshot)
        with self._lock:
            self._latest[uri] = snapshot
            self._latest_uri = uri
            subscribers = list(self._subscribers)

        logger.debug(f"Publishing {len(snapshot)} lenses for {uri} to {len(subscribers)} subscriber(s)")
        for subscriber in subscribers:
            subscriber(uri, snapshot)

    def latest(self, uri: str | None = None) -> Snapshot:
        with self._lock:
            if uri is None:
                uri = self._latest_uri
            if uri is None:
                return []
            return list(self._latest.get(uri, []))

    def clear(self) -> None:
        with self._lock:
            self._latest.clear()
            self._latest_uri = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
