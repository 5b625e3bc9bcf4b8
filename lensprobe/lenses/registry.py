"""Registry of predicates waiting for a matching lens snapshot.

Each subscription resolves at most once. Delivery and registration share a
single lock so a snapshot is never evaluated while a subscription is being
added or removed.
"""

import itertools
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Callable

from ..agent.types import Snapshot

logger = logging.getLogger(__name__)

Predicate = Callable[[Snapshot], bool]


@dataclass(eq=False)
class Subscription:
    id: int
    predicate: Predicate
    description: str
    future: Future[Snapshot] = field(default_factory=Future)

    @property
    def done(self) -> bool:
        return self.future.done()


class SubscriptionRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def subscribe(self, predicate: Predicate, description: str | None = None) -> Subscription:
        if description is None:
            description = getattr(predicate, "description", None) or repr(predicate)

        with self._lock:
            subscription = Subscription(next(self._ids), predicate, description)
            self._subscriptions[subscription.id] = subscription

        logger.debug(f"Subscribed [{subscription.id}] {description}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        with self._lock:
            removed = self._subscriptions.pop(subscription.id, None) is not None
        if removed:
            subscription.future.cancel()
            logger.debug(f"Unsubscribed [{subscription.id}] {subscription.description}")
        return removed

    def on_snapshot(self, snapshot: Snapshot) -> None:
        with self._lock:
            for subscription in list(self._subscriptions.values()):
                if subscription.future.done():
                    # cancelled by its owner
                    del self._subscriptions[subscription.id]
                    continue

                try:
                    matched = subscription.predicate(snapshot)
                except Exception as e:
                    logger.info(f"Subscription [{subscription.id}] failed: {e}")
                    del self._subscriptions[subscription.id]
                    subscription.future.set_exception(e)
                    continue

                if matched:
                    logger.debug(f"Subscription [{subscription.id}] matched {len(snapshot)} lenses")
                    del self._subscriptions[subscription.id]
                    subscription.future.set_result(snapshot)

    def clear(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.future.cancel()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def __contains__(self, subscription: Subscription) -> bool:
        with self._lock:
            return subscription.id in self._subscriptions
