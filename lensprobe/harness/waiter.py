"""Trigger an action, then wait for the agent's lenses to reach a given state."""

import logging
import time
from typing import Callable

from .errors import ConditionNotMet, LensWaitTimeout, describe_snapshot
from .trigger import ActionTrigger
from ..agent.types import Snapshot
from ..lenses.channel import LensChannel, LensSubscriber
from ..lenses.predicates import ACCEPT_LENS_COMMAND, ERROR_LENS_COMMAND, expect_lenses, has_lens
from ..lenses.registry import Predicate, SubscriptionRegistry
from ..utils.config import Config, get_setting

logger = logging.getLogger(__name__)

ASYNC_WAIT_TIMEOUT = 20.0
POLL_INTERVAL = 1.0
POLL_MAX_ATTEMPTS = 10


class LensWaiter:
    channel: LensChannel
    registry: SubscriptionRegistry
    trigger: ActionTrigger
    timeout: float
    poll_interval: float
    poll_max_attempts: int
    error_command: str
    accept_command: str

    def __init__(
        self,
        channel: LensChannel,
        registry: SubscriptionRegistry,
        trigger: ActionTrigger,
        timeout: float = ASYNC_WAIT_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
        poll_max_attempts: int = POLL_MAX_ATTEMPTS,
        error_command: str = ERROR_LENS_COMMAND,
        accept_command: str = ACCEPT_LENS_COMMAND,
    ):
        self.channel = channel
        self.registry = registry
        self.trigger = trigger
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.poll_max_attempts = poll_max_attempts
        self.error_command = error_command
        self.accept_command = accept_command
        self._listener: LensSubscriber | None = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        channel: LensChannel,
        registry: SubscriptionRegistry,
        trigger: ActionTrigger,
    ) -> "LensWaiter":
        return cls(
            channel,
            registry,
            trigger,
            timeout=float(get_setting(config, "testing", "async_wait_timeout")),
            poll_interval=float(get_setting(config, "testing", "poll_interval")),
            poll_max_attempts=int(get_setting(config, "testing", "poll_max_attempts")),
            error_command=get_setting(config, "testing", "error_lens_command"),
            accept_command=get_setting(config, "testing", "accept_lens_command"),
        )

    def attach(self) -> None:
        """Start feeding published snapshots to the registry."""
        if self._listener is not None:
            return
        self._listener = self.channel.subscribe(
            lambda uri, snapshot: self.registry.on_snapshot(snapshot)
        )

    def detach(self) -> None:
        if self._listener is None:
            return
        self.channel.unsubscribe(self._listener)
        self._listener = None

    def run_and_wait_for_condition(
        self,
        action_id: str,
        predicate: Predicate,
        timeout: float | None = None,
        description: str | None = None,
    ) -> Snapshot:
        if timeout is None:
            timeout = self.timeout

        subscription = self.registry.subscribe(predicate, description)
        try:
            self.trigger.trigger(action_id)
        except Exception:
            self.registry.unsubscribe(subscription)
            raise

        try:
            snapshot = subscription.future.result(timeout=timeout)
        except TimeoutError:
            if not self.registry.unsubscribe(subscription) and subscription.future.done():
                # resolved while the wait was timing out
                return self._resolved(action_id, subscription.future.result())
            last_snapshot = self.channel.latest()
            logger.error(
                f"Timed out after {timeout}s waiting for {subscription.description} "
                f"after {action_id}, last lenses: {describe_snapshot(last_snapshot)}"
            )
            raise LensWaitTimeout(action_id, subscription.description, timeout, last_snapshot) from None

        return self._resolved(action_id, snapshot)

    def _resolved(self, action_id: str, snapshot: Snapshot) -> Snapshot:
        logger.info(f"Action {action_id} produced {describe_snapshot(snapshot)}")
        return snapshot

    def run_and_wait_for_lenses(self, action_id: str, *expected_lenses: str) -> Snapshot:
        predicate = expect_lenses(*expected_lenses, error_command=self.error_command)
        return self.run_and_wait_for_condition(action_id, predicate, description=predicate.description)

    def run_and_wait_for_clean_state(self, action_id: str) -> Snapshot:
        return self.run_and_wait_for_lenses(action_id)

    def wait_until_condition_true(
        self,
        poll: Callable[[], bool],
        interval: float | None = None,
        max_attempts: int | None = None,
        description: str = "condition",
    ) -> int:
        """Poll until `poll()` is true, sleeping `interval` seconds between attempts.

        Returns the number of attempts it took. Raises ConditionNotMet once
        `max_attempts` polls have failed.
        """
        if interval is None:
            interval = self.poll_interval
        if max_attempts is None:
            max_attempts = self.poll_max_attempts

        for attempt in range(1, max_attempts + 1):
            if poll():
                logger.debug(f"{description} met after {attempt} attempt(s)")
                return attempt
            if attempt < max_attempts:
                time.sleep(interval)

        raise ConditionNotMet(description, max_attempts)

    def wait_for_successful_edit(self, uri: str | None = None) -> int:
        return self.wait_until_condition_true(
            lambda: has_lens(self.channel.latest(uri), self.accept_command),
            description=f"successful edit ({self.accept_command} lens)",
        )
