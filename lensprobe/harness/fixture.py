"""Agent-backed fixture for lens integration tests.

Typical use from a pytest fixture::

    with AgentFixture(workspace_root, document=workspace_root / "src/Foo.java") as fixture:
        fixture.run_and_wait_for_lenses("cody.documentCodeAction", ACCEPT_LENS_COMMAND)
"""

import logging
import re
from concurrent.futures import Future
from pathlib import Path
from typing import TypeVar

from .trigger import ActionTrigger, AgentActionTrigger
from .waiter import LensWaiter
from ..agent.protocol import AgentNotAuthenticated, AgentStartupError
from ..agent.service import AgentService
from ..agent.types import NetworkRequest, Snapshot
from ..lenses.channel import LensChannel
from ..lenses.registry import SubscriptionRegistry
from ..utils.config import Config, get_access_token, get_setting, load_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

MISSING_RECORDING_MARKER = "`recordIfMissing` is"

# Extra time for the agent service to clean up after its own startup timeout
STARTUP_GRACE = 10.0


class AgentFixture:
    workspace_root: Path
    document: Path | None
    config: Config
    channel: LensChannel
    registry: SubscriptionRegistry
    service: AgentService
    waiter: LensWaiter
    document_uri: str | None

    def __init__(
        self,
        workspace_root: Path,
        document: Path | None = None,
        config: Config | None = None,
        trigger: ActionTrigger | None = None,
    ):
        self.workspace_root = workspace_root
        self.document = document
        self.config = config if config is not None else load_config()
        self.channel = LensChannel()
        self.registry = SubscriptionRegistry()
        self.service = AgentService(workspace_root, self.channel, self.config)
        self.waiter = LensWaiter.from_config(
            self.config,
            self.channel,
            self.registry,
            trigger if trigger is not None else AgentActionTrigger(self.service),
        )
        self.document_uri = None

    @property
    def timeout(self) -> float:
        return self.waiter.timeout

    def set_up(self) -> None:
        try:
            self._start_agent()
            if self.document is not None:
                self.document_uri = self._result(self.service.open_document(self.document))
            self._result(self.service.await_pending_promises())
            self._check_authenticated()
        except Exception:
            self._shutdown_agent()
            raise

        self.waiter.attach()

    def _start_agent(self) -> None:
        endpoint = get_setting(self.config, "credentials", "endpoint")
        token = get_access_token(self.config)
        startup_timeout = float(get_setting(self.config, "agent", "startup_timeout"))

        future = self.service.start_agent(endpoint, token)
        try:
            future.result(timeout=startup_timeout + STARTUP_GRACE)
        except TimeoutError as e:
            future.cancel()
            command = list(get_setting(self.config, "agent", "command"))
            raise AgentStartupError(command, e) from None

    def _result(self, future: Future[T]) -> T:
        try:
            return future.result(timeout=self.timeout)
        except TimeoutError:
            future.cancel()
            raise

    def _check_authenticated(self) -> None:
        status = self._result(self.service.status())
        if not status.is_authenticated:
            raise AgentNotAuthenticated(status.endpoint or get_setting(self.config, "credentials", "endpoint"))

    def tear_down(self) -> list[NetworkRequest]:
        """Stop the agent and return any missing-recording errors it reported.

        Missing recordings are logged, never raised.
        """
        self.waiter.detach()
        self.registry.clear()

        missing: list[NetworkRequest] = []
        try:
            if self.service.is_running:
                missing = self.report_missing_recordings()
        finally:
            self._shutdown_agent()
        return missing

    def report_missing_recordings(self) -> list[NetworkRequest]:
        errors = self._result(self.service.request_errors())
        missing = [e for e in errors.errors if e.error and MISSING_RECORDING_MARKER in e.error]

        hint = get_setting(self.config, "testing", "recording_hint")
        for request in missing:
            logger.error(
                f"Recording is missing: {request.error}\n\n"
                f"{request.body or ''}\n\n"
                f"{'-' * 90}\n{hint}\n{'-' * 90}"
            )
        return missing

    def _shutdown_agent(self) -> None:
        try:
            stopping = self.service.stop_agent()
            if stopping is not None:
                stopping.result(timeout=self.timeout)
        finally:
            self.service.dispose()

    def run_and_wait_for_lenses(self, action_id: str, *expected_lenses: str) -> Snapshot:
        return self.waiter.run_and_wait_for_lenses(action_id, *expected_lenses)

    def run_and_wait_for_clean_state(self, action_id: str) -> Snapshot:
        return self.waiter.run_and_wait_for_clean_state(action_id)

    def wait_for_successful_edit(self) -> int:
        return self.waiter.wait_for_successful_edit(self.document_uri)

    def lenses(self) -> Snapshot:
        return self.channel.latest(self.document_uri)

    def __enter__(self) -> "AgentFixture":
        self.set_up()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.tear_down()


JAVADOC_PATTERN = re.compile(r"/\*\*.*?\*/", re.DOTALL)


def has_javadoc_comment(text: str) -> bool:
    """True if `text` contains a `/** ... */` block, e.g. after a document-code edit."""
    return JAVADOC_PATTERN.search(text) is not None
