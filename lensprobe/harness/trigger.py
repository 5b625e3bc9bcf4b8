import logging
from typing import Protocol

from .errors import ActionDispatchError
from ..agent.service import AgentService

logger = logging.getLogger(__name__)

DISPATCH_TIMEOUT = 10.0


class ActionTrigger(Protocol):
    def trigger(self, action_id: str) -> None:
        """Dispatch the action and return without waiting for its effects."""
        ...


class AgentActionTrigger:
    """Runs actions as agent commands through `command/execute`."""

    def __init__(self, service: AgentService, dispatch_timeout: float = DISPATCH_TIMEOUT):
        self.service = service
        self.dispatch_timeout = dispatch_timeout

    def trigger(self, action_id: str) -> None:
        logger.info(f"Triggering action {action_id}")
        try:
            self.service.execute_command(action_id).result(timeout=self.dispatch_timeout)
        except Exception as e:
            raise ActionDispatchError(action_id, e) from e
