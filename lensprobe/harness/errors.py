from ..agent.types import Snapshot


def describe_snapshot(snapshot: Snapshot) -> str:
    parts = []
    for lens in snapshot:
        if lens.command is None:
            parts.append("<no command>")
            continue
        command = lens.command.command or "<no command>"
        parts.append(f"{command} ({lens.command.title})" if lens.command.title else command)
    return "[" + ", ".join(parts) + "]"


class LensWaitError(AssertionError):
    """A single wait failed. Raised as an assertion so test runners report a failure."""


class ErrorLensShown(LensWaitError):
    title: str

    def __init__(self, title: str):
        self.title = title
        super().__init__(f"Error group shown: {title}")


class LensWaitTimeout(LensWaitError):
    action_id: str
    description: str
    timeout: float
    last_snapshot: Snapshot

    def __init__(self, action_id: str, description: str, timeout: float, last_snapshot: Snapshot):
        self.action_id = action_id
        self.description = description
        self.timeout = timeout
        self.last_snapshot = last_snapshot
        super().__init__(
            f"Error while awaiting after action {action_id}. "
            f"Expected {description} within {timeout}s, "
            f"got: {describe_snapshot(last_snapshot)}"
        )


class ConditionNotMet(LensWaitError):
    description: str
    attempts: int

    def __init__(self, description: str, attempts: int):
        self.description = description
        self.attempts = attempts
        super().__init__(f"Awaiting {description}: condition not met after {attempts} attempts")


class ActionDispatchError(Exception):
    action_id: str
    original_error: Exception

    def __init__(self, action_id: str, original_error: Exception):
        self.action_id = action_id
        self.original_error = original_error
        super().__init__(f"Failed to dispatch action {action_id}: {original_error}")
