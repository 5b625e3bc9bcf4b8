import asyncio
import json
from typing import Any


class AgentProtocolError(Exception):
    pass


class AgentResponseError(Exception):
    code: int
    message: str
    data: object | None

    def __init__(self, code: int, message: str, data: object | None = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"Agent error {code}: {message}")


class AgentNotFound(Exception):
    command: list[str]

    def __init__(self, command: list[str]):
        self.command = command
        super().__init__(
            f"Agent executable '{command[0]}' not found. "
            f"Set [agent] command in the lensprobe config file."
        )


class AgentStartupError(Exception):
    command: list[str]
    original_error: Exception | None
    agent_log: str | None
    log_path: str | None

    def __init__(
        self,
        command: list[str],
        original_error: Exception | None = None,
        agent_log: str | None = None,
        log_path: str | None = None,
    ):
        self.command = command
        self.original_error = original_error
        self.agent_log = agent_log
        self.log_path = log_path

        lines = [f"Unable to start agent in a timely fashion: {' '.join(command)}"]

        if original_error is not None:
            lines.append("")
            lines.append(f"Error: {original_error}")

        if agent_log and agent_log.strip():
            lines.append("")
            lines.append("Agent log (last 20 lines):")
            for line in agent_log.strip().splitlines()[-20:]:
                lines.append(f"  {line}")

        if log_path:
            lines.append("")
            lines.append(f"Full agent log: {log_path}")

        super().__init__("\n".join(lines))


class AgentNotAuthenticated(Exception):
    endpoint: str

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        super().__init__(f"User is not authenticated against {endpoint}")


def encode_message(obj: dict[str, Any]) -> bytes:
    content = json.dumps(obj).encode("utf-8")
    header = f"Content-Length: {len(content)}\r\n\r\n".encode("ascii")
    return header + content


async def read_message(reader: asyncio.StreamReader) -> dict[str, Any]:
    headers: dict[str, str] = {}

    while True:
        line = await reader.readline()
        if not line:
            raise AgentProtocolError("Connection closed")

        line_str = line.decode("ascii").strip()
        if not line_str:
            break

        if ":" in line_str:
            key, value = line_str.split(":", 1)
            headers[key.strip()] = value.strip()

    if "Content-Length" not in headers:
        raise AgentProtocolError("Missing Content-Length header")

    content_length = int(headers["Content-Length"])
    try:
        content = await reader.readexactly(content_length)
    except asyncio.IncompleteReadError as e:
        raise AgentProtocolError(
            f"Connection closed after {len(e.partial)} of {content_length} bytes"
        )

    return json.loads(content.decode("utf-8"))
