"""Synchronous facade over an agent running on a worker thread's event loop.

Test code runs on the calling thread and blocks on the concurrent futures
returned here; all agent I/O, including lens notifications, happens on the
worker thread.
"""

import asyncio
import functools
import logging
import os
import threading
from collections.abc import Coroutine
from concurrent.futures import Future
from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError

from .client import AgentClient
from .protocol import AgentNotFound, AgentStartupError
from .types import (
    AuthStatus,
    ClientInfo,
    DisplayCodeLensParams,
    ExecuteCommandParams,
    ExtensionConfiguration,
    ProtocolTextDocument,
    RequestErrorsResult,
)
from ..lenses.channel import LensChannel
from ..utils.config import Config, DEFAULT_CONFIG, get_log_dir, get_setting
from ..utils.uri import path_to_uri

logger = logging.getLogger(__name__)

T = TypeVar("T")

CLIENT_NAME = "lensprobe"
CLIENT_VERSION = "0.1.0"


class AgentService:
    workspace_root: Path
    channel: LensChannel
    config: Config
    client: AgentClient | None

    def __init__(self, workspace_root: Path, channel: LensChannel, config: Config | None = None):
        self.workspace_root = workspace_root.resolve()
        self.channel = channel
        self.config = config if config is not None else DEFAULT_CONFIG
        self.client = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self.client is not None

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._loop.run_forever, name="agent-worker", daemon=True
            )
            self._thread.start()
        return self._loop

    def submit(self, coro: Coroutine[Any, Any, T]) -> Future[T]:
        return asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())

    def _require_client(self) -> AgentClient:
        if self.client is None:
            raise RuntimeError("Agent is not running")
        return self.client

    def start_agent(self, endpoint: str, token: str | None) -> Future[AgentClient]:
        return self.submit(self._start_agent(endpoint, token))

    async def _start_agent(self, endpoint: str, token: str | None) -> AgentClient:
        if self.client is not None:
            return self.client

        agent_config = self.config.get("agent", {})
        command = list(agent_config.get("command") or DEFAULT_CONFIG["agent"]["command"])
        logger.info(f"Starting agent {' '.join(command)} for {self.workspace_root}")

        env = os.environ.copy()
        env.update(agent_config.get("env", {}))

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.workspace_root),
                env=env,
            )
        except FileNotFoundError:
            raise AgentNotFound(command)

        client_info = ClientInfo(
            name=CLIENT_NAME,
            version=CLIENT_VERSION,
            workspace_root_uri=path_to_uri(self.workspace_root),
            extension_configuration=ExtensionConfiguration(
                server_endpoint=endpoint,
                access_token=token,
            ),
        )
        agent_log_file = get_log_dir() / "agent.log"
        client = AgentClient(
            process,
            client_info,
            log_file=agent_log_file,
            request_timeout=agent_config.get("request_timeout"),
        )
        client.on_notification("codeLenses/display", self._on_code_lenses)

        startup_timeout = float(get_setting(self.config, "agent", "startup_timeout"))
        try:
            await asyncio.wait_for(client.start(), timeout=startup_timeout)
        except asyncio.CancelledError:
            await client.stop()
            raise
        except Exception as e:
            await client.stop()
            error = e
            if isinstance(e, TimeoutError):
                error = TimeoutError(f"Agent did not finish initialize within {startup_timeout}s")
            raise AgentStartupError(
                command,
                error,
                agent_log=_read_log_tail(agent_log_file),
                log_path=str(agent_log_file),
            )

        self.client = client
        return client

    async def _on_code_lenses(self, params: dict[str, Any] | None) -> None:
        try:
            display = DisplayCodeLensParams.model_validate(params or {})
        except ValidationError as e:
            logger.warning(f"Ignoring malformed codeLenses/display notification: {e}")
            return
        self.channel.publish(display.uri, display.code_lenses)

    def status(self) -> Future[AuthStatus]:
        return self.submit(self._require_client().status())

    def await_pending_promises(self) -> Future[None]:
        return self.submit(self._require_client().await_pending_promises())

    def request_errors(self) -> Future[RequestErrorsResult]:
        return self.submit(self._require_client().request_errors())

    def open_document(self, path: Path) -> Future[str]:
        return self.submit(self._open_document(path))

    async def _open_document(self, path: Path) -> str:
        uri = path_to_uri(path)
        content = path.read_text()
        await self._require_client().open_document(ProtocolTextDocument(uri=uri, content=content))
        logger.info(f"Opened {uri}")
        return uri

    def execute_command(self, action_id: str, arguments: list[Any] | None = None) -> Future[None]:
        """Resolves once the command is dispatched, not when the agent answers."""
        params = ExecuteCommandParams(command=action_id, arguments=arguments or [])
        return self.submit(self._execute_command(params))

    async def _execute_command(self, params: ExecuteCommandParams) -> None:
        response = await self._require_client().execute_command(params)
        response.add_done_callback(functools.partial(_log_command_result, params.command))

    def stop_agent(self) -> Future[None] | None:
        if self.client is None or self._loop is None:
            return None
        return self.submit(self._stop_agent())

    async def _stop_agent(self) -> None:
        if self.client is None:
            return
        logger.info("Stopping agent")
        client = self.client
        self.client = None
        await client.stop()

    def dispose(self) -> None:
        if self._loop is None:
            return
        loop = self._loop
        loop.call_soon_threadsafe(loop.stop)
        if self._thread is not None:
            self._thread.join(timeout=5.0)
        if not loop.is_running():
            loop.close()
        self._loop = None
        self._thread = None


def _log_command_result(command: str, response: asyncio.Future[Any]) -> None:
    if response.cancelled():
        return
    error = response.exception()
    if error is not None:
        logger.error(f"Command {command} failed: {error}")
    else:
        logger.debug(f"Command {command} completed")


def _read_log_tail(log_file: Path, lines: int = 30) -> str | None:
    if not log_file.exists():
        return None
    try:
        content = log_file.read_text(errors="replace")
    except OSError:
        return None
    return "\n".join(content.strip().splitlines()[-lines:])
