import asyncio
import logging
import os
from collections.abc import Awaitable
from pathlib import Path
from typing import Any, Callable, TextIO

from pydantic import BaseModel

from .protocol import encode_message, read_message, AgentProtocolError, AgentResponseError
from .types import (
    AuthStatus,
    ClientInfo,
    ExecuteCommandParams,
    ProtocolTextDocument,
    RequestErrorsResult,
    ServerInfo,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = float(os.environ.get("LENSPROBE_REQUEST_TIMEOUT", "30"))

# Agent-to-client requests we can answer without an editor behind us
DEFAULT_SERVER_REQUEST_RESULTS: dict[str, Any] = {
    "window/showMessage": None,
    "window/showDocument": True,
    "textDocument/edit": True,
    "textDocument/show": True,
    "textDocument/openUntitledDocument": True,
    "workspace/edit": True,
    "env/openExternal": True,
}


class AgentClient:
    process: asyncio.subprocess.Process
    client_info: ClientInfo
    log_file: Path | None
    request_timeout: float
    _request_id: int
    _pending_requests: dict[int, asyncio.Future[Any]]
    _reader_task: asyncio.Task[None] | None
    _stderr_task: asyncio.Task[None] | None
    _initialized: bool
    _server_info: ServerInfo
    _notification_handlers: dict[str, Callable[[dict[str, Any] | None], Awaitable[None]]]
    _log_handle: TextIO | None

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        client_info: ClientInfo,
        log_file: Path | None = None,
        request_timeout: float | None = None,
    ):
        self.process = process
        self.client_info = client_info
        self.log_file = log_file
        self.request_timeout = request_timeout or REQUEST_TIMEOUT
        self._request_id = 0
        self._pending_requests = {}
        self._reader_task = None
        self._stderr_task = None
        self._initialized = False
        self._server_info = ServerInfo()
        self._notification_handlers = {}
        self._log_handle = None
        self._stopping = False

    @property
    def stdin(self) -> asyncio.StreamWriter:
        assert self.process.stdin is not None
        return self.process.stdin

    @property
    def stdout(self) -> asyncio.StreamReader:
        assert self.process.stdout is not None
        return self.process.stdout

    @property
    def server_info(self) -> ServerInfo:
        return self._server_info

    async def start(self) -> None:
        self._reader_task = asyncio.create_task(self._read_loop())
        if self.process.stderr:
            if self.log_file:
                self.log_file.parent.mkdir(parents=True, exist_ok=True)
                self._log_handle = open(self.log_file, "a")
            self._stderr_task = asyncio.create_task(self._drain_stderr())
        await self._initialize()

    async def _drain_stderr(self) -> None:
        try:
            while True:
                assert self.process.stderr is not None
                data = await self.process.stderr.read(4096)
                if not data:
                    break
                text = data.decode(errors="replace")
                if self._log_handle:
                    self._log_handle.write(text)
                    self._log_handle.flush()
                logger.debug(f"Agent stderr: {text[:200]}")
        finally:
            if self._log_handle:
                self._log_handle.close()
                self._log_handle = None

    async def stop(self) -> None:
        self._stopping = True
        if self._initialized and self.process.returncode is None:
            try:
                await asyncio.wait_for(self.send_request("shutdown", None), timeout=5.0)
                await self.send_notification("exit", None)
            except (AgentResponseError, AgentProtocolError, ConnectionError) as e:
                logger.warning(f"Error during shutdown: {e}")
            except asyncio.TimeoutError:
                logger.warning("Agent did not answer shutdown within 5s")

        for task in (self._reader_task, self._stderr_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self.process.returncode is None:
            self.process.terminate()
            try:
                await asyncio.wait_for(self.process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                self.process.kill()

        self._initialized = False

    async def _initialize(self) -> None:
        result = await self.send_request(
            "initialize", self.client_info.model_dump(by_alias=True, exclude_none=True)
        )
        self._server_info = ServerInfo.model_validate(result or {})
        await self.send_notification("initialized", None)
        self._initialized = True
        logger.info(f"Agent {self._server_info.name or 'unknown'} initialized")

    async def dispatch_request(self, method: str, params: Any) -> asyncio.Future[Any]:
        """Write a request and return the future its response will resolve.

        Returns as soon as the request is flushed to the agent.
        """
        _, future = await self._write_request(method, params)
        return future

    async def _write_request(self, method: str, params: Any) -> tuple[int, asyncio.Future[Any]]:
        self._request_id += 1
        request_id = self._request_id

        params_dict: dict[str, Any] | list[Any] | None
        if isinstance(params, BaseModel):
            params_dict = params.model_dump(by_alias=True, exclude_none=True)
        else:
            params_dict = params

        message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params_dict is not None:
            message["params"] = params_dict

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        self._pending_requests[request_id] = future

        logger.debug(f"AGENT REQUEST [{request_id}] {method}: {params_dict}")
        self.stdin.write(encode_message(message))
        await self.stdin.drain()
        return request_id, future

    async def send_request(self, method: str, params: Any, timeout: float | None = None) -> Any:
        request_id, future = await self._write_request(method, params)
        timeout = timeout or self.request_timeout

        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            self._pending_requests.pop(request_id, None)
            raise AgentResponseError(-1, f"Request {method} timed out after {timeout}s")

    async def send_notification(self, method: str, params: Any) -> None:
        if isinstance(params, BaseModel):
            params = params.model_dump(by_alias=True, exclude_none=True)

        message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params

        self.stdin.write(encode_message(message))
        await self.stdin.drain()

        logger.debug(f"AGENT NOTIFICATION {method}")

    async def _read_loop(self) -> None:
        try:
            while True:
                message = await read_message(self.stdout)
                logger.debug(
                    f"Received message: id={message.get('id')}, method={message.get('method')}"
                )
                await self._handle_message(message)
        except AgentProtocolError as e:
            if self._stopping:
                logger.debug(f"Agent closed the connection: {e}")
            else:
                logger.error(f"Protocol error: {e}")
            self._fail_pending(e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Error in read loop: {e}")
            self._fail_pending(e)

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending_requests.values():
            if not future.done():
                future.set_exception(error)
        self._pending_requests.clear()

    async def _handle_message(self, message: dict[str, Any]) -> None:
        if "id" in message:
            if "method" in message:
                await self._handle_server_request(message)
            else:
                self._handle_response(message)
        else:
            await self._handle_notification(message)

    def _handle_response(self, message: dict[str, Any]) -> None:
        request_id = message["id"]
        future = self._pending_requests.pop(request_id, None)

        if future is None:
            logger.warning(f"Received response for unknown request: {request_id}")
            return
        if future.done():
            return

        if "error" in message:
            error = message["error"]
            logger.debug(f"AGENT RESPONSE [{request_id}] ERROR: {error}")
            future.set_exception(
                AgentResponseError(
                    error.get("code", -1),
                    error.get("message", "Unknown error"),
                    error.get("data"),
                )
            )
        else:
            result = message.get("result")
            logger.debug(f"AGENT RESPONSE [{request_id}]: {type(result).__name__}")
            future.set_result(result)

    async def _handle_server_request(self, message: dict[str, Any]) -> None:
        method = message["method"]
        request_id = message["id"]

        logger.debug(f"Received agent request: {method} (id={request_id})")

        response: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}
        if method in DEFAULT_SERVER_REQUEST_RESULTS:
            response["result"] = DEFAULT_SERVER_REQUEST_RESULTS[method]
        else:
            response["error"] = {"code": -32601, "message": f"Method not found: {method}"}

        self.stdin.write(encode_message(response))
        await self.stdin.drain()

    async def _handle_notification(self, message: dict[str, Any]) -> None:
        method = message["method"]
        params = message.get("params")

        handler = self._notification_handlers.get(method)
        if handler:
            await handler(params)
        else:
            logger.debug(f"Ignoring notification: {method}")

    def on_notification(
        self,
        method: str,
        handler: Callable[[dict[str, Any] | None], Awaitable[None]],
    ) -> None:
        self._notification_handlers[method] = handler

    async def status(self) -> AuthStatus:
        result = await self.send_request("extensionConfiguration/status", None)
        return AuthStatus.model_validate(result or {})

    async def await_pending_promises(self) -> None:
        await self.send_request("testing/awaitPendingPromises", None)

    async def request_errors(self) -> RequestErrorsResult:
        result = await self.send_request("testing/requestErrors", None)
        return RequestErrorsResult.model_validate(result or {})

    async def open_document(self, document: ProtocolTextDocument) -> None:
        await self.send_notification("textDocument/didOpen", document)
        await self.send_notification("textDocument/didFocus", ProtocolTextDocument(uri=document.uri))

    async def execute_command(self, params: ExecuteCommandParams) -> asyncio.Future[Any]:
        return await self.dispatch_request("command/execute", params)
