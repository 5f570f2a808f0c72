"""
Host-side handle for the Media Remote server.

A desktop shell (tray icon, GUI, script) owns one ServerController and calls
start/stop/status/broadcast from its own threads. The server itself runs on
a private event loop in a background thread.
"""

import asyncio
import logging
import threading
from typing import Callable, Dict, List, Optional

from .config import Config, get_config, get_local_ip
from .executor import CommandExecutor
from .keymap import MODIFIER_STATE_NAMES
from .protocol import CommandResult
from .server import MediaRemoteServer, ServerStatus

logger = logging.getLogger(__name__)


class ServerError(Exception):
    """Raised for control requests the server cannot satisfy."""


class ServerController:
    """
    Start, stop and query one MediaRemoteServer.

    Args:
        config: Configuration (defaults to the global config)
        executor_factory: Optional callable building the executor, used in
            place of the configured xdotool one
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        executor_factory: Optional[Callable[[], CommandExecutor]] = None,
    ):
        self.config = config or get_config()
        self._executor_factory = executor_factory
        self._lock = threading.Lock()

        self._server: Optional[MediaRemoteServer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._server is not None

    @property
    def server(self) -> Optional[MediaRemoteServer]:
        return self._server

    def start(self, port: Optional[int] = None, timeout: float = 10.0) -> CommandResult:
        """
        Start listening. Starting a running server is not an error.

        Raises:
            ServerError: If the listener could not be started
        """
        with self._lock:
            if self._server is not None:
                return CommandResult.info("WebSocket server is already running")

            server_port = self.config.port if port is None else port
            loop = asyncio.new_event_loop()
            ready = threading.Event()
            errors: List[BaseException] = []
            holder: Dict[str, MediaRemoteServer] = {}

            thread = threading.Thread(
                target=self._run_loop,
                args=(loop, server_port, ready, errors, holder),
                name="media-remote-server",
                daemon=True,
            )
            thread.start()

            if not ready.wait(timeout):
                raise ServerError(f"WebSocket server did not start within {timeout}s")
            if errors:
                thread.join(timeout)
                raise ServerError(f"Failed to start WebSocket server: {errors[0]}") from errors[0]

            self._server = holder["server"]
            self._loop = loop
            self._thread = thread

            return CommandResult.success(
                f"WebSocket server started on port {self._server.port}"
            )

    def _run_loop(self, loop, port, ready, errors, holder) -> None:
        asyncio.set_event_loop(loop)
        try:
            executor = self._executor_factory() if self._executor_factory else None
            server = MediaRemoteServer(self.config, executor=executor, port=port)
            loop.run_until_complete(server.start())
        except Exception as e:
            logger.error(f"WebSocket server error: {e}")
            errors.append(e)
            ready.set()
            loop.close()
            return

        holder["server"] = server
        ready.set()

        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def stop(self, timeout: float = 10.0) -> CommandResult:
        """Stop the listener and close client sessions."""
        with self._lock:
            if self._server is None:
                return CommandResult.info("WebSocket server is not running")

            server, loop, thread = self._server, self._loop, self._thread
            self._server = self._loop = self._thread = None

        future = asyncio.run_coroutine_threadsafe(server.stop(), loop)
        try:
            future.result(timeout)
        except Exception as e:
            logger.warning(f"Error while stopping WebSocket server: {e}")
        finally:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout)

        return CommandResult.success("WebSocket server stopped")

    def status(self) -> ServerStatus:
        server = self._server
        if server is None:
            return ServerStatus(running=False, port=0, clients=0, local_ip=get_local_ip())
        return server.status()

    def broadcast(self, message: str) -> CommandResult:
        """
        Send text to every connected client.

        Raises:
            ServerError: If the server is not running
        """
        server = self._server
        if server is None:
            raise ServerError("WebSocket server is not running")

        server.broadcast(message)
        return CommandResult.success("Message broadcasted to all clients")

    def connection_info(self) -> dict:
        server = self._server
        if server is not None:
            return server.connection_info()

        local_ip = get_local_ip()
        return {
            "local_ip": local_ip,
            "websocket_port": self.config.port,
            "web_app_port": self.config.frontend_port,
            "web_app_url": f"http://{local_ip}:{self.config.frontend_port}/?ip={local_ip}",
            "websocket_url": f"ws://{local_ip}:{self.config.port}",
        }

    def modifier_states(self) -> Dict[str, bool]:
        server = self._server
        if server is None:
            return {name: False for name in MODIFIER_STATE_NAMES}
        return server.executor.modifier_states()
