"""
WebSocket server for Media Remote.

Each connection runs as two tasks: a reader that handles one command at a
time, and a writer that owns the socket's send side. Command responses and
broadcasts both go through the connection's outbound channel, so only the
writer ever sends on the wire.

A small aiohttp app on a second port exposes status and broadcast to the
host (CLI, tray app, scripts).
"""

import asyncio
import logging
import signal
import uuid
from dataclasses import asdict, dataclass
from typing import Optional

from aiohttp import web
from websockets.asyncio.server import Server, ServerConnection, serve as ws_serve
from websockets.exceptions import ConnectionClosed

from .config import Config, get_config, get_local_ip
from .dispatcher import CommandDispatcher
from .executor import CommandExecutor, get_text_guard
from .input_handler import InputHandler
from .keymap import KeyMap
from .protocol import CommandResult, ProtocolError, Response, parse_command
from .registry import ChannelClosed, ConnectionRegistry, OutboundChannel
from .system import SystemControl

logger = logging.getLogger(__name__)

# How long a closing session waits for its writer to flush
WRITER_DRAIN_TIMEOUT = 5.0


@dataclass
class ServerStatus:
    running: bool
    port: int
    clients: int
    local_ip: Optional[str]

    def to_dict(self) -> dict:
        return asdict(self)


def build_executor(config: Config) -> CommandExecutor:
    """Create a CommandExecutor from configuration."""
    guard = get_text_guard()
    guard.min_interval = config.text_min_interval

    def input_factory() -> InputHandler:
        return InputHandler(timeout=config.native_timeout)

    return CommandExecutor(
        input_factory=input_factory,
        system=SystemControl(
            display_output=config.display_output,
            timeout=config.native_timeout,
        ),
        keymap=KeyMap(config.key_overrides, config.media_keys),
        workers=config.workers,
        text_guard=guard,
        text_max_length=config.text_max_length,
    )


class MediaRemoteServer:
    """
    WebSocket command server.

    Features:
    - Any number of concurrent clients
    - JSON commands dispatched to the executor, one response per command
    - Broadcast of arbitrary text to every connected client
    - HTTP status/broadcast endpoints for the host
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        executor: Optional[CommandExecutor] = None,
        port: Optional[int] = None,
    ):
        """Initialize the server."""
        self.config = config or get_config()
        self.requested_port = self.config.port if port is None else port

        self.registry = ConnectionRegistry()

        self._owns_executor = executor is None
        self.executor = executor or build_executor(self.config)
        self.dispatcher = CommandDispatcher(
            self.executor,
            timeout=self.config.dispatch_timeout,
            text_max_length=self.config.text_max_length,
        )

        # Server instances
        self.ws_server: Optional[Server] = None
        self.http_runner: Optional[web.AppRunner] = None

        # Shutdown event
        self.shutdown_event = asyncio.Event()

        # HTTP app for host-side control
        self.http_app = web.Application()
        self._setup_http_routes()

    @property
    def running(self) -> bool:
        return self.ws_server is not None

    @property
    def port(self) -> int:
        """Port actually bound (differs from the requested one when that is 0)."""
        if self.ws_server is not None:
            for sock in self.ws_server.sockets:
                return sock.getsockname()[1]
        return self.requested_port

    def status(self) -> ServerStatus:
        return ServerStatus(
            running=self.running,
            port=self.port if self.running else 0,
            clients=self.registry.count() if self.running else 0,
            local_ip=get_local_ip(),
        )

    def broadcast(self, message: str) -> int:
        """Push text to every connected client. Returns the number reached."""
        delivered = self.registry.broadcast(message)
        logger.debug(f"Broadcast to {delivered} client(s)")
        return delivered

    def connection_info(self) -> dict:
        local_ip = get_local_ip()
        web_app_port = self.config.frontend_port
        return {
            "local_ip": local_ip,
            "websocket_port": self.port,
            "web_app_port": web_app_port,
            "web_app_url": f"http://{local_ip}:{web_app_port}/?ip={local_ip}",
            "websocket_url": f"ws://{local_ip}:{self.port}",
        }

    # HTTP control app

    def _setup_http_routes(self) -> None:
        """Setup HTTP routes for host-side control."""
        self.http_app.router.add_get("/ping", self._handle_ping)
        self.http_app.router.add_get("/status", self._handle_status)
        self.http_app.router.add_get("/connection-info", self._handle_connection_info)
        self.http_app.router.add_get("/modifiers", self._handle_modifiers)
        self.http_app.router.add_post("/broadcast", self._handle_broadcast)

    async def _handle_ping(self, request: web.Request) -> web.Response:
        """Simple ping endpoint."""
        return web.Response(text="pong")

    async def _handle_status(self, request: web.Request) -> web.Response:
        """Return server status."""
        return web.json_response(self.status().to_dict())

    async def _handle_connection_info(self, request: web.Request) -> web.Response:
        return web.json_response(self.connection_info())

    async def _handle_modifiers(self, request: web.Request) -> web.Response:
        return web.json_response(self.executor.modifier_states())

    async def _handle_broadcast(self, request: web.Request) -> web.Response:
        """Broadcast the request body (or its `message` field) to all clients."""
        if request.content_type == "application/json":
            try:
                body = await request.json()
            except ValueError:
                body = None
            message = body.get("message") if isinstance(body, dict) else None
        else:
            message = await request.text()

        if not isinstance(message, str) or not message:
            result = CommandResult.error("Missing 'message' to broadcast")
            return web.json_response(result.to_dict(), status=400)

        if not self.running:
            result = CommandResult.error("WebSocket server is not running")
            return web.json_response(result.to_dict(), status=503)

        self.broadcast(message)
        return web.json_response(CommandResult.success("Message broadcasted to all clients").to_dict())

    # WebSocket sessions

    async def _websocket_handler(self, websocket: ServerConnection) -> None:
        """Run one client session until it closes or fails."""
        connection_id = str(uuid.uuid4())
        channel = OutboundChannel()
        self.registry.register(connection_id, channel)

        logger.info(f"Client connected: {websocket.remote_address} ({connection_id})")

        writer = asyncio.create_task(self._write_outbound(websocket, connection_id, channel))

        try:
            async for message in websocket:
                if isinstance(message, bytes):
                    logger.debug(f"Ignoring binary frame from {connection_id}")
                    continue

                response = await self._process_frame(message)

                try:
                    channel.push(response.to_json())
                except ChannelClosed:
                    # Writer has gone; the connection is finished
                    break
        except ConnectionClosed as e:
            logger.info(f"WebSocket error for {connection_id}: {e}")
        finally:
            self.registry.unregister(connection_id)
            channel.close()
            try:
                await asyncio.wait_for(writer, timeout=WRITER_DRAIN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(f"Writer for {connection_id} did not finish, cancelled")
            logger.info(f"Client disconnected: {websocket.remote_address} ({connection_id})")

    async def _write_outbound(
        self,
        websocket: ServerConnection,
        connection_id: str,
        channel: OutboundChannel,
    ) -> None:
        """Drain the outbound channel onto the socket."""
        try:
            while True:
                message = await channel.get()
                if message is None:
                    break
                await websocket.send(message)
        except ConnectionClosed:
            logger.debug(f"Send failed, dropping connection {connection_id}")
        finally:
            self.registry.unregister(connection_id)
            channel.close()

    async def _process_frame(self, message: str) -> Response:
        """Parse and dispatch one text frame."""
        try:
            cmd = parse_command(message)
        except ProtocolError as e:
            logger.warning(f"Failed to parse command: {e}")
            return Response.error(None, f"Invalid command format: {e}")

        return await self.dispatcher.handle(cmd)

    # Lifecycle

    async def start(self) -> None:
        """Start the WebSocket listener and, if configured, the HTTP app."""
        if self.running:
            return

        self.ws_server = await ws_serve(
            self._websocket_handler,
            self.config.host,
            self.requested_port,
            max_size=self.config.max_message_size,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
        )

        logger.info(f"WebSocket server listening on {self.config.host}:{self.port}")

        if self.config.http_port:
            self.http_runner = web.AppRunner(self.http_app)
            await self.http_runner.setup()
            http_site = web.TCPSite(self.http_runner, self.config.host, self.config.http_port)
            try:
                await http_site.start()
            except OSError as e:
                # The command server is still useful without its control app
                logger.warning(f"HTTP control app disabled: {e}")
                await self.http_runner.cleanup()
                self.http_runner = None
            else:
                logger.info(f"HTTP control app on {self.config.host}:{self.config.http_port}")

    async def stop(self) -> None:
        """Stop the servers and close client sessions."""
        if self.ws_server:
            self.ws_server.close()
            await self.ws_server.wait_closed()
            self.ws_server = None

        if self.http_runner:
            await self.http_runner.cleanup()
            self.http_runner = None

        if self._owns_executor:
            self.executor.shutdown()

        logger.info("WebSocket server stopped")

    async def run_forever(self) -> None:
        """Run the server until shutdown_event is set or the task is cancelled."""
        await self.start()

        display_host = self.config.host
        if display_host == "0.0.0.0":
            display_host = get_local_ip()

        print(f"\n📱 Media Remote started!")
        print(f"   WebSocket: ws://{display_host}:{self.port}")
        if self.http_runner:
            print(f"   Control:   http://{display_host}:{self.config.http_port}/status")
        print(f"\n   Point the companion web app at this address.\n")

        try:
            await self.shutdown_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()
            print("\n📱 Media Remote stopped.\n")


async def _serve_until_signalled(server: MediaRemoteServer) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, server.shutdown_event.set)
    except (NotImplementedError, RuntimeError):
        # Not supported on Windows event loops
        pass
    await server.run_forever()


def run_server(config: Optional[Config] = None) -> None:
    """Run the server (blocking)."""
    server = MediaRemoteServer(config)

    try:
        asyncio.run(_serve_until_signalled(server))
    except KeyboardInterrupt:
        print("\nShutting down...")
