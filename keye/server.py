"""
Capture server: newline-delimited JSON front end for the capture
coordinator.

A host bridge (for example a browser extension's native-messaging shim)
and any number of UIs connect over TCP. Every connection is an observer:
it receives ``STATE_UPDATE`` broadcasts and may send control messages.
Host header events travel on the same wire:

    host bridge ──► {"type": "REQUEST_HEADERS_SENT", "tabId": 7, "url": ..., "requestHeaders": [...]}
                    {"type": "RESPONSE_HEADERS_RECEIVED", "tabId": 7, "url": ..., "responseHeaders": [...]}
    UI          ──► {"type": "START_CAPTURE", "domain": "example.com", "tabId": 7}
                ◄── {"type": "STATE_UPDATE", "captures": {...}}

Host events reach the coordinator only while some capture is active; the
rest are dropped on arrival.

Usage as CLI:
    keye --port 8765 --settings ~/.config/keye/settings.json \\
        --alarms ~/.local/state/keye/alarms.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
from pathlib import Path
from types import TracebackType
from typing import Any, Mapping, Optional

from keye.capture import CaptureCoordinator, CoordinatorTimingConfig
from keye.capture.managers import CaptureSettings, SettingsManager
from keye.exceptions import MalformedMessage, ServerNotStarted
from keye.host.alarms import AlarmService, InMemoryAlarmService, PersistentAlarmService
from keye.host.events import InMemoryEventStream
from keye.host.timers import AsyncioTimerService, TimerService
from keye.protocol.messages import HostEvent

logger = logging.getLogger(__name__)

MAX_LINE_BYTES = 1024 * 1024

DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = 8765
DEFAULT_SETTINGS_PATH = Path.home() / '.config' / 'keye' / 'settings.json'
DEFAULT_ALARMS_PATH = Path.home() / '.local' / 'state' / 'keye' / 'alarms.json'


def decode_message(line: bytes) -> dict[str, Any]:
    """Decode one wire line into a message object.

    Raises:
        MalformedMessage: The line is not a JSON object with a string ``type``.
    """
    try:
        message = json.loads(line)
    except ValueError as exc:
        raise MalformedMessage(f'Invalid JSON: {exc}') from exc
    if not isinstance(message, dict) or not isinstance(message.get('type'), str):
        raise MalformedMessage('Expected a JSON object with a string "type"')
    return message


def encode_message(message: Mapping[str, Any]) -> bytes:
    return json.dumps(message, ensure_ascii=False).encode('utf-8') + b'\n'


def _is_header_entry(entry: Any) -> bool:
    return (
        isinstance(entry, dict)
        and isinstance(entry.get('name'), str)
        and isinstance(entry.get('value', ''), str)
    )


def sanitize_host_event(event: Mapping[str, Any], key: str) -> dict[str, Any] | None:
    """Validate a host event read from the wire.

    Header entries whose ``name`` or ``value`` is not a string are dropped.

    Returns:
        A copy of the event holding only well-formed header entries, or None
        when the event has no string ``url`` or its headers are not a list.
    """
    if not isinstance(event.get('url'), str):
        logger.warning('Dropping host event without a string url')
        return None
    headers = event.get(key, [])
    if not isinstance(headers, list):
        logger.warning('Dropping host event with malformed %s', key)
        return None
    entries = [entry for entry in headers if _is_header_entry(entry)]
    if len(entries) != len(headers):
        logger.warning('Dropped %d malformed %s entries', len(headers) - len(entries), key)
    return {**event, key: entries}


class StreamChannel:
    """Observer channel writing JSON lines to a connection."""

    def __init__(self, writer: asyncio.StreamWriter):
        self._writer = writer

    @property
    def peer(self) -> str:
        peername = self._writer.get_extra_info('peername')
        return f'{peername[0]}:{peername[1]}' if peername else 'unknown'

    def post_message(self, message: Mapping[str, Any]) -> None:
        if self._writer.is_closing():
            raise ConnectionResetError(f'Connection to {self.peer} is closing')
        self._writer.write(encode_message(message))


async def _close_writer(writer: asyncio.StreamWriter) -> None:
    """Close a stream writer and wait for the transport to finish."""
    writer.close()
    try:
        await writer.wait_closed()
    except (ConnectionResetError, BrokenPipeError, OSError):
        pass


class CaptureServer:
    """TCP server exposing a ``CaptureCoordinator`` to host bridges and UIs.

    Can be used as an async context manager::

        async with CaptureServer(port=0) as server:
            # server.port is now listening
            ...
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        settings: Optional[CaptureSettings] = None,
        settings_manager: Optional[SettingsManager] = None,
        alarms: Optional[AlarmService] = None,
        timers: Optional[TimerService] = None,
        timing: CoordinatorTimingConfig = CoordinatorTimingConfig(),
    ) -> None:
        self.host = host
        self.port = port
        self.events = InMemoryEventStream()
        self._timers = timers or AsyncioTimerService()
        self._alarms = alarms
        self._initial_settings = settings
        self._settings_manager = settings_manager
        self._timing = timing
        self._server: asyncio.Server | None = None
        self._connections: set[asyncio.StreamWriter] = set()
        self.coordinator: CaptureCoordinator | None = None

    async def __aenter__(self) -> CaptureServer:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()

    async def start(self) -> None:
        """Load settings, restore durable alarms and start listening."""
        settings = self._initial_settings
        if settings is None and self._settings_manager is not None:
            settings = await self._settings_manager.load()

        if self._alarms is None:
            self._alarms = InMemoryAlarmService(self._timers)

        self.coordinator = CaptureCoordinator(
            self.events,
            self._timers,
            self._alarms,
            settings=settings,
            timing=self._timing,
            settings_manager=self._settings_manager,
        )
        if isinstance(self._alarms, PersistentAlarmService):
            await self._alarms.restore()

        self._server = await asyncio.start_server(
            self._handle_client,
            self.host,
            self.port,
            limit=MAX_LINE_BYTES,
        )
        sockets = list(self._server.sockets or [])
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info('Capture server listening on %s:%s', self.host, self.port)

    async def stop(self) -> None:
        """Close every connection and shut the server down."""
        if self._server is None:
            return
        self._server.close()
        for writer in list(self._connections):
            await _close_writer(writer)
        await self._server.wait_closed()
        self._server = None
        if self.coordinator is not None:
            self.coordinator.clear_all()
        if self._settings_manager is not None:
            await self._settings_manager.flush()
        if isinstance(self._alarms, PersistentAlarmService):
            await self._alarms.flush()
        logger.info('Capture server stopped')

    async def serve_forever(self) -> None:
        """Block until the server is closed (useful for CLI mode)."""
        if self._server is None:
            raise ServerNotStarted()
        async with self._server:
            await self._server.serve_forever()

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Serve one connection until it closes."""
        coordinator = self._active_coordinator()
        channel = StreamChannel(writer)
        self._connections.add(writer)
        coordinator.connect(channel)
        logger.debug('Connection opened: %s', channel.peer)
        try:
            while True:
                try:
                    line = await reader.readline()
                except ValueError:
                    logger.warning('Dropping oversized line from %s', channel.peer)
                    continue
                if not line:
                    break
                if not line.strip():
                    continue
                try:
                    message = decode_message(line)
                except MalformedMessage as exc:
                    logger.warning('Malformed message from %s: %s', channel.peer, exc)
                    continue
                try:
                    self._dispatch(coordinator, channel, message)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception('Unexpected error handling %s message', message['type'])
                await writer.drain()
        except (ConnectionResetError, BrokenPipeError):
            logger.debug('Connection reset: %s', channel.peer)
        finally:
            coordinator.disconnect(channel)
            self._connections.discard(writer)
            await _close_writer(writer)
            logger.debug('Connection closed: %s', channel.peer)

    def _active_coordinator(self) -> CaptureCoordinator:
        if self.coordinator is None:
            raise ServerNotStarted()
        return self.coordinator

    def _dispatch(
        self,
        coordinator: CaptureCoordinator,
        channel: StreamChannel,
        message: dict[str, Any],
    ) -> None:
        message_type = message['type']
        if message_type == HostEvent.REQUEST_HEADERS_SENT.value:
            event = sanitize_host_event(message, 'requestHeaders')
            if event is not None:
                self.events.emit_request(event)  # type: ignore[arg-type]
        elif message_type == HostEvent.RESPONSE_HEADERS_RECEIVED.value:
            event = sanitize_host_event(message, 'responseHeaders')
            if event is not None:
                self.events.emit_response(event)  # type: ignore[arg-type]
        else:
            coordinator.handle_message(channel, message)


async def _main(args: argparse.Namespace) -> None:
    timers = AsyncioTimerService()
    server = CaptureServer(
        host=args.host,
        port=args.port,
        settings_manager=SettingsManager(args.settings),
        alarms=PersistentAlarmService(args.alarms, timers),
        timers=timers,
    )
    await server.start()

    loop = asyncio.get_running_loop()
    stop = loop.create_future()

    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set_result, None)
    except NotImplementedError:
        pass  # Windows / ProactorEventLoop; fall back to KeyboardInterrupt

    logger.info('Press Ctrl+C to stop.')

    try:
        await stop
    finally:
        await server.stop()


def cli() -> None:
    parser = argparse.ArgumentParser(
        description='Capture credential headers of your own browser session.',
    )
    parser.add_argument('--host', default=DEFAULT_HOST, help='Bind address')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT, help='Bind port (0 = random)')
    parser.add_argument(
        '--settings',
        type=Path,
        default=DEFAULT_SETTINGS_PATH,
        help='Settings JSON file',
    )
    parser.add_argument(
        '--alarms',
        type=Path,
        default=DEFAULT_ALARMS_PATH,
        help='File where pending expiry alarms are kept across restarts',
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )

    try:
        asyncio.run(_main(args))
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    cli()
