"""
Rundown control server.

Loads a rundown, runs one RundownEngine and exposes it over a WebSocket
control channel. A single asyncio tick task drives timers; message handlers
and ticks share the loop and never await between reading and mutating
engine state, so operator events and ticks are serialized.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, List, Optional, Sequence, Set

from pydantic import ValidationError
from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed

from rundown_engine import RundownEngine
from rundown_engine.models import Rundown

from .control_pad import build_control_pad
from .rundown_source import RundownFetchError
from .schemas import (
    ArmManualItemMessage,
    ControlActionMessage,
    ExecuteManualItemMessage,
    ForceRemoveOverlayMessage,
    GetStateMessage,
    PingMessage,
    ToggleManualItemMessage,
    ToggleManualOverlayMessage,
    parse_inbound,
    serialize_command,
)

logger = logging.getLogger(__name__)

RELOAD_INTERVAL = 5.0


class ControlServer:
    """WebSocket front end for one control session."""

    def __init__(
        self,
        source,
        host: str = "0.0.0.0",
        port: int = 8770,
        tick_interval_ms: int = 100,
        metrics_port: Optional[int] = None,
        transitions: Optional[Sequence[str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.host = host
        self.port = port
        self.tick_interval = tick_interval_ms / 1000
        self.metrics_port = metrics_port
        self.transitions = list(transitions) if transitions else None
        self._clock = clock

        self.engine: Optional[RundownEngine] = None
        self.blocked_reason: Optional[str] = None

        self._clients: Set[Any] = set()
        self._pending: List[str] = []
        self._state_dirty = False
        self._running = False
        self._tick_task: Optional[asyncio.Task] = None
        self._reload_task: Optional[asyncio.Task] = None

        # Stats
        self._start_time = time.time()
        self._client_connects = 0
        self._messages_total = 0
        self._invalid_messages = 0

    # === Session ===

    async def load(self) -> bool:
        """Fetch the rundown and start (or refresh) the session."""
        try:
            rundown = await self.source.fetch()
        except RundownFetchError as e:
            self.blocked_reason = str(e)
            logger.error(f"Cannot start session: {e}")
            await self._broadcast(json.dumps({"type": "SESSION_BLOCKED", "reason": self.blocked_reason}))
            return False

        self.set_rundown(rundown)
        await self.flush()
        return True

    def set_rundown(self, rundown: Rundown):
        if self.engine is None:
            self.engine = RundownEngine.create(rundown, clock=self._clock)
            self.engine.set_callbacks(
                on_command=self._queue_command,
                on_state_change=self._mark_dirty,
            )
        else:
            self.engine.update_rundown(rundown)
        self.blocked_reason = None
        self._state_dirty = True

    def _queue_command(self, command: dict):
        try:
            self._pending.append(serialize_command(command))
        except ValidationError as e:
            logger.error(f"Dropping invalid {command.get('type')} command: {e}")

    def _mark_dirty(self):
        self._state_dirty = True

    # === Outbound ===

    def state_message(self) -> dict:
        return {
            "type": "STATE",
            "blocked": self.blocked_reason,
            "state": self.engine.snapshot() if self.engine else None,
        }

    def control_pad_message(self) -> dict:
        snapshot = self.engine.snapshot() if self.engine else {}
        return build_control_pad(snapshot, self.transitions)

    async def flush(self):
        """Send queued commands, then the new state if anything changed."""
        pending, self._pending = self._pending, []
        for message in pending:
            await self._broadcast(message)
        if self._state_dirty:
            self._state_dirty = False
            await self._broadcast(json.dumps(self.state_message()))
            await self._broadcast(json.dumps(self.control_pad_message()))

    async def _send(self, client, message: str, dead_clients: set, timeout: float = 0.5):
        try:
            await asyncio.wait_for(client.send(message), timeout=timeout)
        except (asyncio.TimeoutError, ConnectionClosed, OSError):
            dead_clients.add(client)

    async def _broadcast(self, message: str):
        """Send to every client; clients that fail are dropped."""
        dead_clients: set = set()
        for client in list(self._clients):
            await self._send(client, message, dead_clients)
        if dead_clients:
            self._clients -= dead_clients
            logger.info(f"Dropped {len(dead_clients)} unreachable client(s)")

    async def _reply(self, websocket, payload: dict):
        try:
            await websocket.send(json.dumps(payload))
        except ConnectionClosed:
            self._clients.discard(websocket)

    # === Inbound ===

    async def handler(self, websocket):
        """Handle one control-surface connection."""
        client = client_name(websocket)
        self._clients.add(websocket)
        self._client_connects += 1
        logger.info(
            f"Control client {client} connected. Total: {len(self._clients)}",
            extra={"client": client},
        )

        try:
            await websocket.send(json.dumps(self.state_message()))
            if self.engine is not None:
                await websocket.send(json.dumps(self.control_pad_message()))
            elif self.blocked_reason:
                await websocket.send(
                    json.dumps({"type": "SESSION_BLOCKED", "reason": self.blocked_reason})
                )
            async for message in websocket:
                await self.handle_message(websocket, message)
        except ConnectionClosed:
            pass
        finally:
            self._clients.discard(websocket)
            logger.info(
                f"Control client {client} disconnected. Total: {len(self._clients)}",
                extra={"client": client},
            )

    async def handle_message(self, websocket, raw):
        self._messages_total += 1
        try:
            message = parse_inbound(raw)
        except ValueError as e:
            self._invalid_messages += 1
            logger.debug(f"Invalid control message: {e}")
            await self._reply(websocket, {"type": "error", "message": _error_text(e)})
            return

        if isinstance(message, PingMessage):
            await self._reply(websocket, {"type": "pong"})
            return
        if isinstance(message, GetStateMessage):
            await self._reply(websocket, self.state_message())
            return

        engine = self.engine
        if engine is None:
            await self._reply(
                websocket,
                {"type": "error", "message": self.blocked_reason or "Session not started"},
            )
            return

        if isinstance(message, ControlActionMessage):
            button = message.button.model_dump()
            logger.info(f"Control action: {button['type']}", extra={"action": button["type"]})
            engine.handle_control_action(button)
        elif isinstance(message, ToggleManualItemMessage):
            engine.toggle_manual_item(message.item_id)
        elif isinstance(message, ExecuteManualItemMessage):
            engine.execute_manual_item(message.item_id)
        elif isinstance(message, ArmManualItemMessage):
            engine.arm_manual_item(message.item_id)
        elif isinstance(message, ToggleManualOverlayMessage):
            engine.toggle_manual_overlay(message.overlay_id)
        elif isinstance(message, ForceRemoveOverlayMessage):
            engine.force_remove_overlay(message.overlay_id)

        await self.flush()

    # === Loops ===

    async def tick_once(self, now: Optional[float] = None):
        if self.engine is not None:
            self.engine.tick(self._clock() if now is None else now)
        await self.flush()

    async def _tick_loop(self):
        while self._running:
            try:
                await self.tick_once()
            except Exception:
                logger.exception("Tick failed")
            await asyncio.sleep(self.tick_interval)

    async def _reload_loop(self):
        """Retry the rundown fetch until a session can start."""
        while self._running and self.engine is None:
            await asyncio.sleep(RELOAD_INTERVAL)
            if await self.load():
                logger.info("Rundown loaded, session unblocked")

    async def run(self):
        """Start the control server and block until stop() is called."""
        self._running = True
        if not await self.load():
            self._reload_task = asyncio.create_task(self._reload_loop())

        metrics_server = None
        async with serve(self.handler, self.host, self.port):
            logger.info(f"Control WebSocket: ws://localhost:{self.port}")

            if self.metrics_port is not None:
                from control_server.metrics import start_metrics_server

                metrics_server = await start_metrics_server(self, self.metrics_port)

            self._tick_task = asyncio.create_task(self._tick_loop())
            try:
                while self._running:
                    await asyncio.sleep(0.25)
            finally:
                for task in (self._tick_task, self._reload_task):
                    if task and not task.done():
                        task.cancel()
                        try:
                            await task
                        except asyncio.CancelledError:
                            pass
                if metrics_server:
                    metrics_server.close()
                    await metrics_server.wait_closed()

    def stop(self):
        """Stop the server."""
        self._running = False

    async def cleanup(self):
        """Dispose the engine."""
        if self.engine is not None:
            self.engine.dispose()


def client_name(websocket) -> str:
    """host:port of the peer, for log context."""
    address = getattr(websocket, "remote_address", None)
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address) if address else "unknown"


def _error_text(error: Exception) -> str:
    if isinstance(error, ValidationError):
        first = error.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        return f"Invalid message: {location} {first.get('msg', '')}".strip()
    return f"Invalid message: {error}"
