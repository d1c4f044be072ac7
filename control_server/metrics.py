"""
Health and metrics HTTP endpoint for control server monitoring.

Provides lightweight HTTP endpoints for production monitoring:
- GET /health - JSON health check
- GET /metrics - Prometheus-compatible text format metrics
"""

import asyncio
import json
import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from control_server.server import ControlServer

logger = logging.getLogger(__name__)


async def handle_http_request(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    server: "ControlServer",
) -> None:
    """Handle a single HTTP request."""
    try:
        request_line = await reader.readline()
        if not request_line:
            return

        parts = request_line.decode("utf-8").strip().split()
        if len(parts) < 2:
            return

        method, path = parts[0], parts[1]

        # Headers are not needed for these endpoints
        while True:
            line = await reader.readline()
            if not line or line == b"\r\n":
                break

        if method == "GET" and path == "/health":
            _write_response(writer, "200 OK", "application/json", json.dumps(health_data(server), indent=2))
        elif method == "GET" and path == "/metrics":
            _write_response(writer, "200 OK", "text/plain; version=0.0.4", metrics_text(server))
        else:
            _write_response(writer, "404 Not Found", "text/plain", "Not Found")

    except (ConnectionError, UnicodeDecodeError) as e:
        logger.error(f"Error handling metrics request: {e}")
    finally:
        try:
            await writer.drain()
            writer.close()
            await writer.wait_closed()
        except ConnectionError:
            pass


def _write_response(writer: asyncio.StreamWriter, status: str, content_type: str, body: str) -> None:
    encoded = body.encode("utf-8")
    head = (
        f"HTTP/1.1 {status}\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(encoded)}\r\n"
        "\r\n"
    )
    writer.write(head.encode("utf-8") + encoded)


def health_data(server: "ControlServer") -> dict:
    engine = server.engine
    state = engine.state if engine else None
    return {
        "status": "blocked" if server.blocked_reason else "ok",
        "uptime_seconds": round(time.time() - server._start_time, 2),
        "connected_clients": len(server._clients),
        "session_started": engine is not None,
        "blocked_reason": server.blocked_reason,
        "live_item": state.live_id if state else None,
        "preview_item": state.preview_id if state else None,
        "paused": bool(state and state.paused),
        "stopped": bool(state and state.stopped),
    }


def metrics_text(server: "ControlServer") -> str:
    """Prometheus text format."""
    engine = server.engine
    state = engine.state if engine else None
    uptime = time.time() - server._start_time
    live_id = state.live_id if state and state.live_id else ""

    lines = [
        "# HELP rundown_uptime_seconds Server uptime in seconds",
        "# TYPE rundown_uptime_seconds gauge",
        f"rundown_uptime_seconds {uptime:.2f}",
        "",
        "# HELP rundown_connected_clients Number of connected control clients",
        "# TYPE rundown_connected_clients gauge",
        f"rundown_connected_clients {len(server._clients)}",
        "",
        "# HELP rundown_client_connections_total Total control client connections since start",
        "# TYPE rundown_client_connections_total counter",
        f"rundown_client_connections_total {server._client_connects}",
        "",
        "# HELP rundown_invalid_messages_total Inbound messages rejected by validation",
        "# TYPE rundown_invalid_messages_total counter",
        f"rundown_invalid_messages_total {server._invalid_messages}",
        "",
        "# HELP rundown_advances_total Items that went LIVE",
        "# TYPE rundown_advances_total counter",
        f"rundown_advances_total {engine.advances_total if engine else 0}",
        "",
        "# HELP rundown_commands_total Outbound actuator commands emitted",
        "# TYPE rundown_commands_total counter",
        f"rundown_commands_total {engine.commands_total if engine else 0}",
        "",
        "# HELP rundown_session_blocked Whether the rundown could not be loaded",
        "# TYPE rundown_session_blocked gauge",
        f"rundown_session_blocked {1 if server.blocked_reason else 0}",
        "",
        "# HELP rundown_paused Whether execution is paused",
        "# TYPE rundown_paused gauge",
        f"rundown_paused {1 if state and state.paused else 0}",
        "",
        "# HELP rundown_stopped Whether execution is stopped",
        "# TYPE rundown_stopped gauge",
        f"rundown_stopped {1 if state and state.stopped else 0}",
        "",
        "# HELP rundown_live_item Currently LIVE item",
        "# TYPE rundown_live_item gauge",
        f'rundown_live_item{{item_id="{live_id}"}} {1 if live_id else 0}',
        "",
    ]
    return "\n".join(lines)


async def start_metrics_server(
    server: "ControlServer",
    port: int,
    host: str = "0.0.0.0",
) -> asyncio.Server:
    """Start the metrics HTTP server.

    Args:
        server: ControlServer instance to expose metrics for
        port: Port to listen on
        host: Host to bind to (default: 0.0.0.0)

    Returns:
        asyncio.Server instance
    """

    async def client_handler(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        await handle_http_request(reader, writer, server)

    metrics_server = await asyncio.start_server(client_handler, host, port)
    logger.info(f"Metrics server: http://localhost:{port}/health, /metrics")
    return metrics_server
