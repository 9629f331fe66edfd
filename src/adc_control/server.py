"""API server for ADC64 register control.

Exposes the dispatcher twice on one FastMCP instance: as MCP tools and
resources, and as the plain HTTP routes under ``/api`` that operators and
scripts call directly. Register addresses and values cross this boundary
as hexadecimal text (``{"Addr": "0x0040", "Value": "0x0001"}``).
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from mcp.server.fastmcp import FastMCP
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from .config import Config, build_registry
from .dispatcher import Dispatcher, Outcome, Verb
from .errors import AdcControlError, ErrorKind, InvalidRegisterError, UnknownOperationError
from .protocol.register import RegisterOperation, parse_hex16
from .registry import ALL_DEVICES

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "adc-control",
    instructions="Read and write ADC64 registers and start or stop MStream",
)

HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.UNKNOWN_DEVICE: 404,
    ErrorKind.UNKNOWN_OPERATION: 400,
    ErrorKind.INVALID_REGISTER: 400,
    ErrorKind.DEVICE: 502,
    ErrorKind.MALFORMED_FRAME: 502,
}

STREAM_ACTIONS: dict[str, Verb] = {
    "start": Verb.STREAM_START,
    "stop": Verb.STREAM_STOP,
}

# Global dispatcher, set once at start-up
_dispatcher: Dispatcher | None = None


def configure(dispatcher: Dispatcher | None) -> None:
    """Install the dispatcher used by every tool and route."""
    global _dispatcher
    _dispatcher = dispatcher


def _get_dispatcher() -> Dispatcher:
    if _dispatcher is None:
        raise RuntimeError("Server has no devices configured. Call configure() first.")
    return _dispatcher


async def _handle(
    verb: Verb, target: str, addr: int | None = None, value: int | None = None
) -> Outcome:
    """Run a command on a worker thread; device I/O blocks."""
    return await run_in_threadpool(_get_dispatcher().handle, verb.value, target, addr, value)


def render_registers(outcome: Outcome) -> list[dict[str, str]]:
    return [op.to_hex().to_dict() for op in outcome.payload or []]


def _tool_error(outcome: Outcome) -> dict[str, Any]:
    result: dict[str, Any] = {"error": outcome.message, "kind": outcome.kind.value}
    if outcome.devices:
        result["completed"] = outcome.devices
    return result


def _http_error(error: AdcControlError) -> Response:
    return PlainTextResponse(str(error), status_code=HTTP_STATUS[error.kind])


# ─── MCP TOOLS ────────────────────────────────────────────────────────

@mcp.tool()
def list_devices() -> dict[str, Any]:
    """List the names of all configured devices."""
    return {"devices": _get_dispatcher().registry.names()}


@mcp.tool()
async def reg_read(device: str, addr: str) -> dict[str, Any]:
    """Read one register.

    Args:
        device: Device name.
        addr: Register address as hex text, e.g. "0x0040".
    """
    try:
        number = parse_hex16(addr)
    except InvalidRegisterError as e:
        return {"error": str(e), "kind": e.kind.value}
    outcome = await _handle(Verb.READ, device, addr=number)
    if not outcome.ok:
        return _tool_error(outcome)
    return render_registers(outcome)[0]


@mcp.tool()
async def reg_read_all(device: str) -> dict[str, Any]:
    """Read every register the device reports, in device order.

    Args:
        device: Device name.
    """
    outcome = await _handle(Verb.READ_ALL, device)
    if not outcome.ok:
        return _tool_error(outcome)
    return {"device": device, "registers": render_registers(outcome)}


@mcp.tool()
async def reg_write(device: str, addr: str, value: str) -> dict[str, Any]:
    """Write one register.

    Args:
        device: Device name.
        addr: Register address as hex text.
        value: Register value as hex text.
    """
    try:
        op = RegisterOperation.from_hex(addr, value)
    except InvalidRegisterError as e:
        return {"error": str(e), "kind": e.kind.value}
    outcome = await _handle(Verb.WRITE, device, addr=op.addr, value=op.value)
    if not outcome.ok:
        return _tool_error(outcome)
    return {"written": True, "device": device, **op.to_hex().to_dict()}


@mcp.tool()
async def mstream_start(device: str = ALL_DEVICES) -> dict[str, Any]:
    """Start MStream on one device, or on every device in turn.

    Stops at the first device that fails; devices listed under
    "completed" were started before the failure.

    Args:
        device: Device name, or "all".
    """
    outcome = await _handle(Verb.STREAM_START, device)
    if not outcome.ok:
        return _tool_error(outcome)
    return {"started": True, "devices": outcome.devices}


@mcp.tool()
async def mstream_stop(device: str = ALL_DEVICES) -> dict[str, Any]:
    """Stop MStream on one device, or on every device in turn.

    Args:
        device: Device name, or "all".
    """
    outcome = await _handle(Verb.STREAM_STOP, device)
    if not outcome.ok:
        return _tool_error(outcome)
    return {"stopped": True, "devices": outcome.devices}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("adc://devices")
def resource_devices() -> str:
    """Configured device names."""
    if _dispatcher is None:
        return json.dumps({"devices": []})
    return json.dumps({"devices": _dispatcher.registry.names()})


# ─── HTTP ROUTES ─────────────────────────────────────────────────────

@mcp.custom_route("/api/reg/r/{device}/{addr}", methods=["GET"])
async def handle_reg_read(request: Request) -> Response:
    device = request.path_params["device"]
    addr = request.path_params["addr"]
    logger.debug("Handling reg read request: device: %s, addr: %s", device, addr)
    try:
        number = parse_hex16(addr)
    except InvalidRegisterError as e:
        return _http_error(e)

    outcome = await _handle(Verb.READ, device, addr=number)
    if not outcome.ok:
        return _http_error(outcome.error)
    return JSONResponse(render_registers(outcome)[0])


@mcp.custom_route("/api/reg/r/{device}", methods=["GET"])
async def handle_reg_read_all(request: Request) -> Response:
    device = request.path_params["device"]
    logger.debug("Handling reg read all request: device: %s", device)
    outcome = await _handle(Verb.READ_ALL, device)
    if not outcome.ok:
        return _http_error(outcome.error)
    return JSONResponse(render_registers(outcome))


@mcp.custom_route("/api/reg/w/{device}", methods=["POST"])
async def handle_reg_write(request: Request) -> Response:
    device = request.path_params["device"]
    try:
        body = await request.json()
    except ValueError as e:
        return PlainTextResponse(f"Invalid JSON body: {e}", status_code=400)
    if not isinstance(body, dict):
        return PlainTextResponse("Body must be an object with Addr and Value", status_code=400)

    logger.debug(
        "Handling reg write request: device: %s addr: %s value: %s",
        device, body.get("Addr"), body.get("Value"),
    )
    try:
        op = RegisterOperation.from_hex(body.get("Addr"), body.get("Value"))
    except InvalidRegisterError as e:
        return _http_error(e)

    outcome = await _handle(Verb.WRITE, device, addr=op.addr, value=op.value)
    if not outcome.ok:
        return _http_error(outcome.error)
    return Response(status_code=200)


async def _mstream_action(action: str, device: str) -> Response:
    verb = STREAM_ACTIONS.get(action)
    if verb is None:
        return _http_error(
            UnknownOperationError("Wrong MStream action. Must be one of start/stop")
        )
    outcome = await _handle(verb, device)
    if not outcome.ok:
        return _http_error(outcome.error)
    return Response(status_code=200)


@mcp.custom_route("/api/mstream/{action}/{device}", methods=["GET"])
async def handle_mstream_action(request: Request) -> Response:
    action = request.path_params["action"]
    device = request.path_params["device"]
    logger.debug("Handling MStream action request: device: %s action: %s", device, action)
    return await _mstream_action(action, device)


@mcp.custom_route("/api/mstream/{action}", methods=["GET"])
async def handle_mstream_action_all(request: Request) -> Response:
    action = request.path_params["action"]
    logger.debug("Handling MStream action request for all devices: action: %s", action)
    return await _mstream_action(action, ALL_DEVICES)


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def serve(config: Config, transport: str = "streamable-http") -> None:
    """Build the device registry from ``config`` and run the server."""
    configure(Dispatcher(build_registry(config)))
    mcp.settings.host = config.api.host
    mcp.settings.port = config.api.port
    logger.info(
        "Starting API server: address: %s port: %d transport: %s",
        config.api.host, config.api.port, transport,
    )
    mcp.run(transport=transport)


def main() -> int:
    """Run the API server; same as ``adc-control serve``."""
    from .cli import main as cli_main

    return cli_main(["serve", *sys.argv[1:]])


if __name__ == "__main__":
    sys.exit(main())
