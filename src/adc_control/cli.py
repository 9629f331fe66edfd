"""Command-line tool for ADC64 register control.

Examples::

    adc-control --config adc-control.yaml reg read --device adc0 --addr 0x40
    adc-control reg read-all --device adc0
    adc-control reg write --device adc0 --addr 0x40 --value 0x1
    adc-control mstream start            # every configured device
    adc-control mstream stop --device adc1
    adc-control serve
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, TextIO

from .config import DEFAULT_CONFIG_FILE, Config, build_registry, load_config
from .dispatcher import Dispatcher, Outcome, Verb
from .errors import InvalidRegisterError
from .protocol.register import parse_hex16
from .registry import ALL_DEVICES

logger = logging.getLogger(__name__)


def _hex16(text: str) -> int:
    try:
        return parse_hex16(text)
    except InvalidRegisterError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", default=argparse.SUPPRESS, help="YAML configuration file"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help="debug logging"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adc-control", description="Tool to work with ADC64 devices"
    )
    parser.set_defaults(config=DEFAULT_CONFIG_FILE, verbose=False)
    _add_common_options(parser)
    # Subcommands accept the same options after their name without
    # overwriting a value given before it
    common = argparse.ArgumentParser(add_help=False)
    _add_common_options(common)
    commands = parser.add_subparsers(dest="command", required=True)

    reg = commands.add_parser(
        "reg",
        parents=[common],
        help="Low level control by means of reading from/writing to registers",
    )
    reg_commands = reg.add_subparsers(dest="reg_command", required=True)

    read = reg_commands.add_parser("read", parents=[common], help="read one register")
    read.add_argument("--device", required=True, help="device name")
    read.add_argument("--addr", required=True, type=_hex16, help="register address (hex)")

    read_all = reg_commands.add_parser("read-all", parents=[common], help="read all registers")
    read_all.add_argument("--device", required=True, help="device name")

    write = reg_commands.add_parser("write", parents=[common], help="write one register")
    write.add_argument("--device", required=True, help="device name")
    write.add_argument("--addr", required=True, type=_hex16, help="register address (hex)")
    write.add_argument("--value", required=True, type=_hex16, help="register value (hex)")

    mstream = commands.add_parser("mstream", parents=[common], help="start or stop MStream")
    mstream.add_argument("action", choices=["start", "stop"])
    mstream.add_argument(
        "--device", default=ALL_DEVICES, help="device name (default: all devices)"
    )

    serve = commands.add_parser("serve", parents=[common], help="run the HTTP/MCP API server")
    serve.add_argument(
        "--transport",
        default="streamable-http",
        choices=["streamable-http", "sse", "stdio"],
        help="server transport",
    )
    serve.add_argument("--host", help="override api.host from the configuration")
    serve.add_argument("--port", type=int, help="override api.port from the configuration")
    return parser


def to_request(args: argparse.Namespace) -> tuple[str, str, int | None, int | None]:
    """Translate parsed arguments into ``(verb, target, addr, value)``."""
    if args.command == "mstream":
        verb = Verb.STREAM_START if args.action == "start" else Verb.STREAM_STOP
        return verb.value, args.device, None, None
    verb = Verb.parse(args.reg_command)
    return verb.value, args.device, getattr(args, "addr", None), getattr(args, "value", None)


def print_outcome(outcome: Outcome, out: TextIO, err: TextIO) -> int:
    if not outcome.ok:
        if outcome.devices:
            print(f"completed: {', '.join(outcome.devices)}", file=err)
        print(f"error: {outcome.message}", file=err)
        return 1
    for op in outcome.payload or []:
        addr, value = op.hex()
        print(f"{addr} {value}", file=out)
    for name in outcome.devices:
        print(f"{name}: ok", file=out)
    return 0


def run(
    args: argparse.Namespace,
    dispatcher: Dispatcher,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Dispatch one register or MStream command and print the result."""
    out = out or sys.stdout
    err = err or sys.stderr
    verb, target, addr, value = to_request(args)
    return print_outcome(dispatcher.handle(verb, target, addr, value), out, err)


def _serve(args: argparse.Namespace, config: Config) -> int:
    from .server import serve

    if args.host:
        config.api.host = args.host
    if args.port:
        config.api.port = args.port
    serve(config, transport=args.transport)
    return 0


def main(
    argv: list[str] | None = None,
    dispatcher_factory: Callable[[Config], Dispatcher] | None = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.command == "serve":
        return _serve(args, config)

    if dispatcher_factory is None:
        dispatcher = Dispatcher(build_registry(config))
    else:
        dispatcher = dispatcher_factory(config)
    try:
        return run(args, dispatcher)
    finally:
        for _, device in dispatcher.registry.all_devices():
            close = getattr(device, "close", None)
            if close is not None:
                close()


if __name__ == "__main__":
    sys.exit(main())
