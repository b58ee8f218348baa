import argparse
import json
import logging
import sys
from dataclasses import dataclass, fields

from event_loop import submit_line
from p2p import DEFAULT_PORT, PeerConnectionError, ReceiverTask, connect, listen_and_accept
from session import ChatSession
from tui_app import TerminalError, run_tui
from utils import setup_logging


class ConfigError(ValueError):
    pass


@dataclass
class ChatConfig:
    address: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    listen: int = DEFAULT_PORT
    server: bool = False
    verbose: int = 0
    exit_on_close: bool = False
    plain: bool = False
    log_dir: str = "logs"


def port_number(value):
    port = int(value)
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {value}")
    return port


def build_parser():
    # defaults stay None so config-file values are only overridden by flags actually given
    p = argparse.ArgumentParser(prog="duplex-chat", description="Two-peer line chat over TCP")
    p.add_argument("-a", "--address", default=None, help="remote address")
    p.add_argument("-p", "--port", type=port_number, default=None, help=f"remote port (default {DEFAULT_PORT})")
    p.add_argument("-l", "--listen", type=port_number, default=None, help=f"listening port (default {DEFAULT_PORT})")
    p.add_argument("-s", "--server", action="store_true", default=None, help="run as server")
    p.add_argument("-v", "--verbose", action="count", default=None, help="sets the logging level")
    p.add_argument("--exit-on-close", action="store_true", default=None, help="quit when the peer disconnects")
    p.add_argument("--plain", action="store_true", default=None, help="line mode without the full-screen interface")
    p.add_argument("--log-dir", default=None, help="directory for log files (default logs)")
    p.add_argument("--config", default=None, help="JSON file with default settings")
    return p


def load_config_file(path):
    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must contain a JSON object")
    known = {f.name for f in fields(ChatConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
    return data


def resolve_config(args) -> ChatConfig:
    values = {}
    if args.config:
        values.update(load_config_file(args.config))
    for f in fields(ChatConfig):
        given = getattr(args, f.name)
        if given is not None:
            values[f.name] = given

    config = ChatConfig(**values)
    for f in fields(ChatConfig):
        value = getattr(config, f.name)
        expected = type(f.default)
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ConfigError(f"{f.name} must be {expected.__name__}, got {value!r}")
    for name in ("port", "listen"):
        if not 0 <= getattr(config, name) <= 65535:
            raise ConfigError(f"{name} out of range: {getattr(config, name)}")
    return config


def open_connection(config: ChatConfig):
    if config.server:
        return listen_and_accept(config.listen)
    return connect(config.address, config.port)


def run_plain(session, connection, stdin=None, stdout=None):
    """Line mode: stdin lines go out, incoming lines are printed."""
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout

    receiver = ReceiverTask(connection.reader, session,
                            on_message=lambda line: print(line, file=stdout, flush=True))
    receiver.start()
    for raw in stdin:
        text = raw.rstrip("\r\n")
        if text:
            submit_line(session, connection, text)
    logging.info("Closing connection")
    session.terminated.set()
    return receiver


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = resolve_config(args)
    except ConfigError as e:
        parser.error(str(e))

    setup_logging(config.verbose, config.log_dir)
    logging.info("duplex chat started.")

    session = ChatSession()
    try:
        connection = open_connection(config)
    except PeerConnectionError as e:
        print(f"duplex-chat: {e}", file=sys.stderr)
        return 1

    try:
        if config.plain:
            run_plain(session, connection)
        else:
            reason = run_tui(session, connection, exit_on_close=config.exit_on_close)
            logging.info(f"Session ended: {reason.value}")
    except TerminalError as e:
        print(f"duplex-chat: {e}", file=sys.stderr)
        return 1
    finally:
        session.terminated.set()
        connection.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
