"""
iristerm package init.
Exports the terminal session, its configuration and the stream helpers.
"""

import argparse
import asyncio
import datetime
import json
import logging
import os
import sys
import threading
from typing import Any, Dict, List, Optional, TextIO

from .config import SessionConfig
from .emulation.codec import EncodingMode, decode, encode
from .emulation.payload import WireValue, decode_payload
from .emulation.prompt import match_context
from .exceptions import IrisTermError
from .session import SessionListener, TerminalSession, terminal_title

__version__ = "0.1.0"


class JSONFormatter(logging.Formatter):
    """JSON formatter with session correlation support."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.datetime.now().isoformat(),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        session_id = getattr(record, "session_id", None)
        if session_id:
            log_entry["session_id"] = session_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "WARNING") -> None:
    """
    Setup basic logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    use_json = os.environ.get("IRISTERM_LOG_JSON", "false").lower() == "true"
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    if use_json:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
    else:
        logging.basicConfig(level=getattr(logging, level.upper()))


class ConsoleListener(SessionListener):
    """Writes session output to a text stream (stdout for the CLI)."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self.errors: List[str] = []

    def on_display_text(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def on_context_changed(self, context: str) -> None:
        logging.getLogger(__name__).info(f"Namespace is now {context}")

    def on_error(self, message: str) -> None:
        self.errors.append(message)


def _start_line_reader(
    loop: asyncio.AbstractEventLoop, stdin: TextIO, queue: "asyncio.Queue[str]"
) -> threading.Thread:
    # daemon: a blocked readline must not keep the process alive after close
    def _reader() -> None:
        while True:
            line = stdin.readline()
            loop.call_soon_threadsafe(queue.put_nowait, line)
            if not line:
                return

    thread = threading.Thread(target=_reader, name="iristerm-stdin", daemon=True)
    thread.start()
    return thread


async def run_terminal(
    config: SessionConfig,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    """Relay stdin lines to a session and its output to stdout.

    Returns 1 if the session reported an error, else 0.
    """
    stdin = stdin or sys.stdin
    listener = ConsoleListener(stdout or sys.stdout)
    session = TerminalSession(config, [listener])
    loop = asyncio.get_running_loop()
    lines: "asyncio.Queue[str]" = asyncio.Queue()

    session.open()
    _start_line_reader(loop, stdin, lines)
    closed = loop.create_task(session.wait_closed())
    try:
        while not closed.done():
            next_line = loop.create_task(lines.get())
            done, _ = await asyncio.wait(
                {closed, next_line}, return_when=asyncio.FIRST_COMPLETED
            )
            if next_line not in done:
                next_line.cancel()
                break
            line = next_line.result()
            if not line:
                break
            session.handle_input(line.rstrip("\r\n") + "\r\n")
    finally:
        session.close()
        await session.wait_closed()
    return 1 if listener.errors else 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point: line-mode terminal to an IRIS/Cache telnet server."""
    parser = argparse.ArgumentParser(
        description="iristerm - terminal for IRIS/Cache telnet servers"
    )
    parser.add_argument(
        "host", nargs="?", help="Host to connect to (default: $IRISTERM_HOST)"
    )
    parser.add_argument("--port", type=int, help="Port (default 23)")
    parser.add_argument("--user", help="Username sent at the login prompt")
    parser.add_argument("--password", help="Password sent at the password prompt")
    parser.add_argument("--namespace", help="Namespace to switch to after login")
    parser.add_argument(
        "--encoding",
        choices=[mode.value for mode in EncodingMode],
        help="Wire encoding (default utf8)",
    )
    parser.add_argument("--name", help="Display name for the banner and title")
    parser.add_argument(
        "--plain", action="store_true", help="Skip the TLS attempt"
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    try:
        config = SessionConfig.from_env(
            host=args.host,
            port=args.port,
            username=args.user,
            password=args.password,
            namespace=args.namespace,
            encoding=args.encoding,
            display_name=args.name,
            prefer_secure=False if args.plain else None,
        )
    except ValueError as e:
        parser.error(str(e))

    return asyncio.run(run_terminal(config))


__all__ = [
    "TerminalSession",
    "SessionListener",
    "SessionConfig",
    "EncodingMode",
    "WireValue",
    "IrisTermError",
    "decode",
    "encode",
    "decode_payload",
    "match_context",
    "terminal_title",
    "setup_logging",
    "main",
]
