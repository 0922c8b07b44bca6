"""
Terminal session controller.

A :class:`TerminalSession` ties one :class:`TransportNegotiator` to the codec,
the prompt matcher and the login sequencer, and reports what happens to any
number of listeners. Everything runs on the event loop that called
:meth:`TerminalSession.open`; incoming buffers are handled one at a time, in
arrival order.
"""

import asyncio
import logging
import re
import uuid
from typing import Any, List, Optional, Set

from .config import SessionConfig
from .emulation.codec import (
    EncodingMode,
    StreamDecoder,
    encode,
    translate_backspace,
)
from .emulation.prompt import match_context
from .exceptions import IrisTermError
from .protocol.errors import FallbackPolicy, describe_error
from .protocol.login import LoginPhase, LoginSequencer, LoginStep
from .protocol.negotiator import TransportNegotiator, TransportState
from .protocol.ssl_wrapper import SSLWrapper
from .protocol.trace_recorder import TraceRecorder
from .utils.logging_utils import (
    log_connection_event,
    log_data_processing,
    log_debug_operation,
    log_session_action,
    log_session_error,
)

logger = logging.getLogger(__name__)

TITLE_PREFIX = "IRIS"
BANNER = "\x1b[36m--- IRIS Terminal: {name} [{encoding}] ---\x1b[0m\r\n"
SECURE_NOTICE = "\x1b[32m--- Encrypted connection established ---\x1b[0m\r\n"
ERROR_LINE = "\r\n\x1b[31m[ERROR]: {message}\x1b[0m\r\n"
DISCONNECT_LINE = "\r\n\x1b[33m--- Disconnected ---\x1b[0m\r\n"

_BARE_NEWLINE = re.compile(r"(?<!\r)\n")


def terminal_title(display_name: str, context: Optional[str] = None) -> str:
    """Label for the host's terminal tab, e.g. ``IRIS: dev (USER)``."""
    title = f"{TITLE_PREFIX}: {display_name}"
    if context:
        title = f"{title} ({context})"
    return title


def translate_newlines(text: str) -> str:
    """Expand bare LF to CR LF for display; existing CR LF pairs are kept."""
    return _BARE_NEWLINE.sub("\r\n", text)


class SessionListener:
    """Receiver for session events.

    Subclass and override what you need; listeners may also be any object
    with a subset of these methods.
    """

    def on_display_text(self, text: str) -> None:
        pass

    def on_context_changed(self, context: str) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass

    def on_closed(self) -> None:
        pass


class TerminalSession:
    """One interactive terminal connected to a line-mode database server."""

    def __init__(
        self,
        config: SessionConfig,
        listeners: Optional[List[Any]] = None,
        *,
        ssl_wrapper: Optional[SSLWrapper] = None,
        fallback_policy: Optional[FallbackPolicy] = None,
        recorder: Optional[TraceRecorder] = None,
    ) -> None:
        self.config = config
        self.session_id = uuid.uuid4().hex[:8]
        self._listeners: List[Any] = list(listeners or [])
        self._ssl_wrapper = ssl_wrapper
        self._fallback_policy = fallback_policy
        self.recorder = recorder

        self._decoder = StreamDecoder(config.encoding)
        self._login = LoginSequencer(
            username=config.username,
            password=config.password,
            namespace=config.namespace,
            timing=config.login_timing,
        )
        self._last_known_context = config.initial_context
        self._negotiator: Optional[TransportNegotiator] = None
        self._pending_writes: Set["asyncio.Task[None]"] = set()
        self._opened = False
        self._closed = False

    # Properties ---------------------------------------------------------------
    @property
    def host(self) -> str:
        return self.config.host

    @property
    def port(self) -> int:
        return self.config.port

    @property
    def encoding(self) -> EncodingMode:
        return self.config.encoding

    @property
    def last_known_context(self) -> str:
        return self._last_known_context

    @property
    def title(self) -> str:
        return terminal_title(self.config.display_name, self._last_known_context)

    @property
    def login_phase(self) -> LoginPhase:
        return self._login.phase

    @property
    def transport_state(self) -> TransportState:
        if self._negotiator is None:
            if self._closed:
                return TransportState.CLOSED
            return TransportState.NEGOTIATING_SECURE
        return self._negotiator.state

    @property
    def connected(self) -> bool:
        return self._negotiator is not None and self._negotiator.is_open

    @property
    def negotiator(self) -> Optional[TransportNegotiator]:
        return self._negotiator

    # Listeners ----------------------------------------------------------------
    def add_listener(self, listener: Any) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Any) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            logger.debug("[EVENT] Listener not registered")

    def _notify(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners):
            handler = getattr(listener, event, None)
            if handler is None:
                continue
            try:
                handler(*args)
            except Exception:
                logger.exception(f"[EVENT] Listener failed handling {event}")

    def _display(self, text: str) -> None:
        self._notify("on_display_text", text)

    # Lifecycle ----------------------------------------------------------------
    def open(self) -> None:
        """Show the banner and start negotiating the transport.

        Must be called from a running event loop. Returns immediately; the
        outcome is reported through listeners.
        """
        if self._closed:
            raise IrisTermError("Session already closed", context={"host": self.host})
        if self._opened:
            raise IrisTermError(
                "Session already opened", context={"host": self.host}
            )
        self._opened = True
        log_session_action(logger, "open", f"{self.host}:{self.port}")
        self._display(
            BANNER.format(
                name=self.config.display_name,
                encoding=self.config.encoding.value.upper(),
            )
        )
        self._negotiator = TransportNegotiator(
            self.host,
            self.port,
            prefer_secure=self.config.prefer_secure,
            secure_timeout=self.config.secure_timeout,
            connect_timeout=self.config.connect_timeout,
            ssl_wrapper=self._ssl_wrapper,
            fallback_policy=self._fallback_policy,
            recorder=self.recorder,
            on_data=self._on_data,
            on_error=self._on_error,
            on_close=self._on_close,
            on_state_change=self._on_state_change,
        )
        self._negotiator.start()

    def close(self) -> None:
        """Tear down the transport. ``on_closed`` reports completion."""
        log_session_action(logger, "close", self.session_id)
        if self._negotiator is None:
            self._closed = True
            return
        self._negotiator.close()

    async def wait_closed(self) -> None:
        if self._negotiator is not None:
            await self._negotiator.wait_closed()

    async def __aenter__(self) -> "TerminalSession":
        self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
        await self.wait_closed()

    # Input --------------------------------------------------------------------
    def handle_input(self, text: str) -> None:
        """Forward one unit of user input. Dropped when no stream is open."""
        if self._negotiator is None or not self._negotiator.is_open:
            log_data_processing(logger, "Input dropped", "no open transport")
            return
        self._write_text(translate_backspace(text))

    def _write_text(self, text: str) -> bool:
        if self._negotiator is None:
            return False
        return self._negotiator.write(encode(text, self.config.encoding))

    # Transport events ---------------------------------------------------------
    def _on_data(self, data: bytes) -> None:
        log_data_processing(logger, "Received", f"{len(data)} bytes")
        text = self._decoder.feed(data)
        if not text:
            return
        self._display(translate_newlines(text))
        self._check_context(text)
        step = self._login.feed(text)
        if step is not None:
            self._schedule_login_write(step)

    def _check_context(self, text: str) -> None:
        token = match_context(text)
        if token is None or token == self._last_known_context:
            return
        logger.info(
            f"Context changed {self._last_known_context!r} -> {token!r}",
            extra={"session_id": self.session_id},
        )
        self._last_known_context = token
        self._notify("on_context_changed", token)

    def _on_state_change(self, old: TransportState, new: TransportState) -> None:
        if new is TransportState.SECURE:
            log_connection_event(logger, "Encrypted stream confirmed", self.host, self.port)
            self._display(SECURE_NOTICE)

    def _on_error(self, exc: BaseException) -> None:
        message = describe_error(exc)
        log_session_error(logger, "transport", exc)
        self._display(ERROR_LINE.format(message=message))
        self._notify("on_error", message)

    def _on_close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for task in list(self._pending_writes):
            task.cancel()
        tail = self._decoder.flush()
        if tail:
            self._display(translate_newlines(tail))
        negotiator = self._negotiator
        if negotiator is not None and negotiator.data_received:
            self._display(DISCONNECT_LINE)
        log_connection_event(logger, "Session closed", self.host, self.port)
        self._notify("on_closed")

    # Login --------------------------------------------------------------------
    def _schedule_login_write(self, step: LoginStep) -> None:
        log_debug_operation(logger, "[LOGIN] Scheduling", step)
        if step.delay <= 0:
            self._write_text(step.text)
            return
        task = asyncio.get_running_loop().create_task(self._delayed_write(step))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _delayed_write(self, step: LoginStep) -> None:
        await asyncio.sleep(step.delay)
        if not self._write_text(step.text):
            logger.warning(f"[LOGIN] {step.phase.value} write dropped, stream not open")
