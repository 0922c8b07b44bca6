"""
Transport negotiation for terminal sessions.

The negotiator tries TLS first and drops to plaintext when the endpoint turns
out not to speak it. Callers see one byte stream either way: incoming buffers
arrive through ``on_data``, failures through ``on_error`` and the end of the
stream through ``on_close`` (exactly once).
"""

import asyncio
import logging
import ssl
from enum import Enum
from typing import Callable, Dict, Optional, Set

from ..exceptions import IrisTermError, StateTransitionError
from ..session_manager import SessionManager
from ..utils.logging_utils import log_negotiation_event
from .errors import (
    DEFAULT_FALLBACK_POLICY,
    FallbackPolicy,
    describe_error,
    raise_negotiation_error,
)
from .ssl_wrapper import SSLWrapper
from .trace_recorder import TraceRecorder

logger = logging.getLogger(__name__)

DEFAULT_PORT = 23
DEFAULT_SECURE_TIMEOUT = 1.5
DEFAULT_CONNECT_TIMEOUT = 10.0
READ_SIZE = 4096

DataCallback = Callable[[bytes], None]
ErrorCallback = Callable[[BaseException], None]
CloseCallback = Callable[[], None]
StateCallback = Callable[["TransportState", "TransportState"], None]


class TransportState(str, Enum):
    """Lifecycle of the session's byte stream."""

    NEGOTIATING_SECURE = "negotiatingSecure"
    PLAINTEXT = "plaintext"
    SECURE = "secure"
    CLOSED = "closed"


_VALID_TRANSITIONS: Dict[TransportState, Set[TransportState]] = {
    TransportState.NEGOTIATING_SECURE: {
        TransportState.SECURE,
        TransportState.PLAINTEXT,
        TransportState.CLOSED,
    },
    TransportState.SECURE: {TransportState.CLOSED},
    TransportState.PLAINTEXT: {TransportState.CLOSED},
    TransportState.CLOSED: set(),
}


class TransportNegotiator:
    """Owns the single active stream of one session."""

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        prefer_secure: bool = True,
        secure_timeout: float = DEFAULT_SECURE_TIMEOUT,
        connect_timeout: Optional[float] = DEFAULT_CONNECT_TIMEOUT,
        ssl_wrapper: Optional[SSLWrapper] = None,
        fallback_policy: Optional[FallbackPolicy] = None,
        recorder: Optional[TraceRecorder] = None,
        on_data: Optional[DataCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_close: Optional[CloseCallback] = None,
        on_state_change: Optional[StateCallback] = None,
        read_size: int = READ_SIZE,
    ) -> None:
        if not host:
            raise ValueError("Host must be specified.")
        self.host = host
        self.port = port
        self.prefer_secure = prefer_secure
        self.secure_timeout = secure_timeout
        self.connect_timeout = connect_timeout
        self.ssl_wrapper = ssl_wrapper or SSLWrapper(verify=False)
        self.fallback_policy = fallback_policy or DEFAULT_FALLBACK_POLICY
        self.recorder = recorder
        self.on_data = on_data
        self.on_error = on_error
        self.on_close = on_close
        self.on_state_change = on_state_change
        self.read_size = read_size

        self._state = TransportState.NEGOTIATING_SECURE
        self._active: Optional[SessionManager] = None
        self._task: Optional["asyncio.Task[None]"] = None
        self._closed = False
        self._data_received = False
        self._fallback_used = False
        self.attempts = 0

    # Properties ---------------------------------------------------------------
    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def data_received(self) -> bool:
        return self._data_received

    @property
    def fallback_used(self) -> bool:
        return self._fallback_used

    @property
    def secure(self) -> bool:
        return self._active is not None and self._active.secure

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._active is not None
            and self._active.writer is not None
        )

    # State --------------------------------------------------------------------
    def _change_state(self, new_state: TransportState, reason: str) -> None:
        old_state = self._state
        if new_state not in _VALID_TRANSITIONS[old_state]:
            raise StateTransitionError(
                f"Invalid transport transition: {old_state.value} -> {new_state.value}",
                context={"host": self.host, "reason": reason},
            )
        self._state = new_state
        logger.debug(f"[STATE] {old_state.value} -> {new_state.value} ({reason})")
        if self.recorder is not None:
            self.recorder.state(old_state.value, new_state.value)
        if self.on_state_change is not None:
            self.on_state_change(old_state, new_state)

    # Lifecycle ----------------------------------------------------------------
    def start(self) -> "asyncio.Task[None]":
        """Begin negotiation on the running loop. Returns the reader task."""
        if self._task is not None or self._closed:
            raise IrisTermError(
                "Transport already started", context={"host": self.host}
            )
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run())
        return self._task

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    def write(self, data: bytes) -> bool:
        """Send ``data`` on the active stream; False if there is none."""
        if not self.is_open:
            return False
        assert self._active is not None
        try:
            self._active.write(data)
        except (OSError, RuntimeError, IrisTermError) as e:
            logger.debug(f"Dropping write on failing stream: {e}")
            return False
        return True

    def close(self) -> None:
        """Tear down the active stream. Idempotent."""
        if self._closed:
            return
        log_negotiation_event(logger, "Close requested", f"{self.host}:{self.port}")
        task = self._task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        self._finish()

    def _finish(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._active is not None:
            self._active.teardown_connection()
        if self._state is not TransportState.CLOSED:
            self._change_state(TransportState.CLOSED, "stream ended")
        if self.on_close is not None:
            self.on_close()

    def _emit_error(self, exc: BaseException) -> None:
        message = describe_error(exc)
        if self.recorder is not None:
            self.recorder.error(message)
        if self.on_error is not None:
            self.on_error(exc)

    # Negotiation --------------------------------------------------------------
    async def _run(self) -> None:
        try:
            if self.prefer_secure:
                await self._connect_secure()
            else:
                await self._connect_plaintext("secure attempt disabled")
            await self._pump()
        except asyncio.CancelledError:
            logger.debug("[NEGOTIATION] Reader task cancelled")
            raise
        except (IrisTermError, OSError, asyncio.TimeoutError) as e:
            if not self._closed:
                logger.error(f"[NEGOTIATION] Transport failure: {describe_error(e)}")
                self._emit_error(e)
        finally:
            self._finish()

    def _context(self, transport: str) -> Dict[str, object]:
        return {"host": self.host, "port": self.port, "transport": transport}

    async def _connect_secure(self) -> None:
        self.attempts += 1
        if self.recorder is not None:
            self.recorder.attempt("secure", self.host, self.port)
        log_negotiation_event(logger, "Attempting secure transport", self.host)
        try:
            context = self.ssl_wrapper.get_context()
        except IrisTermError as e:
            raise_negotiation_error(
                "Secure context setup failed", e, self._context("secure")
            )
        manager = SessionManager(self.host, self.port, context)
        self._active = manager
        try:
            await manager.setup_connection(timeout=self.secure_timeout)
        except IrisTermError as e:
            manager.teardown_connection()
            if not self.fallback_policy.matches(e):
                raise_negotiation_error(
                    "Secure connection failed", e, self._context("secure")
                )
            await self._fall_back(e)

    async def _fall_back(self, exc: BaseException) -> None:
        reason = describe_error(exc)
        log_negotiation_event(logger, "Secure transport refused, using plaintext", reason)
        if self.recorder is not None:
            self.recorder.fallback(reason)
        self._fallback_used = True
        await self._connect_plaintext(reason)

    async def _connect_plaintext(self, reason: str) -> None:
        if self._active is not None:
            self._active.teardown_connection()
            self._active = None
        self._change_state(TransportState.PLAINTEXT, reason)
        self.attempts += 1
        if self.recorder is not None:
            self.recorder.attempt("plaintext", self.host, self.port)
        manager = SessionManager(self.host, self.port, None)
        self._active = manager
        try:
            await manager.setup_connection(timeout=self.connect_timeout)
        except IrisTermError as e:
            manager.teardown_connection()
            raise_negotiation_error(
                "Plaintext connection failed", e, self._context("plaintext")
            )
        if self.recorder is not None:
            self.recorder.decision(
                requested="secure" if self.prefer_secure else "plaintext",
                chosen="plaintext",
                fallback_used=self._fallback_used,
            )

    async def _pump(self) -> None:
        while not self._closed:
            manager = self._active
            assert manager is not None
            try:
                data = await manager.read(self.read_size)
            except (OSError, ssl.SSLError) as e:
                if (
                    manager.secure
                    and not self._data_received
                    and self.fallback_policy.matches(e)
                ):
                    await self._fall_back(e)
                    continue
                raise
            if not data:
                log_negotiation_event(logger, "Remote closed the stream", self.host)
                return
            if not self._data_received:
                self._data_received = True
                if manager.secure:
                    self._change_state(TransportState.SECURE, "data received over TLS")
                    if self.recorder is not None:
                        self.recorder.decision(
                            requested="secure", chosen="secure", fallback_used=False
                        )
            if self.on_data is not None:
                self.on_data(data)


def _current_task() -> Optional["asyncio.Task[object]"]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
