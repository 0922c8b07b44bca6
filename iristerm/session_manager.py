"""
SessionManager for iristerm, handling socket setup and teardown for one attempt.
"""

import asyncio
import logging
import ssl
from asyncio import StreamReader, StreamWriter
from typing import Any, Dict, Optional

from .exceptions import ConnectionError, NotConnectedError
from .utils.logging_utils import log_connection_event

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Owns one reader/writer pair. The negotiator creates a new manager for
    each attempt so a failed secure stream is never reused for plaintext.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: int = 23,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        self.host = host
        self.port = port
        self.ssl_context = ssl_context
        self.reader: Optional[StreamReader] = None
        self.writer: Optional[StreamWriter] = None
        self.connected: bool = False

    @property
    def secure(self) -> bool:
        return self.ssl_context is not None

    async def setup_connection(self, timeout: Optional[float] = None) -> None:
        """
        Establish the socket connection, with TLS when an ssl_context is set.

        ``timeout`` bounds TCP connect and TLS handshake together.
        """
        if not self.host:
            raise ValueError("Host must be provided before setup_connection.")

        # Handshake expiry must surface as TimeoutError (wait_for), not as the
        # ConnectionAbortedError raised by ssl_handshake_timeout.
        kwargs: Dict[str, Any] = {}
        if self.ssl_context is not None:
            kwargs["ssl"] = self.ssl_context

        log_connection_event(
            logger,
            "Opening secure stream" if self.secure else "Opening plaintext stream",
            self.host,
            self.port,
        )
        try:
            connect = asyncio.open_connection(self.host, self.port, **kwargs)
            if timeout is not None:
                self.reader, self.writer = await asyncio.wait_for(connect, timeout)
            else:
                self.reader, self.writer = await connect
        except (OSError, asyncio.TimeoutError) as e:
            raise ConnectionError(
                f"Connection failed: {str(e) or e.__class__.__name__}",
                context={"host": self.host, "port": self.port, "secure": self.secure},
                original_exception=e,
            ) from e
        self.connected = True

    async def read(self, size: int = 4096) -> bytes:
        if self.reader is None:
            return b""
        return await self.reader.read(size)

    def write(self, data: bytes) -> None:
        if self.writer is None:
            raise NotConnectedError("Stream is not open", context={"host": self.host})
        self.writer.write(data)

    def teardown_connection(self) -> None:
        """Close the socket without waiting and reset state. Idempotent."""
        if self.writer is not None:
            try:
                self.writer.close()
            except (OSError, RuntimeError) as e:
                logger.debug(f"Ignoring error while closing stream: {e}")
            log_connection_event(logger, "Stream closed", self.host or "", self.port)
        self.writer = None
        self.reader = None
        self.connected = False
