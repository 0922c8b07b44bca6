"""
Centralized error handling utilities for transport operations.

Holds the allow-list that decides when a failed secure attempt may be retried
in plaintext, and the helper used to raise negotiation errors with context.
"""

import asyncio
import logging
import ssl
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterator, Optional, Tuple, Type

from ..exceptions import IrisTermError
from .exceptions import NegotiationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FallbackPolicy:
    """Failure signatures meaning "this endpoint does not speak TLS".

    A secure attempt that fails with one of these before any data arrived is
    retried once in plaintext. Anything else is reported as is.
    """

    ssl_reasons: FrozenSet[str] = frozenset({"WRONG_VERSION_NUMBER"})
    exception_types: Tuple[Type[BaseException], ...] = (
        ConnectionResetError,
        asyncio.TimeoutError,
        TimeoutError,
    )
    message_markers: Tuple[str, ...] = ("wrong version number", "ECONNRESET")

    def matches(self, exc: BaseException) -> bool:
        for err in _iter_causes(exc):
            if isinstance(err, self.exception_types):
                return True
            if isinstance(err, ssl.SSLError):
                reason = getattr(err, "reason", None)
                if reason and reason in self.ssl_reasons:
                    return True
            message = str(err)
            if any(marker.lower() in message.lower() for marker in self.message_markers):
                return True
        return False


DEFAULT_FALLBACK_POLICY = FallbackPolicy()


def _iter_causes(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` and the errors it wraps, without looping on cycles."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        wrapped = getattr(current, "original_exception", None)
        current = wrapped if wrapped is not None else current.__cause__


def is_fallback_error(
    exc: BaseException, policy: Optional[FallbackPolicy] = None
) -> bool:
    """True if ``exc`` allows retrying the connection without TLS."""
    return (policy or DEFAULT_FALLBACK_POLICY).matches(exc)


def describe_error(exc: BaseException) -> str:
    """Short human-readable reason for display in the terminal."""
    reason = getattr(exc, "reason", None)
    if isinstance(reason, str) and reason and not isinstance(exc, ssl.SSLError):
        return reason
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)) and not str(exc):
        return "Connection timed out"
    return str(exc) or exc.__class__.__name__


def raise_negotiation_error(
    message: str,
    exc: Optional[BaseException] = None,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """Raise a NegotiationError with optional wrapped exception and context."""
    if exc:
        logger.error(
            f"Negotiation failed: {message}: {exc} (Context: {context})",
            exc_info=True,
        )
        detail = exc.reason if isinstance(exc, IrisTermError) else exc
        raise NegotiationError(
            f"{message}: {detail}", context=context, original_exception=exc
        ) from exc
    logger.error(f"Negotiation failed: {message} (Context: {context})")
    raise NegotiationError(message, context=context)
