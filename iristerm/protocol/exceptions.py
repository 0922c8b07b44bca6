"""Exceptions for protocol handling."""

from ..exceptions import (
    ConnectionError,
    NegotiationError,
    NotConnectedError,
    StateTransitionError,
)

__all__ = [
    "ConnectionError",
    "NegotiationError",
    "NotConnectedError",
    "StateTransitionError",
]
