"""Exceptions for iristerm with contextual information."""

from typing import Any, Dict, Optional


class IrisTermError(Exception):
    """Base error for iristerm with contextual information."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None,
    ):
        """
        Initialize an iristerm error.

        Args:
            message: Error message
            context: Optional context information (host, port, transport, phase, etc.)
            original_exception: Original exception that caused this error
        """
        super().__init__(message)
        self.context = context or {}
        self.original_exception = original_exception

    def __str__(self) -> str:
        """Get string representation with context."""
        base_msg = super().__str__()
        if self.context:
            context_items = []
            for key, value in self.context.items():
                if isinstance(value, str) and len(value) > 50:
                    value = value[:47] + "..."
                context_items.append(f"{key}={value}")
            context_str = ", ".join(context_items)
            return f"{base_msg} (Context: {context_str})"
        return base_msg

    def __repr__(self) -> str:
        base_repr = super().__repr__()
        if self.context:
            return f"{base_repr} (context={self.context!r})"
        return base_repr

    @property
    def reason(self) -> str:
        """Message without the context suffix, suitable for display."""
        return super().__str__()

    def add_context(self, key: str, value: Any) -> None:
        """Add context information to the exception."""
        self.context[key] = value

    def get_context(self, key: str, default: Any = None) -> Any:
        """Get context information from the exception."""
        return self.context.get(key, default)


class ConnectionError(IrisTermError):
    """Connection error with connection-specific context."""

    pass


class NegotiationError(IrisTermError):
    """Transport negotiation error (secure and plaintext attempts)."""

    pass


class NotConnectedError(IrisTermError):
    """Error raised when operation is attempted on a not connected session."""

    pass


class StateTransitionError(IrisTermError):
    """Raised when an invalid state transition is attempted."""

    pass
