"""
Mocking infrastructure for iristerm tests.

Provides scripted stream and connector stand-ins so transport and session
behaviour can be tested without network connections.
"""

from .listeners import RecordingListener
from .network_handlers import (
    HANG,
    MockConnection,
    MockConnector,
    MockStreamReader,
    MockStreamWriter,
    settle,
)

__all__ = [
    "HANG",
    "MockConnection",
    "MockConnector",
    "MockStreamReader",
    "MockStreamWriter",
    "RecordingListener",
    "settle",
]
