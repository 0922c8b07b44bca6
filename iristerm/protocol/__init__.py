"""Transport and login protocol handling for iristerm."""

from .errors import FallbackPolicy, is_fallback_error
from .login import LoginPhase, LoginSequencer, LoginStep, LoginTiming
from .negotiator import TransportNegotiator, TransportState
from .ssl_wrapper import SSLWrapper
from .trace_recorder import TraceRecorder

__all__ = [
    "FallbackPolicy",
    "is_fallback_error",
    "LoginPhase",
    "LoginSequencer",
    "LoginStep",
    "LoginTiming",
    "TransportNegotiator",
    "TransportState",
    "SSLWrapper",
    "TraceRecorder",
]
