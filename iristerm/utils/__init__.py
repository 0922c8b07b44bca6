"""
Utilities package for iristerm.

Contains common utility functions used across the iristerm codebase.
"""

from .logging_utils import (
    log_connection_event,
    log_data_processing,
    log_debug_operation,
    log_negotiation_event,
    log_protocol_event,
    log_session_action,
    log_session_error,
)

__all__ = [
    "log_session_action",
    "log_session_error",
    "log_protocol_event",
    "log_negotiation_event",
    "log_debug_operation",
    "log_connection_event",
    "log_data_processing",
]
