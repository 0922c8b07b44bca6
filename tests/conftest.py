import logging
from unittest.mock import patch

import pytest

from iristerm.config import SessionConfig
from iristerm.emulation.codec import EncodingMode
from iristerm.protocol.login import LoginTiming
from iristerm.protocol.ssl_wrapper import SSLWrapper
from tests.mocks import MockConnector, RecordingListener

NO_DELAY = LoginTiming(credential_delay=0.0, context_delay=0.0)


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def make_config():
    """Factory for SessionConfig with test-friendly defaults."""

    def _make(**overrides) -> SessionConfig:
        values = {
            "host": "db.example.test",
            "display_name": "dev",
            "encoding": EncodingMode.UTF8,
            "secure_timeout": 0.05,
            "connect_timeout": 1.0,
            "login_timing": NO_DELAY,
        }
        values.update(overrides)
        return SessionConfig(**values)

    return _make


@pytest.fixture
def ssl_wrapper():
    """Fixture providing an SSLWrapper."""
    return SSLWrapper()


@pytest.fixture
def connector():
    """Patch asyncio.open_connection with a scripted MockConnector.

    Tests append outcomes to ``connector.outcomes`` before opening.
    """
    mock = MockConnector()
    with patch("asyncio.open_connection", new=mock):
        yield mock


@pytest.fixture
def preserve_root_logger():
    """Restore root logger handlers and level changed by setup_logging."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
