import os

import pytest


@pytest.fixture(autouse=True)
def isolate_iristerm_env(monkeypatch):
    """Keep developer IRISTERM_* settings out of the tests."""
    for key in list(os.environ):
        if key.startswith("IRISTERM_"):
            monkeypatch.delenv(key, raising=False)
