"""
Session configuration.

Values come from keyword arguments or, through :meth:`SessionConfig.from_env`,
from ``IRISTERM_*`` environment variables. Explicit arguments always win.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from .emulation.codec import EncodingMode
from .protocol.login import LoginTiming
from .protocol.negotiator import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_SECURE_TIMEOUT,
)

ENV_PREFIX = "IRISTERM_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SessionConfig:
    """Everything needed to open one terminal session."""

    host: str
    port: int = DEFAULT_PORT
    username: str = ""
    password: str = field(default="", repr=False)
    namespace: str = ""
    encoding: EncodingMode = EncodingMode.UTF8
    display_name: str = ""
    prefer_secure: bool = True
    secure_timeout: float = DEFAULT_SECURE_TIMEOUT
    connect_timeout: Optional[float] = DEFAULT_CONNECT_TIMEOUT
    login_timing: LoginTiming = field(default_factory=LoginTiming)

    def __post_init__(self) -> None:
        if not self.host or not str(self.host).strip():
            raise ValueError("Host must be specified.")
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "host", str(self.host).strip())
        object.__setattr__(self, "encoding", EncodingMode.parse(self.encoding))
        object.__setattr__(self, "port", int(self.port))
        if not self.display_name:
            object.__setattr__(self, "display_name", self.host)

    @property
    def initial_context(self) -> str:
        return self.namespace.upper()

    def with_overrides(self, **overrides: Any) -> "SessionConfig":
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)

    @classmethod
    def from_env(
        cls, environ: Optional[Dict[str, str]] = None, **overrides: Any
    ) -> "SessionConfig":
        """Build a config from ``IRISTERM_*`` variables plus overrides.

        Overrides set to None are ignored so argparse results can be passed
        straight through.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        values: Dict[str, Any] = {
            "host": get("HOST"),
            "port": get("PORT"),
            "username": get("USERNAME"),
            "password": get("PASSWORD"),
            "namespace": get("NAMESPACE"),
            "encoding": get("ENCODING"),
            "display_name": get("NAME"),
        }
        prefer_secure = get("PREFER_SECURE")
        if prefer_secure is not None:
            values["prefer_secure"] = prefer_secure.strip().lower() in _TRUE_VALUES
        secure_timeout = get("SECURE_TIMEOUT")
        if secure_timeout is not None:
            values["secure_timeout"] = float(secure_timeout)

        values.update({k: v for k, v in overrides.items() if v is not None})
        values = {k: v for k, v in values.items() if v is not None}
        if "host" not in values:
            raise ValueError(f"Host must be specified (set {ENV_PREFIX}HOST).")
        return cls(**values)
