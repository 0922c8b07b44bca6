"""
Scripted login for line-mode database servers.

The sequencer watches decoded output and answers the username and password
prompts, then switches to the configured namespace at the first command
prompt. It does not write anything itself: :meth:`LoginSequencer.feed`
returns a :class:`LoginStep` describing what the session should send and
how long to wait first.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Set

from ..emulation.prompt import match_context
from ..utils.logging_utils import log_protocol_event

logger = logging.getLogger(__name__)

LINE_TERMINATOR = "\r\n"
USER_PROMPTS = ("login:", "username:")
PASSWORD_PROMPT = "password:"
COMMAND_PROMPT = ">"
CONTEXT_SWITCH_COMMAND = 'zn "{namespace}"'


class LoginPhase(str, Enum):
    """Login progress. Phases only ever move forward."""

    AWAITING_USER = "awaitingUser"
    AWAITING_PASSWORD = "awaitingPassword"
    AWAITING_CONTEXT_SWITCH = "awaitingContextSwitch"
    DONE = "done"


_PHASE_ORDER: List[LoginPhase] = [
    LoginPhase.AWAITING_USER,
    LoginPhase.AWAITING_PASSWORD,
    LoginPhase.AWAITING_CONTEXT_SWITCH,
    LoginPhase.DONE,
]


@dataclass(frozen=True)
class LoginTiming:
    """Pauses before each scripted write; some servers drop input sent too early."""

    credential_delay: float = 0.3
    context_delay: float = 0.6


@dataclass(frozen=True)
class LoginStep:
    """One scripted write produced by the sequencer."""

    phase: LoginPhase
    text: str
    delay: float
    secret: bool = False

    def __repr__(self) -> str:
        shown = "***" if self.secret else repr(self.text)
        return f"LoginStep(phase={self.phase.value}, text={shown}, delay={self.delay})"


class LoginSequencer:
    """One-shot state machine over :class:`LoginPhase`.

    A phase whose value is not configured (empty username, password or
    namespace) is skipped and counts as completed. Each configured phase
    fires at most once, and a single chunk produces at most one step. When
    no password was sent, the namespace switch waits for a line-anchored
    prompt such as ``USER>`` rather than any ">".
    """

    def __init__(
        self,
        username: str = "",
        password: str = "",
        namespace: str = "",
        timing: Optional[LoginTiming] = None,
    ) -> None:
        self.username = username or ""
        self.password = password or ""
        self.namespace = namespace or ""
        self.timing = timing or LoginTiming()
        self._phase = LoginPhase.AWAITING_USER
        self._fired: Set[LoginPhase] = set()
        self._skip_unconfigured()

    @property
    def phase(self) -> LoginPhase:
        return self._phase

    @property
    def done(self) -> bool:
        return self._phase is LoginPhase.DONE

    def has_fired(self, phase: LoginPhase) -> bool:
        return phase in self._fired

    def _configured(self, phase: LoginPhase) -> bool:
        if phase is LoginPhase.AWAITING_USER:
            return bool(self.username)
        if phase is LoginPhase.AWAITING_PASSWORD:
            return bool(self.password)
        if phase is LoginPhase.AWAITING_CONTEXT_SWITCH:
            return bool(self.namespace)
        return True

    def _advance(self) -> None:
        index = _PHASE_ORDER.index(self._phase)
        self._phase = _PHASE_ORDER[index + 1]
        logger.debug(f"[LOGIN] Phase -> {self._phase.value}")

    def _skip_unconfigured(self) -> None:
        while self._phase is not LoginPhase.DONE and not self._configured(self._phase):
            logger.debug(f"[LOGIN] Skipping unconfigured phase {self._phase.value}")
            self._advance()

    def _fire(self, text: str, delay: float, secret: bool = False) -> LoginStep:
        phase = self._phase
        assert phase not in self._fired, f"phase {phase.value} already fired"
        self._fired.add(phase)
        step = LoginStep(
            phase=phase, text=text + LINE_TERMINATOR, delay=delay, secret=secret
        )
        log_protocol_event(logger, "Login step", phase.value)
        self._advance()
        self._skip_unconfigured()
        return step

    def _at_command_prompt(self, text: str) -> bool:
        # Without a password exchange, a stray ">" in a banner is not a prompt.
        if not self.has_fired(LoginPhase.AWAITING_PASSWORD):
            return match_context(text) is not None
        return COMMAND_PROMPT in text

    def feed(self, text: str) -> Optional[LoginStep]:
        """Inspect one decoded chunk; return the write it triggers, if any."""
        phase = self._phase
        if phase is LoginPhase.DONE:
            return None

        lowered = text.lower()
        if phase is LoginPhase.AWAITING_USER:
            if any(prompt in lowered for prompt in USER_PROMPTS):
                return self._fire(self.username, self.timing.credential_delay)
        elif phase is LoginPhase.AWAITING_PASSWORD:
            if PASSWORD_PROMPT in lowered:
                return self._fire(
                    self.password, self.timing.credential_delay, secret=True
                )
        elif phase is LoginPhase.AWAITING_CONTEXT_SWITCH:
            if self._at_command_prompt(text):
                command = CONTEXT_SWITCH_COMMAND.format(namespace=self.namespace)
                return self._fire(command, self.timing.context_delay)
        return None
