"""Detection of the namespace prompt (``USER>``, ``%SYS>``) in decoded output."""

import re
from typing import Optional

# Line-anchored so that in-band markers such as "<UNDEFINED>x>" in the middle
# of an error line are not mistaken for a prompt.
PROMPT_PATTERN = re.compile(r"^([A-Z0-9%]+)>", re.IGNORECASE | re.MULTILINE)


def match_context(text: str) -> Optional[str]:
    """Return the last prompt token in ``text``, uppercased, or None."""
    token = None
    for match in PROMPT_PATTERN.finditer(text):
        token = match.group(1)
    return token.upper() if token is not None else None
