"""
Parsing of multi-value global references shown in terminal output.

A line such as ``^Global="a*b**c"`` is split into the reference name and the
ordered pieces of its value. The format has no escaping: a piece that itself
contains ``*`` or ``"`` cannot be represented, and no attempt is made to
guess one.
"""

from dataclasses import dataclass, field
from typing import List

UNNAMED_REFERENCE = "unnamed reference"
PIECE_DELIMITER = "*"
QUOTE = '"'


@dataclass(frozen=True)
class WireValue:
    """A decoded reference: its name and the ordered value pieces."""

    name: str
    pieces: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.pieces)

    def to_dict(self) -> dict:
        return {"name": self.name, "pieces": list(self.pieces)}


def decode_payload(line: str) -> WireValue:
    """Split ``line`` into a :class:`WireValue`.

    Never fails: a line without ``=`` is all value, and quotes are only
    removed when they wrap the whole value.
    """
    line = line.strip()
    if "=" in line:
        name, source = line.split("=", 1)
    else:
        name, source = UNNAMED_REFERENCE, line

    if len(source) >= 2 and source.startswith(QUOTE) and source.endswith(QUOTE):
        source = source[1:-1]

    return WireValue(name=name, pieces=source.split(PIECE_DELIMITER))
