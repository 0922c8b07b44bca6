"""
Byte/text translation for the terminal stream.

Two modes are supported. ``utf8`` delegates to Python's own codec.
``legacy8bit`` emulates the single-byte Hebrew layout used by older Cache
servers: the 27 Hebrew letters (final forms included) sit at 0x80-0x9A and
again at 0xE0-0xFA; every other byte is read as Latin-1.

Encoding always writes Hebrew into the 0x80 block, so a byte from the 0xE0
block does not survive a decode/encode round trip.
"""

import codecs
import logging
from enum import Enum
from typing import Dict, Union

logger = logging.getLogger(__name__)

HEBREW_FIRST = 0x05D0  # ALEF
HEBREW_LAST = 0x05EA  # TAV
LEGACY_LOW_BASE = 0x80
LEGACY_HIGH_BASE = 0xE0
REPLACEMENT_BYTE = 0x3F  # "?"

DELETE = "\x7f"
BACKSPACE = "\x08"

_HEBREW_SPAN = HEBREW_LAST - HEBREW_FIRST


class EncodingMode(str, Enum):
    """Character mapping used on the wire."""

    LEGACY_8BIT = "legacy8bit"
    UTF8 = "utf8"

    @classmethod
    def parse(cls, value: Union[str, "EncodingMode"]) -> "EncodingMode":
        """Resolve a mode from its value or a known alias.

        ``windows1255`` is accepted as an alias of ``legacy8bit``.
        """
        if isinstance(value, EncodingMode):
            return value
        normalized = str(value).strip().lower().replace("-", "")
        aliases = {
            "legacy8bit": cls.LEGACY_8BIT,
            "windows1255": cls.LEGACY_8BIT,
            "hebrew": cls.LEGACY_8BIT,
            "utf8": cls.UTF8,
        }
        try:
            return aliases[normalized]
        except KeyError:
            raise ValueError(f"Unknown encoding mode: {value!r}") from None


def _build_decode_table() -> Dict[int, int]:
    table: Dict[int, int] = {}
    for base in (LEGACY_LOW_BASE, LEGACY_HIGH_BASE):
        for offset in range(_HEBREW_SPAN + 1):
            table[base + offset] = HEBREW_FIRST + offset
    return table


# Applied to a Latin-1 decode, where code point == byte value.
_LEGACY_DECODE_TABLE = _build_decode_table()


def decode(data: bytes, mode: Union[str, EncodingMode]) -> str:
    """Decode raw bytes from the server. Never raises on content."""
    mode = EncodingMode.parse(mode)
    if mode is EncodingMode.UTF8:
        return bytes(data).decode("utf-8", errors="replace")
    return bytes(data).decode("latin-1").translate(_LEGACY_DECODE_TABLE)


def _encode_legacy_char(char: str) -> int:
    code = ord(char)
    if HEBREW_FIRST <= code <= HEBREW_LAST:
        return code - HEBREW_FIRST + LEGACY_LOW_BASE
    if code >= 256:
        return REPLACEMENT_BYTE
    return code


def encode(text: str, mode: Union[str, EncodingMode]) -> bytes:
    """Encode text for the server. Never raises on content."""
    mode = EncodingMode.parse(mode)
    if mode is EncodingMode.UTF8:
        # Lone surrogates cannot come from a real keyboard but must not raise.
        return text.encode("utf-8", errors="replace")
    return bytes(_encode_legacy_char(char) for char in text)


def translate_backspace(text: str) -> str:
    """Turn the DEL a terminal sends for the backspace key into BS."""
    return text.replace(DELETE, BACKSPACE)


class StreamDecoder:
    """Per-session decoder fed with buffers in arrival order.

    In ``utf8`` mode a multi-byte sequence split across two buffers is held
    back until it is complete. ``legacy8bit`` is a single-byte mapping and
    needs no state.
    """

    def __init__(self, mode: Union[str, EncodingMode]) -> None:
        self.mode = EncodingMode.parse(mode)
        self._incremental = None
        if self.mode is EncodingMode.UTF8:
            self._incremental = codecs.getincrementaldecoder("utf-8")(
                errors="replace"
            )

    def feed(self, data: bytes) -> str:
        if self._incremental is None:
            return decode(data, self.mode)
        return self._incremental.decode(bytes(data))

    def flush(self) -> str:
        """Return whatever is pending, replacing an incomplete sequence."""
        if self._incremental is None:
            return ""
        return self._incremental.decode(b"", final=True)
