"""Text handling for the terminal stream: codec, prompt detection, payloads."""

from .codec import EncodingMode, StreamDecoder, decode, encode, translate_backspace
from .payload import WireValue, decode_payload
from .prompt import match_context

__all__ = [
    "EncodingMode",
    "StreamDecoder",
    "decode",
    "encode",
    "translate_backspace",
    "match_context",
    "WireValue",
    "decode_payload",
]
