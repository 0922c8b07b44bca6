"""
Property-based tests for the legacy codec and the payload decoder.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from iristerm.emulation.codec import decode, encode
from iristerm.emulation.payload import decode_payload

LEGACY = "legacy8bit"
HEBREW_BYTES = st.one_of(
    st.integers(min_value=0x80, max_value=0x9A),
    st.integers(min_value=0xE0, max_value=0xFA),
)
OTHER_BYTES = st.integers(min_value=0x00, max_value=0xFF).filter(
    lambda b: not (0x80 <= b <= 0x9A or 0xE0 <= b <= 0xFA)
)


class TestLegacyCodecProperties:
    @given(HEBREW_BYTES)
    def test_hebrew_bytes_decode_to_letters(self, b):
        char = decode(bytes([b]), LEGACY)
        assert 0x05D0 <= ord(char) <= 0x05EA

    @given(st.integers(min_value=0x05D0, max_value=0x05EA))
    def test_letters_encode_to_low_block(self, code):
        encoded = encode(chr(code), LEGACY)
        assert len(encoded) == 1
        assert 0x80 <= encoded[0] <= 0x9A

    @given(HEBREW_BYTES)
    def test_reencoding_is_idempotent(self, b):
        once = encode(decode(bytes([b]), LEGACY), LEGACY)
        twice = encode(decode(once, LEGACY), LEGACY)
        assert once == twice
        if b <= 0x9A:
            assert once == bytes([b])

    @given(st.lists(OTHER_BYTES, max_size=64))
    def test_other_bytes_round_trip(self, values):
        data = bytes(values)
        assert encode(decode(data, LEGACY), LEGACY) == data

    @given(
        st.characters(min_codepoint=0x100).filter(
            lambda c: not 0x05D0 <= ord(c) <= 0x05EA
        )
    )
    def test_wide_characters_clamp(self, char):
        assert encode(char, LEGACY) == b"?"

    @given(st.binary(max_size=256))
    @settings(max_examples=50, deadline=None)
    def test_decode_is_total(self, data):
        assert len(decode(data, LEGACY)) == len(data)
        decode(data, "utf8")


class TestPayloadProperties:
    @given(
        st.lists(
            st.text(alphabet=st.characters(exclude_characters='*"\r\n'), max_size=8),
            min_size=1,
            max_size=8,
        )
    )
    def test_pieces_survive_in_order(self, pieces):
        value = decode_payload('^G="' + "*".join(pieces) + '"')
        assert value.name == "^G"
        assert value.pieces == pieces

    @given(st.text(max_size=80))
    def test_never_raises(self, line):
        value = decode_payload(line)
        assert len(value.pieces) >= 1
