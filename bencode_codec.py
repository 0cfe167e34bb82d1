"""
Bencode Codec

This module decodes and encodes the bencode format used by .torrent files.
Values map onto native Python types: integers are ``int``, byte strings are
``bytes``, lists are ``list`` and dictionaries are ``dict`` with ``bytes``
keys. Encoding is canonical: dictionary keys are always written in sorted
byte order, whatever order they were inserted or decoded in.
"""

import logging
from typing import Dict, List, Tuple, Union

logger = logging.getLogger(__name__)

BencodeValue = Union[int, bytes, List['BencodeValue'], Dict[bytes, 'BencodeValue']]

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1
MAX_DEPTH = 200

_DIGITS = b'0123456789'
_MAX_INT_DIGITS = len(str(INT64_MAX))


class BencodeSyntaxError(ValueError):
    """Exception raised when data does not follow the bencode grammar."""

    def __init__(self, message: str, offset: int):
        super().__init__(f"{message} (at byte {offset})")
        self.offset = offset


class MalformedLength(BencodeSyntaxError):
    """Byte-string length prefix is missing or not a decimal number."""
    pass


class TruncatedInput(BencodeSyntaxError):
    """Data ended before the value was complete."""
    pass


class MalformedInteger(BencodeSyntaxError):
    """Integer body is empty, has leading zeros, is out of range or unterminated."""
    pass


class MalformedDictionary(BencodeSyntaxError):
    """Dictionary key is not a byte string, or keys are unsorted in strict mode."""
    pass


class DuplicateKey(BencodeSyntaxError):
    """The same dictionary key appears twice."""

    def __init__(self, key: bytes, offset: int):
        super().__init__(f"Duplicate dictionary key {key!r}", offset)
        self.key = key


class InvalidTag(BencodeSyntaxError):
    """Leading byte does not start any bencode value."""
    pass


class TrailingData(BencodeSyntaxError):
    """Bytes remain after a complete top-level value."""
    pass


class NestingTooDeep(BencodeSyntaxError):
    """Lists and dictionaries are nested deeper than MAX_DEPTH."""
    pass


class _Decoder:
    """Recursive-descent decoder over an immutable byte buffer."""

    def __init__(self, data: bytes, strict: bool = False):
        self.data = data
        self.offset = 0
        self.strict = strict
        self.depth = 0

    def _peek(self) -> int:
        if self.offset >= len(self.data):
            raise TruncatedInput("Unexpected end of data", self.offset)
        return self.data[self.offset]

    def decode_next(self) -> BencodeValue:
        """Decode the value starting at the current offset."""
        char = self._peek()

        if char == ord('i'):
            return self._decode_int()
        if char == ord('l'):
            return self._decode_list()
        if char == ord('d'):
            return self._decode_dict()
        if char == ord('e'):
            raise InvalidTag("Unexpected end marker 'e'", self.offset)
        if chr(char).isascii() and chr(char).isalnum():
            return self._decode_string()
        raise InvalidTag(f"Unknown bencode type identifier {bytes([char])!r}", self.offset)

    def _decode_int(self) -> int:
        """Decode an integer (format: i<integer>e)."""
        start = self.offset
        self.offset += 1  # Skip 'i'
        end = self.data.find(b'e', self.offset)
        if end == -1:
            raise MalformedInteger("Integer is missing its 'e' terminator", start)

        body = self.data[self.offset:end]
        digits = body[1:] if body.startswith(b'-') else body
        if not digits or any(b not in _DIGITS for b in digits):
            raise MalformedInteger(f"Invalid integer body {body!r}", start)
        if digits.startswith(b'0') and (len(digits) > 1 or body.startswith(b'-')):
            raise MalformedInteger(f"Integer {body!r} is not in minimal form", start)
        if len(digits) > _MAX_INT_DIGITS:
            raise MalformedInteger(f"Integer with {len(digits)} digits does not fit in 64 bits", start)

        value = int(body)
        if not INT64_MIN <= value <= INT64_MAX:
            raise MalformedInteger(f"Integer {body!r} does not fit in 64 bits", start)
        self.offset = end + 1
        return value

    def _decode_string(self) -> bytes:
        """Decode a byte string (format: <length>:<bytes>)."""
        start = self.offset
        colon = self.data.find(b':', self.offset)
        prefix = self.data[self.offset:colon] if colon != -1 else self.data[self.offset:]
        if (colon == -1 or not prefix or any(b not in _DIGITS for b in prefix)
                or (prefix.startswith(b'0') and len(prefix) > 1)):
            raise MalformedLength(f"Invalid byte-string length prefix {bytes(prefix[:20])!r}", start)
        if len(prefix) > len(str(len(self.data))):
            raise TruncatedInput(f"Byte-string length prefix of {len(prefix)} digits exceeds the data", start)

        length = int(prefix)
        self.offset = colon + 1
        end = self.offset + length
        if end > len(self.data):
            raise TruncatedInput(
                f"Byte string declares {length} bytes but only {len(self.data) - self.offset} remain",
                start)
        value = bytes(self.data[self.offset:end])
        self.offset = end
        return value

    def _enter(self, start: int):
        self.depth += 1
        if self.depth > MAX_DEPTH:
            raise NestingTooDeep(f"Nesting exceeds {MAX_DEPTH} levels", start)

    def _decode_list(self) -> list:
        """Decode a list (format: l<item1><item2>...e)."""
        self._enter(self.offset)
        self.offset += 1  # Skip 'l'
        result = []
        while self._peek() != ord('e'):
            result.append(self.decode_next())
        self.offset += 1  # Skip 'e'
        self.depth -= 1
        return result

    def _decode_dict(self) -> dict:
        """Decode a dictionary (format: d<key1><value1>...e)."""
        self._enter(self.offset)
        self.offset += 1  # Skip 'd'
        result = {}
        previous = None
        while self._peek() != ord('e'):
            key_offset = self.offset
            if self._peek() not in _DIGITS:
                raise MalformedDictionary("Dictionary key must be a byte string", key_offset)
            key = self._decode_string()
            if key in result:
                raise DuplicateKey(key, key_offset)
            if previous is not None and key < previous:
                if self.strict:
                    raise MalformedDictionary(
                        f"Dictionary key {key!r} is out of order after {previous!r}", key_offset)
                logger.debug(f"Out-of-order dictionary key {key!r} at byte {key_offset}")
            previous = key
            result[key] = self.decode_next()
        self.offset += 1  # Skip 'e'
        self.depth -= 1
        return result


def _as_bytes(data) -> bytes:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"Bencoded data must be bytes-like, not {type(data).__name__}")


def decode_prefix(data: bytes, offset: int = 0, strict: bool = False) -> Tuple[BencodeValue, bytes]:
    """
    Decode one value from the front of a buffer.

    Args:
        data: Bencoded bytes
        offset: Position of the first byte of the value
        strict: Reject dictionaries whose keys are not sorted

    Returns:
        Tuple of the decoded value and the unconsumed remainder

    Raises:
        BencodeSyntaxError: If the data does not follow the grammar
        ValueError: If offset is negative
    """
    if offset < 0:
        raise ValueError(f"Offset must not be negative, got {offset}")
    decoder = _Decoder(_as_bytes(data), strict=strict)
    decoder.offset = offset
    value = decoder.decode_next()
    return value, decoder.data[decoder.offset:]


def decode(data: bytes, strict: bool = False) -> BencodeValue:
    """
    Decode a buffer holding exactly one bencoded value.

    Raises:
        BencodeSyntaxError: If the data is malformed or has trailing bytes
    """
    data = _as_bytes(data)
    value, rest = decode_prefix(data, strict=strict)
    if rest:
        raise TrailingData(f"{len(rest)} bytes follow the top-level value", len(data) - len(rest))
    return value


def _encode_into(value: BencodeValue, out: List[bytes]):
    # bool is an int subclass but not a bencode type
    if isinstance(value, bool):
        raise TypeError("Cannot bencode type: bool")
    if isinstance(value, int):
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(f"Integer {value} does not fit in 64 bits")
        out.append(b'i%de' % value)
    elif isinstance(value, (bytes, bytearray)):
        out.append(b'%d:' % len(value))
        out.append(bytes(value))
    elif isinstance(value, list):
        out.append(b'l')
        for item in value:
            _encode_into(item, out)
        out.append(b'e')
    elif isinstance(value, dict):
        for key in value:
            if not isinstance(key, bytes):
                raise TypeError(f"Dictionary keys must be bytes, not {type(key).__name__}")
        out.append(b'd')
        for key in sorted(value):
            _encode_into(key, out)
            _encode_into(value[key], out)
        out.append(b'e')
    else:
        raise TypeError(f"Cannot bencode type: {type(value).__name__}")


def encode(value: BencodeValue) -> bytes:
    """
    Encode a value into canonical bencode.

    Dictionary entries are emitted in sorted key order, so any two equal
    values produce identical bytes.

    Raises:
        TypeError: If the value contains a type bencode cannot represent
        ValueError: If an integer does not fit in 64 bits
    """
    out = []
    _encode_into(value, out)
    return b''.join(out)
