"""
Tests for the bencode codec: grammar, error kinds, canonical encoding.
"""

import random

import bencodepy
import pytest

from bencode_codec import (
    MAX_DEPTH, BencodeSyntaxError, DuplicateKey, InvalidTag, MalformedDictionary,
    MalformedInteger, MalformedLength, NestingTooDeep, TrailingData, TruncatedInput,
    decode, decode_prefix, encode,
)


def random_value(rng, depth=0):
    """Generate a random bencode value with bounded nesting."""
    kinds = ['int', 'bytes'] if depth >= 4 else ['int', 'bytes', 'list', 'dict']
    kind = rng.choice(kinds)
    if kind == 'int':
        return rng.randint(-2 ** 63, 2 ** 63 - 1)
    if kind == 'bytes':
        return bytes(rng.randrange(256) for _ in range(rng.randrange(12)))
    if kind == 'list':
        return [random_value(rng, depth + 1) for _ in range(rng.randrange(5))]
    keys = {bytes(rng.randrange(256) for _ in range(rng.randrange(1, 6))) for _ in range(rng.randrange(5))}
    return {key: random_value(rng, depth + 1) for key in keys}


@pytest.mark.parametrize('data, expected', [
    (b'i0e', 0),
    (b'i42e', 42),
    (b'i-42e', -42),
    (b'i9223372036854775807e', 2 ** 63 - 1),
    (b'i-9223372036854775808e', -2 ** 63),
    (b'0:', b''),
    (b'4:spam', b'spam'),
    (b'le', []),
    (b'l4:spami1ee', [b'spam', 1]),
    (b'de', {}),
    (b'd3:cow3:moo4:spaml1:a1:bee', {b'cow': b'moo', b'spam': [b'a', b'b']}),
])
def test_decode_values(data, expected):
    assert decode(data) == expected


def test_decode_binary_string():
    blob = bytes(range(256))
    assert decode(b'256:' + blob) == blob


def test_decode_accepts_bytearray_and_memoryview():
    assert decode(bytearray(b'i7e')) == 7
    assert decode(memoryview(b'3:abc')) == b'abc'


def test_decode_rejects_text():
    with pytest.raises(TypeError):
        decode('i1e')


def test_decode_prefix_reports_remainder():
    value, rest = decode_prefix(b'i1ei2e')
    assert value == 1
    assert rest == b'i2e'

    value, rest = decode_prefix(b'xx4:spam', offset=2)
    assert value == b'spam'
    assert rest == b''


def test_malformed_length():
    with pytest.raises(MalformedLength) as exc:
        decode(b'abc')
    assert exc.value.offset == 0


def test_truncated_string():
    with pytest.raises(TruncatedInput):
        decode(b'5:ab')


@pytest.mark.parametrize('data', [b'03:abc', b'3abc', b'12'])
def test_bad_length_prefix(data):
    with pytest.raises(MalformedLength):
        decode(data)


@pytest.mark.parametrize('data', [
    b'ie', b'i-e', b'i03e', b'i-0e', b'i1x2e', b'i12', b'i9223372036854775808e',
])
def test_malformed_integer(data):
    with pytest.raises(MalformedInteger):
        decode(data)


@pytest.mark.parametrize('data', [b'', b'l', b'li1e', b'd3:foo', b'd3:fooi1e'])
def test_truncated_containers(data):
    with pytest.raises(TruncatedInput):
        decode(data)


def test_dictionary_key_must_be_string():
    with pytest.raises(MalformedDictionary):
        decode(b'di1ei2ee')


def test_duplicate_key():
    with pytest.raises(DuplicateKey) as exc:
        decode(b'd1:ai1e1:ai2ee')
    assert exc.value.key == b'a'
    assert exc.value.offset == 7


@pytest.mark.parametrize('data', [b'e', b'-5', b'l!e', b'\xff'])
def test_invalid_tag(data):
    with pytest.raises(InvalidTag):
        decode(data)


def test_trailing_data():
    with pytest.raises(TrailingData) as exc:
        decode(b'i1ei2e')
    assert exc.value.offset == 3


def test_nesting_limit():
    decode(b'l' * MAX_DEPTH + b'e' * MAX_DEPTH)
    with pytest.raises(NestingTooDeep):
        decode(b'l' * (MAX_DEPTH + 1) + b'e' * (MAX_DEPTH + 1))


def test_unsorted_keys_lenient_and_strict():
    data = b'd1:bi1e1:ai2ee'
    assert decode(data) == {b'a': 2, b'b': 1}
    with pytest.raises(MalformedDictionary):
        decode(data, strict=True)


def test_errors_are_value_errors():
    with pytest.raises(ValueError):
        decode(b'i1')
    assert issubclass(TruncatedInput, BencodeSyntaxError)


def test_error_message_has_offset():
    with pytest.raises(BencodeSyntaxError, match=r'at byte 1'):
        decode(b'l!e')


def test_encode_values():
    assert encode(0) == b'i0e'
    assert encode(-7) == b'i-7e'
    assert encode(b'') == b'0:'
    assert encode(b'spam') == b'4:spam'
    assert encode([]) == b'le'
    assert encode({}) == b'de'
    assert encode([b'a', [1, {b'k': b'v'}]]) == b'l1:ali1ed1:k1:veee'


def test_encode_sorts_dictionary_keys():
    value = {b'zeta': 1, b'alpha': 2, b'piece length': 3, b'pieces': 4, b'B': 5}
    assert encode(value) == b'd1:Bi5e5:alphai2e12:piece lengthi3e6:piecesi4e4:zetai1ee'


def test_canonical_order_ignores_insertion_order():
    rng = random.Random(1234)
    for _ in range(50):
        keys = [bytes(rng.randrange(256) for _ in range(rng.randrange(1, 4))) for _ in range(6)]
        items = [(key, rng.randrange(100)) for key in set(keys)]
        shuffled = list(items)
        rng.shuffle(shuffled)
        assert encode(dict(items)) == encode(dict(shuffled))
        assert list(decode(encode(dict(shuffled)))) == sorted(key for key, _ in items)


@pytest.mark.parametrize('value', ['text', True, 1.5, (1, 2), {'key': 1}, None])
def test_encode_rejects_unsupported_types(value):
    with pytest.raises(TypeError):
        encode(value)


def test_encode_rejects_oversized_integer():
    with pytest.raises(ValueError):
        encode(2 ** 63)


def test_round_trip_random_values():
    rng = random.Random(20240101)
    for _ in range(300):
        value = random_value(rng)
        assert decode(encode(value), strict=True) == value


def test_encoding_matches_bencodepy():
    rng = random.Random(7)
    for _ in range(100):
        value = random_value(rng)
        assert encode(value) == bencodepy.encode(value)


def test_overlong_integer():
    with pytest.raises(MalformedInteger):
        decode(b'i' + b'1' * 5000 + b'e')
    with pytest.raises(MalformedInteger):
        decode(b'i-' + b'9' * 20 + b'e')


def test_overlong_length_prefix():
    with pytest.raises(TruncatedInput):
        decode(b'1' * 5000 + b':abc')


def test_decode_prefix_rejects_negative_offset():
    with pytest.raises(ValueError) as exc:
        decode_prefix(b'i1e', offset=-3)
    assert not isinstance(exc.value, BencodeSyntaxError)
