"""
BitTorrent Metainfo Parser

This module turns the raw bytes of a single-file .torrent into a read-only
MetaInfo record. The announce URL and the four required info fields are
validated and extracted, and two values are derived from the info
dictionary: the info-hash (SHA-1 of its canonical encoding) and the list
of per-piece SHA-1 digests.
"""

import logging
from typing import Dict

from bencode_codec import decode
from utils import PIECE_HASH_SIZE, compute_info_hash, split_piece_hashes

logger = logging.getLogger(__name__)


class IoFailure(OSError):
    """Exception raised when the torrent bytes cannot be read."""
    pass


class SchemaViolation(ValueError):
    """Exception raised when decoded data does not match the torrent schema."""
    pass


class MissingField(SchemaViolation):
    """A required key is absent."""

    def __init__(self, field: str):
        super().__init__(f"Missing required field '{field}'")
        self.field = field


class InvalidEncoding(SchemaViolation):
    """A text field is not valid UTF-8."""

    def __init__(self, field: str):
        super().__init__(f"Field '{field}' is not valid UTF-8")
        self.field = field


class InvalidFieldType(SchemaViolation):
    """A required key holds the wrong kind of value."""

    def __init__(self, field: str, expected: str):
        super().__init__(f"Field '{field}' must be a {expected}")
        self.field = field
        self.expected = expected


class InvalidPieceBlob(SchemaViolation):
    """The pieces blob length is not a multiple of the digest size."""
    pass


class InvalidPieceLength(SchemaViolation):
    """The piece length is not a positive integer."""
    pass


class InvalidLength(SchemaViolation):
    """The content length is negative."""
    pass


class _ReadOnly:
    __slots__ = ()

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is read-only")

    def __delattr__(self, name):
        raise AttributeError(f"{type(self).__name__} is read-only")


class InfoRecord(_ReadOnly):
    """The fields of the info dictionary, copied verbatim."""

    __slots__ = ('piece_length', 'length', 'name', 'pieces')

    def __init__(self, piece_length: int, length: int, name: str, pieces: bytes):
        object.__setattr__(self, 'piece_length', piece_length)
        object.__setattr__(self, 'length', length)
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'pieces', pieces)

    def _key(self):
        return (self.piece_length, self.length, self.name, self.pieces)

    def __eq__(self, other):
        if not isinstance(other, InfoRecord):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self) -> str:
        return (f"InfoRecord(name={self.name!r}, length={self.length}, "
                f"piece_length={self.piece_length}, pieces=<{len(self.pieces)} bytes>)")


class MetaInfo(_ReadOnly):
    """
    A parsed torrent.

    Built once from bytes via parse_metainfo() and never modified. The
    info-hash and piece hashes are derived from the decoded info
    dictionary, including any keys beyond the four that InfoRecord keeps.
    """

    __slots__ = ('announce', 'info', 'info_hash_bytes', 'piece_hashes')

    def __init__(self, announce: str, info: InfoRecord, info_hash_bytes: bytes):
        object.__setattr__(self, 'announce', announce)
        object.__setattr__(self, 'info', info)
        object.__setattr__(self, 'info_hash_bytes', info_hash_bytes)
        object.__setattr__(self, 'piece_hashes', tuple(split_piece_hashes(info.pieces)))

    @classmethod
    def from_bytes(cls, data: bytes, strict: bool = False) -> 'MetaInfo':
        """Parse a torrent from its raw bytes."""
        return parse_metainfo(data, strict=strict)

    @property
    def info_hash(self) -> str:
        """The info-hash as 40 lowercase hex characters."""
        return self.info_hash_bytes.hex()

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def length(self) -> int:
        return self.info.length

    @property
    def piece_length(self) -> int:
        return self.info.piece_length

    @property
    def num_pieces(self) -> int:
        return len(self.piece_hashes)

    def get_piece_hash(self, piece_index: int) -> str:
        """
        Get the expected SHA1 digest for a specific piece.

        Args:
            piece_index: Zero-based piece index

        Returns:
            40-character lowercase hex digest

        Raises:
            IndexError: If piece_index is out of range
        """
        if piece_index < 0 or piece_index >= self.num_pieces:
            raise IndexError(f"Piece index {piece_index} out of range (0-{self.num_pieces - 1})")
        return self.piece_hashes[piece_index]

    def get_piece_length(self, piece_index: int) -> int:
        """
        Get the actual length of a specific piece.

        The last piece may be shorter than the standard piece length. When
        length disagrees with the piece count the result is clamped to
        0..piece_length.

        Raises:
            IndexError: If piece_index is out of range
        """
        if piece_index < 0 or piece_index >= self.num_pieces:
            raise IndexError(f"Piece index {piece_index} out of range (0-{self.num_pieces - 1})")

        remaining = self.length - piece_index * self.piece_length
        return max(0, min(self.piece_length, remaining))

    def to_dict(self) -> Dict:
        """JSON-friendly view of the record."""
        return {
            'announce': self.announce,
            'info': {
                'piece_length': self.info.piece_length,
                'length': self.info.length,
                'name': self.info.name,
                'pieces': self.info.pieces.hex(),
            },
            'info_hash': self.info_hash,
            'piece_hashes': list(self.piece_hashes),
        }

    def __eq__(self, other):
        if not isinstance(other, MetaInfo):
            return NotImplemented
        return (self.announce, self.info, self.info_hash_bytes) == \
            (other.announce, other.info, other.info_hash_bytes)

    def __hash__(self):
        return hash((self.announce, self.info, self.info_hash_bytes))

    def __str__(self) -> str:
        return (f"Torrent(name='{self.name}', "
                f"size={self.length}, "
                f"pieces={self.num_pieces}, "
                f"info_hash={self.info_hash})")

    def __repr__(self) -> str:
        return self.__str__()


def _require(container: Dict, key: bytes, kind: type, expected: str):
    field = key.decode('ascii')
    if key not in container:
        raise MissingField(field)
    value = container[key]
    if not isinstance(value, kind):
        raise InvalidFieldType(field, expected)
    return value


def _decode_text(value: bytes, field: str) -> str:
    try:
        return value.decode('utf-8')
    except UnicodeDecodeError as e:
        raise InvalidEncoding(field) from e


def parse_metainfo(data: bytes, strict: bool = False) -> MetaInfo:
    """
    Parse the raw contents of a .torrent file.

    Args:
        data: Complete bencoded file contents
        strict: Reject dictionaries whose keys are not sorted in the source

    Returns:
        MetaInfo record with derived info-hash and piece hashes

    Raises:
        BencodeSyntaxError: If the data is not valid bencode
        SchemaViolation: If the data does not describe a single-file torrent
    """
    root = decode(data, strict=strict)
    if not isinstance(root, dict):
        raise InvalidFieldType('<root>', 'dictionary')

    announce = _decode_text(_require(root, b'announce', bytes, 'byte string'), 'announce')
    info = _require(root, b'info', dict, 'dictionary')

    pieces = _require(info, b'pieces', bytes, 'byte string')
    if len(pieces) % PIECE_HASH_SIZE != 0:
        raise InvalidPieceBlob(
            f"Pieces length {len(pieces)} is not a multiple of {PIECE_HASH_SIZE}")

    piece_length = _require(info, b'piece length', int, 'integer')
    if piece_length <= 0:
        raise InvalidPieceLength(f"Piece length must be positive, got {piece_length}")

    length = _require(info, b'length', int, 'integer')
    if length < 0:
        raise InvalidLength(f"Length must not be negative, got {length}")

    name = _decode_text(_require(info, b'name', bytes, 'byte string'), 'name')

    record = InfoRecord(piece_length=piece_length, length=length, name=name, pieces=pieces)
    metainfo = MetaInfo(announce, record, compute_info_hash(info))
    logger.debug(f"Parsed '{name}': info_hash={metainfo.info_hash}, {metainfo.num_pieces} pieces")
    return metainfo


def load_torrent(torrent_path: str, strict: bool = False) -> MetaInfo:
    """
    Read and parse a .torrent file.

    Raises:
        IoFailure: If the file cannot be read
        BencodeSyntaxError: If the file is not valid bencode
        SchemaViolation: If the file does not describe a single-file torrent
    """
    try:
        with open(torrent_path, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise IoFailure(f"Failed to read torrent file {torrent_path}: {e}") from e
    return parse_metainfo(data, strict=strict)
