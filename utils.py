# utils.py: Hash helpers and constants shared by the metainfo parser.

import hashlib

from bencode_codec import encode

PIECE_HASH_SIZE = 20  # SHA-1 digest length in bytes


def sha1_hash(data):
    """Compute SHA1 hash of data."""
    return hashlib.sha1(data).digest()


def compute_info_hash(info):
    """Hash the canonical encoding of a decoded info dictionary.

    The dictionary is re-encoded rather than sliced out of the source
    file, so key order and formatting in the source do not matter.
    Returns the 20-byte digest.
    """
    return sha1_hash(encode(info))


def split_piece_hashes(pieces):
    """Split a pieces blob into lowercase hex digests, one per piece."""
    if len(pieces) % PIECE_HASH_SIZE != 0:
        raise ValueError(f"Pieces length {len(pieces)} is not a multiple of {PIECE_HASH_SIZE}")
    return [pieces[i:i + PIECE_HASH_SIZE].hex() for i in range(0, len(pieces), PIECE_HASH_SIZE)]


def format_size(size):
    """Format size in bytes to human readable string."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    return f"{size:.2f} PB"
