# file_manager.py: Checks local content against the piece hashes of a torrent.
import os
import logging
from bitstring import BitArray
from torrent import IoFailure
from utils import sha1_hash

logger = logging.getLogger(__name__)


class FileManager:
    def __init__(self, metainfo, path):
        self.metainfo = metainfo
        self.path = os.path.abspath(os.path.normpath(path))
        if not os.path.isfile(self.path):
            raise IoFailure(f"Content file not found: {self.path}")

    def read_piece(self, index):
        """Read one piece from disk; shorter than expected if the file is truncated."""
        offset = index * self.metainfo.piece_length
        length = self.metainfo.get_piece_length(index)
        try:
            with open(self.path, 'rb') as fh:
                fh.seek(offset)
                return fh.read(length)
        except OSError as e:
            raise IoFailure(f"Failed to read piece {index} from {self.path}: {e}") from e

    def validate_piece(self, index, piece_data):
        """Validate a piece against its hash."""
        if len(piece_data) != self.metainfo.get_piece_length(index):
            return False
        computed_hash = sha1_hash(piece_data).hex()
        expected_hash = self.metainfo.get_piece_hash(index)
        if computed_hash != expected_hash:
            logger.debug(f"Hash mismatch for piece {index}: expected {expected_hash}, got {computed_hash}")
            return False
        return True

    def verify_all(self):
        """Build a bitfield with one bit set for every piece that verifies."""
        bitfield = BitArray(length=self.metainfo.num_pieces)
        for i in range(self.metainfo.num_pieces):
            bitfield[i] = self.validate_piece(i, self.read_piece(i))
        missing = self.metainfo.num_pieces - bitfield.count(True)
        if missing:
            logger.warning(f"{missing} of {self.metainfo.num_pieces} pieces failed verification")
        return bitfield
