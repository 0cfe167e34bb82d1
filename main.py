# main.py: CLI entry point for inspecting .torrent files

import sys
import json
import argparse
import logging
from bencode_codec import BencodeSyntaxError
from file_manager import FileManager
from torrent import IoFailure, SchemaViolation, load_torrent
from utils import format_size


def build_parser():
    parser = argparse.ArgumentParser(
        description="Inspect a single-file .torrent: fields, info-hash and piece hashes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Show torrent info:
    python main.py --torrent info.torrent

  List every piece hash:
    python main.py --torrent info.torrent --pieces

  Check downloaded content against the torrent:
    python main.py --torrent info.torrent --check downloads/file.iso
        """
    )

    parser.add_argument('--torrent', required=True, help="Path to .torrent file")
    parser.add_argument('--pieces', '-p', action='store_true', help="List every piece hash")
    parser.add_argument('--json', action='store_true', help="Print the parsed record as JSON")
    parser.add_argument('--check', '-c', metavar='PATH', help="Verify local content against the piece hashes")
    parser.add_argument('--strict', action='store_true', help="Reject dictionaries with unsorted keys")
    parser.add_argument('--verbose', '-v', action='store_true', help="Enable debug logging")
    return parser


def print_info(torrent, show_pieces=False):
    print("\n=== Torrent Information ===")
    print(f"Name: {torrent.name}")
    print(f"Size: {format_size(torrent.length)}")
    print(f"Pieces: {torrent.num_pieces} ({format_size(torrent.piece_length)} each)")
    print(f"Tracker: {torrent.announce}")
    print(f"Info Hash: {torrent.info_hash}")

    if show_pieces:
        print("\nPiece hashes:")
        for i, piece_hash in enumerate(torrent.piece_hashes):
            print(f"Piece {i}: {piece_hash}")


def check_content(torrent, path):
    bitfield = FileManager(torrent, path).verify_all()
    valid = bitfield.count(True)
    print("\n=== Content Check ===")
    print(f"Valid pieces: {valid}/{torrent.num_pieces}")
    if torrent.num_pieces:
        print(f"Bitfield: {bitfield.bin}")
    return valid == torrent.num_pieces


def main(argv=None):
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        torrent = load_torrent(args.torrent, strict=args.strict)
        logging.info(f"Loaded torrent {args.torrent}")

        if args.json:
            print(json.dumps(torrent.to_dict(), indent=2))
        else:
            print_info(torrent, show_pieces=args.pieces)

        if args.check and not check_content(torrent, args.check):
            return 1
    except (IoFailure, BencodeSyntaxError, SchemaViolation) as e:
        logging.error(str(e))
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
