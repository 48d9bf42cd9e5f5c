"""
Compress a file into a Huffman archive, read the archive back and decode it.

How to run:
  python roundtrip.py input.txt
  python roundtrip.py input.bin --archive encoded.huff --decoded decoded.bin --log-level DEBUG
"""

import argparse
import sys
from pathlib import Path

from loguru import logger

import huffman as huff
from archive import HuffmanArchive, read_archive, write_archive


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def encode_file(input_path: Path, archive_path: Path) -> int:
    data = input_path.read_bytes()
    tree = huff.build_tree(data)
    encoder, decoder = huff.encoder_decoder_pair(tree)
    bits = encoder.encode(data)
    return write_archive(archive_path, HuffmanArchive.pack(bits, encoder, decoder))


def decode_file(archive_path: Path, output_path: Path) -> bytes:
    bits, _, decoder = read_archive(archive_path).unpack()
    decoded = bytes(decoder.decode(bits))
    output_path.write_bytes(decoded)
    return decoded


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Huffman encode a file to an archive and decode it back")
    ap.add_argument("input", type=str, help="Path to the file to compress")
    ap.add_argument("--archive", type=str, default="encoded.huff", help="Where to write the archive")
    ap.add_argument("--decoded", type=str, default="decoded.bin", help="Where to write the decoded bytes")
    ap.add_argument("--log-level", type=str, default="INFO", help="loguru level for stderr output")
    args = ap.parse_args(argv)

    configure_logging(args.log_level)

    input_path = Path(args.input)
    try:
        original = input_path.read_bytes()
        archive_size = encode_file(input_path, Path(args.archive))
        decoded = decode_file(Path(args.archive), Path(args.decoded))
    except FileNotFoundError as e:
        logger.error(f"[roundtrip] {e}")
        return 2
    except huff.HuffmanError as e:
        logger.error(f"[roundtrip] {e}")
        return 1

    if decoded != original:
        logger.warning(f"[roundtrip] decoded output differs from {input_path}")
        return 1

    print(f"Original size: {len(original)} bytes")
    print(f"Archive size:  {archive_size} bytes")
    print(f"Round trip OK, decoded bytes written to {args.decoded}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
