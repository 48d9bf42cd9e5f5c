"""
HuffmanArchive - persisted container for an encoded bitstream and its tables.

Record fields, in fixed order:
    encoded_bit_length   number of meaningful bits in the bitstream
    encoded_words        bitstream packed into 64-bit words (see portable.py)
    encode_table         [(symbol, PortableBits), ...]
    decode_table         [(PortableBits, symbol), ...]

Binary framing:
    [4B]  MAGIC  "HFv1"
    [4B]  payload_length (uint32 LE)
    [N B] UTF-8 JSON payload of the record

Symbols must be JSON scalars (int or str); byte input is stored as ints.
"""

import json
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Hashable, Iterable, List, Tuple, Union

from loguru import logger

import huffman as huff
from portable import PortableBits, from_portable, parse_int, tables_from_portable, tables_to_portable, to_portable

ARCHIVE_MAGIC = b"HFv1"
_HEADER = struct.Struct("<4sI")


def is_json_symbol(symbol) -> bool:
    # tuples and other containers come back from json as unhashable lists
    return isinstance(symbol, (int, str)) and not isinstance(symbol, bool)


@dataclass(frozen=True)
class HuffmanArchive:
    encoded_bit_length: int
    encoded_words: Tuple[int, ...]
    encode_table: Tuple[Tuple[Hashable, PortableBits], ...]
    decode_table: Tuple[Tuple[PortableBits, Hashable], ...]

    @classmethod
    def pack(cls, bits: str, encoder: huff.Encoder, decoder: huff.Decoder) -> "HuffmanArchive":
        for symbol in encoder.encode_table:
            if not is_json_symbol(symbol):
                raise ValueError(f"archive symbols must be int or str, got {symbol!r}")
        data = to_portable(bits)
        encode_pairs, decode_pairs = tables_to_portable(encoder.encode_table, decoder.decode_table)
        logger.debug(f"[HuffmanArchive] packed {data.bit_length} bits into {len(data.words)} words")
        return cls(data.bit_length, data.words, tuple(encode_pairs), tuple(decode_pairs))

    def unpack(self, validate: bool = True) -> Tuple[str, huff.Encoder, huff.Decoder]:
        bits = from_portable(PortableBits(self.encoded_bit_length, self.encoded_words), strict=validate)
        encoder, decoder = tables_from_portable(self.encode_table, self.decode_table, validate=validate)
        return bits, encoder, decoder

    def to_dict(self) -> dict:
        return {
            "encoded_bit_length": self.encoded_bit_length,
            "encoded_words": list(self.encoded_words),
            "encode_table": [[symbol, p.to_list()] for symbol, p in self.encode_table],
            "decode_table": [[p.to_list(), symbol] for p, symbol in self.decode_table],
        }

    @classmethod
    def from_dict(cls, record: dict) -> "HuffmanArchive":
        try:
            archive = cls(
                parse_int(record["encoded_bit_length"]),
                tuple(parse_int(w) for w in record["encoded_words"]),
                tuple((symbol, PortableBits.from_list(p)) for symbol, p in record["encode_table"]),
                tuple((PortableBits.from_list(p), symbol) for p, symbol in record["decode_table"]),
            )
        except huff.CorruptTable:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise huff.CorruptTable(f"malformed archive record: {e}") from e

        symbols = [s for s, _ in archive.encode_table] + [s for _, s in archive.decode_table]
        for symbol in symbols:
            if not is_json_symbol(symbol):
                raise huff.CorruptTable(f"archive symbol {symbol!r} is not an int or str")
        return archive

    def dumps(self) -> bytes:
        payload = json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")
        return _HEADER.pack(ARCHIVE_MAGIC, len(payload)) + payload

    @classmethod
    def loads(cls, data: bytes) -> "HuffmanArchive":
        if len(data) < _HEADER.size:
            raise huff.CorruptTable(f"archive too short: {len(data)} bytes")
        magic, payload_length = _HEADER.unpack_from(data, 0)
        if magic != ARCHIVE_MAGIC:
            raise huff.CorruptTable(f"invalid archive magic: {magic!r}")
        payload = data[_HEADER.size:]
        if len(payload) != payload_length:
            raise huff.CorruptTable(f"archive payload is {len(payload)} bytes, header says {payload_length}")
        try:
            record = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise huff.CorruptTable(f"archive payload is not valid JSON: {e}") from e
        if not isinstance(record, dict):
            raise huff.CorruptTable("archive payload is not a record")
        return cls.from_dict(record)


def compress(symbols: Iterable) -> bytes:
    symbols = list(symbols)
    tree = huff.build_tree(symbols)
    encoder, decoder = huff.encoder_decoder_pair(tree)
    bits = encoder.encode(symbols)
    return HuffmanArchive.pack(bits, encoder, decoder).dumps()


def decompress(blob: bytes) -> List:
    bits, _, decoder = HuffmanArchive.loads(blob).unpack()
    return decoder.decode(bits)


def write_archive(path: Union[str, Path], archive: HuffmanArchive) -> int:
    data = archive.dumps()
    Path(path).write_bytes(data)
    logger.info(f"[HuffmanArchive] wrote {len(data)} bytes to {path}")
    return len(data)


def read_archive(path: Union[str, Path]) -> HuffmanArchive:
    data = Path(path).read_bytes()
    logger.info(f"[HuffmanArchive] read {len(data)} bytes from {path}")
    return HuffmanArchive.loads(data)
