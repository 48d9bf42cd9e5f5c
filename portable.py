"""
Word-packed, length-tagged form of bit strings for persistence.

Bit i of a sequence is stored in words[i // WORD_BITS] at bit position
i % WORD_BITS, least significant bit first. Writer and reader must agree on
WORD_BITS; it is part of the persisted format.
"""

from dataclasses import dataclass
from typing import Hashable, List, Sequence, Tuple

from loguru import logger

from huffman import CorruptTable, DecodeTable, Decoder, EncodeTable, Encoder

WORD_BITS = 64
WORD_MASK = (1 << WORD_BITS) - 1


@dataclass(frozen=True)
class PortableBits:
    bit_length: int
    words: Tuple[int, ...]

    @property
    def capacity(self) -> int:
        return len(self.words) * WORD_BITS

    def to_list(self) -> list:
        return [self.bit_length, list(self.words)]

    @classmethod
    def from_list(cls, value) -> "PortableBits":
        try:
            bit_length, words = value
            return cls(parse_int(bit_length), tuple(parse_int(w) for w in words))
        except (TypeError, ValueError) as e:
            raise CorruptTable(f"malformed portable bit sequence: {value!r}") from e


def parse_int(value) -> int:
    # json gives floats and bools for malformed numbers; int() would truncate them
    if isinstance(value, bool) or not isinstance(value, int):
        raise CorruptTable(f"expected an integer, got {value!r}")
    return value


def to_portable(bits: str) -> PortableBits:
    words = []
    for start in range(0, len(bits), WORD_BITS):
        chunk = bits[start:start + WORD_BITS]
        words.append(int(chunk[::-1], 2)) # first bit of the chunk is the least significant
    return PortableBits(len(bits), tuple(words))


def check_portable(p: PortableBits) -> None:
    if p.bit_length < 0:
        raise CorruptTable(f"negative bit length {p.bit_length}")
    if p.bit_length > p.capacity:
        raise CorruptTable(f"bit length {p.bit_length} exceeds packed capacity {p.capacity}")
    for word in p.words:
        if not 0 <= word <= WORD_MASK:
            raise CorruptTable(f"word {word} does not fit in {WORD_BITS} bits")


def from_portable(p: PortableBits, strict: bool = False) -> str:
    """
    Unpack to a bit string of exactly p.bit_length bits, truncating surplus
    bits and padding missing ones with '0'. With strict=True, a sequence that
    does not fit its own words raises CorruptTable instead.
    """
    if strict:
        check_portable(p)
    unpacked = "".join(format(word & WORD_MASK, f"0{WORD_BITS}b")[::-1] for word in p.words)
    length = max(p.bit_length, 0)
    return unpacked[:length].ljust(length, "0")


def tables_to_portable(encode_table: EncodeTable, decode_table: DecodeTable) -> Tuple[
    List[Tuple[Hashable, PortableBits]], List[Tuple[PortableBits, Hashable]]
]:
    encode_pairs = [(symbol, to_portable(code)) for symbol, code in encode_table.items()]
    decode_pairs = [(to_portable(code), symbol) for code, symbol in decode_table.items()]
    return encode_pairs, decode_pairs


def _check_prefix_free(codes: Sequence[str]) -> None:
    # In sorted order a code that prefixes others sorts right before one of them
    ordered = sorted(codes)
    for shorter, longer in zip(ordered, ordered[1:]):
        if longer.startswith(shorter):
            raise CorruptTable(f"code {shorter!r} is a prefix of code {longer!r}")


def tables_from_portable(
    encode_pairs: Sequence[Tuple[Hashable, PortableBits]],
    decode_pairs: Sequence[Tuple[PortableBits, Hashable]],
    validate: bool = True,
) -> Tuple[Encoder, Decoder]:
    """
    Rebuild an (Encoder, Decoder) pair from portable table entries.

    With validate=True every entry must fit its words, codes must be
    non-empty and prefix-free, and the two tables must be exact inverses.
    """
    encode_table = {}
    for symbol, p in encode_pairs:
        encode_table[symbol] = from_portable(p, strict=validate)
    decode_table = {}
    for p, symbol in decode_pairs:
        decode_table[from_portable(p, strict=validate)] = symbol

    if validate:
        if len(decode_table) != len(decode_pairs) or len(encode_table) != len(encode_pairs):
            raise CorruptTable("duplicate entries in persisted tables")
        if "" in decode_table or "" in encode_table.values():
            raise CorruptTable("empty code in persisted tables")
        _check_prefix_free(list(decode_table))
        if len(encode_table) != len(decode_table):
            raise CorruptTable(
                f"encode table has {len(encode_table)} entries, decode table has {len(decode_table)}"
            )
        for symbol, code in encode_table.items():
            if code not in decode_table or decode_table[code] != symbol:
                raise CorruptTable(f"tables disagree on the code for symbol {symbol!r}")

    logger.debug(f"[TablePortability] loaded {len(encode_table)} encode / {len(decode_table)} decode entries")
    return Encoder(encode_table), Decoder(decode_table)
