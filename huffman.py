"""
Static Huffman coding: frequency model, tree build, code tables, encode/decode.

Bit sequences are strings of '0' and '1'. A left descent in the tree appends
'0', a right descent appends '1'.
"""

import heapq
import itertools
from collections import Counter
from types import MappingProxyType
from typing import Dict, Hashable, Iterable, List, Mapping, Tuple

from loguru import logger


class HuffmanError(Exception):
    """Base class for every error raised by the Huffman engine."""


class EmptyInput(HuffmanError, ValueError):
    def __init__(self, message="cannot build a Huffman tree from an empty input"):
        super().__init__(message)


class UnknownSymbol(HuffmanError, KeyError):
    def __init__(self, symbol):
        super().__init__(symbol)
        self.symbol = symbol

    def __str__(self):
        return f"symbol {self.symbol!r} has no entry in the encode table"


class CorruptTable(HuffmanError, ValueError):
    """Persisted table data failed validation on load."""


EncodeTable = Mapping[Hashable, str]
DecodeTable = Mapping[str, Hashable]


class HuffmanNode: # Node for Huffman tree, compared on weight only
    __slots__ = ("weight",)

    def __init__(self, weight: float):
        self.weight = weight

    @property
    def is_leaf(self) -> bool:
        return False

    def __lt__(self, other):
        return self.weight < other.weight # allows heapq to maintain the min-heap property based on weight

    def __eq__(self, other):
        if not isinstance(other, HuffmanNode):
            return NotImplemented
        return self.weight == other.weight

    def __hash__(self):
        return hash(self.weight)


class Leaf(HuffmanNode):
    __slots__ = ("symbol",)

    def __init__(self, symbol, weight: float):
        super().__init__(weight)
        self.symbol = symbol

    @property
    def is_leaf(self) -> bool:
        return True

    def __repr__(self):
        return f"Leaf({self.symbol!r}, {self.weight!r})"


class Internal(HuffmanNode):
    __slots__ = ("left", "right")

    def __init__(self, left: HuffmanNode, right: HuffmanNode):
        super().__init__(left.weight + right.weight) # internal node with combined weight
        self.left = left
        self.right = right

    def __repr__(self):
        return f"Internal({self.weight!r}, {self.left!r}, {self.right!r})"


def symbol_frequencies(symbols: Iterable) -> Tuple[Dict[Hashable, float], int]:
    """
    Relative frequency of every distinct symbol, in order of first appearance,
    together with the total symbol count.
    """
    counts = Counter(symbols)
    total = sum(counts.values())
    if total == 0:
        raise EmptyInput()
    return {symbol: count / total for symbol, count in counts.items()}, total


def build_tree_from_frequencies(frequency_table: Mapping) -> HuffmanNode: # frequency_table: dict of symbol -> weight
    if not frequency_table:
        raise EmptyInput()

    # Equal weights pop in insertion order, so the tree shape is reproducible
    order = itertools.count()
    priority_queue = [(Leaf(symbol, weight), next(order)) for symbol, weight in frequency_table.items()]
    heapq.heapify(priority_queue)

    while len(priority_queue) > 1:
        left, _ = heapq.heappop(priority_queue)
        right, _ = heapq.heappop(priority_queue)
        heapq.heappush(priority_queue, (Internal(left, right), next(order)))

    root = priority_queue[0][0] # root of the tree
    logger.debug(f"[TreeBuilder] built tree over {len(frequency_table)} symbols")
    return root


def build_tree(symbols: Iterable) -> HuffmanNode:
    frequencies, _ = symbol_frequencies(symbols)
    return build_tree_from_frequencies(frequencies)


def derive_tables(root: HuffmanNode) -> Tuple[EncodeTable, DecodeTable]:
    """
    Walk the tree once and return read-only (encode_table, decode_table).

    Uses an explicit stack; skewed trees can be as deep as the alphabet is wide.
    A tree that is a single leaf gets the one-bit code '0', since an empty
    code could not tell repetitions apart.
    """
    encode_table: Dict[Hashable, str] = {}
    decode_table: Dict[str, Hashable] = {}

    if root.is_leaf:
        encode_table[root.symbol] = "0"
        decode_table["0"] = root.symbol
    else:
        stack: List[Tuple[HuffmanNode, str]] = [(root, "")]
        while stack:
            node, path = stack.pop()
            if node.is_leaf:
                encode_table[node.symbol] = path
                decode_table[path] = node.symbol
                continue
            # right pushed first so the left subtree is visited first
            stack.append((node.right, path + "1"))
            stack.append((node.left, path + "0"))

    logger.debug(f"[CodeTableDeriver] derived {len(encode_table)} codes")
    return MappingProxyType(encode_table), MappingProxyType(decode_table)


def encode(encode_table: EncodeTable, symbols: Iterable) -> str:
    pieces = []
    for symbol in symbols:
        try:
            pieces.append(encode_table[symbol])
        except KeyError:
            raise UnknownSymbol(symbol) from None
    return "".join(pieces)


def decode(decode_table: DecodeTable, bits: str) -> list:
    """
    Decode a bit string. Bits left over after the last complete code are
    treated as padding and dropped.
    """
    decoded = []
    current = ""
    for bit in bits:
        if bit != "0" and bit != "1":
            raise ValueError(f"bit strings may only contain '0' and '1', got {bit!r}")
        current += bit
        if current in decode_table: # prefix-free, so the first match is the codeword
            decoded.append(decode_table[current])
            current = ""

    if current:
        logger.debug(f"[Decoder] discarded {len(current)} trailing padding bits")
    return decoded


class Encoder:
    def __init__(self, encode_table: EncodeTable):
        self.encode_table = MappingProxyType(dict(encode_table))

    def encode(self, symbols: Iterable) -> str:
        return encode(self.encode_table, symbols)

    def __len__(self):
        return len(self.encode_table)


class Decoder:
    def __init__(self, decode_table: DecodeTable):
        self.decode_table = MappingProxyType(dict(decode_table))

    def decode(self, bits: str) -> list:
        return decode(self.decode_table, bits)

    def __len__(self):
        return len(self.decode_table)


def encoder_decoder_pair(root: HuffmanNode) -> Tuple[Encoder, Decoder]:
    encode_table, decode_table = derive_tables(root)
    return Encoder(encode_table), Decoder(decode_table)
