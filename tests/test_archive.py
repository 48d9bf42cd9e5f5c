import json
import struct

import pytest

import huffman as huff
from archive import ARCHIVE_MAGIC, HuffmanArchive, compress, decompress, read_archive, write_archive


def _archive_for(data):
	encoder, decoder = huff.encoder_decoder_pair(huff.build_tree(data))
	bits = encoder.encode(data)
	return bits, encoder, decoder, HuffmanArchive.pack(bits, encoder, decoder)


def test_reloaded_archive_behaves_like_the_original_tables():
	text = "Hello my name is Sam!"
	bits, encoder, decoder, archive = _archive_for(text)

	reloaded = HuffmanArchive.loads(archive.dumps())
	bits2, encoder2, decoder2 = reloaded.unpack()

	assert bits2 == bits
	assert encoder2.encode(text) == encoder.encode(text)
	assert decoder2.decode(bits) == decoder.decode(bits) == list(text)


def test_record_fields_keep_their_order():
	_, _, _, archive = _archive_for(b"AAAAABBBCC")
	record = archive.to_dict()
	assert list(record) == ["encoded_bit_length", "encoded_words", "encode_table", "decode_table"]
	assert record["encoded_bit_length"] == 15
	assert HuffmanArchive.from_dict(record) == archive


def test_framing_header():
	blob = compress(b"abracadabra")
	magic, length = struct.unpack_from("<4sI", blob, 0)
	assert magic == ARCHIVE_MAGIC
	assert length == len(blob) - 8
	json.loads(blob[8:].decode("utf-8"))


def test_compress_decompress_bytes():
	data = b"This is a test" * 100
	assert bytes(decompress(compress(data))) == data


def test_compress_single_symbol():
	data = b"A" * 1000
	assert bytes(decompress(compress(data))) == data


def test_compress_empty_input():
	with pytest.raises(huff.EmptyInput):
		compress(b"")


def test_bad_magic_is_rejected():
	blob = bytearray(compress(b"Hello World" * 50))
	blob[0] ^= 0xFF
	with pytest.raises(huff.CorruptTable):
		decompress(bytes(blob))


def test_truncated_archive_is_rejected():
	blob = compress(b"Hello World" * 50)
	with pytest.raises(huff.CorruptTable):
		decompress(blob[:-3])
	with pytest.raises(huff.CorruptTable):
		decompress(blob[:5])


def test_malformed_payload_is_rejected():
	payload = b"not json"
	with pytest.raises(huff.CorruptTable):
		HuffmanArchive.loads(struct.pack("<4sI", ARCHIVE_MAGIC, len(payload)) + payload)
	payload = json.dumps({"encoded_bit_length": 3}).encode("utf-8")
	with pytest.raises(huff.CorruptTable):
		HuffmanArchive.loads(struct.pack("<4sI", ARCHIVE_MAGIC, len(payload)) + payload)


def _framed(record):
	payload = json.dumps(record).encode("utf-8")
	return struct.pack("<4sI", ARCHIVE_MAGIC, len(payload)) + payload


def test_non_scalar_symbol_in_payload_is_rejected():
	record = {
		"encoded_bit_length": 1,
		"encoded_words": [0],
		"encode_table": [[["x"], [1, [0]]]],
		"decode_table": [[[1, [0]], ["x"]]],
	}
	with pytest.raises(huff.CorruptTable):
		HuffmanArchive.loads(_framed(record)).unpack()


@pytest.mark.parametrize("field, value", [
	("encoded_words", [0.9]),
	("encoded_words", [True]),
	("encoded_bit_length", 1.5),
	("encode_table", [["a", [1, [0.7]]]]),
	("decode_table", [[[1.0, [0]], "a"]]),
])
def test_non_integer_numbers_are_rejected(field, value):
	record = {
		"encoded_bit_length": 1,
		"encoded_words": [0],
		"encode_table": [["a", [1, [0]]]],
		"decode_table": [[[1, [0]], "a"]],
	}
	HuffmanArchive.loads(_framed(record)).unpack()
	record[field] = value
	with pytest.raises(huff.CorruptTable):
		HuffmanArchive.loads(_framed(record))


def test_pack_refuses_symbols_json_cannot_restore():
	data = [(1, 2), (3, 4), (1, 2)]
	encoder, decoder = huff.encoder_decoder_pair(huff.build_tree(data))
	with pytest.raises(ValueError):
		HuffmanArchive.pack(encoder.encode(data), encoder, decoder)
	with pytest.raises(ValueError):
		compress([True, False, True])


def test_bitstream_length_beyond_words_is_rejected():
	_, _, _, archive = _archive_for(b"abc")
	record = archive.to_dict()
	record["encoded_bit_length"] = 65 * len(record["encoded_words"])
	with pytest.raises(huff.CorruptTable):
		HuffmanArchive.from_dict(record).unpack()


def test_write_and_read_archive(tmp_path):
	data = "the quick brown fox jumps over the lazy dog"
	bits, _, _, archive = _archive_for(data)
	path = tmp_path / "encoded.huff"

	size = write_archive(path, archive)
	assert size == path.stat().st_size

	loaded = read_archive(path)
	assert loaded == archive
	bits2, _, decoder = loaded.unpack()
	assert "".join(decoder.decode(bits2)) == data
