import pytest
from hypothesis import given, settings, strategies as st

import huffman as huff


def _tables(symbols):
	return huff.derive_tables(huff.build_tree(symbols))


def _assert_prefix_free(codes):
	ordered = sorted(codes)
	for a, b in zip(ordered, ordered[1:]):
		assert not b.startswith(a), f"{a!r} is a prefix of {b!r}"


def _walk(node):
	stack = [node]
	while stack:
		n = stack.pop()
		yield n
		if not n.is_leaf:
			stack.extend((n.left, n.right))


def _shape(node):
	if node.is_leaf:
		return ("leaf", node.symbol, node.weight)
	return ("internal", node.weight, _shape(node.left), _shape(node.right))


def test_frequencies_are_relative_and_ordered_by_first_appearance():
	freqs, total = huff.symbol_frequencies("AAAAABBBCC")
	assert total == 10
	assert list(freqs) == ["A", "B", "C"]
	assert freqs == {"A": 0.5, "B": 0.3, "C": 0.2}


def test_node_comparison_uses_weight_only():
	a = huff.Leaf("x", 0.1)
	b = huff.Leaf("y", 0.1)
	assert a == b
	assert not a < b
	assert huff.Leaf("x", 0.1) < huff.Leaf("x", 0.2)


def test_internal_node_weight_is_sum_of_children():
	left = huff.Leaf(True, 0.5)
	right = huff.Leaf(False, 0.25)
	n = huff.Internal(left, right)
	assert n.weight == 0.75
	assert n.left is left
	assert n.right is right
	assert not n.is_leaf


def test_scenario_weighted_input_gives_shortest_code_to_most_frequent():
	encode_table, _ = _tables("AAAAABBBCC")
	assert dict(encode_table) == {"A": "0", "C": "10", "B": "11"}
	assert len(encode_table["A"]) < len(encode_table["B"])


def test_scenario_single_symbol_gets_one_bit_code():
	root = huff.build_tree("AAAA")
	assert root.is_leaf
	assert root.weight == 1.0
	encode_table, decode_table = huff.derive_tables(root)
	assert len(encode_table["A"]) >= 1
	bits = huff.encode(encode_table, "AAAA")
	assert len(bits) == 4
	assert "".join(huff.decode(decode_table, bits)) == "AAAA"


def test_scenario_empty_input():
	with pytest.raises(huff.EmptyInput):
		huff.build_tree("")
	with pytest.raises(huff.EmptyInput):
		huff.build_tree_from_frequencies({})


def test_scenario_text_round_trip():
	text = "Hello my name is Sam!"
	encode_table, decode_table = _tables(text)
	assert "".join(huff.decode(decode_table, huff.encode(encode_table, text))) == text

	data = text.encode("utf-8")
	encoder, decoder = huff.encoder_decoder_pair(huff.build_tree(data))
	assert bytes(decoder.decode(encoder.encode(data))) == data


def test_tables_are_inverse_and_prefix_free():
	text = "This is a really long message, I sure do hope it encodes and decodes properly."
	encode_table, decode_table = _tables(text)
	assert len(encode_table) == len(decode_table) == len(set(text))
	for symbol, code in encode_table.items():
		assert decode_table[code] == symbol
	_assert_prefix_free(list(encode_table.values()))


def test_weight_invariants():
	root = huff.build_tree("abracadabra alakazam")
	assert root.weight == pytest.approx(1.0)
	for node in _walk(root):
		if not node.is_leaf:
			assert node.weight == node.left.weight + node.right.weight


def test_builds_are_deterministic_with_ties():
	text = "abcdefgh" * 3 + "ijkl" * 2
	first = huff.build_tree(text)
	second = huff.build_tree(text)
	assert _shape(first) == _shape(second)
	assert dict(_tables(text)[0]) == dict(_tables(text)[0])


def test_equal_weights_merge_in_insertion_order():
	encode_table, _ = huff.derive_tables(huff.build_tree("abcd"))
	# (a, b) merge first, (c, d) second, so the earlier merge becomes the left subtree
	assert dict(encode_table) == {"a": "00", "b": "01", "c": "10", "d": "11"}


@pytest.mark.timeout(60)
def test_skewed_tree_deeper_than_recursion_limit():
	n = 1500
	root = huff.build_tree_from_frequencies({i: 2 ** i for i in range(n)})
	encode_table, decode_table = huff.derive_tables(root)
	assert len(encode_table) == n
	assert max(len(code) for code in encode_table.values()) == n - 1
	assert encode_table[n - 1] == "1"
	_assert_prefix_free(list(decode_table))


def test_unknown_symbol_is_rejected():
	encode_table, _ = _tables("abc")
	with pytest.raises(huff.UnknownSymbol) as excinfo:
		huff.encode(encode_table, "abz")
	assert excinfo.value.symbol == "z"
	assert isinstance(excinfo.value, KeyError)


def test_trailing_padding_bits_are_ignored():
	encode_table, decode_table = _tables("AAAAABBBCC")
	bits = huff.encode(encode_table, "ABC")
	assert huff.decode(decode_table, bits + "1") == ["A", "B", "C"]
	assert huff.decode(decode_table, "1") == []
	assert huff.decode(decode_table, "") == []


def test_decode_rejects_non_bit_characters():
	_, decode_table = _tables("AB")
	with pytest.raises(ValueError):
		huff.decode(decode_table, "01x")


def test_tables_are_read_only():
	encode_table, decode_table = _tables("AB")
	with pytest.raises(TypeError):
		encode_table["C"] = "11"
	encoder, decoder = huff.encoder_decoder_pair(huff.build_tree("AB"))
	with pytest.raises(TypeError):
		decoder.decode_table["11"] = "C"
	assert len(encoder) == len(decoder) == 2


@given(st.lists(st.integers(min_value=0, max_value=40), min_size=1))
@settings(max_examples=100, deadline=None)
def test_round_trip_property(symbols):
	encode_table, decode_table = _tables(symbols)
	assert huff.decode(decode_table, huff.encode(encode_table, symbols)) == symbols
	assert len(encode_table) == len(set(symbols))
	_assert_prefix_free(list(encode_table.values()))
