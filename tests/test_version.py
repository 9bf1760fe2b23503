import pytest

from qr_common import ErrorCorrectionLevel, FormatError
from qr_version import (FORMAT_INFO_DECODE, VERSION_INFO_DECODE, decode_format_information,
                        decode_version_information, get_version, version_for_dimension)

L, M, Q, H = ErrorCorrectionLevel.L, ErrorCorrectionLevel.M, ErrorCorrectionLevel.Q, ErrorCorrectionLevel.H


def format_word(level, mask):
    data = (level.value << 3) | mask
    return next(word for word, d in FORMAT_INFO_DECODE if d == data)


def test_known_format_words():
    assert format_word(M, 0) == 0x5412
    assert format_word(L, 4) == 0b110011000101111


@pytest.mark.parametrize("flips", [0, 0b1, 0b100000001, 0b100010000000001])
def test_format_within_three_bits(flips):
    for level in (L, M, Q, H):
        for mask in range(8):
            assert decode_format_information(format_word(level, mask) ^ flips) == (level, mask)


def test_format_exact_copy_wins():
    noisy = format_word(L, 4) ^ 0b111
    assert decode_format_information(noisy, format_word(H, 2)) == (H, 2)


def test_format_unreadable():
    words = [w for w, _ in FORMAT_INFO_DECODE]
    far = next(x for x in range(1 << 15) if min(bin(x ^ w).count('1') for w in words) > 3)
    assert decode_format_information(far, far) is None


def test_version_info():
    words = dict((v, w) for w, v in VERSION_INFO_DECODE)
    assert words[7] == 0x07C94
    assert words[40] == 0x28C69
    assert decode_version_information(0x07C94) == 7
    assert decode_version_information(0x07C94 ^ 0b1000000000000101) == 7
    assert decode_version_information(0, words[21]) == 21


@pytest.mark.parametrize("number", range(1, 41))
def test_codeword_capacity_matches_layout(number):
    version = get_version(number)
    mask = version.function_pattern()
    assert mask.shape == (version.dimension, version.dimension)
    assert (mask.size - mask.sum()) // 8 == version.total_codewords
    for level in (L, M, Q, H):
        ec_len, blocks = version.ec_blocks(level)
        assert sum(total for _, total in blocks) == version.total_codewords
        assert all(total - data == ec_len for data, total in blocks)


def test_known_capacities():
    assert get_version(1).total_codewords == 26
    assert get_version(7).total_codewords == 196
    assert get_version(40).total_codewords == 3706
    assert get_version(5).ec_blocks(Q) == (18, [(15, 33), (15, 33), (16, 34), (16, 34)])


def test_function_pattern_is_a_copy():
    first = get_version(2).function_pattern()
    first[:] = False
    assert get_version(2).function_pattern().any()


def test_version_for_dimension():
    assert version_for_dimension(21).number == 1
    assert version_for_dimension(177).number == 40
    for bad in (17, 22, 23, 181):
        with pytest.raises(FormatError):
            version_for_dimension(bad)
    with pytest.raises(FormatError):
        get_version(41)
