"""QR version tables: dimensions, alignment patterns, EC blocks, format/version info."""

import functools

import numpy as np

from qr_common import ErrorCorrectionLevel, FormatError


# Alignment pattern center positions for each version
AP_POSITIONS = {
    1: [], 2: [6, 18], 3: [6, 22], 4: [6, 26], 5: [6, 30], 6: [6, 34], 7: [6, 22, 38], 8: [6, 24, 42],
    9: [6, 26, 46], 10: [6, 28, 50], 11: [6, 30, 54], 12: [6, 32, 58], 13: [6, 34, 62],
    14: [6, 26, 46, 66], 15: [6, 26, 48, 70], 16: [6, 26, 50, 74], 17: [6, 30, 54, 78],
    18: [6, 30, 56, 82], 19: [6, 30, 58, 86], 20: [6, 34, 62, 90], 21: [6, 28, 50, 72, 94],
    22: [6, 26, 50, 74, 98], 23: [6, 30, 54, 78, 102], 24: [6, 28, 54, 80, 106],
    25: [6, 32, 58, 84, 110], 26: [6, 30, 58, 86, 114], 27: [6, 34, 62, 90, 118],
    28: [6, 26, 50, 74, 98, 122], 29: [6, 30, 54, 78, 102, 126], 30: [6, 26, 52, 78, 104, 130],
    31: [6, 30, 56, 82, 108, 134], 32: [6, 34, 60, 86, 112, 138], 33: [6, 30, 58, 86, 114, 142],
    34: [6, 34, 62, 90, 118, 146], 35: [6, 30, 54, 78, 102, 126, 150],
    36: [6, 24, 50, 76, 102, 128, 154], 37: [6, 28, 54, 80, 106, 132, 158],
    38: [6, 32, 58, 84, 110, 136, 162], 39: [6, 26, 54, 82, 110, 138, 166],
    40: [6, 30, 58, 86, 114, 142, 170],
}

# version -> L, M, Q, H entries of (ec codewords per block, ((block count, data codewords), ...))
EC_BLOCKS = {
    1: ((7, ((1, 19),)), (10, ((1, 16),)), (13, ((1, 13),)), (17, ((1, 9),))),
    2: ((10, ((1, 34),)), (16, ((1, 28),)), (22, ((1, 22),)), (28, ((1, 16),))),
    3: ((15, ((1, 55),)), (26, ((1, 44),)), (18, ((2, 17),)), (22, ((2, 13),))),
    4: ((20, ((1, 80),)), (18, ((2, 32),)), (26, ((2, 24),)), (16, ((4, 9),))),
    5: ((26, ((1, 108),)), (24, ((2, 43),)), (18, ((2, 15), (2, 16))), (22, ((2, 11), (2, 12)))),
    6: ((18, ((2, 68),)), (16, ((4, 27),)), (24, ((4, 19),)), (28, ((4, 15),))),
    7: ((20, ((2, 78),)), (18, ((4, 31),)), (18, ((2, 14), (4, 15))), (26, ((4, 13), (1, 14)))),
    8: ((24, ((2, 97),)), (22, ((2, 38), (2, 39))), (22, ((4, 18), (2, 19))), (26, ((4, 14), (2, 15)))),
    9: ((30, ((2, 116),)), (22, ((3, 36), (2, 37))), (20, ((4, 16), (4, 17))), (24, ((4, 12), (4, 13)))),
    10: ((18, ((2, 68), (2, 69))), (26, ((4, 43), (1, 44))), (24, ((6, 19), (2, 20))), (28, ((6, 15), (2, 16)))),
    11: ((20, ((4, 81),)), (30, ((1, 50), (4, 51))), (28, ((4, 22), (4, 23))), (24, ((3, 12), (8, 13)))),
    12: ((24, ((2, 92), (2, 93))), (22, ((6, 36), (2, 37))), (26, ((4, 20), (6, 21))), (28, ((7, 14), (4, 15)))),
    13: ((26, ((4, 107),)), (22, ((8, 37), (1, 38))), (24, ((8, 20), (4, 21))), (22, ((12, 11), (4, 12)))),
    14: ((30, ((3, 115), (1, 116))), (24, ((4, 40), (5, 41))), (20, ((11, 16), (5, 17))), (24, ((11, 12), (5, 13)))),
    15: ((22, ((5, 87), (1, 88))), (24, ((5, 41), (5, 42))), (30, ((5, 24), (7, 25))), (24, ((11, 12), (7, 13)))),
    16: ((24, ((5, 98), (1, 99))), (28, ((7, 45), (3, 46))), (24, ((15, 19), (2, 20))), (30, ((3, 15), (13, 16)))),
    17: ((28, ((1, 107), (5, 108))), (28, ((10, 46), (1, 47))), (28, ((1, 22), (15, 23))), (28, ((2, 14), (17, 15)))),
    18: ((30, ((5, 120), (1, 121))), (26, ((9, 43), (4, 44))), (28, ((17, 22), (1, 23))), (28, ((2, 14), (19, 15)))),
    19: ((28, ((3, 113), (4, 114))), (26, ((3, 44), (11, 45))), (26, ((17, 21), (4, 22))), (26, ((9, 13), (16, 14)))),
    20: ((28, ((3, 107), (5, 108))), (26, ((3, 41), (13, 42))), (30, ((15, 24), (5, 25))), (28, ((15, 15), (10, 16)))),
    21: ((28, ((4, 116), (4, 117))), (26, ((17, 42),)), (28, ((17, 22), (6, 23))), (30, ((19, 16), (6, 17)))),
    22: ((28, ((2, 111), (7, 112))), (28, ((17, 46),)), (30, ((7, 24), (16, 25))), (24, ((34, 13),))),
    23: ((30, ((4, 121), (5, 122))), (28, ((4, 47), (14, 48))), (30, ((11, 24), (14, 25))), (30, ((16, 15), (14, 16)))),
    24: ((30, ((6, 117), (4, 118))), (28, ((6, 45), (14, 46))), (30, ((11, 24), (16, 25))), (30, ((30, 16), (2, 17)))),
    25: ((26, ((8, 106), (4, 107))), (28, ((8, 47), (13, 48))), (30, ((7, 24), (22, 25))), (30, ((22, 15), (13, 16)))),
    26: ((28, ((10, 114), (2, 115))), (28, ((19, 46), (4, 47))), (28, ((28, 22), (6, 23))), (30, ((33, 16), (4, 17)))),
    27: ((30, ((8, 122), (4, 123))), (28, ((22, 45), (3, 46))), (30, ((8, 23), (26, 24))), (30, ((12, 15), (28, 16)))),
    28: ((30, ((3, 117), (10, 118))), (28, ((3, 45), (23, 46))), (30, ((4, 24), (31, 25))), (30, ((11, 15), (31, 16)))),
    29: ((30, ((7, 116), (7, 117))), (28, ((21, 45), (7, 46))), (30, ((1, 23), (37, 24))), (30, ((19, 15), (26, 16)))),
    30: ((30, ((5, 115), (10, 116))), (28, ((19, 47), (10, 48))), (30, ((15, 24), (25, 25))), (30, ((23, 15), (25, 16)))),
    31: ((30, ((13, 115), (3, 116))), (28, ((2, 46), (29, 47))), (30, ((42, 24), (1, 25))), (30, ((23, 15), (28, 16)))),
    32: ((30, ((17, 115),)), (28, ((10, 46), (23, 47))), (30, ((10, 24), (35, 25))), (30, ((19, 15), (35, 16)))),
    33: ((30, ((17, 115), (1, 116))), (28, ((14, 46), (21, 47))), (30, ((29, 24), (19, 25))), (30, ((11, 15), (46, 16)))),
    34: ((30, ((13, 115), (6, 116))), (28, ((14, 46), (23, 47))), (30, ((44, 24), (7, 25))), (30, ((59, 16), (1, 17)))),
    35: ((30, ((12, 121), (7, 122))), (28, ((12, 47), (26, 48))), (30, ((39, 24), (14, 25))), (30, ((22, 15), (41, 16)))),
    36: ((30, ((6, 121), (14, 122))), (28, ((6, 47), (34, 48))), (30, ((46, 24), (10, 25))), (30, ((2, 15), (64, 16)))),
    37: ((30, ((17, 122), (4, 123))), (28, ((29, 46), (14, 47))), (30, ((49, 24), (10, 25))), (30, ((24, 15), (46, 16)))),
    38: ((30, ((4, 122), (18, 123))), (28, ((13, 46), (32, 47))), (30, ((48, 24), (14, 25))), (30, ((42, 15), (32, 16)))),
    39: ((30, ((20, 117), (4, 118))), (28, ((40, 47), (7, 48))), (30, ((43, 24), (22, 25))), (30, ((10, 15), (67, 16)))),
    40: ((30, ((19, 118), (6, 119))), (28, ((18, 47), (31, 48))), (30, ((34, 24), (34, 25))), (30, ((20, 15), (61, 16)))),
}

FORMAT_INFO_MASK = 0x5412
FORMAT_INFO_POLY = 0x537
VERSION_INFO_POLY = 0x1F25

# Beyond this many differing bits a format/version word is rejected
MAX_INFO_BIT_ERRORS = 3


def _bch_remainder(value, poly):
    degree = poly.bit_length() - 1
    value <<= degree
    while value.bit_length() - 1 >= degree:
        value ^= poly << (value.bit_length() - 1 - degree)
    return value


# (masked 15-bit word, 5 data bits: 2 EC bits + 3 mask bits)
FORMAT_INFO_DECODE = [(((data << 10) | _bch_remainder(data, FORMAT_INFO_POLY)) ^ FORMAT_INFO_MASK, data)
                      for data in range(32)]

# (18-bit word, version) for versions 7..40
VERSION_INFO_DECODE = [((v << 12) | _bch_remainder(v, VERSION_INFO_POLY), v) for v in range(7, 41)]


def _closest(words, *readings):
    """Match readings against (codeword, value) pairs within MAX_INFO_BIT_ERRORS."""
    best_diff, best = MAX_INFO_BIT_ERRORS + 1, None
    for word, value in words:
        for reading in readings:
            diff = bin(reading ^ word).count('1')
            if diff == 0:
                return value
            if diff < best_diff:
                best_diff, best = diff, value
    return best


class Version:
    """One of the 40 QR versions."""

    def __init__(self, number):
        self.number = number
        self.dimension = 17 + 4 * number
        self.alignment_pattern_centers = AP_POSITIONS[number]
        self._ec_blocks = EC_BLOCKS[number]

    def ec_blocks(self, ec_level):
        """Returns (ec codewords per block, [(data codewords, total codewords), ...])."""
        ec_len, groups = self._ec_blocks[ec_level.ordinal]
        return ec_len, [(data, data + ec_len) for count, data in groups for _ in range(count)]

    @property
    def total_codewords(self):
        ec_len, groups = self._ec_blocks[0]
        return sum(count * (data + ec_len) for count, data in groups)

    def function_pattern(self):
        """Bool mask (row, col) of modules that do not carry data."""
        return _function_pattern(self.number).copy()

    def __repr__(self):
        return f"Version({self.number})"


@functools.lru_cache(maxsize=None)
def _function_pattern(number):
    size = 17 + 4 * number
    m = np.zeros((size, size), dtype=bool)
    # Finder patterns, separators and format info
    m[0:9, 0:9] = True
    m[0:9, size-8:size] = True
    m[size-8:size, 0:9] = True
    # Timing patterns
    m[6, :] = True
    m[:, 6] = True
    # Alignment patterns, except the three that would overlap finders
    centers = AP_POSITIONS[number]
    last = len(centers) - 1
    for i, ar in enumerate(centers):
        for j, ac in enumerate(centers):
            if (i == 0 and (j == 0 or j == last)) or (i == last and j == 0):
                continue
            m[ar-2:ar+3, ac-2:ac+3] = True
    # Version info (v >= 7): 6x3 blocks near top-right and bottom-left
    if number >= 7:
        m[0:6, size-11:size-8] = True
        m[size-11:size-8, 0:6] = True
    m.setflags(write=False)
    return m


@functools.lru_cache(maxsize=None)
def get_version(number):
    if not 1 <= number <= 40:
        raise FormatError(f"Unsupported version {number}")
    return Version(number)


def version_for_dimension(dimension):
    if dimension % 4 != 1 or not 21 <= dimension <= 177:
        raise FormatError(f"Invalid symbol dimension {dimension}")
    return get_version((dimension - 17) // 4)


def decode_version_information(*readings):
    """Closest version number for 18-bit readings, or None."""
    return _closest(VERSION_INFO_DECODE, *readings)


def decode_format_information(*readings):
    """Returns (ErrorCorrectionLevel, mask) for 15-bit readings, or None."""
    data = _closest(FORMAT_INFO_DECODE, *readings)
    if data is None:
        return None
    return ErrorCorrectionLevel.for_bits(data >> 3), data & 0b111
