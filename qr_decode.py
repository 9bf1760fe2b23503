"""
QR bit matrix decoding: format/version info, unmasking, codeword extraction,
Reed-Solomon block correction and bit stream parsing.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from qr_common import BitMatrix, ChecksumError, DecodeHints, ErrorCorrectionLevel, FormatError
from qr_version import (Version, decode_format_information, decode_version_information,
                        version_for_dimension)
from reed_solomon import ReedSolomon, ReedSolomonError

logger = logging.getLogger(__name__)


@dataclass
class DecoderResult:
    text: str
    raw_bytes: bytes
    byte_segments: Optional[List[bytes]]
    ec_level: Optional[ErrorCorrectionLevel]


# ============================================================================
# FORMAT / VERSION
# ============================================================================

def _to_int(bits):
    return sum(int(b) << (len(bits) - 1 - i) for i, b in enumerate(bits))


def read_format_info(matrix):
    """Read EC level and mask pattern from both format-info copies."""
    size = matrix.shape[0]
    copy1 = [matrix[8, c] for c in [0, 1, 2, 3, 4, 5, 7, 8]] + [matrix[r, 8] for r in [7, 5, 4, 3, 2, 1, 0]]
    copy2 = [matrix[r, 8] for r in range(size-1, size-8, -1)] + [matrix[8, c] for c in range(size-8, size)]
    info = decode_format_information(_to_int(copy1), _to_int(copy2))
    if info is None:
        raise FormatError("Unreadable format information")
    return info


def read_version(matrix):
    """Version from the dimension, confirmed by the version-info blocks for v >= 7."""
    size = matrix.shape[0]
    version = version_for_dimension(size)
    if version.number < 7:
        return version

    # 6x3 block near top-right, then its transpose near bottom-left
    copy1 = [matrix[r, c] for r in range(5, -1, -1) for c in range(size-9, size-12, -1)]
    copy2 = [matrix[r, c] for c in range(5, -1, -1) for r in range(size-9, size-12, -1)]
    number = decode_version_information(_to_int(copy1), _to_int(copy2))
    if number != version.number:
        raise FormatError(f"Version info {number} does not match dimension {size}")
    return version


# ============================================================================
# MODULES -> CODEWORDS
# ============================================================================

MASK_PATTERNS = [
    lambda r, c: (r + c) % 2 == 0,
    lambda r, c: r % 2 == 0,
    lambda r, c: c % 3 == 0,
    lambda r, c: (r + c) % 3 == 0,
    lambda r, c: (r // 2 + c // 3) % 2 == 0,
    lambda r, c: (r * c) % 2 + (r * c) % 3 == 0,
    lambda r, c: ((r * c) % 2 + (r * c) % 3) % 2 == 0,
    lambda r, c: ((r + c) % 2 + (r * c) % 3) % 2 == 0,
]


def unmask(matrix, mask, function_pattern):
    """Apply mask pattern to the data modules."""
    rows, cols = np.indices(matrix.shape)
    flip = MASK_PATTERNS[mask](rows, cols) & ~function_pattern
    return matrix ^ flip.astype(matrix.dtype)


def codeword_order(function_pattern):
    """Yield data module (row, col) positions in zigzag reading order."""
    size, col, up = function_pattern.shape[0], function_pattern.shape[0] - 1, True
    while col > 0:
        if col == 6:
            col -= 1
            continue
        for row in (range(size-1, -1, -1) if up else range(size)):
            for c in (col, col - 1):
                if not function_pattern[row, c]:
                    yield row, c
        col -= 2
        up = not up


def read_codewords(matrix, function_pattern):
    """Read codewords in zigzag pattern; trailing remainder bits are dropped."""
    bits = [int(matrix[r, c]) for r, c in codeword_order(function_pattern)]
    return [sum(bits[i+j] << (7-j) for j in range(8)) for i in range(0, len(bits) - 7, 8)]


def correct_blocks(codewords, version, ec_level):
    """De-interleave codewords into RS blocks, correct each, return the data bytes."""
    ec_len, blocks = version.ec_blocks(ec_level)
    block_data, block_ec = [[] for _ in blocks], [[] for _ in blocks]

    idx, max_data = 0, max(b[0] for b in blocks)
    for col in range(max_data):
        for i, (data_len, _) in enumerate(blocks):
            if col < data_len:
                block_data[i].append(codewords[idx])
                idx += 1
    for col in range(ec_len):
        for i in range(len(blocks)):
            block_ec[i].append(codewords[idx])
            idx += 1

    rs, data = ReedSolomon(ec_len), []
    for i, (data_len, _) in enumerate(blocks):
        raw = block_data[i] + block_ec[i]
        try:
            corrected = rs.decode(raw)
        except ReedSolomonError as e:
            raise ChecksumError(f"Block {i}: {e}") from e
        errors = sum(a != b for a, b in zip(raw[:data_len], corrected))
        logger.debug("  Block %d: %d+%d bytes, %d errors", i, data_len, ec_len, errors)
        data.extend(corrected)
    return bytes(data)


# ============================================================================
# BIT STREAM
# ============================================================================

ALNUM = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ $%*+-./:"

MODE_TERMINATOR, MODE_NUMERIC, MODE_ALNUM, MODE_STRUCTURED_APPEND = 0, 1, 2, 3
MODE_BYTE, MODE_FNC1_FIRST, MODE_ECI, MODE_KANJI, MODE_FNC1_SECOND, MODE_HANZI = 4, 5, 7, 8, 9, 13

GB2312_SUBSET = 1

# ECI assignment number -> Python codec
ECI_CHARSETS = {
    0: 'cp437', 1: 'iso-8859-1', 2: 'cp437', 3: 'iso-8859-1', 4: 'iso-8859-2', 5: 'iso-8859-3',
    6: 'iso-8859-4', 7: 'iso-8859-5', 8: 'iso-8859-6', 9: 'iso-8859-7', 10: 'iso-8859-8',
    11: 'iso-8859-9', 12: 'iso-8859-10', 13: 'iso-8859-11', 15: 'iso-8859-13', 16: 'iso-8859-14',
    17: 'iso-8859-15', 18: 'iso-8859-16', 20: 'shift_jis', 21: 'cp1250', 22: 'cp1251',
    23: 'cp1252', 24: 'cp1256', 25: 'utf-16-be', 26: 'utf-8', 27: 'ascii', 28: 'big5',
    29: 'gb18030', 30: 'euc_kr', 170: 'ascii',
}


def count_bits(mode, version):
    """Character count indicator length by mode and version group."""
    group = 0 if version <= 9 else 1 if version <= 26 else 2
    return {
        MODE_NUMERIC: (10, 12, 14),
        MODE_ALNUM: (9, 11, 13),
        MODE_BYTE: (8, 16, 16),
        MODE_KANJI: (8, 10, 12),
        MODE_HANZI: (8, 10, 12),
    }[mode][group]


class BitSource:
    """Reads big-endian bit fields out of a byte string."""

    def __init__(self, data):
        self.bits = [(byte >> (7 - i)) & 1 for byte in data for i in range(8)]
        self.pos = 0

    def available(self):
        return len(self.bits) - self.pos

    def read(self, n):
        if n > self.available():
            raise FormatError(f"Bit stream truncated: need {n} bits, {self.available()} left")
        val = sum(self.bits[self.pos + i] << (n - 1 - i) for i in range(n))
        self.pos += n
        return val


def _decode_numeric(source, count):
    out = []
    while count >= 3:
        val = source.read(10)
        if val >= 1000:
            raise FormatError(f"Invalid numeric triple {val}")
        out.append(f"{val:03d}")
        count -= 3
    if count == 2:
        val = source.read(7)
        if val >= 100:
            raise FormatError(f"Invalid numeric pair {val}")
        out.append(f"{val:02d}")
    elif count == 1:
        val = source.read(4)
        if val >= 10:
            raise FormatError(f"Invalid numeric digit {val}")
        out.append(str(val))
    return ''.join(out)


def _decode_alnum(source, count, fc1_in_effect):
    out = []
    while count >= 2:
        val = source.read(11)
        if val >= 45 * 45:
            raise FormatError(f"Invalid alphanumeric pair {val}")
        out.append(ALNUM[val // 45] + ALNUM[val % 45])
        count -= 2
    if count == 1:
        val = source.read(6)
        if val >= 45:
            raise FormatError(f"Invalid alphanumeric character {val}")
        out.append(ALNUM[val])
    text = ''.join(out)
    if fc1_in_effect:
        # GS1: "%%" is a literal percent, a lone "%" is the FNC1 separator
        text = '%'.join(part.replace('%', '\x1d') for part in text.split('%%'))
    return text


def _decode_byte(source, count, charset, hints, byte_segments):
    raw = bytes(source.read(8) for _ in range(count))
    byte_segments.append(raw)
    if charset is None and hints is not None:
        charset = hints.character_set
    if charset is not None:
        return raw.decode(charset, errors='replace')
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError:
        return raw.decode('iso-8859-1')


def _decode_kanji(source, count):
    """Kanji (Shift JIS): 13 bits per character."""
    chars = bytearray()
    for _ in range(count):
        val = source.read(13)
        assembled = ((val // 0x0C0) << 8) | (val % 0x0C0)
        assembled += 0x08140 if assembled < 0x01F00 else 0x0C140
        chars += bytes(((assembled >> 8) & 0xFF, assembled & 0xFF))
    return bytes(chars).decode('shift_jis', errors='replace')


def _decode_hanzi(source, count):
    """Hanzi (GB2312): 13 bits per character."""
    chars = bytearray()
    for _ in range(count):
        val = source.read(13)
        assembled = ((val // 0x060) << 8) | (val % 0x060)
        assembled += 0x0A1A1 if assembled < 0x00A00 else 0x0A6A1
        chars += bytes(((assembled >> 8) & 0xFF, assembled & 0xFF))
    return bytes(chars).decode('gb2312', errors='replace')


def _parse_eci_value(source):
    first = source.read(8)
    if first & 0x80 == 0:
        return first & 0x7F
    if first & 0xC0 == 0x80:
        return ((first & 0x3F) << 8) | source.read(8)
    if first & 0xE0 == 0xC0:
        return ((first & 0x1F) << 16) | source.read(16)
    raise FormatError(f"Bad ECI designator {first:#04x}")


def parse_bitstream(data, version, ec_level=None, hints=None):
    """Parse the corrected data codewords into text."""
    source = BitSource(data)
    result, byte_segments = [], []
    charset, fc1_in_effect = None, False

    while True:
        mode = MODE_TERMINATOR if source.available() < 4 else source.read(4)
        if mode == MODE_TERMINATOR:
            break

        if mode == MODE_FNC1_FIRST or mode == MODE_FNC1_SECOND:
            fc1_in_effect = True
            if mode == MODE_FNC1_SECOND:
                source.read(8)  # application indicator
        elif mode == MODE_STRUCTURED_APPEND:
            source.read(16)  # sequence number and parity
        elif mode == MODE_ECI:
            eci = _parse_eci_value(source)
            if eci not in ECI_CHARSETS:
                raise FormatError(f"Unsupported ECI {eci}")
            charset = ECI_CHARSETS[eci]
        elif mode == MODE_HANZI:
            subset = source.read(4)
            count = source.read(count_bits(mode, version))
            if subset != GB2312_SUBSET:
                raise FormatError(f"Unsupported Hanzi subset {subset}")
            result.append(_decode_hanzi(source, count))
        elif mode in (MODE_NUMERIC, MODE_ALNUM, MODE_BYTE, MODE_KANJI):
            count = source.read(count_bits(mode, version))
            if mode == MODE_NUMERIC:
                result.append(_decode_numeric(source, count))
            elif mode == MODE_ALNUM:
                result.append(_decode_alnum(source, count, fc1_in_effect))
            elif mode == MODE_BYTE:
                result.append(_decode_byte(source, count, charset, hints, byte_segments))
            else:
                result.append(_decode_kanji(source, count))
        else:
            raise FormatError(f"Unknown mode {mode}")

    return DecoderResult(''.join(result), bytes(data), byte_segments or None, ec_level)


# ============================================================================
# DECODER
# ============================================================================

class Decoder:
    """Turns a sampled, square QR bit matrix into its payload."""

    def decode(self, bits: BitMatrix, hints: Optional[DecodeHints] = None) -> DecoderResult:
        if bits.width != bits.height:
            raise FormatError(f"Symbol is not square ({bits.width}x{bits.height})")
        matrix = bits.to_array()

        version = read_version(matrix)
        ec_level, mask = read_format_info(matrix)
        logger.info("  Version: %d, RS level: %s (mask %d)", version.number, ec_level, mask)

        function_pattern = version.function_pattern()
        unmasked = unmask(matrix, mask, function_pattern)
        codewords = read_codewords(unmasked, function_pattern)
        if len(codewords) != version.total_codewords:
            raise FormatError(f"Read {len(codewords)} codewords, expected {version.total_codewords}")

        data = correct_blocks(codewords, version, ec_level)
        return parse_bitstream(data, version.number, ec_level, hints)
