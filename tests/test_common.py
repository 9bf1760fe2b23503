import dataclasses

import numpy as np
import pytest

from qr_common import (BarcodeFormat, BitMatrix, DecodeHints, ErrorCorrectionLevel, Result,
                       ResultMetadataType, ResultPoint)


def test_bit_matrix_addressing():
    m = BitMatrix(4, 3)
    assert (m.width, m.height) == (4, 3)
    m.set(3, 1)
    assert m.get(3, 1) and m.bits[1, 3]
    assert not m.get(1, 3 - 1)
    m.flip(3, 1)
    assert not m.get(3, 1)


def test_bit_matrix_region_and_clear():
    m = BitMatrix(5)
    m.set_region(1, 2, 3, 2)
    assert int(m.bits.sum()) == 6
    assert m.get(1, 2) and m.get(3, 3) and not m.get(4, 3)
    m.clear()
    assert not m.bits.any()
    with pytest.raises(ValueError):
        m.set_region(3, 3, 3, 3)


def test_bit_matrix_validation():
    with pytest.raises(ValueError):
        BitMatrix(0)
    with pytest.raises(ValueError):
        BitMatrix(3, 2).dimension
    with pytest.raises(ValueError):
        BitMatrix.from_array(np.zeros((2, 2, 2)))
    assert BitMatrix(7).dimension == 7


def test_bit_matrix_equality_and_text():
    a = BitMatrix.from_array([[1, 0], [0, 1]])
    b = BitMatrix(2)
    b.set(0, 0)
    b.set(1, 1)
    assert a == b
    assert a != BitMatrix(2)
    assert str(a) == "X   \n  X \n"
    assert a.to_array().dtype == np.uint8


def test_ec_level_bits():
    assert ErrorCorrectionLevel.for_bits(0b01) is ErrorCorrectionLevel.L
    assert ErrorCorrectionLevel.for_bits(0b10) is ErrorCorrectionLevel.H
    assert [level.ordinal for level in ErrorCorrectionLevel] == [0, 1, 2, 3]
    assert str(ErrorCorrectionLevel.Q) == 'Q'


def test_hints_are_immutable():
    hints = DecodeHints()
    assert not hints.pure_barcode and not hints.try_harder and hints.character_set is None
    with pytest.raises(dataclasses.FrozenInstanceError):
        hints.pure_barcode = True


def test_result_to_dict():
    result = Result("hi", b"\x40\x26", [ResultPoint(1.0, 2.5)], BarcodeFormat.QR_CODE)
    result.put_metadata(ResultMetadataType.ERROR_CORRECTION_LEVEL, 'L')
    result.put_metadata(ResultMetadataType.BYTE_SEGMENTS, [b"hi"])
    assert result.to_dict() == {
        'text': "hi",
        'raw_bytes': "4026",
        'points': [[1.0, 2.5]],
        'format': 'QR_CODE',
        'ec_level': 'L',
        'byte_segments': ["6869"],
    }


def test_hints_reject_unknown_character_set():
    assert DecodeHints(character_set='latin-1').character_set == 'latin-1'
    with pytest.raises(ValueError, match="Unknown character set"):
        DecodeHints(character_set='no-such-charset')
