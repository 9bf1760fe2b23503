import numpy as np
import pytest

from qr_binarize import BinaryBitmap
from qr_common import (BarcodeFormat, ChecksumError, DecodeHints, FormatError, NotFoundError,
                       Reader, ResultMetadataType)
from qr_reader import QRCodeReader, decode_qr, main

PURE = DecodeHints(pure_barcode=True)


@pytest.fixture
def reader():
    return QRCodeReader()


def test_is_a_reader(reader):
    assert isinstance(reader, Reader)


def test_pure_path_round_trip(reader, make_symbol, render_symbol):
    pixels = render_symbol(make_symbol("Hello, world"), module_size=4, margin=8)
    result = reader.decode(BinaryBitmap(pixels), PURE)

    assert result.text == "Hello, world"
    assert len(result.result_points) == 0
    assert result.barcode_format is BarcodeFormat.QR_CODE
    assert result.result_metadata[ResultMetadataType.ERROR_CORRECTION_LEVEL] == 'M'
    assert result.result_metadata[ResultMetadataType.BYTE_SEGMENTS] == [b"Hello, world"]
    assert result.raw_bytes[:1] == b'\x40'  # byte mode indicator


def test_pure_path_from_grayscale(reader, make_symbol, render_symbol):
    pixels = render_symbol(make_symbol("HELLO WORLD", ecc='Q'), module_size=3, margin=6, gray=True)
    result = reader.decode(BinaryBitmap(pixels), PURE)
    assert result.text == "HELLO WORLD"
    assert result.result_metadata[ResultMetadataType.ERROR_CORRECTION_LEVEL] == 'Q'
    assert ResultMetadataType.BYTE_SEGMENTS not in result.result_metadata


def test_general_path_has_points(reader, make_symbol, render_symbol):
    pixels = render_symbol(make_symbol("Hello, world"), module_size=10, margin=40, gray=True)
    bitmap = BinaryBitmap(pixels)

    pure = reader.decode(bitmap, PURE)
    general = reader.decode(bitmap)

    assert general.text == pure.text == "Hello, world"
    assert len(general.result_points) == 3
    for p in general.result_points:
        assert 40 <= p.x <= 250 and 40 <= p.y <= 250


def test_general_path_with_empty_hints(reader, make_symbol, render_symbol):
    pixels = render_symbol(make_symbol("01234567"), module_size=10, margin=40, gray=True)
    result = reader.decode(BinaryBitmap(pixels), DecodeHints())
    assert result.text == "01234567"
    assert len(result.result_points) == 3


def test_larger_version_pure(reader, make_symbol, render_symbol):
    text = "https://example.com/" + "x" * 120
    modules = make_symbol(text, ecc='L', version=7)
    assert modules.shape == (45, 45)
    result = reader.decode(BinaryBitmap(render_symbol(modules, 2, 4)), PURE)
    assert result.text == text


def test_reset_is_idempotent(reader, make_symbol, render_symbol):
    bitmap = BinaryBitmap(render_symbol(make_symbol("Hello, world"), 4, 8))
    first = reader.decode(bitmap, PURE)
    for _ in range(3):
        reader.reset()
    second = reader.decode(bitmap, PURE)
    reader.reset()
    assert second == first


def test_single_module_error_is_corrected(reader, make_symbol, render_symbol):
    modules = make_symbol("Hello, world", ecc='H')
    modules[20, 20] = not modules[20, 20]
    result = reader.decode(BinaryBitmap(render_symbol(modules, 4, 8)), PURE)
    assert result.text == "Hello, world"


def test_heavy_corruption_fails(reader, make_symbol, render_symbol):
    modules = make_symbol("Hello, world", ecc='L')
    modules[9:, 9:] = ~modules[9:, 9:]
    with pytest.raises((ChecksumError, FormatError)):
        reader.decode(BinaryBitmap(render_symbol(modules, 4, 8)), PURE)


def test_blank_image_not_found(reader):
    blank = np.full((100, 100), 255, dtype=np.uint8)
    with pytest.raises(NotFoundError):
        reader.decode(BinaryBitmap(blank), PURE)
    with pytest.raises(NotFoundError):
        reader.decode(BinaryBitmap(blank))


def test_invalid_dimension_is_format_error(reader):
    pixels = np.zeros((40, 40), dtype=bool)
    pixels[4:8, 4:8] = True
    pixels[4, 4:24] = True   # 5 modules wide
    with pytest.raises(FormatError):
        reader.decode(BinaryBitmap(pixels), PURE)


def test_errors_are_value_errors():
    assert issubclass(NotFoundError, ValueError)
    assert issubclass(ChecksumError, ValueError)


def test_decode_qr_file(tmp_path, make_symbol, render_symbol):
    import cv2
    path = str(tmp_path / "code.png")
    cv2.imwrite(path, render_symbol(make_symbol("file payload"), 10, 40, gray=True))

    assert decode_qr(path, pure=True).text == "file payload"
    assert decode_qr(path).text == "file payload"


def test_main_prints_text(tmp_path, capsys, make_symbol, render_symbol):
    import cv2
    path = str(tmp_path / "code.png")
    cv2.imwrite(path, render_symbol(make_symbol("cli payload"), 10, 40, gray=True))

    assert main([path, '--pure']) == 0
    assert capsys.readouterr().out.strip() == "cli payload"


def test_main_reports_error(tmp_path, capsys):
    assert main([str(tmp_path / "missing.png")]) == 1
    assert capsys.readouterr().out.startswith("Error: Cannot load")
