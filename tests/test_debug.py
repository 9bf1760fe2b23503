import numpy as np

from qr_binarize import BinaryBitmap
from qr_common import DecodeHints
from qr_debug import _module_type_map, save_debug_all
from qr_version import get_version


def test_pure_dump(tmp_path, make_symbol, render_symbol):
    bitmap = BinaryBitmap(render_symbol(make_symbol("debug", ecc='H'), 4, 8))
    save_debug_all(str(tmp_path), bitmap, DecodeHints(pure_barcode=True))

    for name in ("1_binarized.png", "3_matrix.png", "4_unmasked.png", "5_info.txt"):
        assert (tmp_path / name).exists()
    assert not (tmp_path / "2_detected.png").exists()
    info = (tmp_path / "5_info.txt").read_text()
    assert "Version: 1" in info and "EC level: H" in info


def test_detected_dump(tmp_path, make_symbol, render_symbol):
    bitmap = BinaryBitmap(render_symbol(make_symbol("debug me"), 10, 40, gray=True))
    save_debug_all(str(tmp_path), bitmap, None)
    assert (tmp_path / "2_detected.png").exists()
    assert "Size: 21x21" in (tmp_path / "5_info.txt").read_text()


def test_failure_is_recorded(tmp_path):
    bitmap = BinaryBitmap(np.full((50, 50), 255, dtype=np.uint8))
    save_debug_all(str(tmp_path / "out"), bitmap, DecodeHints(pure_barcode=True))
    assert "Stopped: NotFoundError" in (tmp_path / "out" / "5_info.txt").read_text()


def test_module_types_cover_function_pattern():
    version = get_version(7)
    types = _module_type_map(version)
    assert np.array_equal(types != 0, version.function_pattern())
    assert types[6, 8] == types[8, 6] == 2
    assert types[0, version.dimension - 11] == 5
