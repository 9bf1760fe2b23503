"""Fixtures: QR symbols generated with the qrcode package and rendered to pixel grids."""

import numpy as np
import pytest
import qrcode


EC = {
    'L': qrcode.constants.ERROR_CORRECT_L,
    'M': qrcode.constants.ERROR_CORRECT_M,
    'Q': qrcode.constants.ERROR_CORRECT_Q,
    'H': qrcode.constants.ERROR_CORRECT_H,
}


def symbol_matrix(data, ecc='M', version=None):
    """Module matrix (rows of bools, True = dark) without quiet zone."""
    qr = qrcode.QRCode(version=version, error_correction=EC[ecc], border=0)
    qr.add_data(data)
    qr.make(fit=True)
    return np.array(qr.get_matrix(), dtype=bool)


def render(matrix, module_size=4, margin=8, gray=False):
    """Scale modules to pixels and add a white margin."""
    pixels = np.kron(matrix, np.ones((module_size, module_size), dtype=bool)).astype(bool)
    pixels = np.pad(pixels, margin, constant_values=False)
    if gray:
        return np.where(pixels, 0, 255).astype(np.uint8)
    return pixels


@pytest.fixture
def make_symbol():
    return symbol_matrix


@pytest.fixture
def render_symbol():
    return render
