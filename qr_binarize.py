"""Turn captured images into black/white module grids."""

import logging

import cv2
import numpy as np

import qr_config
from qr_common import BitMatrix

logger = logging.getLogger(__name__)

METHODS = ('otsu', 'adaptive')


def binarize(image, method='otsu'):
    """Threshold a grayscale/BGR/BGRA image. Returns a BitMatrix, True = dark."""
    if method not in METHODS:
        raise ValueError(f"Unknown binarizer {method!r}, expected one of {METHODS}")
    image = np.asarray(image)
    if image.ndim == 3:
        code = cv2.COLOR_BGRA2GRAY if image.shape[2] == 4 else cv2.COLOR_BGR2GRAY
        gray = cv2.cvtColor(image, code)
    else:
        gray = image
    if gray.dtype != np.uint8:
        gray = np.clip(gray, 0, 255).astype(np.uint8)

    if method == 'adaptive':
        binary = cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                                       cv2.THRESH_BINARY, 51, 10)
    else:
        thresh, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        logger.debug("Otsu threshold %.1f", thresh)
    return BitMatrix.from_array(binary == 0)


class BinaryBitmap:
    """
    Image source that produces its black/white grid on first request.

    Accepts a numpy image (grayscale, BGR or BGRA), a numpy bool array that is
    already binarized (True = dark), or a BitMatrix.
    """

    def __init__(self, image, method=None):
        self._method = method or qr_config.BINARIZER
        self._matrix = None
        if isinstance(image, BitMatrix):
            self._image = None
            self._matrix = image
        else:
            self._image = np.asarray(image)
            if self._image.ndim not in (2, 3):
                raise ValueError(f"Unsupported image shape {self._image.shape}")

    @classmethod
    def from_file(cls, path, method=None):
        image = cv2.imread(path)
        if image is None:
            raise ValueError(f"Cannot load {path}")
        return cls(image, method)

    @property
    def image(self):
        """The source pixels, or None when built from a BitMatrix."""
        return self._image

    @property
    def width(self):
        return self.get_black_matrix().width

    @property
    def height(self):
        return self.get_black_matrix().height

    def get_black_matrix(self):
        if self._matrix is None:
            if self._image.dtype == bool:
                self._matrix = BitMatrix.from_array(self._image)
            else:
                self._matrix = binarize(self._image, self._method)
        return self._matrix
