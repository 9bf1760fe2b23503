#!/usr/bin/env python3
"""
QR Code Reader
Usage: qr-decode <image_path> [--pure] [--try-harder] [--debug] [--verbose]
"""

import logging
import os
import sys
from typing import Optional

import qr_config
from qr_binarize import BinaryBitmap
from qr_common import (BarcodeFormat, BitMatrix, DecodeHints, NotFoundError, Reader,
                       Result, ResultMetadataType)
from qr_decode import Decoder
from qr_detect import Detector

logger = logging.getLogger(__name__)

NO_POINTS = ()


class QRCodeReader(Reader):
    """Detects and decodes QR codes in an image."""

    def __init__(self):
        self._decoder = Decoder()

    def decode(self, image: BinaryBitmap, hints: Optional[DecodeHints] = None) -> Result:
        """
        Locates and decodes a QR code in an image.

        Raises NotFoundError if a QR code cannot be found, FormatError if it
        cannot be decoded, ChecksumError if error correction fails.
        """
        if hints is not None and hints.pure_barcode:
            bits = extract_pure_bits(image.get_black_matrix())
            decoder_result = self._decoder.decode(bits, hints)
            points = NO_POINTS
        else:
            detector_result = Detector(image.get_black_matrix()).detect(hints)
            decoder_result = self._decoder.decode(detector_result.bits, hints)
            points = detector_result.points

        result = Result(decoder_result.text, decoder_result.raw_bytes, points, BarcodeFormat.QR_CODE)
        if decoder_result.byte_segments is not None:
            result.put_metadata(ResultMetadataType.BYTE_SEGMENTS, decoder_result.byte_segments)
        if decoder_result.ec_level is not None:
            result.put_metadata(ResultMetadataType.ERROR_CORRECTION_LEVEL, str(decoder_result.ec_level))
        return result

    def reset(self):
        # Nothing is kept between calls
        pass


def extract_pure_bits(image: BitMatrix) -> BitMatrix:
    """
    Sample a "pure" image: one unrotated, unskewed symbol with some white
    border around it. Module size and dimension are read off pixel runs, so
    no pattern search is needed.
    """
    height = image.height
    width = image.width
    min_dimension = min(height, width)

    # Skip the white border by tracking diagonally from the top left
    border_width = 0
    while border_width < min_dimension and not image.get(border_width, border_width):
        border_width += 1
    if border_width == min_dimension:
        raise NotFoundError("No dark pixel on the diagonal")

    # Keep tracking across the top-left dark module to get the module size
    module_end = border_width
    while module_end < min_dimension and image.get(module_end, module_end):
        module_end += 1
    if module_end == min_dimension:
        raise NotFoundError("Top-left module runs off the image")

    module_size = module_end - border_width

    # Where the rightmost dark module on the first row ends
    row_end_of_symbol = width - 1
    while row_end_of_symbol >= 0 and not image.get(row_end_of_symbol, border_width):
        row_end_of_symbol -= 1
    if row_end_of_symbol < 0:
        raise NotFoundError("First symbol row is empty")
    row_end_of_symbol += 1

    # Symbol width must be a whole number of modules
    if (row_end_of_symbol - border_width) % module_size != 0:
        raise NotFoundError(f"Symbol width {row_end_of_symbol - border_width} is not a multiple "
                            f"of module size {module_size}")
    dimension = (row_end_of_symbol - border_width) // module_size

    # Sample in the middle of each module
    border_width += module_size >> 1

    sample_dimension = border_width + (dimension - 1) * module_size
    if sample_dimension >= width or sample_dimension >= height:
        raise NotFoundError("Not enough margin to sample the last row/column")

    bits = BitMatrix(dimension)
    for i in range(dimension):
        i_offset = border_width + i * module_size
        for j in range(dimension):
            if image.get(border_width + j * module_size, i_offset):
                bits.set(j, i)
    logger.debug("Pure symbol: %dx%d modules of %dpx", dimension, dimension, module_size)
    return bits


def decode_qr(image_path, pure=False, try_harder=False, debug_dir=None):
    """Decode the QR code in an image file."""
    logger.info("Loading image %s", image_path)
    bitmap = BinaryBitmap.from_file(image_path)
    hints = DecodeHints(pure_barcode=pure, try_harder=try_harder)
    if debug_dir:
        from qr_debug import save_debug_all
        save_debug_all(debug_dir, bitmap, hints)
    return QRCodeReader().decode(bitmap, hints)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    args = [a for a in argv if not a.startswith('--')]
    flags = [a for a in argv if a.startswith('--')]
    if not args:
        print(__doc__.strip().splitlines()[-1])
        return 2
    path = args[0]

    level = 'DEBUG' if '--verbose' in flags else qr_config.LOG_LEVEL
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    debug_dir = qr_config.DEBUG_DIR
    if '--debug' in flags:
        base = os.path.splitext(os.path.basename(path))[0]
        debug_dir = os.path.join(os.path.dirname(path) or '.', f"{base}_debug")
    if debug_dir:
        os.makedirs(debug_dir, exist_ok=True)
        print(f"Debug output -> {debug_dir}/")

    try:
        result = decode_qr(path, pure='--pure' in flags, try_harder='--try-harder' in flags,
                           debug_dir=debug_dir)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    print(result.text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
