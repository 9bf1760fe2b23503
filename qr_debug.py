"""QR decode debug visualization - saves intermediate results to disk."""

import logging
import os

import cv2
import numpy as np

from qr_common import ReaderError
from qr_decode import codeword_order, read_format_info, read_version, unmask
from qr_detect import Detector, find_finder_patterns

logger = logging.getLogger(__name__)

# 0=data, 1=finder+separator, 2=timing, 3=alignment, 4=format_info, 5=version_info, 6=dark_module
COLORS = {
    1: (0, 0, 200),     # finder: red
    2: (0, 200, 200),   # timing: yellow
    3: (200, 100, 0),   # alignment: blue
    4: (200, 0, 200),   # format info: magenta
    5: (200, 200, 0),   # version info: cyan
    6: (100, 100, 100), # dark module: gray
}


def _save_img(debug_dir, name, data, scale=10):
    """Save image to debug_dir; 2-D 0/1 matrices are drawn dark-on-light and scaled up."""
    path = os.path.join(debug_dir, name)
    if data.ndim == 2 and data.max(initial=0) <= 1:
        img = ((1 - data.astype(np.uint8)) * 255).astype(np.uint8)
        img = cv2.resize(img, (img.shape[1]*scale, img.shape[0]*scale), interpolation=cv2.INTER_NEAREST)
        cv2.imwrite(path, img)
    else:
        cv2.imwrite(path, data)


def _module_type_map(version):
    """Classify every module into its functional type. Returns size x size array."""
    size = version.dimension
    t = np.where(version.function_pattern(), 3, 0).astype(np.uint8)

    for (r0, c0) in [(0, 0), (0, size-8), (size-8, 0)]:
        t[r0:r0+8, c0:c0+8] = 1
    t[6, 8:size-8] = 2
    t[8:size-8, 6] = 2
    t[8, 0:9] = 4; t[0:9, 8] = 4
    t[8, size-8:size] = 4; t[size-7:size, 8] = 4
    t[6, 8] = 2; t[8, 6] = 2
    if version.number >= 7:
        t[0:6, size-11:size-8] = 5
        t[size-11:size-8, 0:6] = 5
    t[size-8, 8] = 6
    return t


def _draw_colored_matrix(matrix, version, scale=20):
    """Draw QR matrix with different colors for each functional region and the codeword path."""
    size = matrix.shape[0]
    tmap = _module_type_map(version)

    vis = np.zeros((size * scale, size * scale, 3), dtype=np.uint8)
    for r in range(size):
        for c in range(size):
            y0, y1 = r * scale, (r + 1) * scale
            x0, x1 = c * scale, (c + 1) * scale
            mt = tmap[r, c]
            if mt == 0:
                vis[y0:y1, x0:x1] = 0 if matrix[r, c] else 255
            else:
                color = COLORS[mt]
                if matrix[r, c]:
                    vis[y0:y1, x0:x1] = color
                else:
                    vis[y0:y1, x0:x1] = tuple(min(255, int(v * 0.4 + 255 * 0.6)) for v in color)
            vis[y0, x0:x1] = (60, 60, 60)
            vis[y0:y1, x0] = (60, 60, 60)

    half = scale // 2
    path = list(codeword_order(version.function_pattern()))
    for i in range(len(path) - 1):
        (r1, c1), (r2, c2) = path[i], path[i + 1]
        t = i / max(len(path) - 1, 1)
        color = (0, int(200 * (1 - t)), int(200 * t))
        cv2.line(vis, (c1*scale + half, r1*scale + half), (c2*scale + half, r2*scale + half),
                 color, 2, cv2.LINE_AA)
    return vis


def save_debug_all(debug_dir, bitmap, hints):
    """Save all intermediate results to debug_dir. Failures are written to info.txt."""
    if not debug_dir:
        return
    os.makedirs(debug_dir, exist_ok=True)
    black = bitmap.get_black_matrix()
    lines = [f"Image: {black.width}x{black.height}", f"Pure: {bool(hints and hints.pure_barcode)}"]

    # 1: binarized grid
    _save_img(debug_dir, "1_binarized.png", black.to_array(), scale=1)

    # 2: finder patterns and sampled matrix
    from qr_reader import extract_pure_bits
    try:
        if hints is not None and hints.pure_barcode:
            bits = extract_pure_bits(black)
        else:
            vis = cv2.cvtColor(((1 - black.to_array()) * 255).astype(np.uint8), cv2.COLOR_GRAY2BGR)
            for i, p in enumerate(find_finder_patterns(black)):
                cx, cy = int(p['center'][0]), int(p['center'][1])
                cv2.drawContours(vis, [p['contour']], -1, (0, 255, 0), 2)
                cv2.putText(vis, str(i), (cx+8, cy-8), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 255), 2)
            detected = Detector(black).detect(hints)
            for label, p in zip(['BL', 'TL', 'TR'], detected.points):
                cv2.circle(vis, (int(p.x), int(p.y)), 8, (0, 255, 255), -1)
                cv2.putText(vis, label, (int(p.x)+10, int(p.y)-10), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 255, 255), 2)
            _save_img(debug_dir, "2_detected.png", vis)
            bits = detected.bits
        matrix = bits.to_array()
        lines.append(f"Size: {bits.width}x{bits.height}")

        # 3: matrix by region, 4: unmasked data
        version = read_version(matrix)
        ec_level, mask = read_format_info(matrix)
        lines += [f"Version: {version.number}", f"EC level: {ec_level}", f"Mask: {mask}"]
        _save_img(debug_dir, "3_matrix.png", _draw_colored_matrix(matrix, version))
        _save_img(debug_dir, "4_unmasked.png", unmask(matrix, mask, version.function_pattern()))
    except ReaderError as e:
        logger.warning("Debug dump stopped: %s", e)
        lines.append(f"Stopped: {type(e).__name__}: {e}")

    with open(os.path.join(debug_dir, "5_info.txt"), 'w') as f:
        f.write('\n'.join(lines) + '\n')
