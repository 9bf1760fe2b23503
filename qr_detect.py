"""
QR symbol detection in a binarized image: finder patterns, symbol corners
and module sampling.
"""

import logging
from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional

import cv2
import numpy as np

from qr_common import BitMatrix, DecodeHints, NotFoundError, ResultPoint

logger = logging.getLogger(__name__)

# Inner 3x3 block at 2px modules (contour through pixel centres: 5x5)
MIN_PATTERN_AREA = 16
# Out of 3 * 49 finder modules
MIN_FINDER_SCORE = 100

FINDER = np.array([[1,1,1,1,1,1,1],[1,0,0,0,0,0,1],[1,0,1,1,1,0,1],[1,0,1,1,1,0,1],
                   [1,0,1,1,1,0,1],[1,0,0,0,0,0,1],[1,1,1,1,1,1,1]], dtype=np.uint8)


@dataclass
class DetectorResult:
    bits: BitMatrix
    points: List[ResultPoint]


# ============================================================================
# FINDER PATTERNS
# ============================================================================

def find_finder_patterns(image):
    """
    Find finder patterns with their corner points.

    A finder pattern is a dark 7x7 ring around a 3x3 block, so its contours
    form 2+ concentric squares.
    """
    # findContours traces non-zero pixels, so dark modules are drawn as 255
    binary = np.ascontiguousarray(image.bits, dtype=np.uint8) * 255
    contours, hierarchy = cv2.findContours(binary, cv2.RETR_TREE, cv2.CHAIN_APPROX_SIMPLE)

    if hierarchy is None:
        return []

    def approx_quad(c):
        peri = cv2.arcLength(c, True)
        return cv2.approxPolyDP(c, 0.04 * peri, True)

    def is_square(approx):
        if len(approx) != 4 or not cv2.isContourConvex(approx): return False
        x, y, w, h = cv2.boundingRect(approx)
        return w >= 4 and 0.65 < w/h < 1.35

    def get_corners(approx, ctr):
        """Corner points ordered image TL, TR, BR, BL, on the outer pixel edges."""
        pts = approx.reshape(4, 2).astype(np.float32)
        s = pts.sum(axis=1)
        d = np.diff(pts, axis=1).flatten()
        corners = np.zeros((4, 2), dtype=np.float32)
        corners[0] = pts[np.argmin(s)]  # TL
        corners[2] = pts[np.argmax(s)]  # BR
        corners[1] = pts[np.argmin(d)]  # TR
        corners[3] = pts[np.argmax(d)]  # BL
        # Contour points are pixel indices; move them out to the pixel boundary
        return corners + 0.5 + 0.5 * np.sign(corners - np.array(ctr, dtype=np.float32))

    def center(c):
        M = cv2.moments(c)
        return (M["m10"]/M["m00"], M["m01"]/M["m00"]) if M["m00"] > 0 else (0, 0)

    candidates = []
    for cnt in contours:
        area = cv2.contourArea(cnt)
        if area < MIN_PATTERN_AREA:
            continue
        approx = approx_quad(cnt)
        if not is_square(approx):
            continue
        ctr = center(cnt)
        candidates.append({
            'contour': cnt,
            'center': ctr,
            'area': area,
            'corners': get_corners(approx, ctr),
        })

    # Group concentric squares (same center, different sizes)
    patterns = []
    used = set()
    for i, c1 in enumerate(candidates):
        if i in used:
            continue
        group = [c1]
        used.add(i)
        for j, c2 in enumerate(candidates):
            tolerance = max(2.0, 0.2 * np.sqrt(max(c1['area'], c2['area'])))
            if j not in used and _dist(c1['center'], c2['center']) < tolerance:
                group.append(c2)
                used.add(j)

        # Ring + inner block: outer square 2-25x the innermost one
        if len(group) >= 2:
            areas = sorted([g['area'] for g in group], reverse=True)
            if 2.0 < areas[0] / areas[-1] < 25.0:
                patterns.append(max(group, key=lambda x: x['area']))

    # Remove duplicates (keep largest at each location); distinct finders are 14+ modules apart
    final = []
    for p in sorted(patterns, key=lambda x: -x['area']):
        if not any(_dist(p['center'], f['center']) < np.sqrt(f['area']) / 2 for f in final):
            final.append(p)

    logger.debug("Found %d finder patterns", len(final))
    return final


def _dist(a, b):
    return np.sqrt((a[0]-b[0])**2 + (a[1]-b[1])**2)


def identify_corners(patterns):
    """Identify TL, TR, BL corners from 3 finder patterns."""
    centers = [p['center'] for p in patterns]
    max_d, diag = 0, (0, 1)
    for i in range(3):
        for j in range(i+1, 3):
            d = (centers[i][0]-centers[j][0])**2 + (centers[i][1]-centers[j][1])**2
            if d > max_d: max_d, diag = d, (i, j)

    tl_idx = 3 - diag[0] - diag[1]
    p1, p2 = patterns[diag[0]], patterns[diag[1]]
    c_tl = patterns[tl_idx]['center']
    v1 = (p1['center'][0] - c_tl[0], p1['center'][1] - c_tl[1])
    v2 = (p2['center'][0] - c_tl[0], p2['center'][1] - c_tl[1])
    if v1[0] * v2[1] - v1[1] * v2[0] > 0:
        return patterns[tl_idx], p1, p2
    return patterns[tl_idx], p2, p1


def is_valid_qr_geometry(p1, p2, p3):
    """Check if 3 patterns form valid QR geometry (right angle at TL)."""
    centers = [p1['center'], p2['center'], p3['center']]

    for i in range(3):
        c = centers[i]
        others = [centers[j] for j in range(3) if j != i]
        v1 = (others[0][0] - c[0], others[0][1] - c[1])
        v2 = (others[1][0] - c[0], others[1][1] - c[1])

        len1 = np.sqrt(v1[0]**2 + v1[1]**2)
        len2 = np.sqrt(v2[0]**2 + v2[1]**2)
        if len1 == 0 or len2 == 0:
            continue
        dot = (v1[0]*v2[0] + v1[1]*v2[1]) / (len1 * len2)
        angle = np.arccos(np.clip(dot, -1, 1)) * 180 / np.pi

        # Sides within 3x of each other, for perspective
        ratio = max(len1, len2) / min(len1, len2)

        if 60 < angle < 120 and ratio < 3:
            return True
    return False


def group_finder_patterns(patterns, try_harder=False):
    """
    Group finder patterns that belong to the same QR code.

    Returns list of (tl, tr, bl) tuples. With try_harder every triple is
    returned, not only the geometrically plausible ones.
    """
    result = []
    for combo in combinations(patterns, 3):
        if not try_harder:
            if not is_valid_qr_geometry(*combo):
                continue
            # Pattern sizes within 4x, for perspective
            sizes = [np.sqrt(p['area']) for p in combo]
            if max(sizes) / min(sizes) >= 4:
                continue
        result.append(identify_corners(list(combo)))
    return result


# ============================================================================
# GEOMETRY
# ============================================================================

def estimate_version(tl, tr):
    module_size = np.sqrt(tl['area']) / 7
    dist = _dist(tl['center'], tr['center'])
    return int(max(1, min(40, round(((dist / module_size + 7) - 17) / 4))))


def _symbol_frame_corners(pattern, u, v):
    """Order a finder's outer corners as TL, TR, BR, BL of the symbol's own axes."""
    cx, cy = pattern['center']
    ordered = [None] * 4
    for p in pattern['corners']:
        dx, dy = p[0] - cx, p[1] - cy
        right = dx * u[0] + dy * u[1] > 0
        down = dx * v[0] + dy * v[1] > 0
        ordered[(2 if down else 1) if right else (3 if down else 0)] = p
    if any(p is None for p in ordered):
        return None
    return ordered


def get_qr_corners(tl, tr, bl, version):
    """Get 4 corners of QR code (TL, TR, BR, BL) using finder pattern corners.

    Uses homography from finder pattern corners (not just centers) for
    accurate perspective correction. Each finder has 4 corners at known
    module positions.
    """
    tl_c = np.array(tl['center'])
    tr_c = np.array(tr['center'])
    bl_c = np.array(bl['center'])
    size = version * 4 + 17

    v_tr = tr_c - tl_c
    v_bl = bl_c - tl_c
    u = v_tr / np.linalg.norm(v_tr)
    v = v_bl / np.linalg.norm(v_bl)

    tl_corners = _symbol_frame_corners(tl, u, v)
    tr_corners = _symbol_frame_corners(tr, u, v)
    bl_corners = _symbol_frame_corners(bl, u, v)

    if tl_corners is not None and tr_corners is not None and bl_corners is not None:
        # In module coordinates:
        # TL finder outer square: corners at (0,0), (7,0), (7,7), (0,7)
        # TR finder outer square: corners at (size-7,0), (size,0), (size,7), (size-7,7)
        # BL finder outer square: corners at (0,size-7), (7,size-7), (7,size), (0,size)
        img_pts = np.array(tl_corners + tr_corners + bl_corners, dtype=np.float32)
        mod_pts = np.array([[0, 0], [7, 0], [7, 7], [0, 7],
                            [size-7, 0], [size, 0], [size, 7], [size-7, 7],
                            [0, size-7], [7, size-7], [7, size], [0, size]], dtype=np.float32)

        # Module coords -> image coords
        H, _ = cv2.findHomography(mod_pts, img_pts, cv2.RANSAC, 3.0)

        if H is not None:
            outer_mod = np.array([[[0, 0]], [[size, 0]], [[size, size]], [[0, size]]], dtype=np.float32)
            outer_img = cv2.perspectiveTransform(outer_mod, H)
            return outer_img.reshape(4, 2).astype(np.float32)

    # Fallback: parallelogram estimation using centers
    br_c = tl_c + v_tr + v_bl
    module_h = np.linalg.norm(v_tr) / (size - 7)
    module_v = np.linalg.norm(v_bl) / (size - 7)

    offset = 3.5
    qr_tl = tl_c - offset * module_h * u - offset * module_v * v
    qr_tr = tr_c + offset * module_h * u - offset * module_v * v
    qr_bl = bl_c - offset * module_h * u + offset * module_v * v
    qr_br = br_c + offset * module_h * u + offset * module_v * v

    return np.array([qr_tl, qr_tr, qr_br, qr_bl], dtype=np.float32)


# ============================================================================
# SAMPLING
# ============================================================================

def sample_grid(image, corners, dimension):
    """Sample each module at its projected center."""
    src = np.array([[0, 0], [dimension, 0], [dimension, dimension], [0, dimension]], dtype=np.float32)
    M = cv2.getPerspectiveTransform(src, corners)
    cols, rows = np.meshgrid(np.arange(dimension) + 0.5, np.arange(dimension) + 0.5)
    pts = np.stack([cols, rows], axis=-1).reshape(-1, 1, 2).astype(np.float32)
    projected = cv2.perspectiveTransform(pts, M).reshape(dimension, dimension, 2)
    xs = np.clip(projected[..., 0].astype(int), 0, image.width - 1)
    ys = np.clip(projected[..., 1].astype(int), 0, image.height - 1)
    return BitMatrix.from_array(image.bits[ys, xs])


def finder_score(m):
    size = m.shape[0]
    return int(np.sum(m[0:7, 0:7] == FINDER) + np.sum(m[0:7, size-7:size] == FINDER)
               + np.sum(m[size-7:size, 0:7] == FINDER))


def score(m):
    """Fraction of finder and timing modules that match the expected pattern."""
    size = m.shape[0]
    s = finder_score(m)
    expected = (np.arange(8, size-8) % 2 == 0).astype(np.uint8)
    s += int(np.sum(m[6, 8:size-8] == expected) + np.sum(m[8:size-8, 6] == expected))
    return s / (3 * FINDER.size + 2 * (size - 16))


class Detector:
    """Locates a possibly rotated or skewed QR symbol in a black/white image."""

    def __init__(self, image: BitMatrix):
        self.image = image

    def detect(self, hints: Optional[DecodeHints] = None) -> DetectorResult:
        try_harder = hints is not None and hints.try_harder
        patterns = find_finder_patterns(self.image)
        if len(patterns) < 3:
            raise NotFoundError(f"Found {len(patterns)} patterns, need at least 3")

        groups = group_finder_patterns(patterns, try_harder)
        if not groups:
            raise NotFoundError("No finder pattern triple forms a QR symbol")

        spread = 2 if try_harder else 1
        best, best_s = None, -1.0
        for tl, tr, bl in groups:
            estimate = estimate_version(tl, tr)
            for version in range(max(1, estimate - spread), min(40, estimate + spread) + 1):
                corners = get_qr_corners(tl, tr, bl, version)
                bits = sample_grid(self.image, corners, version * 4 + 17)
                s = score(bits.to_array())
                if s > best_s:
                    best, best_s = (bits, tl, tr, bl, version), s

        bits, tl, tr, bl, version = best
        if finder_score(bits.to_array()) < MIN_FINDER_SCORE:
            raise NotFoundError("Finder patterns do not match the sampled grid")
        logger.info("Detected version %d (score %.2f)", version, best_s)

        points = [ResultPoint(float(p['center'][0]), float(p['center'][1])) for p in (bl, tl, tr)]
        return DetectorResult(bits, points)
