"""Shared QR reader types: bit matrices, hints, results and decode failures."""

import abc
import codecs
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

import numpy as np


# ============================================================================
# ERRORS
# ============================================================================

class ReaderError(ValueError):
    """Base class for every decode failure."""


class NotFoundError(ReaderError):
    """No QR symbol could be located under the given assumptions."""


class FormatError(ReaderError):
    """A symbol was located but its bits do not form a valid QR structure."""


class ChecksumError(ReaderError):
    """Error correction could not repair the codewords."""


# ============================================================================
# ENUMS
# ============================================================================

class BarcodeFormat(enum.Enum):
    QR_CODE = 'QR_CODE'


class ResultMetadataType(enum.Enum):
    BYTE_SEGMENTS = 'BYTE_SEGMENTS'
    ERROR_CORRECTION_LEVEL = 'ERROR_CORRECTION_LEVEL'


class ErrorCorrectionLevel(enum.Enum):
    """EC level; the value is the two format-information bits."""
    L = 0b01
    M = 0b00
    Q = 0b11
    H = 0b10

    @classmethod
    def for_bits(cls, bits):
        return cls(bits & 0b11)

    @property
    def ordinal(self):
        """Index into the L, M, Q, H ordered block tables."""
        return 'LMQH'.index(self.name)

    def __str__(self):
        return self.name


# ============================================================================
# GEOMETRY
# ============================================================================

class BitMatrix:
    """
    Grid of dark/light modules.

    Addressed as get(x, y) with x the column and y the row; True means dark.
    The backing numpy array is indexed bits[y, x].
    """

    def __init__(self, width: int, height: Optional[int] = None, bits: Optional[np.ndarray] = None):
        height = width if height is None else height
        if width < 1 or height < 1:
            raise ValueError("Both dimensions must be greater than 0")
        if bits is None:
            bits = np.zeros((height, width), dtype=bool)
        elif bits.shape != (height, width):
            raise ValueError(f"Bits shape {bits.shape} does not match {width}x{height}")
        self.bits = bits

    @classmethod
    def from_array(cls, array) -> 'BitMatrix':
        """Copy a 2-D array-like (rows of truthy = dark) into a new matrix."""
        arr = np.array(array, dtype=bool)
        if arr.ndim != 2:
            raise ValueError(f"Expected a 2-D array, got {arr.ndim}-D")
        return cls(arr.shape[1], arr.shape[0], bits=arr)

    @property
    def width(self) -> int:
        return self.bits.shape[1]

    @property
    def height(self) -> int:
        return self.bits.shape[0]

    @property
    def dimension(self) -> int:
        if self.width != self.height:
            raise ValueError("Can't call dimension on a non-square matrix")
        return self.width

    def get(self, x: int, y: int) -> bool:
        return bool(self.bits[y, x])

    def set(self, x: int, y: int):
        self.bits[y, x] = True

    def flip(self, x: int, y: int):
        self.bits[y, x] = not self.bits[y, x]

    def clear(self):
        self.bits[:] = False

    def set_region(self, left: int, top: int, width: int, height: int):
        if top < 0 or left < 0:
            raise ValueError("Left and top must be nonnegative")
        if height < 1 or width < 1:
            raise ValueError("Height and width must be at least 1")
        if left + width > self.width or top + height > self.height:
            raise ValueError("The region must fit inside the matrix")
        self.bits[top:top + height, left:left + width] = True

    def to_array(self) -> np.ndarray:
        """uint8 copy, 1 = dark."""
        return self.bits.astype(np.uint8)

    def __eq__(self, other):
        if not isinstance(other, BitMatrix):
            return NotImplemented
        return self.bits.shape == other.bits.shape and bool(np.array_equal(self.bits, other.bits))

    def __repr__(self):
        return f"BitMatrix({self.width}x{self.height})"

    def __str__(self):
        return '\n'.join(''.join('X ' if b else '  ' for b in row) for row in self.bits) + '\n'


@dataclass(frozen=True)
class ResultPoint:
    x: float
    y: float


# ============================================================================
# HINTS AND RESULTS
# ============================================================================

@dataclass(frozen=True)
class DecodeHints:
    """
    Caller options for a decode call.

    pure_barcode: the image holds one unrotated, unskewed symbol with a white
        margin, so the fast sampler can replace detection.
    try_harder: spend more time searching finder triples and versions.
    character_set: byte-mode charset to use when the symbol carries no ECI;
        must name a Python codec.
    """
    pure_barcode: bool = False
    try_harder: bool = False
    character_set: Optional[str] = None

    def __post_init__(self):
        if self.character_set is not None:
            try:
                codecs.lookup(self.character_set)
            except LookupError:
                raise ValueError(f"Unknown character set {self.character_set!r}") from None


@dataclass
class Result:
    text: str
    raw_bytes: bytes
    result_points: Sequence[ResultPoint]
    barcode_format: BarcodeFormat
    result_metadata: Dict[ResultMetadataType, Any] = field(default_factory=dict)

    def put_metadata(self, kind: ResultMetadataType, value):
        self.result_metadata[kind] = value

    def to_dict(self):
        ec_level = self.result_metadata.get(ResultMetadataType.ERROR_CORRECTION_LEVEL)
        segments = self.result_metadata.get(ResultMetadataType.BYTE_SEGMENTS)
        return {
            'text': self.text,
            'raw_bytes': self.raw_bytes.hex(),
            'points': [[p.x, p.y] for p in self.result_points],
            'format': self.barcode_format.value,
            'ec_level': ec_level,
            'byte_segments': [s.hex() for s in segments] if segments else None,
        }


class Reader(abc.ABC):
    """A barcode reader for one symbology."""

    @abc.abstractmethod
    def decode(self, image, hints: Optional[DecodeHints] = None) -> Result:
        """Locate and decode a symbol, raising a ReaderError on failure."""

    @abc.abstractmethod
    def reset(self):
        """Clear any state kept between decode calls."""
