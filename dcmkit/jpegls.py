"""JPEG-LS public types, context statistics and short Golomb code lookup tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

__all__ = [
    "ERROR_MESSAGE_SIZE",
    "ApiResult",
    "InterleaveMode",
    "ColorTransformation",
    "CharlsError",
    "PresetCodingParameters",
    "JlsRect",
    "JfifParameters",
    "JlsParameters",
    "JlsContext",
    "Code",
    "CodeTable",
]

ERROR_MESSAGE_SIZE = 256

_BYTE_BIT_COUNT = 8


class ApiResult(IntEnum):
    """Result values reported by JPEG-LS operations."""

    OK = 0
    INVALID_JLS_PARAMETERS = 1
    PARAMETER_VALUE_NOT_SUPPORTED = 2
    UNCOMPRESSED_BUFFER_TOO_SMALL = 3
    COMPRESSED_BUFFER_TOO_SMALL = 4
    INVALID_COMPRESSED_DATA = 5
    TOO_MUCH_COMPRESSED_DATA = 6
    IMAGE_TYPE_NOT_SUPPORTED = 7
    UNSUPPORTED_BIT_DEPTH_FOR_TRANSFORM = 8
    UNSUPPORTED_COLOR_TRANSFORM = 9
    UNSUPPORTED_ENCODING = 10
    UNKNOWN_JPEG_MARKER = 11
    MISSING_JPEG_MARKER_START = 12
    UNSPECIFIED_FAILURE = 13
    UNEXPECTED_FAILURE = 14


class InterleaveMode(IntEnum):
    """Order of colour components in the compressed stream."""

    NONE = 0
    LINE = 1
    SAMPLE = 2


class ColorTransformation(IntEnum):
    """Lossless colour space transformations (HP extension of the standard)."""

    NONE = 0
    HP1 = 1
    HP2 = 2
    HP3 = 3


class CharlsError(Exception):
    """A JPEG-LS operation failed with the given ApiResult."""

    def __init__(self, result: ApiResult, message: str | None = None) -> None:
        self.result = ApiResult(result)
        text = message if message is not None else self.result.name.replace("_", " ").lower()
        super().__init__(text)


@dataclass
class PresetCodingParameters:
    """JPEG-LS preset coding parameters (ISO/IEC 14495-1, C.2.4.1.1)."""

    maximum_sample_value: int = 0
    threshold1: int = 0
    threshold2: int = 0
    threshold3: int = 0
    reset_value: int = 0


@dataclass
class JlsRect:
    """A rectangle within an image."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


@dataclass
class JfifParameters:
    """JPEG File Interchange Format header parameters."""

    version: int = 0
    units: int = 0
    x_density: int = 0
    y_density: int = 0
    x_thumbnail: int = 0
    y_thumbnail: int = 0
    thumbnail: bytes | None = None


@dataclass
class JlsParameters:
    """Parameters describing a JPEG-LS encoded image."""

    width: int = 0
    height: int = 0
    bits_per_sample: int = 0
    stride: int = 0
    components: int = 0
    allowed_lossy_error: int = 0
    interleave_mode: InterleaveMode = InterleaveMode.NONE
    color_transformation: ColorTransformation = ColorTransformation.NONE
    output_bgr: bool = False
    custom: PresetCodingParameters = field(default_factory=PresetCodingParameters)
    jfif: JfifParameters = field(default_factory=JfifParameters)


def _to_int16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


class JlsContext:
    """A JPEG-LS regular-mode context with its running statistics A, B, C and N."""

    __slots__ = ("a", "b", "c", "n")

    def __init__(self, a: int = 0) -> None:
        self.a = a
        self.b = 0
        self.c = 0
        self.n = 1

    def __repr__(self) -> str:
        return f"JlsContext(a={self.a}, b={self.b}, c={self.c}, n={self.n})"

    def error_correction(self, k: int) -> int:
        """Return -1 when k is 0 and the bias 2B + N - 1 is negative, else 0."""
        if k != 0:
            return 0
        return -1 if 2 * self.b + self.n - 1 < 0 else 0

    def update(self, error_value: int, near: int, nreset: int) -> None:
        """Fold one prediction error into the context statistics."""
        if self.n == 0:
            raise CharlsError(ApiResult.UNEXPECTED_FAILURE, "context count is zero")
        a = self.a + abs(error_value)
        b = self.b + error_value * (2 * near + 1)
        n = self.n
        if n == nreset:
            a >>= 1
            b >>= 1
            n >>= 1
        self.a = a
        n += 1
        self.n = _to_int16(n)
        if b + n <= 0:
            b += n
            if b <= -n:
                b = -n + 1
            if self.c > -128:
                self.c -= 1
        elif b > 0:
            b -= n
            if b > 0:
                b = 0
            if self.c < 127:
                self.c += 1
        self.b = b

    def golomb(self) -> int:
        """Smallest k such that N shifted left by k reaches A."""
        k = 0
        while (self.n << k) < self.a:
            k += 1
        return k


@dataclass(frozen=True)
class Code:
    """A decoded value together with the bit length of its code."""

    value: int = 0
    length: int = 0


class CodeTable:
    """Byte-indexed lookup table for Golomb codes of at most 8 bits."""

    def __init__(self) -> None:
        self._entries: list[Code] = [Code()] * (1 << _BYTE_BIT_COUNT)

    def add_entry(self, value: int, code: Code) -> None:
        """Register code for every byte whose leading bits equal value."""
        length = code.length
        if not 0 <= length <= _BYTE_BIT_COUNT:
            raise ValueError("code length must be between 0 and 8 bits")
        shift = _BYTE_BIT_COUNT - length
        base = value << shift
        count = 1 << shift
        if value < 0 or base + count > len(self._entries):
            raise ValueError("code value does not fit in its length")
        for index in range(base, base + count):
            if self._entries[index].length != 0:
                raise ValueError("code overlaps an existing entry")
            self._entries[index] = code

    def get(self, value: int) -> Code:
        """The code whose bit pattern prefixes the byte value."""
        return self._entries[value]