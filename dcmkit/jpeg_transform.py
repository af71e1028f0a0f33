"""Integer IDCT, chroma upsampling and colour conversion for baseline JPEG."""

from __future__ import annotations

from collections.abc import MutableSequence, Sequence

__all__ = [
    "clip",
    "row_idct",
    "col_idct",
    "upsample_horizontal",
    "upsample_vertical",
    "ycbcr_to_rgb",
]

_W1 = 2841
_W2 = 2676
_W3 = 2408
_W5 = 1609
_W6 = 1108
_W7 = 565

# Bicubic chroma filter taps (each set sums to 128).
_CF4A = -9
_CF4B = 111
_CF4C = 29
_CF4D = -3
_CF3A = 28
_CF3B = 109
_CF3C = -9
_CF3X = 104
_CF3Y = 27
_CF3Z = -3
_CF2A = 139
_CF2B = -11


def clip(x: int) -> int:
    """Clamp an integer to the byte range 0..255."""
    if x < 0:
        return 0
    if x > 0xFF:
        return 0xFF
    return x


def _cf(x: int) -> int:
    return clip((x + 64) >> 7)


def row_idct(block: MutableSequence[int], start: int) -> None:
    """Apply the 1-D inverse DCT in place to the 8 coefficients at block[start:start+8]."""
    b = block
    x1 = b[start + 4] << 11
    x2 = b[start + 6]
    x3 = b[start + 2]
    x4 = b[start + 1]
    x5 = b[start + 7]
    x6 = b[start + 5]
    x7 = b[start + 3]
    if not (x1 | x2 | x3 | x4 | x5 | x6 | x7):
        dc = b[start] << 3
        b[start:start + 8] = [dc] * 8
        return
    x0 = (b[start] << 11) + 128
    x8 = _W7 * (x4 + x5)
    x4 = x8 + (_W1 - _W7) * x4
    x5 = x8 - (_W1 + _W7) * x5
    x8 = _W3 * (x6 + x7)
    x6 = x8 - (_W3 - _W5) * x6
    x7 = x8 - (_W3 + _W5) * x7
    x8 = x0 + x1
    x0 -= x1
    x1 = _W6 * (x3 + x2)
    x2 = x1 - (_W2 + _W6) * x2
    x3 = x1 + (_W2 - _W6) * x3
    x1 = x4 + x6
    x4 -= x6
    x6 = x5 + x7
    x5 -= x7
    x7 = x8 + x3
    x8 -= x3
    x3 = x0 + x2
    x0 -= x2
    x2 = (181 * (x4 + x5) + 128) >> 8
    x4 = (181 * (x4 - x5) + 128) >> 8
    b[start:start + 8] = [
        (x7 + x1) >> 8,
        (x3 + x2) >> 8,
        (x0 + x4) >> 8,
        (x8 + x6) >> 8,
        (x8 - x6) >> 8,
        (x0 - x4) >> 8,
        (x3 - x2) >> 8,
        (x7 - x1) >> 8,
    ]


def col_idct(
    block: Sequence[int],
    column: int,
    out: MutableSequence[int],
    offset: int,
    stride: int,
) -> None:
    """Apply the column inverse DCT and write 8 clipped samples to out, one per stride."""
    b = block
    x1 = b[column + 8 * 4] << 8
    x2 = b[column + 8 * 6]
    x3 = b[column + 8 * 2]
    x4 = b[column + 8 * 1]
    x5 = b[column + 8 * 7]
    x6 = b[column + 8 * 5]
    x7 = b[column + 8 * 3]
    if not (x1 | x2 | x3 | x4 | x5 | x6 | x7):
        value = clip(((b[column] + 32) >> 6) + 128)
        for row in range(8):
            out[offset + row * stride] = value
        return
    x0 = (b[column] << 8) + 8192
    x8 = _W7 * (x4 + x5) + 4
    x4 = (x8 + (_W1 - _W7) * x4) >> 3
    x5 = (x8 - (_W1 + _W7) * x5) >> 3
    x8 = _W3 * (x6 + x7) + 4
    x6 = (x8 - (_W3 - _W5) * x6) >> 3
    x7 = (x8 - (_W3 + _W5) * x7) >> 3
    x8 = x0 + x1
    x0 -= x1
    x1 = _W6 * (x3 + x2) + 4
    x2 = (x1 - (_W2 + _W6) * x2) >> 3
    x3 = (x1 + (_W2 - _W6) * x3) >> 3
    x1 = x4 + x6
    x4 -= x6
    x6 = x5 + x7
    x5 -= x7
    x7 = x8 + x3
    x8 -= x3
    x3 = x0 + x2
    x0 -= x2
    x2 = (181 * (x4 + x5) + 128) >> 8
    x4 = (181 * (x4 - x5) + 128) >> 8
    values = (
        x7 + x1,
        x3 + x2,
        x0 + x4,
        x8 + x6,
        x8 - x6,
        x0 - x4,
        x3 - x2,
        x7 - x1,
    )
    for row, v in enumerate(values):
        out[offset + row * stride] = clip((v >> 14) + 128)


def upsample_horizontal(
    pixels: Sequence[int], width: int, height: int, stride: int
) -> bytearray:
    """Double a plane's width with the bicubic filter.

    The result has width ``2 * width``, height ``height`` and no row padding.
    """
    if width < 3:
        raise ValueError("plane must be at least 3 pixels wide to upsample")
    out_width = width << 1
    out = bytearray(out_width * height)
    p = pixels
    for y in range(height):
        lin = y * stride
        lout = y * out_width
        out[lout] = _cf(_CF2A * p[lin] + _CF2B * p[lin + 1])
        out[lout + 1] = _cf(_CF3X * p[lin] + _CF3Y * p[lin + 1] + _CF3Z * p[lin + 2])
        out[lout + 2] = _cf(_CF3A * p[lin] + _CF3B * p[lin + 1] + _CF3C * p[lin + 2])
        for x in range(width - 3):
            a, b, c, d = p[lin + x], p[lin + x + 1], p[lin + x + 2], p[lin + x + 3]
            out[lout + (x << 1) + 3] = _cf(_CF4A * a + _CF4B * b + _CF4C * c + _CF4D * d)
            out[lout + (x << 1) + 4] = _cf(_CF4D * a + _CF4C * b + _CF4B * c + _CF4A * d)
        row_end = lin + stride
        out_end = lout + out_width
        e1, e2, e3 = p[row_end - 1], p[row_end - 2], p[row_end - 3]
        out[out_end - 3] = _cf(_CF3A * e1 + _CF3B * e2 + _CF3C * e3)
        out[out_end - 2] = _cf(_CF3X * e1 + _CF3Y * e2 + _CF3Z * e3)
        out[out_end - 1] = _cf(_CF2A * e1 + _CF2B * e2)
    return out


def upsample_vertical(
    pixels: Sequence[int], width: int, height: int, stride: int
) -> bytearray:
    """Double a plane's height with the bicubic filter.

    The result has width ``width``, height ``2 * height`` and no row padding.
    """
    if height < 3:
        raise ValueError("plane must be at least 3 pixels high to upsample")
    w = width
    s1 = stride
    s2 = s1 + s1
    out = bytearray(width * (height << 1))
    p = pixels
    for x in range(w):
        cin = x
        cout = x
        out[cout] = _cf(_CF2A * p[cin] + _CF2B * p[cin + s1])
        cout += w
        out[cout] = _cf(_CF3X * p[cin] + _CF3Y * p[cin + s1] + _CF3Z * p[cin + s2])
        cout += w
        out[cout] = _cf(_CF3A * p[cin] + _CF3B * p[cin + s1] + _CF3C * p[cin + s2])
        cout += w
        cin += s1
        for _ in range(height - 3):
            a, b, c, d = p[cin - s1], p[cin], p[cin + s1], p[cin + s2]
            out[cout] = _cf(_CF4A * a + _CF4B * b + _CF4C * c + _CF4D * d)
            cout += w
            out[cout] = _cf(_CF4D * a + _CF4C * b + _CF4B * c + _CF4A * d)
            cout += w
            cin += s1
        cin += s1
        e0, e1, e2 = p[cin], p[cin - s1], p[cin - s2]
        out[cout] = _cf(_CF3A * e0 + _CF3B * e1 + _CF3C * e2)
        cout += w
        out[cout] = _cf(_CF3X * e0 + _CF3Y * e1 + _CF3Z * e2)
        cout += w
        out[cout] = _cf(_CF2A * e0 + _CF2B * e1)
    return out


def ycbcr_to_rgb(y: int, cb: int, cr: int) -> tuple[int, int, int]:
    """Convert one YCbCr sample triple to an (r, g, b) byte triple."""
    yy = y << 8
    cb -= 128
    cr -= 128
    return (
        clip((yy + 359 * cr + 128) >> 8),
        clip((yy - 88 * cb - 183 * cr + 128) >> 8),
        clip((yy + 454 * cb + 128) >> 8),
    )