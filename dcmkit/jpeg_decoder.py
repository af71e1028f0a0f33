"""Decoder for baseline (sequential, 8-bit, Huffman) JPEG images."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

from dcmkit.jpeg_transform import (
    col_idct,
    row_idct,
    upsample_horizontal,
    upsample_vertical,
    ycbcr_to_rgb,
)

__all__ = [
    "JpegError",
    "NotJpegError",
    "UnsupportedJpegError",
    "JpegSyntaxError",
    "JpegInternalError",
    "DecodedImage",
    "decode_jpeg",
    "main",
]

_MASK32 = 0xFFFFFFFF

_ZIGZAG = (
    0, 1, 8, 16, 9, 2, 3, 10, 17, 24, 32, 25, 18, 11, 4, 5,
    12, 19, 26, 33, 40, 48, 41, 34, 27, 20, 13, 6, 7, 14, 21, 28,
    35, 42, 49, 56, 57, 50, 43, 36, 29, 22, 15, 23, 30, 37, 44, 51,
    58, 59, 52, 45, 38, 31, 39, 46, 53, 60, 61, 54, 47, 55, 62, 63,
)


class JpegError(Exception):
    """Base class for JPEG decoding failures."""


class NotJpegError(JpegError):
    """The data does not start with a JPEG SOI marker."""


class UnsupportedJpegError(JpegError):
    """The stream uses a feature this decoder does not handle."""


class JpegSyntaxError(JpegError):
    """The stream is malformed."""


class JpegInternalError(JpegError):
    """The decoder reached an inconsistent state."""


@dataclass(frozen=True)
class DecodedImage:
    """A decoded image: 8-bit grayscale or packed 24-bit RGB, top-down, unpadded."""

    width: int
    height: int
    components: int
    pixels: bytes

    @property
    def is_color(self) -> bool:
        return self.components != 1

    def size(self) -> int:
        """Number of bytes of pixel data."""
        return self.width * self.height * self.components

    def to_netpbm(self) -> bytes:
        """Encode the image as binary PGM (grayscale) or PPM (colour)."""
        header = b"P%d\n%d %d\n255\n" % (
            6 if self.is_color else 5,
            self.width,
            self.height,
        )
        return header + self.pixels


@dataclass
class _Component:
    cid: int
    ssx: int
    ssy: int
    qtsel: int
    width: int = 0
    height: int = 0
    stride: int = 0
    dctabsel: int = 0
    actabsel: int = 0
    dcpred: int = 0
    pixels: bytearray = field(default_factory=bytearray)


class _Decoder:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0
        self.size = len(data) & 0x7FFFFFFF
        self.length = 0
        self.width = 0
        self.height = 0
        self.mbwidth = 0
        self.mbheight = 0
        self.mbsizex = 0
        self.mbsizey = 0
        self.components: list[_Component] = []
        self.qtab = [bytes(64) for _ in range(4)]
        self.vlc: dict[int, tuple[bytes, bytes]] = {}
        self.buf = 0
        self.bufbits = 0
        self.rstinterval = 0

    # --- byte-level helpers -------------------------------------------------

    def _byte(self, offset: int) -> int:
        index = self.pos + offset
        if index >= len(self.data):
            raise JpegSyntaxError("unexpected end of data")
        return self.data[index]

    def _decode16(self, offset: int) -> int:
        return (self._byte(offset) << 8) | self._byte(offset + 1)

    def _skip(self, count: int) -> None:
        self.pos += count
        self.size -= count
        self.length -= count
        if self.size < 0:
            raise JpegSyntaxError("segment runs past the end of data")

    def _decode_length(self) -> None:
        if self.size < 2:
            raise JpegSyntaxError("missing segment length")
        self.length = self._decode16(0)
        if self.length > self.size:
            raise JpegSyntaxError("segment length exceeds data")
        self._skip(2)

    def _skip_marker(self) -> None:
        self._decode_length()
        self._skip(self.length)

    # --- bit-level helpers --------------------------------------------------

    def _show_bits(self, bits: int) -> int:
        if not bits:
            return 0
        while self.bufbits < bits:
            if self.size <= 0:
                self.buf = ((self.buf << 8) | 0xFF) & _MASK32
                self.bufbits += 8
                continue
            newbyte = self.data[self.pos]
            self.pos += 1
            self.size -= 1
            self.bufbits += 8
            self.buf = ((self.buf << 8) | newbyte) & _MASK32
            if newbyte == 0xFF:
                if not self.size:
                    raise JpegSyntaxError("truncated marker in entropy-coded data")
                marker = self.data[self.pos]
                self.pos += 1
                self.size -= 1
                if marker in (0x00, 0xFF):
                    pass
                elif marker == 0xD9:
                    self.size = 0
                elif (marker & 0xF8) != 0xD0:
                    raise JpegSyntaxError("unexpected marker in entropy-coded data")
                else:
                    self.buf = ((self.buf << 8) | marker) & _MASK32
                    self.bufbits += 8
        return (self.buf >> (self.bufbits - bits)) & ((1 << bits) - 1)

    def _skip_bits(self, bits: int) -> None:
        if self.bufbits < bits:
            self._show_bits(bits)
        self.bufbits -= bits

    def _get_bits(self, bits: int) -> int:
        result = self._show_bits(bits)
        self._skip_bits(bits)
        return result

    def _byte_align(self) -> None:
        self.bufbits &= 0xF8

    def _get_vlc(self, table_index: int) -> tuple[int, int]:
        table = self.vlc.get(table_index)
        if table is None:
            raise JpegSyntaxError("undefined Huffman table")
        lengths, symbols = table
        value = self._show_bits(16)
        bits = lengths[value]
        if not bits:
            raise JpegSyntaxError("invalid Huffman code")
        self._skip_bits(bits)
        code = symbols[value]
        bits = code & 15
        if not bits:
            return 0, code
        value = self._get_bits(bits)
        if value < (1 << (bits - 1)):
            value += (-1 << bits) + 1
        return value, code

    # --- segments -----------------------------------------------------------

    def _decode_sof(self) -> None:
        self._decode_length()
        if self.length < 9:
            raise JpegSyntaxError("frame header too short")
        if self._byte(0) != 8:
            raise UnsupportedJpegError("only 8-bit sample precision is supported")
        self.height = self._decode16(1)
        self.width = self._decode16(3)
        if not self.width or not self.height:
            raise JpegSyntaxError("image has zero size")
        ncomp = self._byte(5)
        self._skip(6)
        if ncomp not in (1, 3):
            raise UnsupportedJpegError(f"{ncomp} components are not supported")
        if self.length < ncomp * 3:
            raise JpegSyntaxError("frame header too short for its components")
        comps: list[_Component] = []
        ssxmax = ssymax = 0
        for _ in range(ncomp):
            cid = self._byte(0)
            sampling = self._byte(1)
            ssx = sampling >> 4
            if not ssx:
                raise JpegSyntaxError("zero horizontal sampling factor")
            if ssx & (ssx - 1):
                raise UnsupportedJpegError("sampling factor is not a power of two")
            ssy = sampling & 15
            if not ssy:
                raise JpegSyntaxError("zero vertical sampling factor")
            if ssy & (ssy - 1):
                raise UnsupportedJpegError("sampling factor is not a power of two")
            qtsel = self._byte(2)
            if qtsel & 0xFC:
                raise JpegSyntaxError("invalid quantisation table selector")
            self._skip(3)
            comps.append(_Component(cid, ssx, ssy, qtsel))
            ssxmax = max(ssxmax, ssx)
            ssymax = max(ssymax, ssy)
        if ncomp == 1:
            comps[0].ssx = comps[0].ssy = ssxmax = ssymax = 1
        self.mbsizex = ssxmax << 3
        self.mbsizey = ssymax << 3
        self.mbwidth = (self.width + self.mbsizex - 1) // self.mbsizex
        self.mbheight = (self.height + self.mbsizey - 1) // self.mbsizey
        for c in comps:
            c.width = (self.width * c.ssx + ssxmax - 1) // ssxmax
            c.height = (self.height * c.ssy + ssymax - 1) // ssymax
            c.stride = self.mbwidth * (c.ssx << 3)
            if (c.width < 3 and c.ssx != ssxmax) or (c.height < 3 and c.ssy != ssymax):
                raise UnsupportedJpegError("subsampled component is too small")
            c.pixels = bytearray(c.stride * self.mbheight * (c.ssy << 3))
        self.components = comps
        self._skip(self.length)

    def _decode_dht(self) -> None:
        self._decode_length()
        while self.length >= 17:
            selector = self._byte(0)
            if selector & 0xEC:
                raise JpegSyntaxError("invalid Huffman table selector")
            if selector & 0x02:
                raise UnsupportedJpegError("Huffman table index above 1")
            index = (selector | (selector >> 3)) & 3
            counts = [self._byte(k) for k in range(1, 17)]
            self._skip(17)
            lengths = bytearray(65536)
            symbols = bytearray(65536)
            cursor = 0
            remain = spread = 65536
            for codelen, count in enumerate(counts, start=1):
                spread >>= 1
                if not count:
                    continue
                if self.length < count:
                    raise JpegSyntaxError("Huffman table truncated")
                remain -= count << (16 - codelen)
                if remain < 0:
                    raise JpegSyntaxError("Huffman table is overfull")
                for k in range(count):
                    symbol = self._byte(k)
                    lengths[cursor:cursor + spread] = bytes((codelen,)) * spread
                    symbols[cursor:cursor + spread] = bytes((symbol,)) * spread
                    cursor += spread
                self._skip(count)
            self.vlc[index] = (bytes(lengths), bytes(symbols))
        if self.length:
            raise JpegSyntaxError("trailing bytes in Huffman table segment")

    def _decode_dqt(self) -> None:
        self._decode_length()
        while self.length >= 65:
            index = self._byte(0)
            if index & 0xFC:
                raise JpegSyntaxError("invalid quantisation table index")
            self.qtab[index] = self.data[self.pos + 1:self.pos + 65]
            self._skip(65)
        if self.length:
            raise JpegSyntaxError("trailing bytes in quantisation table segment")

    def _decode_dri(self) -> None:
        self._decode_length()
        if self.length < 2:
            raise JpegSyntaxError("restart interval segment too short")
        self.rstinterval = self._decode16(0)
        self._skip(self.length)

    def _decode_block(self, c: _Component, offset: int) -> None:
        block = [0] * 64
        qt = self.qtab[c.qtsel]
        diff, _ = self._get_vlc(c.dctabsel)
        c.dcpred += diff
        block[0] = c.dcpred * qt[0]
        coef = 0
        while True:
            value, code = self._get_vlc(c.actabsel)
            if not code:
                break
            if not (code & 0x0F) and code != 0xF0:
                raise JpegSyntaxError("invalid AC code")
            coef += (code >> 4) + 1
            if coef > 63:
                raise JpegSyntaxError("too many AC coefficients")
            block[_ZIGZAG[coef]] = value * qt[coef]
            if coef >= 63:
                break
        for start in range(0, 64, 8):
            row_idct(block, start)
        for column in range(8):
            col_idct(block, column, c.pixels, offset + column, c.stride)

    def _decode_scan(self) -> None:
        self._decode_length()
        comps = self.components
        if not comps:
            raise JpegSyntaxError("scan before frame header")
        ncomp = len(comps)
        if self.length < 4 + 2 * ncomp:
            raise JpegSyntaxError("scan header too short")
        if self._byte(0) != ncomp:
            raise UnsupportedJpegError("non-interleaved scans are not supported")
        self._skip(1)
        for c in comps:
            if self._byte(0) != c.cid:
                raise JpegSyntaxError("scan component does not match frame")
            tables = self._byte(1)
            if tables & 0xEE:
                raise JpegSyntaxError("invalid Huffman table selection")
            c.dctabsel = tables >> 4
            c.actabsel = (tables & 1) | 2
            self._skip(2)
        if self._byte(0) or self._byte(1) != 63 or self._byte(2):
            raise UnsupportedJpegError("spectral selection is not supported")
        self._skip(self.length)
        mbx = mby = 0
        rstcount = self.rstinterval
        nextrst = 0
        while True:
            for c in comps:
                for sby in range(c.ssy):
                    for sbx in range(c.ssx):
                        offset = ((mby * c.ssy + sby) * c.stride + mbx * c.ssx + sbx) << 3
                        self._decode_block(c, offset)
            mbx += 1
            if mbx >= self.mbwidth:
                mbx = 0
                mby += 1
                if mby >= self.mbheight:
                    break
            if self.rstinterval:
                rstcount -= 1
                if not rstcount:
                    self._byte_align()
                    marker = self._get_bits(16)
                    if (marker & 0xFFF8) != 0xFFD0 or (marker & 7) != nextrst:
                        raise JpegSyntaxError("bad restart marker")
                    nextrst = (nextrst + 1) & 7
                    rstcount = self.rstinterval
                    for comp in comps:
                        comp.dcpred = 0

    # --- output -------------------------------------------------------------

    def _convert(self) -> DecodedImage:
        width, height = self.width, self.height
        for c in self.components:
            try:
                while c.width < width or c.height < height:
                    if c.width < width:
                        c.pixels = upsample_horizontal(c.pixels, c.width, c.height, c.stride)
                        c.width <<= 1
                        c.stride = c.width
                    if c.height < height:
                        c.pixels = upsample_vertical(c.pixels, c.width, c.height, c.stride)
                        c.height <<= 1
                        c.stride = c.width
            except ValueError as exc:
                raise JpegInternalError(str(exc)) from exc
        if len(self.components) == 3:
            py, pcb, pcr = self.components
            rgb = bytearray(width * height * 3)
            out = 0
            for row in range(height):
                ybase = row * py.stride
                cbbase = row * pcb.stride
                crbase = row * pcr.stride
                for x in range(width):
                    rgb[out:out + 3] = bytes(
                        ycbcr_to_rgb(py.pixels[ybase + x], pcb.pixels[cbbase + x], pcr.pixels[crbase + x])
                    )
                    out += 3
            return DecodedImage(width, height, 3, bytes(rgb))
        gray = self.components[0]
        pixels = b"".join(
            gray.pixels[row * gray.stride:row * gray.stride + width] for row in range(height)
        )
        return DecodedImage(width, height, 1, pixels)

    def decode(self) -> DecodedImage:
        if self.size < 2 or self.data[0] != 0xFF or self.data[1] != 0xD8:
            raise NotJpegError("data does not start with a JPEG SOI marker")
        self._skip(2)
        handlers = {
            0xC0: self._decode_sof,
            0xC4: self._decode_dht,
            0xDB: self._decode_dqt,
            0xDD: self._decode_dri,
            0xFE: self._skip_marker,
        }
        while True:
            if self.size < 2 or self.data[self.pos] != 0xFF:
                raise JpegSyntaxError("expected a marker")
            self._skip(2)
            marker = self.data[self.pos - 1]
            if marker == 0xDA:
                self._decode_scan()
                break
            handler = handlers.get(marker)
            if handler is not None:
                handler()
            elif (marker & 0xF0) == 0xE0:
                self._skip_marker()
            else:
                raise UnsupportedJpegError(f"unsupported marker 0x{marker:02X}")
        return self._convert()


def decode_jpeg(data: bytes | bytearray | memoryview) -> DecodedImage:
    """Decode a baseline JPEG file held in memory."""
    return _Decoder(bytes(data)).decode()


def main(argv: list[str] | None = None) -> int:
    """Convert a JPEG file into a PGM or PPM file."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Usage: jpeg_decoder <input.jpg> [<output.ppm>]")
        return 2
    try:
        data = Path(args[0]).read_bytes()
    except OSError:
        print("Error opening the input file.")
        return 1
    try:
        image = decode_jpeg(data)
    except JpegError:
        print("Error decoding the input file.")
        return 1
    if len(args) > 1:
        output = Path(args[1])
    else:
        output = Path("nanojpeg_out.ppm" if image.is_color else "nanojpeg_out.pgm")
    try:
        output.write_bytes(image.to_netpbm())
    except OSError:
        print("Error opening the output file.")
        return 1
    return 0