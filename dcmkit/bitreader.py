"""Bit-level reader for JPEG-LS entropy-coded data with marker bit stuffing."""

from __future__ import annotations

from dcmkit.jpegls import ApiResult, CharlsError

__all__ = ["BitReader"]

_CACHE_BITS = 64
_CACHE_MASK = (1 << _CACHE_BITS) - 1
_TOP_BIT = 1 << (_CACHE_BITS - 1)


class BitReader:
    """Read bits most-significant first from a JPEG-LS scan.

    A 0xFF byte is followed by a stuffed zero bit, which is dropped. A 0xFF
    followed by a byte with its high bit set is a marker and ends the data.
    """

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._data = bytes(data)
        self._position = 0
        self._end = len(self._data)
        self._cache = 0
        self._valid_bits = 0
        self._next_ff = self._find_next_ff()
        self._make_valid()

    # --- buffering ----------------------------------------------------------

    def _find_next_ff(self) -> int:
        index = self._data.find(b"\xff", self._position, self._end)
        return self._end if index < 0 else index

    def _optimized_read(self) -> bool:
        # With no 0xFF in sight a whole word can be read without bit stuffing.
        if self._valid_bits < 0 or self._position >= self._next_ff - 7:
            return False
        word = int.from_bytes(self._data[self._position:self._position + 8], "big")
        self._cache |= word >> self._valid_bits
        count = (_CACHE_BITS - self._valid_bits) >> 3
        self._position += count
        self._valid_bits += count * 8
        return True

    def _make_valid(self) -> None:
        if self._optimized_read():
            return
        data = self._data
        while True:
            if self._position >= self._end:
                if self._valid_bits <= 0:
                    raise CharlsError(ApiResult.INVALID_COMPRESSED_DATA)
                return
            value = data[self._position]
            if value == 0xFF:
                if self._position == self._end - 1 or data[self._position + 1] & 0x80:
                    if self._valid_bits <= 0:
                        raise CharlsError(ApiResult.INVALID_COMPRESSED_DATA)
                    return
            shift = _CACHE_BITS - 8 - self._valid_bits
            if shift >= 0:
                self._cache |= (value << shift) & _CACHE_MASK
            else:
                self._cache |= value >> -shift
            self._position += 1
            self._valid_bits += 8
            if value == 0xFF:
                self._valid_bits -= 1
            if self._valid_bits >= _CACHE_BITS - 8:
                break
        self._next_ff = self._find_next_ff()

    # --- public interface ---------------------------------------------------

    def skip(self, length: int) -> None:
        """Discard length bits from the front of the cache."""
        self._valid_bits -= length
        self._cache = (self._cache << length) & _CACHE_MASK

    def read_value(self, length: int) -> int:
        """Read an unsigned value of 1 to 31 bits."""
        if not 0 < length < 32:
            raise ValueError("length must be between 1 and 31 bits")
        if self._valid_bits < length:
            self._make_valid()
            if self._valid_bits < length:
                raise CharlsError(ApiResult.INVALID_COMPRESSED_DATA)
        result = self._cache >> (_CACHE_BITS - length)
        self.skip(length)
        return result

    def peek_byte(self) -> int:
        """The next 8 bits, without consuming them."""
        if self._valid_bits < 8:
            self._make_valid()
        return self._cache >> (_CACHE_BITS - 8)

    def read_bit(self) -> bool:
        """Read a single bit."""
        if self._valid_bits <= 0:
            self._make_valid()
        bit = (self._cache & _TOP_BIT) != 0
        self.skip(1)
        return bit

    def peek_zero_bits(self) -> int:
        """Count leading zero bits, up to 15; -1 when the next 16 bits are all zero."""
        if self._valid_bits < 16:
            self._make_valid()
        value = self._cache
        for count in range(16):
            if value & _TOP_BIT:
                return count
            value = (value << 1) & _CACHE_MASK
        return -1

    def read_high_bits(self) -> int:
        """Read a unary code: the number of zero bits before the next one bit."""
        count = self.peek_zero_bits()
        if count >= 0:
            self.skip(count + 1)
            return count
        self.skip(15)
        high_bits = 15
        while not self.read_bit():
            high_bits += 1
        return high_bits

    def read_long_value(self, length: int) -> int:
        """Read an unsigned value that may be wider than 24 bits."""
        if length <= 24:
            return self.read_value(length)
        return (self.read_value(length - 24) << 24) + self.read_value(24)

    def current_byte_position(self) -> int:
        """Index of the first byte not yet consumed by the bits read so far."""
        valid_bits = self._valid_bits
        position = self._position
        while True:
            last_bits = 7 if position > 0 and self._data[position - 1] == 0xFF else 8
            if valid_bits < last_bits:
                return position
            valid_bits -= last_bits
            position -= 1

    def end_scan(self) -> None:
        """Check that the scan's coded data ends exactly at a marker."""
        if not self._at_ff():
            self.read_bit()
            if not self._at_ff():
                raise CharlsError(ApiResult.TOO_MUCH_COMPRESSED_DATA)
        if self._cache != 0:
            raise CharlsError(ApiResult.TOO_MUCH_COMPRESSED_DATA)

    def _at_ff(self) -> bool:
        return self._position < self._end and self._data[self._position] == 0xFF