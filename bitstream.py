"""
BL3 Save Editor - Bit Streams
===============================
Arbitrary-width unsigned integer access over little-endian bit buffers.

Bits are numbered LSB-first inside each byte, bytes in order, so bit 0 is
the lowest bit of byte 0. A field of n bits read at offset k is the integer
formed by bits k .. k+n-1, with bit k as its least significant bit.

Usage:
    reader = BitReader(data)
    version = reader.take(7)

    writer = BitWriter()
    writer.append(version, 7)
    data, pad_bits = writer.finish()
"""

from errors import OutOfRangeError

# Widest field a single take()/append() call handles
MAX_FIELD_BITS = 64


class BitReader:
    """Read-only cursor over a bit buffer. Only the cursor position changes."""

    def __init__(self, data: bytes, bit_length: int | None = None):
        total = len(data) * 8
        if bit_length is None:
            bit_length = total
        if not 0 <= bit_length <= total:
            raise OutOfRangeError(f'Bit length {bit_length} outside buffer of {total} bits')
        self._value = int.from_bytes(data, 'little')
        self._length = bit_length
        self._pos = 0

    @property
    def offset(self) -> int:
        return self._pos

    @property
    def bit_length(self) -> int:
        return self._length

    def peek_remaining(self) -> int:
        """Number of unread bits."""
        return self._length - self._pos

    def take(self, n: int) -> int:
        """Read the next n bits as an unsigned integer and advance the cursor.

        Raises:
            OutOfRangeError: n is negative, wider than MAX_FIELD_BITS, or more
                than the bits left in the buffer.
        """
        if n < 0 or n > MAX_FIELD_BITS:
            raise OutOfRangeError(f'Cannot read a {n}-bit field (max {MAX_FIELD_BITS})')
        if n > self.peek_remaining():
            raise OutOfRangeError(
                f'Read of {n} bits at offset {self._pos} runs past end '
                f'({self.peek_remaining()} bits left)'
            )
        value = (self._value >> self._pos) & ((1 << n) - 1)
        self._pos += n
        return value

    def take_rest(self) -> tuple[int, int]:
        """Consume every remaining bit. Returns (value, bit_count)."""
        count = self.peek_remaining()
        value = (self._value >> self._pos) & ((1 << count) - 1)
        self._pos = self._length
        return value, count


class BitWriter:
    """Growable bit buffer, appended to LSB-first."""

    def __init__(self):
        self._value = 0
        self._length = 0

    @property
    def bit_length(self) -> int:
        return self._length

    def append(self, value: int, n: int) -> None:
        """Append the low-order n bits of value."""
        if n < 0 or n > MAX_FIELD_BITS:
            raise OutOfRangeError(f'Cannot write a {n}-bit field (max {MAX_FIELD_BITS})')
        self._append_bits(value, n)

    def append_bits(self, value: int, n: int) -> None:
        """Append a run of any length, e.g. an opaque tail captured by take_rest()."""
        if n < 0:
            raise OutOfRangeError(f'Cannot write {n} bits')
        self._append_bits(value, n)

    def _append_bits(self, value: int, n: int) -> None:
        if n == 0:
            return
        self._value |= (value & ((1 << n) - 1)) << self._length
        self._length += n

    def finish(self) -> tuple[bytes, int]:
        """Return (bytes, pad_bits): the buffer zero-padded to a whole byte."""
        size = (self._length + 7) // 8
        pad_bits = size * 8 - self._length
        return self._value.to_bytes(size, 'little'), pad_bits
