from __future__ import annotations

import pytest

from bitstream import BitReader, BitWriter
from errors import OutOfRangeError


@pytest.mark.parametrize('n', range(1, 33))
def test_append_then_take_returns_value(n: int) -> None:
    values = [0, 1, (1 << n) - 1, (0x5A5A5A5A & ((1 << n) - 1))]
    writer = BitWriter()
    writer.append(0b101, 3)  # misalign on purpose
    for v in values:
        writer.append(v, n)
    data, _ = writer.finish()

    reader = BitReader(data)
    assert reader.take(3) == 0b101
    assert [reader.take(n) for _ in values] == values


def test_bits_are_read_lsb_first() -> None:
    reader = BitReader(b'\xb4')  # 1011 0100
    assert reader.take(2) == 0
    assert reader.take(3) == 0b101
    assert reader.take(3) == 0b101
    assert reader.peek_remaining() == 0


def test_multi_byte_field_is_little_endian() -> None:
    reader = BitReader(b'\x34\x12')
    assert reader.take(16) == 0x1234


def test_take_past_end_fails_and_keeps_cursor() -> None:
    reader = BitReader(b'\xff')
    reader.take(5)
    with pytest.raises(OutOfRangeError):
        reader.take(4)
    assert reader.offset == 5
    assert reader.take(3) == 0b111


def test_take_wider_than_native_width_fails() -> None:
    reader = BitReader(bytes(16))
    with pytest.raises(OutOfRangeError):
        reader.take(65)
    assert reader.take(64) == 0


def test_take_zero_bits() -> None:
    reader = BitReader(b'')
    assert reader.take(0) == 0
    assert reader.peek_remaining() == 0


def test_bit_length_limits_reader() -> None:
    reader = BitReader(b'\xff\xff', bit_length=10)
    assert reader.peek_remaining() == 10
    with pytest.raises(OutOfRangeError):
        reader.take(11)
    with pytest.raises(OutOfRangeError):
        BitReader(b'\x00', bit_length=9)


def test_take_rest() -> None:
    reader = BitReader(b'\x0f\x01')
    reader.take(4)
    assert reader.take_rest() == (0x10, 12)
    assert reader.peek_remaining() == 0


def test_finish_pads_to_byte_and_reports_padding() -> None:
    writer = BitWriter()
    writer.append(0b101, 3)
    assert writer.finish() == (b'\x05', 5)

    writer.append(0x1F, 5)
    assert writer.finish() == (b'\xfd', 0)


def test_empty_writer() -> None:
    assert BitWriter().finish() == (b'', 0)


def test_append_keeps_only_low_bits() -> None:
    writer = BitWriter()
    writer.append(0xFF, 4)
    writer.append(0, 4)
    assert writer.finish() == (b'\x0f', 0)


def test_append_zero_width_is_a_no_op() -> None:
    writer = BitWriter()
    writer.append(123, 0)
    assert writer.bit_length == 0


@pytest.mark.parametrize('n', [-1, 65])
def test_append_rejects_bad_width(n: int) -> None:
    with pytest.raises(OutOfRangeError):
        BitWriter().append(1, n)


def test_append_bits_handles_long_runs() -> None:
    writer = BitWriter()
    writer.append_bits((1 << 100) | 1, 101)
    data, pad = writer.finish()
    assert pad == 3
    assert BitReader(data).take_rest() == ((1 << 100) | 1, 104)


def test_identical_appends_give_identical_bytes() -> None:
    def build() -> bytes:
        w = BitWriter()
        for i in range(1, 20):
            w.append(i * 37, i)
        return w.finish()[0]

    assert build() == build()
