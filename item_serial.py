"""
BL3 Save Editor - Item Serial Codec
=====================================
Decodes and encodes the compact item serials stored in the save's
inventory list, plus their BL3(<base64>) text form.

Serial layout:
    uint8   SerialVersion       (3 or 4)
    int32   Seed                (big-endian)
    bytes   Body                (rotated + XOR-obfuscated unless Seed == 0)

Decrypted body:
    uint16  Checksum            (big-endian, folded CRC32)
    bits    Data                (LSB-first bit fields, see below)

Data fields (widths marked W(...) come from the serial database):
    8   ident                   (128, or 0 for never-obfuscated items)
    7   data_version
    W   balance                 InventoryBalanceData index
    W   inv_data                InventoryData index
    W   manufacturer            ManufacturerData index
    7   level
    -- only when the balance maps to a part category --
    6   part count,             then W(part category) per part
    4   generic part count,     then W(InventoryGenericPartData) per part
    8   additional data count,  then 8 bits per value
    4   num_customs
    8   rerolled                (serial version 4 only)
    -- whatever is left (byte padding or undecoded data) is kept verbatim

All asset references are 1-based indexes into the database tables;
index 0 means "none".

Usage:
    from item_serial import decode_text, encode_serial, to_text
    item = decode_text('BL3(...)', db)
    item.level = 72
    print(to_text(encode_serial(item, db)))
"""

import base64
import binascii
import struct
import zlib
from dataclasses import dataclass, field

from bitstream import BitReader, BitWriter
from config import (
    SUPPORTED_SERIAL_VERSIONS, SERIAL_HEADER_SIZE, SERIAL_CHECKSUM_SIZE,
    SERIAL_IDENTS, DEFAULT_SERIAL_IDENT,
    IDENT_BITS, DATA_VERSION_BITS, LEVEL_BITS, PART_COUNT_BITS, GENERIC_COUNT_BITS,
    ADDITIONAL_COUNT_BITS, ADDITIONAL_VALUE_BITS, NUM_CUSTOMS_BITS, REROLLED_BITS,
    MAX_ITEM_PARTS, MAX_ITEM_ANOINTMENTS,
    BALANCE_CATEGORY, INV_DATA_CATEGORY, MANUFACTURER_CATEGORY, GENERIC_PART_CATEGORY,
    SERIAL_TEXT_PREFIX, SERIAL_TEXT_SUFFIX,
    WEAPON_TYPES, ITEM_TYPES, DEFAULT_ITEM_TYPE,
)
from errors import (
    OutOfRangeError, InvalidChecksumError, UnsupportedVersionError, MalformedTextError,
)
from serial_db import InventorySerialDb, short_name


@dataclass
class ItemSerial:
    """One decoded inventory item.

    part_category is None when the balance has no known part category; the
    part fields are then not decoded and the rest of the data is carried in
    the opaque tail.
    """
    serial_version: int
    seed: int
    data_version: int
    balance: int
    inv_data: int
    manufacturer: int
    level: int
    ident: int = DEFAULT_SERIAL_IDENT
    part_category: str | None = None
    parts: list[int] = field(default_factory=list)
    generic_parts: list[int] = field(default_factory=list)
    additional_data: list[int] = field(default_factory=list)
    num_customs: int = 0
    rerolled: int = 0
    # Bits after the decoded fields, re-emitted as-is while the decoded
    # fields keep their original bit length
    tail_value: int = 0
    tail_bits: int = 0
    field_bits: int | None = None

    @property
    def has_parts(self) -> bool:
        return self.part_category is not None


# ============================================================================
# OBFUSCATION
# ============================================================================

def _xor_stream(data: bytes, seed: int) -> bytes:
    if seed == 0:
        return bytes(data)
    xor = (seed >> 5) & 0xFFFFFFFF
    out = bytearray(data)
    for i in range(len(out)):
        xor = (xor * 0x10A860C1) % 0xFFFFFFFB
        out[i] ^= xor & 0xFF
    return bytes(out)


def _rotation(seed: int, length: int) -> int:
    return (seed & 0x1F) % length if length else 0


def bogodecrypt(data: bytes, seed: int) -> bytes:
    """Reverse the seed-driven XOR + rotation applied to a serial body."""
    data = _xor_stream(data, seed)
    steps = _rotation(seed, len(data))
    split = len(data) - steps
    return data[split:] + data[:split]


def bogoencrypt(data: bytes, seed: int) -> bytes:
    """Apply the seed-driven rotation + XOR to a serial body."""
    steps = _rotation(seed, len(data))
    return _xor_stream(data[steps:] + data[:steps], seed)


def serial_checksum(header: bytes, data: bytes) -> int:
    """Folded CRC32 over header + 0xFFFF placeholder + bit data."""
    crc = zlib.crc32(header + b'\xff\xff' + data)
    return ((crc >> 16) ^ crc) & 0xFFFF


# ============================================================================
# VERSIONED FIELD LAYOUTS
# ============================================================================

def _put(writer: BitWriter, value: int, bits: int, name: str) -> None:
    if not 0 <= value < (1 << bits):
        raise OutOfRangeError(f'{name} value {value} does not fit in {bits} bits')
    writer.append(value, bits)


def _read_parts_v3(reader: BitReader, item: ItemSerial, db: InventorySerialDb) -> None:
    part_bits = db.bits_for(item.part_category, item.data_version)
    item.parts = [reader.take(part_bits) for _ in range(reader.take(PART_COUNT_BITS))]

    generic_bits = db.bits_for(GENERIC_PART_CATEGORY, item.data_version)
    item.generic_parts = [
        reader.take(generic_bits) for _ in range(reader.take(GENERIC_COUNT_BITS))
    ]

    item.additional_data = [
        reader.take(ADDITIONAL_VALUE_BITS) for _ in range(reader.take(ADDITIONAL_COUNT_BITS))
    ]
    item.num_customs = reader.take(NUM_CUSTOMS_BITS)


def _read_parts_v4(reader: BitReader, item: ItemSerial, db: InventorySerialDb) -> None:
    _read_parts_v3(reader, item, db)
    item.rerolled = reader.take(REROLLED_BITS)


def _write_parts_v3(writer: BitWriter, item: ItemSerial, db: InventorySerialDb) -> None:
    if len(item.parts) > MAX_ITEM_PARTS:
        raise OutOfRangeError(f'Item has {len(item.parts)} parts (max {MAX_ITEM_PARTS})')
    if len(item.generic_parts) > MAX_ITEM_ANOINTMENTS:
        raise OutOfRangeError(
            f'Item has {len(item.generic_parts)} generic parts (max {MAX_ITEM_ANOINTMENTS})'
        )

    part_bits = db.bits_for(item.part_category, item.data_version)
    writer.append(len(item.parts), PART_COUNT_BITS)
    for part in item.parts:
        _put(writer, part, part_bits, 'part')

    generic_bits = db.bits_for(GENERIC_PART_CATEGORY, item.data_version)
    writer.append(len(item.generic_parts), GENERIC_COUNT_BITS)
    for part in item.generic_parts:
        _put(writer, part, generic_bits, 'generic part')

    _put(writer, len(item.additional_data), ADDITIONAL_COUNT_BITS, 'additional data count')
    for value in item.additional_data:
        _put(writer, value, ADDITIONAL_VALUE_BITS, 'additional data')
    _put(writer, item.num_customs, NUM_CUSTOMS_BITS, 'num_customs')


def _write_parts_v4(writer: BitWriter, item: ItemSerial, db: InventorySerialDb) -> None:
    _write_parts_v3(writer, item, db)
    _put(writer, item.rerolled, REROLLED_BITS, 'rerolled')


# serial version -> (reader, writer) for the part section
_PART_LAYOUTS = {
    3: (_read_parts_v3, _write_parts_v3),
    4: (_read_parts_v4, _write_parts_v4),
}


def _check_serial_version(version: int) -> None:
    if version not in SUPPORTED_SERIAL_VERSIONS:
        raise UnsupportedVersionError(
            f'Serial version {version} is not supported '
            f'(known: {", ".join(map(str, SUPPORTED_SERIAL_VERSIONS))})'
        )


def _check_data_version(version: int, db: InventorySerialDb) -> None:
    if version > db.max_version:
        raise UnsupportedVersionError(
            f'Item data version {version} is newer than the serial database '
            f'(max {db.max_version})'
        )


def _resolve_part_category(db: InventorySerialDb, balance: int) -> str | None:
    category = db.part_category(db.ident_for(BALANCE_CATEGORY, balance))
    if category is not None and not db.has_category(category):
        return None
    return category


# ============================================================================
# DECODE / ENCODE
# ============================================================================

def decode_serial(data: bytes, db: InventorySerialDb) -> ItemSerial:
    """Decode a binary item serial.

    Raises:
        OutOfRangeError: Serial too short, or a field runs past the data.
        UnsupportedVersionError: Unknown serial version, ident or data version.
        InvalidChecksumError: Stored checksum does not match the data.
    """
    data = bytes(data)
    if len(data) < SERIAL_HEADER_SIZE + SERIAL_CHECKSUM_SIZE:
        raise OutOfRangeError(f'Item serial too short: {len(data)} bytes')

    serial_version, seed = struct.unpack_from('>Bi', data, 0)
    _check_serial_version(serial_version)

    body = bogodecrypt(data[SERIAL_HEADER_SIZE:], seed)
    stored = struct.unpack_from('>H', body, 0)[0]
    bits = body[SERIAL_CHECKSUM_SIZE:]
    computed = serial_checksum(data[:SERIAL_HEADER_SIZE], bits)
    if stored != computed:
        raise InvalidChecksumError(
            f'Item checksum mismatch: stored 0x{stored:04X}, computed 0x{computed:04X}'
        )

    reader = BitReader(bits)
    ident = reader.take(IDENT_BITS)
    if ident not in SERIAL_IDENTS:
        raise UnsupportedVersionError(f'Unknown item ident {ident} (expected 128 or 0)')

    data_version = reader.take(DATA_VERSION_BITS)
    _check_data_version(data_version, db)

    balance = reader.take(db.bits_for(BALANCE_CATEGORY, data_version))
    inv_data = reader.take(db.bits_for(INV_DATA_CATEGORY, data_version))
    manufacturer = reader.take(db.bits_for(MANUFACTURER_CATEGORY, data_version))
    level = reader.take(LEVEL_BITS)

    item = ItemSerial(
        serial_version=serial_version,
        seed=seed,
        data_version=data_version,
        balance=balance,
        inv_data=inv_data,
        manufacturer=manufacturer,
        level=level,
        ident=ident,
        part_category=_resolve_part_category(db, balance),
    )

    if item.part_category is not None:
        read_parts, _ = _PART_LAYOUTS[serial_version]
        read_parts(reader, item, db)

    item.field_bits = reader.offset
    item.tail_value, item.tail_bits = reader.take_rest()
    return item


def _pack_fields(item: ItemSerial, db: InventorySerialDb) -> BitWriter:
    if item.ident not in SERIAL_IDENTS:
        raise UnsupportedVersionError(f'Unknown item ident {item.ident} (expected 128 or 0)')
    _check_data_version(item.data_version, db)

    writer = BitWriter()
    writer.append(item.ident, IDENT_BITS)
    _put(writer, item.data_version, DATA_VERSION_BITS, 'data_version')
    _put(writer, item.balance, db.bits_for(BALANCE_CATEGORY, item.data_version), 'balance')
    _put(writer, item.inv_data, db.bits_for(INV_DATA_CATEGORY, item.data_version), 'inv_data')
    _put(writer, item.manufacturer,
         db.bits_for(MANUFACTURER_CATEGORY, item.data_version), 'manufacturer')
    _put(writer, item.level, LEVEL_BITS, 'level')

    if item.part_category is not None:
        _, write_parts = _PART_LAYOUTS[item.serial_version]
        write_parts(writer, item, db)
    return writer


def encode_serial(item: ItemSerial, db: InventorySerialDb, seed: int | None = None) -> bytes:
    """Encode an item back to its binary serial.

    The checksum is always recomputed. The opaque tail is re-emitted when
    the decoded fields still occupy their original number of bits, or when
    it holds part data that was never decoded. Otherwise the data is
    zero-padded to a whole byte.

    Args:
        item: The item to encode.
        db: Serial database providing field widths.
        seed: Obfuscation seed; defaults to the item's own seed. 0 produces
            an unobfuscated serial.
    """
    _check_serial_version(item.serial_version)
    if seed is None:
        seed = item.seed
    if not -(1 << 31) <= seed < (1 << 31):
        raise OutOfRangeError(f'Seed {seed} does not fit in a signed 32-bit integer')

    writer = _pack_fields(item, db)
    undecoded = item.part_category is None and item.tail_bits >= 8
    if undecoded or writer.bit_length == item.field_bits:
        writer.append_bits(item.tail_value, item.tail_bits)
    bits, _ = writer.finish()

    header = struct.pack('>Bi', item.serial_version, seed)
    checksum = struct.pack('>H', serial_checksum(header, bits))
    return header + bogoencrypt(checksum + bits, seed)


# ============================================================================
# TEXT TRANSPORT
# ============================================================================

def to_text(data: bytes) -> str:
    """Binary serial -> 'BL3(<base64>)'."""
    encoded = base64.b64encode(bytes(data)).decode('ascii')
    return f'{SERIAL_TEXT_PREFIX}{encoded}{SERIAL_TEXT_SUFFIX}'


def from_text(text: str) -> bytes:
    """'BL3(<base64>)' (prefix in any case) or bare base64 -> binary serial.

    Raises:
        MalformedTextError: Not valid base64, or a dangling 'BL3(' wrapper.
    """
    s = text.strip()
    if s[:len(SERIAL_TEXT_PREFIX)].upper() == SERIAL_TEXT_PREFIX:
        if not s.endswith(SERIAL_TEXT_SUFFIX):
            raise MalformedTextError(f'Serial text is missing the closing "{SERIAL_TEXT_SUFFIX}"')
        s = s[len(SERIAL_TEXT_PREFIX):-len(SERIAL_TEXT_SUFFIX)].strip()
    if not s:
        raise MalformedTextError('Serial text is empty')

    s = s.rstrip('=')
    s += '=' * (-len(s) % 4)
    try:
        return base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedTextError(f'Serial text is not valid base64: {e}') from e


def decode_text(text: str, db: InventorySerialDb) -> ItemSerial:
    return decode_serial(from_text(text), db)


def encode_text(item: ItemSerial, db: InventorySerialDb, seed: int | None = None) -> str:
    return to_text(encode_serial(item, db, seed))


# ============================================================================
# ITEM EDITS
# ============================================================================

def _part_list(item: ItemSerial, generic: bool) -> tuple[list[int], int]:
    if item.part_category is None:
        raise UnsupportedVersionError('Item parts could not be decoded, so they cannot be edited')
    if generic:
        return item.generic_parts, MAX_ITEM_ANOINTMENTS
    return item.parts, MAX_ITEM_PARTS


def add_part(item: ItemSerial, index: int, generic: bool = False) -> None:
    """Append a part (or a generic part such as an anointment)."""
    parts, limit = _part_list(item, generic)
    if len(parts) >= limit:
        raise OutOfRangeError(f'Item already has the maximum of {limit} parts')
    parts.append(index)


def remove_part(item: ItemSerial, index: int, generic: bool = False) -> None:
    """Remove the first occurrence of a part index."""
    parts, _ = _part_list(item, generic)
    try:
        parts.remove(index)
    except ValueError:
        raise OutOfRangeError(f'Part {index} is not on this item') from None


def move_part(item: ItemSerial, position: int, new_position: int, generic: bool = False) -> None:
    """Move the part at `position` to `new_position` (list order is preserved otherwise)."""
    parts, _ = _part_list(item, generic)
    if not (0 <= position < len(parts) and 0 <= new_position < len(parts)):
        raise OutOfRangeError(f'Part position out of range (item has {len(parts)} parts)')
    parts.insert(new_position, parts.pop(position))


def set_balance(item: ItemSerial, balance: int, db: InventorySerialDb) -> None:
    """Switch the item's balance; parts are cleared when the part category changes."""
    category = _resolve_part_category(db, balance)
    item.balance = balance
    if category != item.part_category:
        item.part_category = category
        item.parts = []
        item.tail_value, item.tail_bits, item.field_bits = 0, 0, None


def upgrade_serial(item: ItemSerial, db: InventorySerialDb) -> None:
    """Move the item to the database's newest data version.

    Field widths follow the new version; the indexes themselves are kept.
    """
    if item.part_category is None and item.tail_bits >= 8:
        raise UnsupportedVersionError(
            'Item parts could not be decoded, so its data cannot be re-laid out'
        )
    item.data_version = db.max_version


def weapon_type(balance_ident: str | None) -> str | None:
    if not balance_ident:
        return None
    for marker, name in WEAPON_TYPES.items():
        if marker in balance_ident:
            return name
    return None


def resolve_item(item: ItemSerial, db: InventorySerialDb) -> dict:
    """Resolve an item's indexes to idents for display.

    Returns dict with keys:
        balance, inv_data, manufacturer: full idents (None if unknown)
        balance_name: short name of the balance
        item_type: 'Weapon', 'Shield', ...
        weapon_type: 'Pistol', 'SMG', ... or None
        parts, generic_parts: lists of (index, ident) tuples
    """
    balance = db.ident_for(BALANCE_CATEGORY, item.balance)
    parts = []
    if item.part_category is not None:
        parts = [(p, db.ident_for(item.part_category, p)) for p in item.parts]
    generic_parts = [(p, db.ident_for(GENERIC_PART_CATEGORY, p)) for p in item.generic_parts]

    return {
        'balance': balance,
        'balance_name': short_name(balance) if balance else None,
        'inv_data': db.ident_for(INV_DATA_CATEGORY, item.inv_data),
        'manufacturer': db.ident_for(MANUFACTURER_CATEGORY, item.manufacturer),
        'item_type': ITEM_TYPES.get(item.part_category, DEFAULT_ITEM_TYPE),
        'weapon_type': weapon_type(balance),
        'parts': parts,
        'generic_parts': generic_parts,
    }
