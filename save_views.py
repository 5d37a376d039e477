"""
BL3 Save Editor - Save Views
==============================
Domain-level access to decoded Character and Profile messages: inventory
items (through the item serial codec), currencies and keys (stored under
name hashes of their category paths), SDU upgrades, ammo pools, unlock
challenges and the experience level.

Object paths (SDU slots, ammo pools, challenges) are compared through their
name hash, so a path stored in a different letter case still matches.

Usage:
    for entry in list_items(character, db):
        print(entry.index, entry.item.level if entry.item else entry.error)
    set_currency(character, CURRENCIES['money'], 1000000)
    set_sdu_level(character, 'backpack', 13)
    set_challenge(character, 'artifact_slot')
    set_profile_currency(profile, PROFILE_CURRENCIES['golden_keys'], 255)
    set_character_level(character, 72)
"""

import enum
from bisect import bisect_right
from dataclasses import dataclass

from config import (
    REQUIRED_XP, MAX_CHARACTER_LEVEL, SAVE_SDU_SLOTS, PROFILE_SDU_SLOTS, AMMO_POOLS, CHALLENGES,
)
from errors import SaveEditError, OutOfRangeError
from item_serial import ItemSerial, decode_serial, encode_serial
from name_hash import name_hash
from schema import InventoryCategorySaveData, OakSDUSaveGameData, parse_message
from serial_db import InventorySerialDb

_INT32_MAX = (1 << 31) - 1


class ItemFlags(enum.IntFlag):
    """Bits of OakInventoryItemSaveGameData.flags."""
    NONE = 0
    SEEN = 1
    FAVORITE = 2
    JUNK = 4


def describe_flags(flags: int) -> str:
    """'SEEN|FAVORITE' style label, '-' when no flag is set."""
    names = [f.name for f in (ItemFlags.SEEN, ItemFlags.FAVORITE, ItemFlags.JUNK) if flags & f]
    return '|'.join(names) or '-'


@dataclass
class InventoryEntry:
    """One inventory slot. `item` is None when the serial failed to decode."""
    index: int
    serial: bytes
    flags: ItemFlags
    pickup_order_index: int
    item: ItemSerial | None = None
    error: SaveEditError | None = None


# ============================================================================
# INVENTORY ITEMS
# ============================================================================

def _decode_entry(entry: InventoryEntry, db: InventorySerialDb) -> InventoryEntry:
    try:
        entry.item = decode_serial(entry.serial, db)
    except SaveEditError as e:
        entry.error = e
    return entry


def list_items(character, db: InventorySerialDb) -> list[InventoryEntry]:
    """Decode every inventory serial. A bad item is reported, not raised."""
    return [
        _decode_entry(InventoryEntry(
            index=i,
            serial=bytes(saved.item_serial_number),
            flags=ItemFlags(saved.flags & (ItemFlags.SEEN | ItemFlags.FAVORITE | ItemFlags.JUNK)),
            pickup_order_index=saved.pickup_order_index,
        ), db)
        for i, saved in enumerate(character.inventory_items)
    ]


def _slot(character, index: int):
    if not 0 <= index < len(character.inventory_items):
        raise OutOfRangeError(
            f'Inventory index {index} out of range ({len(character.inventory_items)} items)'
        )
    return character.inventory_items[index]


def set_item_serial(character, index: int, serial: bytes) -> None:
    _slot(character, index).item_serial_number = bytes(serial)


def set_item(character, index: int, item: ItemSerial, db: InventorySerialDb,
             seed: int | None = None) -> bytes:
    """Encode an item into an existing inventory slot. Returns the new serial."""
    serial = encode_serial(item, db, seed)
    set_item_serial(character, index, serial)
    return serial


def set_item_flags(character, index: int, flags: ItemFlags) -> None:
    slot = _slot(character, index)
    # bits outside the known flags are kept
    known = int(ItemFlags.SEEN | ItemFlags.FAVORITE | ItemFlags.JUNK)
    slot.flags = (slot.flags & ~known) | int(flags)


def add_item(character, serial: bytes, flags: ItemFlags = ItemFlags.SEEN) -> int:
    """Append a serial to the inventory. Returns its index.

    The new item gets the next pickup order index so the game lists it last.
    """
    next_order = max((s.pickup_order_index for s in character.inventory_items), default=0) + 1
    saved = character.inventory_items.add()
    saved.item_serial_number = bytes(serial)
    saved.flags = int(flags)
    saved.pickup_order_index = next_order
    return len(character.inventory_items) - 1


# ============================================================================
# CURRENCIES
# ============================================================================

def _check_range(value: int, limit: int, what: str) -> None:
    if not 0 <= value <= limit:
        raise OutOfRangeError(f'{what} {value} out of range (0..{limit})')


def _lookup(table: dict, name: str, what: str):
    try:
        return table[name]
    except KeyError:
        raise OutOfRangeError(
            f'Unknown {what} "{name}" (known: {", ".join(table)})'
        ) from None


def _by_hash(entries, wanted: int):
    for entry in entries:
        if entry.base_category_definition_hash == wanted:
            return entry
    return None


def _by_path(entries, attr: str, path: str):
    """First entry whose path field names the same object as `path`, case-insensitively."""
    wanted = name_hash(path)
    for entry in entries:
        if name_hash(getattr(entry, attr)) == wanted:
            return entry
    return None


def currency_amount(character, path: str) -> int:
    """Quantity stored for a currency category path (0 if absent)."""
    entry = _by_hash(character.inventory_category_list, name_hash(path))
    return entry.quantity if entry is not None else 0


def set_currency(character, path: str, amount: int) -> None:
    """Set a currency quantity, adding the category entry if needed."""
    _check_range(amount, _INT32_MAX, 'Currency amount')
    entry = _by_hash(character.inventory_category_list, name_hash(path))
    if entry is None:
        entry = character.inventory_category_list.add()
        entry.base_category_definition_hash = name_hash(path)
    entry.quantity = amount


# ============================================================================
# CHARACTER UPGRADES
# ============================================================================

def sdu_levels(character) -> dict[str, int]:
    """Level of each SDU upgrade, 0 for slots the save has no entry for."""
    levels = {}
    for name, (path, _) in SAVE_SDU_SLOTS.items():
        entry = _by_path(character.sdu_list, 'sdu_data_path', path)
        levels[name] = entry.sdu_level if entry is not None else 0
    return levels


def set_sdu_level(character, name: str, level: int) -> None:
    path, limit = _lookup(SAVE_SDU_SLOTS, name, 'SDU slot')
    _check_range(level, limit, f'{name} SDU level')
    entry = _by_path(character.sdu_list, 'sdu_data_path', path)
    if entry is None:
        entry = character.sdu_list.add(sdu_data_path=path)
    entry.sdu_level = level


def ammo_amounts(character) -> dict[str, int]:
    amounts = {}
    for name, (path, _) in AMMO_POOLS.items():
        entry = _by_path(character.resource_pools, 'resource_path', path)
        amounts[name] = int(entry.amount) if entry is not None else 0
    return amounts


def set_ammo(character, name: str, amount: int) -> None:
    """Set an ammo pool, capped at what the largest SDU allows."""
    path, limit = _lookup(AMMO_POOLS, name, 'ammo pool')
    _check_range(amount, limit, f'{name} ammo')
    entry = _by_path(character.resource_pools, 'resource_path', path)
    if entry is None:
        entry = character.resource_pools.add(resource_path=path)
    entry.amount = float(amount)


def challenge_status(character) -> dict[str, bool]:
    """Whether each feature-unlocking challenge is completed."""
    status = {}
    for name, path in CHALLENGES.items():
        entry = _by_path(character.challenge_data, 'challenge_class_path', path)
        status[name] = entry is not None and entry.currently_completed
    return status


def set_challenge(character, name: str, completed: bool = True) -> None:
    path = _lookup(CHALLENGES, name, 'challenge')
    entry = _by_path(character.challenge_data, 'challenge_class_path', path)
    if entry is None:
        entry = character.challenge_data.add(challenge_class_path=path, is_active=True)
    entry.currently_completed = completed
    entry.completed_count = 1 if completed else 0


# ============================================================================
# PROFILE
# ============================================================================
# The profile stores its category and SDU lists as raw entries (see schema),
# so each entry is parsed here and written back only when it changes.

def _profile_entry(entries, message_type, match):
    """(index, message) of the first raw entry `match` accepts, or (None, None)."""
    for i, raw in enumerate(entries):
        message = parse_message(raw, message_type)
        if match(message):
            return i, message
    return None, None


def _store(entries, index: int | None, message) -> None:
    raw = message.SerializeToString()
    if index is None:
        entries.append(raw)
    else:
        entries[index] = raw


def _key_entry(profile, path: str):
    wanted = name_hash(path)
    return _profile_entry(profile.bank_inventory_category_list, InventoryCategorySaveData,
                          lambda e: e.base_category_definition_hash == wanted)


def profile_currency_amount(profile, path: str) -> int:
    """Key count stored in the profile bank (0 if absent)."""
    _, entry = _key_entry(profile, path)
    return entry.quantity if entry is not None else 0


def set_profile_currency(profile, path: str, amount: int) -> None:
    _check_range(amount, _INT32_MAX, 'Key amount')
    index, entry = _key_entry(profile, path)
    if entry is None:
        entry = InventoryCategorySaveData(base_category_definition_hash=name_hash(path))
    entry.quantity = amount
    _store(profile.bank_inventory_category_list, index, entry)


def _profile_sdu_entry(profile, path: str):
    wanted = name_hash(path)
    return _profile_entry(profile.profile_sdu_list, OakSDUSaveGameData,
                          lambda e: name_hash(e.sdu_data_path) == wanted)


def profile_sdu_levels(profile) -> dict[str, int]:
    levels = {}
    for name, (path, _) in PROFILE_SDU_SLOTS.items():
        _, entry = _profile_sdu_entry(profile, path)
        levels[name] = entry.sdu_level if entry is not None else 0
    return levels


def set_profile_sdu_level(profile, name: str, level: int) -> None:
    path, limit = _lookup(PROFILE_SDU_SLOTS, name, 'profile SDU slot')
    _check_range(level, limit, f'{name} SDU level')
    index, entry = _profile_sdu_entry(profile, path)
    if entry is None:
        entry = OakSDUSaveGameData(sdu_data_path=path)
    entry.sdu_level = level
    _store(profile.profile_sdu_list, index, entry)


def list_bank_items(profile, db: InventorySerialDb) -> list[InventoryEntry]:
    """Decode the bank's item serials, reporting bad ones like list_items()."""
    return [
        _decode_entry(InventoryEntry(i, bytes(serial), ItemFlags.NONE, 0), db)
        for i, serial in enumerate(profile.bank_inventory_list)
    ]


# ============================================================================
# EXPERIENCE
# ============================================================================

def experience_to_level(xp: int) -> int:
    """Highest level whose experience requirement is <= xp."""
    return max(1, bisect_right(REQUIRED_XP, xp))


def level_to_experience(level: int) -> int:
    if not 1 <= level <= MAX_CHARACTER_LEVEL:
        raise OutOfRangeError(f'Level {level} out of range (1..{MAX_CHARACTER_LEVEL})')
    return REQUIRED_XP[level - 1]


def character_level(character) -> int:
    return experience_to_level(character.experience_points)


def set_character_level(character, level: int) -> None:
    character.experience_points = level_to_experience(level)
