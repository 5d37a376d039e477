"""
BL3 Save Editor - Save Analyzer
=================================
Reads a save or profile file (game .sav or BL3S/BL3P container) and reports:
  - File format, kind and platform
  - GVAS header details
  - Character level, experience, SDU upgrades, ammo and unlocks
  - Currencies (money and eridium) or, for profiles, keys and bank SDUs
  - Every inventory (or bank) item, decoded and resolved against the serial database

Usage:
    python read_save.py <save_file> [--platform pc|ps4] [--db <json>] [--balance-map <json>]
"""

import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import (
    CURRENCIES, PROFILE_CURRENCIES, SAVE_SDU_SLOTS, PROFILE_SDU_SLOTS, AMMO_POOLS,
    DEFAULT_SERIAL_DB_FILE, DEFAULT_BALANCE_MAP_FILE, KIND_SAVE, PLATFORMS,
)
from errors import SaveEditError
from gvas_file import GvasFile, read_save_data
from item_serial import resolve_item, to_text
from save_views import (
    list_items, list_bank_items, character_level, currency_amount, describe_flags, sdu_levels,
    ammo_amounts, challenge_status, profile_currency_amount, profile_sdu_levels,
)
from serial_db import InventorySerialDb, short_name
from utils import load_save


def load_serial_db(db_path: str, balance_map_path: str) -> InventorySerialDb | None:
    """Load the lookup tables, or return None (with a warning) if they are missing."""
    if not os.path.exists(db_path):
        print(f'  Warning: Serial database not found: {db_path}')
        print('  Items will be listed without decoding.')
        return None
    if not os.path.exists(balance_map_path):
        print(f'  Warning: Balance map not found: {balance_map_path}')
        print('  Item parts will not be decoded.')
        balance_map_path = None
    return InventorySerialDb.load(db_path, balance_map_path)


def format_item(entry, db: InventorySerialDb) -> list[str]:
    """Return the report lines for one inventory entry."""
    flags = describe_flags(entry.flags)
    if entry.item is None:
        reason = str(entry.error) if entry.error else 'not decoded'
        return [f'  [{entry.index:3d}] <undecoded: {reason}>',
                f'        Serial: {to_text(entry.serial)}']

    item = entry.item
    info = resolve_item(item, db)
    name = info['balance_name'] or f'balance #{item.balance}'
    kind = info['weapon_type'] or info['item_type']
    lines = [
        f'  [{entry.index:3d}] {name:<40s} | {kind:<13s} | Lv {item.level:<3d} | {flags}',
        f'        Manufacturer: {short_name(info["manufacturer"] or "?")}  '
        f'Version: {item.serial_version}/{item.data_version}  Seed: {item.seed}',
    ]
    if item.has_parts:
        parts = ', '.join(short_name(ident or f'#{idx}') for idx, ident in info['parts'])
        lines.append(f'        Parts ({len(item.parts)}): {parts or "(none)"}')
        if info['generic_parts']:
            generics = ', '.join(short_name(ident or f'#{idx}')
                                 for idx, ident in info['generic_parts'])
            lines.append(f'        Generic: {generics}')
    else:
        lines.append('        Parts: (part category unknown, kept as-is)')
    return lines


def print_report(filepath: str, f, db: InventorySerialDb | None) -> None:
    """Print a formatted report of a decoded file."""
    size = os.path.getsize(filepath)

    print('=' * 70)
    print('  BL3 Save File Analysis')
    print('=' * 70)
    print(f'  File:     {filepath}')
    print(f'  Size:     {size:,} bytes')
    print(f'  Kind:     {f.kind}')
    if isinstance(f, GvasFile):
        h = f.header
        print(f'  Format:   GVAS ({f.platform.upper()})')
        print(f'  Engine:   {h.engine_version_major}.{h.engine_version_minor}.'
              f'{h.engine_version_patch}+{h.engine_version_build}')
        print(f'  Build ID: {h.build_id}')
        print(f'  Save Version: {h.save_game_version}')
        print(f'  Package Version: {h.package_version}')
        print(f'  Custom Versions: {len(h.custom_versions)}')
        print(f'  Save Type: {h.save_game_type}')
    else:
        header = f.header
        print(f'  Format:   {header.magic.decode("ascii")} container v{header.version} '
              f'(flags 0x{header.flags:02X}, platform {header.platform or "none"})')
        print(f'  Checksum: 0x{f.stored_checksum:08X}')
    print(f'  Message:  {len(f.message.raw):,} bytes')
    print()

    if f.kind != KIND_SAVE:
        print_profile(f.message.message, db)
        return

    character = f.message.message
    print('-' * 70)
    print('  Character')
    print('-' * 70)
    print(f'  Save Slot:  {character.save_game_id}')
    print(f'  Level:      {character_level(character)}')
    print(f'  Experience: {character.experience_points:,}')
    print()

    print('-' * 70)
    print('  Currencies')
    print('-' * 70)
    for key, path in CURRENCIES.items():
        print(f'  {key:<20s} {currency_amount(character, path):>14,}')
    print()

    print('-' * 70)
    print('  SDU Upgrades / Ammo')
    print('-' * 70)
    for name, level in sdu_levels(character).items():
        print(f'  SDU {name:<16s} {level:>3d} / {SAVE_SDU_SLOTS[name][1]}')
    for name, amount in ammo_amounts(character).items():
        print(f'  Ammo {name:<15s} {amount:>5,} / {AMMO_POOLS[name][1]:,}')
    print()

    print('-' * 70)
    print('  Unlocks')
    print('-' * 70)
    for name, done in challenge_status(character).items():
        print(f'  {name:<24s} {"yes" if done else "no"}')
    print()

    print('-' * 70)
    print(f'  Inventory ({len(character.inventory_items)} items)')
    print('-' * 70)
    print_items([bytes(s.item_serial_number) for s in character.inventory_items],
                list_items(character, db) if db is not None else None, db)
    print()


def print_items(serials: list[bytes], entries, db: InventorySerialDb | None) -> None:
    """Decoded entries when a database is loaded, otherwise the raw BL3(...) codes."""
    if entries is None:
        for i, serial in enumerate(serials):
            print(f'  [{i:3d}] {to_text(serial)}')
        return
    for entry in entries:
        for line in format_item(entry, db):
            print(line)
    bad = sum(1 for e in entries if e.item is None)
    if bad:
        print()
        print(f'  {bad} item(s) could not be decoded.')


def print_profile(profile, db: InventorySerialDb | None) -> None:
    print('-' * 70)
    print('  Keys')
    print('-' * 70)
    for key, path in PROFILE_CURRENCIES.items():
        print(f'  {key:<20s} {profile_currency_amount(profile, path):>14,}')
    print()

    print('-' * 70)
    print('  SDU Upgrades')
    print('-' * 70)
    for name, level in profile_sdu_levels(profile).items():
        print(f'  SDU {name:<16s} {level:>3d} / {PROFILE_SDU_SLOTS[name][1]}')
    print()

    print('-' * 70)
    print(f'  Bank ({len(profile.bank_inventory_list)} items, '
          f'{len(profile.lost_loot_inventory_list)} in Lost Loot)')
    print('-' * 70)
    print_items([bytes(s) for s in profile.bank_inventory_list],
                list_bank_items(profile, db) if db is not None else None, db)
    print()


def main():
    parser = argparse.ArgumentParser(
        description='Analyze a BL3 save or profile file - show header, character and items'
    )
    parser.add_argument('save_file', help='Path to a .sav file or a BL3S/BL3P container')
    parser.add_argument('--platform', choices=PLATFORMS,
                        help='Obfuscation platform (default: detect)')
    parser.add_argument('--db', default=DEFAULT_SERIAL_DB_FILE,
                        help='Inventory serial database JSON (default: %(default)s)')
    parser.add_argument('--balance-map', default=DEFAULT_BALANCE_MAP_FILE,
                        help='Balance -> part category JSON (default: %(default)s)')
    args = parser.parse_args()

    if not os.path.exists(args.save_file):
        print(f'Error: Save file not found: {args.save_file}')
        sys.exit(1)

    try:
        f = read_save_data(load_save(args.save_file), args.platform)
    except SaveEditError as e:
        print(f'Error: {e}')
        sys.exit(1)

    db = load_serial_db(args.db, args.balance_map)
    try:
        print_report(args.save_file, f, db)
    except SaveEditError as e:
        print(f'Error: {e}')
        sys.exit(1)


if __name__ == '__main__':
    main()
