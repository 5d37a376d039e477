"""
BL3 Save Editor - Item & Character Editor
===========================================
Edit inventory items, currencies, SDU upgrades, ammo, unlocks and the
character level in a BL3 save, keys and bank SDUs in a profile, or
import/export item serials as BL3(...) codes.

Usage:
    python edit_item.py <save_file> --list
    python edit_item.py <save_file> --item 3 --level 72 [--upgrade]
    python edit_item.py <save_file> --item 3 --add-part 17 --remove-part 4
    python edit_item.py <save_file> --item 3 --add-anointment 52
    python edit_item.py <save_file> --item 3 --export [--seed0]
    python edit_item.py <save_file> --import "BL3(...)"
    python edit_item.py <save_file> --money 5000000 --eridium 10000 --char-level 72
    python edit_item.py <save_file> --sdu backpack=13 --ammo pistol=1200 --unlock artifact_slot
    python edit_item.py <profile_file> --keys golden_keys=255 --sdu bank=23
    python edit_item.py --decode "BL3(...)"

Every edit re-encodes the item with a fresh checksum. Before the save is
written, a timestamped backup of the original file is created next to it
(unless --output writes the result somewhere else).
"""

import sys
import os
import shutil
import argparse
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import (
    CURRENCIES, PROFILE_CURRENCIES, SAVE_SDU_SLOTS, PROFILE_SDU_SLOTS, AMMO_POOLS, CHALLENGES,
    DEFAULT_SERIAL_DB_FILE, DEFAULT_BALANCE_MAP_FILE, KIND_SAVE, PLATFORMS, MAX_CHARACTER_LEVEL,
)
from errors import SaveEditError, OutOfRangeError
from gvas_file import read_save_data, write_save_data
from item_serial import (
    decode_serial, encode_serial, from_text, to_text, add_part, remove_part,
    upgrade_serial,
)
from read_save import format_item
from save_views import (
    InventoryEntry, ItemFlags, list_items, set_item, add_item, set_currency, currency_amount,
    character_level, set_character_level, sdu_levels, set_sdu_level, ammo_amounts, set_ammo,
    set_challenge, profile_currency_amount, set_profile_currency, profile_sdu_levels,
    set_profile_sdu_level,
)
from serial_db import InventorySerialDb
from utils import load_save, write_save


# ============================================================================
# EDITING
# ============================================================================

def edit_item(character, db: InventorySerialDb, index: int, args) -> list[str]:
    """Apply the item edits from the command line. Returns a change log."""
    entries = list_items(character, db)
    if not 0 <= index < len(entries):
        raise OutOfRangeError(f'Item index {index} out of range ({len(entries)} items)')
    entry = entries[index]
    if entry.item is None:
        raise entry.error

    item = entry.item
    changes = []

    if args.upgrade and item.data_version != db.max_version:
        old = item.data_version
        upgrade_serial(item, db)
        changes.append(f'Data version: {old} -> {item.data_version}')
    if args.level is not None:
        changes.append(f'Level: {item.level} -> {args.level}')
        item.level = args.level
    for part in args.remove_part:
        remove_part(item, part)
        changes.append(f'Removed part #{part}')
    for part in args.add_part:
        add_part(item, part)
        changes.append(f'Added part #{part}')
    for part in args.remove_anointment:
        remove_part(item, part, generic=True)
        changes.append(f'Removed anointment #{part}')
    for part in args.add_anointment:
        add_part(item, part, generic=True)
        changes.append(f'Added anointment #{part}')

    if changes:
        set_item(character, index, item, db, seed=0 if args.seed0 else None)
    return changes


def edit_character(character, args) -> list[str]:
    changes = []
    if args.char_level is not None:
        changes.append(f'Character level: {character_level(character)} -> {args.char_level}')
        set_character_level(character, args.char_level)
    for key, amount in (('money', args.money), ('eridium', args.eridium)):
        if amount is not None:
            old = currency_amount(character, CURRENCIES[key])
            set_currency(character, CURRENCIES[key], amount)
            changes.append(f'{key.capitalize()}: {old:,} -> {amount:,}')
    for name, level in args.sdu:
        old = sdu_levels(character).get(name)
        set_sdu_level(character, name, level)
        changes.append(f'SDU {name}: {old} -> {level}')
    for name, amount in args.ammo:
        old = ammo_amounts(character).get(name)
        set_ammo(character, name, amount)
        changes.append(f'Ammo {name}: {old} -> {amount}')
    for name in args.unlock:
        set_challenge(character, name)
        changes.append(f'Unlocked {name}')
    return changes


def edit_profile(profile, args) -> list[str]:
    """Apply key and bank SDU edits to a profile. Returns a change log."""
    changes = []
    for name, amount in args.keys:
        if name not in PROFILE_CURRENCIES:
            raise OutOfRangeError(
                f'Unknown key type "{name}" (known: {", ".join(PROFILE_CURRENCIES)})'
            )
        path = PROFILE_CURRENCIES[name]
        old = profile_currency_amount(profile, path)
        set_profile_currency(profile, path, amount)
        changes.append(f'{name}: {old:,} -> {amount:,}')
    for name, level in args.sdu:
        old = profile_sdu_levels(profile).get(name)
        set_profile_sdu_level(profile, name, level)
        changes.append(f'SDU {name}: {old} -> {level}')
    return changes


def edit_save(character, db: InventorySerialDb, args) -> list[str]:
    """Run the save-file actions: listing, item edits/export, import, character edits."""
    if args.list:
        print(f'\n{"=" * 70}')
        print(f'  Inventory ({len(character.inventory_items)} items)')
        print(f'{"=" * 70}')
        for entry in list_items(character, db):
            for line in format_item(entry, db):
                print(line)
        print()

    changes = []
    if args.item is not None:
        changes += edit_item(character, db, args.item, args)
        if args.export:
            serial = bytes(character.inventory_items[args.item].item_serial_number)
            if args.seed0:
                serial = encode_serial(decode_serial(serial, db), db, seed=0)
            print(to_text(serial))

    if args.import_text:
        serial = from_text(args.import_text)
        decode_serial(serial, db)
        index = add_item(character, serial)
        changes.append(f'Imported item as inventory index {index}')

    return changes + edit_character(character, args)


def _save_only_edits(args) -> bool:
    return bool(
        args.list or args.item is not None or args.import_text or args.char_level is not None
        or args.money is not None or args.eridium is not None or args.ammo or args.unlock
    )


def backup_file(save_file: str) -> str:
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    backup_path = f'{save_file}.backup_{timestamp}'
    shutil.copy2(save_file, backup_path)
    return backup_path


# ============================================================================
# CLI
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Edit BL3 inventory items, currencies and level'
    )
    parser.add_argument('save_file', nargs='?', help='Path to a .sav file or BL3S container')
    parser.add_argument('--platform', choices=PLATFORMS,
                        help='Obfuscation platform (default: detect)')
    parser.add_argument('--db', default=DEFAULT_SERIAL_DB_FILE,
                        help='Inventory serial database JSON (default: %(default)s)')
    parser.add_argument('--balance-map', default=DEFAULT_BALANCE_MAP_FILE,
                        help='Balance -> part category JSON (default: %(default)s)')
    parser.add_argument('--output', '-o', help='Write the result here instead of in place')
    parser.add_argument('--yes', '-y', action='store_true', help='Do not ask for confirmation')

    view = parser.add_argument_group('viewing')
    view.add_argument('--list', action='store_true', help='List inventory items')
    view.add_argument('--decode', metavar='TEXT', help='Decode a BL3(...) code and exit')

    item = parser.add_argument_group('item edits (need --item)')
    item.add_argument('--item', type=int, metavar='N', help='Inventory index to edit')
    item.add_argument('--level', type=int, help='New item level')
    item.add_argument('--upgrade', action='store_true',
                      help='Move the item to the newest data version')
    item.add_argument('--add-part', type=int, action='append', default=[], metavar='IDX')
    item.add_argument('--remove-part', type=int, action='append', default=[], metavar='IDX')
    item.add_argument('--add-anointment', type=int, action='append', default=[], metavar='IDX')
    item.add_argument('--remove-anointment', type=int, action='append', default=[],
                      metavar='IDX')
    item.add_argument('--export', action='store_true', help='Print the item as a BL3(...) code')
    item.add_argument('--seed0', action='store_true',
                      help='Encode with seed 0 (unobfuscated) on edit/export')

    other = parser.add_argument_group('other edits')
    other.add_argument('--import', dest='import_text', metavar='TEXT',
                       help='Add a BL3(...) item code to the inventory')
    other.add_argument('--char-level', type=int, help=f'Character level (1-{MAX_CHARACTER_LEVEL})')
    other.add_argument('--money', type=int, help='Set money')
    other.add_argument('--eridium', type=int, help='Set eridium')
    other.add_argument('--sdu', type=_assignment, action='append', default=[],
                       metavar='SLOT=LEVEL',
                       help=f'SDU level; save slots: {", ".join(SAVE_SDU_SLOTS)}; '
                            f'profile slots: {", ".join(PROFILE_SDU_SLOTS)}')
    other.add_argument('--ammo', type=_assignment, action='append', default=[],
                       metavar='POOL=AMOUNT', help=f'Ammo ({", ".join(AMMO_POOLS)})')
    other.add_argument('--unlock', action='append', default=[], choices=list(CHALLENGES),
                       metavar='NAME', help=f'Complete a challenge ({", ".join(CHALLENGES)})')

    profile = parser.add_argument_group('profile edits')
    profile.add_argument('--keys', type=_assignment, action='append', default=[],
                         metavar='TYPE=AMOUNT',
                         help=f'Key count ({", ".join(PROFILE_CURRENCIES)})')
    return parser


def _assignment(text: str) -> tuple[str, int]:
    """argparse type for NAME=NUMBER."""
    name, sep, value = text.partition('=')
    if not sep or not name:
        raise argparse.ArgumentTypeError(f'expected NAME=NUMBER, got "{text}"')
    try:
        return name.strip().lower(), int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f'"{value}" is not a number') from None


def main():
    parser = build_parser()
    args = parser.parse_args()

    if not os.path.exists(args.db):
        print(f'Error: Serial database not found: {args.db}')
        sys.exit(1)
    balance_map = args.balance_map if os.path.exists(args.balance_map) else None
    db = InventorySerialDb.load(args.db, balance_map)

    try:
        if args.decode:
            serial = from_text(args.decode)
            entry = InventoryEntry(0, serial, ItemFlags.NONE, 0, decode_serial(serial, db))
            for line in format_item(entry, db):
                print(line)
            return

        if not args.save_file:
            parser.error('save_file is required unless --decode is used')
        if not os.path.exists(args.save_file):
            print(f'Error: Save file not found: {args.save_file}')
            sys.exit(1)

        f = read_save_data(load_save(args.save_file), args.platform)
        if f.kind == KIND_SAVE:
            if args.keys:
                print('Error: Keys are stored in the profile, not in save files.')
                sys.exit(1)
            changes = edit_save(f.message.message, db, args)
        else:
            if _save_only_edits(args):
                print('Error: Items and character stats can only be edited in save files, '
                      'not profiles.')
                sys.exit(1)
            changes = edit_profile(f.message.message, args)

    except SaveEditError as e:
        print(f'Error: {e}')
        sys.exit(1)

    if not changes:
        return

    print(f'\n  Changes:')
    for change in changes:
        print(f'    {change}')
    if not args.yes:
        confirm = input('  Confirm? (y/n): ').strip().lower()
        if confirm != 'y':
            print('  Cancelled.')
            return

    output = args.output or args.save_file
    if output == args.save_file:
        print(f'  Backup created: {backup_file(args.save_file)}')
    write_save(output, write_save_data(f))
    print(f'  Saved: {output}')


if __name__ == '__main__':
    main()
