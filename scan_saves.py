"""
BL3 Save Editor - Batch Save Scanner
======================================
Decodes every save/profile in a directory in parallel and reports, per
file, what it is or why it failed. A broken file never stops the scan.

Usage:
    python scan_saves.py <directory> [--workers N] [--db <json>] [--balance-map <json>]

Examples:
    python scan_saves.py "%USERPROFILE%/Documents/My Games/Borderlands 3/Saved/SaveGames"
    python scan_saves.py saves/ --workers 8
"""

import sys
import os
import argparse
from concurrent.futures import ThreadPoolExecutor

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import DEFAULT_SERIAL_DB_FILE, DEFAULT_BALANCE_MAP_FILE, KIND_SAVE
from errors import SaveEditError
from gvas_file import read_save_data
from save_views import list_items, character_level
from serial_db import InventorySerialDb
from utils import load_save

SAVE_EXTENSIONS = ('.sav', '.bl3s', '.bl3p')


def find_save_files(directory: str) -> list[str]:
    """All save-like files directly inside `directory`, sorted by name."""
    return sorted(
        os.path.join(directory, name) for name in os.listdir(directory)
        if name.lower().endswith(SAVE_EXTENSIONS)
    )


def scan_file(filepath: str, db: InventorySerialDb | None = None) -> dict:
    """Decode one file. Never raises for bad save data.

    Returns dict with keys:
        path: the file path
        ok: True if the file decoded
        error / error_kind: message and exception class name when not ok
        kind, platform: 'save'/'profile' and 'pc'/'ps4' (None for containers
            without obfuscation)
        level, items, bad_items: character stats (saves only; items need db)
    """
    result = {'path': filepath, 'ok': False}
    try:
        f = read_save_data(load_save(filepath))
    except SaveEditError as e:
        result['error'] = str(e)
        result['error_kind'] = type(e).__name__
        return result

    result['ok'] = True
    result['kind'] = f.kind
    result['platform'] = f.platform
    if f.kind == KIND_SAVE:
        character = f.message.message
        result['level'] = character_level(character)
        result['items'] = len(character.inventory_items)
        if db is not None:
            result['bad_items'] = sum(1 for e in list_items(character, db) if e.item is None)
    return result


def scan_directory(directory: str, db: InventorySerialDb | None = None,
                   workers: int | None = None) -> list[dict]:
    """Scan all save files in parallel; results come back in file order."""
    files = find_save_files(directory)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(lambda path: scan_file(path, db), files))


def print_results(results: list[dict]) -> None:
    print('=' * 70)
    print(f'  Scanned {len(results)} file(s)')
    print('=' * 70)
    for r in results:
        name = os.path.basename(r['path'])
        if not r['ok']:
            print(f'  {name:<24s} FAILED  {r["error_kind"]}: {r["error"]}')
            continue
        platform = (r['platform'] or '-').upper()
        line = f'  {name:<24s} {r["kind"]:<8s} {platform:<4s}'
        if r['kind'] == KIND_SAVE:
            line += f' Lv {r["level"]:<3d} {r["items"]:>4d} items'
            if r.get('bad_items'):
                line += f' ({r["bad_items"]} undecodable)'
        print(line)

    failed = sum(1 for r in results if not r['ok'])
    print('-' * 70)
    print(f'  OK: {len(results) - failed}   Failed: {failed}')


def main():
    parser = argparse.ArgumentParser(
        description='Decode every BL3 save/profile in a directory and report problems'
    )
    parser.add_argument('directory', help='Directory containing .sav / .bl3s / .bl3p files')
    parser.add_argument('--workers', '-w', type=int, default=None,
                        help='Worker threads (default: Python\'s default)')
    parser.add_argument('--db', default=DEFAULT_SERIAL_DB_FILE,
                        help='Inventory serial database JSON (default: %(default)s)')
    parser.add_argument('--balance-map', default=DEFAULT_BALANCE_MAP_FILE,
                        help='Balance -> part category JSON (default: %(default)s)')
    args = parser.parse_args()

    if not os.path.isdir(args.directory):
        print(f'Error: Directory not found: {args.directory}')
        sys.exit(1)

    db = None
    if os.path.exists(args.db):
        balance_map = args.balance_map if os.path.exists(args.balance_map) else None
        db = InventorySerialDb.load(args.db, balance_map)
    else:
        print(f'  Warning: Serial database not found: {args.db} (items not checked)')

    results = scan_directory(args.directory, db, args.workers)
    print_results(results)
    if any(not r['ok'] for r in results):
        sys.exit(1)


if __name__ == '__main__':
    main()
