"""
BL3 Save Editor - Inventory Serial Database
=============================================
Read-only lookup tables consulted by the item serial codec:

    - per category: (version -> bit width) table and the 1-based asset list
    - balance ident -> part category ("part inventory key")

Database JSON layout (same as the community serial number database):

    {
        "InventoryBalanceData": {
            "versions": [{"version": 1, "bits": 9}, {"version": 6, "bits": 10}],
            "assets": ["/Game/Gear/.../Balance_PS_JAK_Unique.Balance_PS_JAK_Unique", ...]
        },
        ...
    }

Balance map JSON layout: {"<balance ident>": "<part category>", ...}

The tables are loaded once and never mutated, so one instance can be
shared between threads.

Usage:
    db = InventorySerialDb.load('inventory_serial_db.json', 'balance_to_inv_key.json')
    db.bits_for('InventoryBalanceData', db.max_version)
"""

import json
import os

from errors import UnsupportedVersionError


def _load_json(filepath: str):
    if not os.path.exists(filepath):
        raise FileNotFoundError(f'Lookup data file not found: {filepath}')
    with open(filepath, 'r', encoding='utf-8-sig') as f:
        return json.load(f)


def _balance_key(ident: str) -> str:
    return ident.split('#', 1)[0].strip().lower()


class InventorySerialDb:
    """Immutable view over the serial database and balance map."""

    def __init__(self, categories: dict, balance_map: dict | None = None):
        self._versions = {}
        self._assets = {}
        for name, entry in categories.items():
            versions = sorted(
                (int(v['version']), int(v['bits'])) for v in entry.get('versions', [])
            )
            self._versions[name] = tuple(versions)
            self._assets[name] = tuple(entry.get('assets', []))

        self._balance_map = {
            _balance_key(ident): category
            for ident, category in (balance_map or {}).items()
        }

        all_versions = [v for versions in self._versions.values() for v, _ in versions]
        self._max_version = max(all_versions) if all_versions else 0

    @classmethod
    def load(cls, db_path: str, balance_map_path: str | None = None) -> 'InventorySerialDb':
        """Load the database (and optionally the balance map) from JSON files."""
        categories = _load_json(db_path)
        balance_map = _load_json(balance_map_path) if balance_map_path else None
        return cls(categories, balance_map)

    @property
    def max_version(self) -> int:
        """Newest data version any category knows about."""
        return self._max_version

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(self._versions)

    def has_category(self, category: str) -> bool:
        return bool(self._versions.get(category))

    def bits_for(self, category: str, version: int) -> int:
        """Bit width of a category's index field at a data version.

        Starts from the first entry's width and adopts every entry whose
        version is <= the requested one, stopping at the first newer entry.
        """
        versions = self._versions.get(category)
        if not versions:
            raise UnsupportedVersionError(f'No bit widths known for category "{category}"')
        bits = versions[0][1]
        for entry_version, entry_bits in versions:
            if entry_version > version:
                break
            bits = entry_bits
        return bits

    def ident_for(self, category: str, index: int) -> str | None:
        """Asset ident for a 1-based index, or None (0 means "no asset")."""
        assets = self._assets.get(category, ())
        if 1 <= index <= len(assets):
            return assets[index - 1]
        return None

    def index_of(self, category: str, ident: str) -> int | None:
        """1-based index of an asset, matched case-insensitively.

        Accepts either the full ident or its short name (the part after the
        last '.' or '/').
        """
        wanted = ident.lower()
        for i, asset in enumerate(self._assets.get(category, ()), 1):
            lowered = asset.lower()
            if lowered == wanted or short_name(lowered) == wanted:
                return i
        return None

    def part_category(self, balance_ident: str | None) -> str | None:
        """Part category for a balance, if the map knows it."""
        if not balance_ident:
            return None
        return self._balance_map.get(_balance_key(balance_ident))


def short_name(ident: str) -> str:
    """'/Game/Gear/.../Part_Foo.Part_Foo' -> 'Part_Foo'."""
    return ident.rsplit('.', 1)[-1].rsplit('/', 1)[-1]
