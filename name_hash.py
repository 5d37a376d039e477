"""
BL3 Save Editor - Name Hasher
===============================
Reproduces the engine's object-path hash (UE4 Strihash_DEPRECATED), which
the save stores in place of category paths such as currencies and SDU slots.

Algorithm:
    - ASCII letters are upper-cased (the engine folds case before hashing)
    - each UTF-16 code unit is fed low byte, then high byte
    - h = (h >> 8) ^ TABLE[(h ^ byte) & 0xFF], starting from 0, no final XOR
    - TABLE is the MSB-first CRC-32 table of polynomial 0x04C11DB7

Usage:
    from name_hash import name_hash
    name_hash('/Game/Gear/_Shared/_Design/InventoryCategories/InventoryCategory_Money')
"""

_POLYNOMIAL = 0x04C11DB7


def _build_table() -> tuple[int, ...]:
    table = []
    for n in range(256):
        c = n << 24
        for _ in range(8):
            if c & 0x80000000:
                c = ((c << 1) ^ _POLYNOMIAL) & 0xFFFFFFFF
            else:
                c = (c << 1) & 0xFFFFFFFF
        table.append(c)
    return tuple(table)


_TABLE = _build_table()


def _to_upper(text: str) -> str:
    return ''.join(chr(ord(ch) - 32) if 'a' <= ch <= 'z' else ch for ch in text)


def object_path(path: str) -> str:
    """Expand '/Game/Dir/Foo' to the full object path '/Game/Dir/Foo.Foo'.

    Paths that already name an object (a '.' in the last segment) and names
    that are not package paths are returned unchanged.
    """
    if not path.startswith('/'):
        return path
    last = path.rsplit('/', 1)[-1]
    if not last or '.' in last:
        return path
    return f'{path}.{last}'


def hash_string(text: str) -> int:
    """Hash a string exactly as given (no path expansion)."""
    h = 0
    for byte in _to_upper(text).encode('utf-16-le'):
        h = (h >> 8) ^ _TABLE[(h ^ byte) & 0xFF]
    return h


def name_hash(path: str) -> int:
    """Hash an object path to the 32-bit category ID stored in the save."""
    return hash_string(object_path(path))
