from __future__ import annotations

import pytest

from config import CURRENCIES, PROFILE_CURRENCIES
from name_hash import hash_string, name_hash, object_path

CATEGORY_DIR = '/Game/Gear/_Shared/_Design/InventoryCategories'


@pytest.mark.parametrize(
    ('path', 'expected'),
    [
        (f'{CATEGORY_DIR}/InventoryCategory_Money.InventoryCategory_Money', 618814354),
        (f'{CATEGORY_DIR}/InventoryCategory_Eridium.InventoryCategory_Eridium', 3679636065),
        (f'{CATEGORY_DIR}/InventoryCategory_GoldenKey.InventoryCategory_GoldenKey', 4031389239),
        (f'{CATEGORY_DIR}/InventoryCategory_DiamondKey.InventoryCategory_DiamondKey', 2268671775),
        (f'{CATEGORY_DIR}/InventoryCategory_VaultCard1Key.InventoryCategory_VaultCard1Key', 3707609395),
        (
            '/Game/GameData/Challenges/Account/Challenge_VaultReward_Mayhem'
            '.Challenge_VaultReward_Mayhem_C',
            752563992,
        ),
    ],
)
def test_known_object_path_hashes(path: str, expected: int) -> None:
    assert name_hash(path) == expected


def test_package_path_expands_to_object_path() -> None:
    assert object_path(f'{CATEGORY_DIR}/InventoryCategory_Money') == (
        f'{CATEGORY_DIR}/InventoryCategory_Money.InventoryCategory_Money'
    )
    assert name_hash(CURRENCIES['money']) == 618814354
    assert name_hash(CURRENCIES['eridium']) == 3679636065


def test_object_path_leaves_full_paths_and_plain_names_alone() -> None:
    full = '/Game/Foo/Bar.Bar_C'
    assert object_path(full) == full
    assert object_path('Bar') == 'Bar'
    assert object_path('/Game/Foo/') == '/Game/Foo/'


def test_empty_string_hashes_to_zero() -> None:
    assert hash_string('') == 0


def test_ascii_case_is_folded() -> None:
    assert hash_string('a') == hash_string('A') == 1572526068
    assert name_hash(CURRENCIES['money'].lower()) == name_hash(CURRENCIES['money'])


def test_hash_is_32_bit() -> None:
    for path in [*CURRENCIES.values(), *PROFILE_CURRENCIES.values()]:
        assert 0 <= name_hash(path) < 2**32
