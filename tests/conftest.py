from __future__ import annotations

import struct

import pytest

from config import SAVE_GAME_TYPE
from item_serial import ItemSerial, serial_checksum
from serial_db import InventorySerialDb
from utils import GvasHeader

PISTOL_PARTS = 'BPInvPart_PS_JAK_C'

BALANCES = [
    '/Game/Gear/Weapons/Pistols/Jakobs/_Shared/_Design/Balance/Balance_PS_JAK_01_Common.Balance_PS_JAK_01_Common',
    '/Game/Gear/Shields/_Design/InvBalance/InvBalD_Shield_01_Common.InvBalD_Shield_01_Common',
    '/Game/Gear/Weapons/Pistols/Jakobs/_Shared/_Design/_Unique/Maggie/Balance/Balance_PS_JAK_Maggie.Balance_PS_JAK_Maggie',
    '/Game/Gear/Weapons/SMGs/Hyperion/_Shared/_Design/Balance/Balance_SM_HYP_01_Common.Balance_SM_HYP_01_Common',
]

CATEGORIES = {
    'InventoryBalanceData': {
        'versions': [{'version': 1, 'bits': 6}, {'version': 3, 'bits': 7}],
        'assets': BALANCES,
    },
    'InventoryData': {
        'versions': [{'version': 1, 'bits': 4}],
        'assets': [
            '/Game/Gear/Weapons/Pistols/Jakobs/_Shared/_Design/WT_PS_JAK.WT_PS_JAK',
            '/Game/Gear/Weapons/Pistols/Jakobs/_Shared/_Design/_Unique/Maggie/WT_PS_JAK_Maggie.WT_PS_JAK_Maggie',
        ],
    },
    'ManufacturerData': {
        'versions': [{'version': 1, 'bits': 4}],
        'assets': [
            '/Game/Gear/Manufacturers/_Design/Jakobs.Jakobs',
            '/Game/Gear/Manufacturers/_Design/Hyperion.Hyperion',
        ],
    },
    'InventoryGenericPartData': {
        'versions': [{'version': 1, 'bits': 5}],
        'assets': [f'/Game/Gear/_Shared/_Design/Anointments/GPart_{i}.GPart_{i}' for i in range(1, 21)],
    },
    PISTOL_PARTS: {
        'versions': [{'version': 1, 'bits': 5}, {'version': 2, 'bits': 6}],
        'assets': [f'/Game/Gear/Weapons/Pistols/Jakobs/_Shared/_Design/Parts/Part_PS_JAK_{i}.Part_PS_JAK_{i}'
                   for i in range(1, 41)],
    },
}

BALANCE_MAP = {
    # stored lowercased by the real map
    BALANCES[2].lower(): PISTOL_PARTS,
    BALANCES[0]: PISTOL_PARTS,
}


@pytest.fixture
def serial_db() -> InventorySerialDb:
    return InventorySerialDb(CATEGORIES, BALANCE_MAP)


def make_item(**overrides) -> ItemSerial:
    """A level 42 Maggie-style pistol at data version 3."""
    fields = dict(
        serial_version=4,
        seed=0,
        data_version=3,
        balance=3,
        inv_data=2,
        manufacturer=1,
        level=42,
        part_category=PISTOL_PARTS,
        parts=[1, 4, 7],
        generic_parts=[2],
    )
    fields.update(overrides)
    return ItemSerial(**fields)


def build_serial(data: bytes, serial_version: int = 4) -> bytes:
    """Wrap raw bit data into an unobfuscated (seed 0) serial with a valid checksum."""
    header = struct.pack('>Bi', serial_version, 0)
    return header + struct.pack('>H', serial_checksum(header, data)) + data


def make_header(save_game_type: str = SAVE_GAME_TYPE) -> GvasHeader:
    h = GvasHeader()
    h.save_game_version = 2
    h.package_version = 505
    h.engine_version_major = 4
    h.engine_version_minor = 20
    h.engine_version_patch = 0
    h.engine_version_build = 0
    h.build_id = 'OAK-PATCHWIN641-49'
    h.custom_version_format = 3
    h.custom_versions = [(bytes(range(16)), 7), (bytes(range(16, 32)), 2)]
    h.save_game_type = save_game_type
    return h
