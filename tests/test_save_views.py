from __future__ import annotations

import pytest

from config import (
    CHALLENGES, CURRENCIES, MAX_CHARACTER_LEVEL, PROFILE_CURRENCIES, SAVE_SDU_SLOTS,
)
from conftest import make_item
from errors import CorruptPayloadError, OutOfRangeError
from item_serial import decode_serial, encode_serial
from save_views import (
    ItemFlags,
    add_item,
    ammo_amounts,
    challenge_status,
    character_level,
    currency_amount,
    describe_flags,
    experience_to_level,
    level_to_experience,
    list_bank_items,
    list_items,
    profile_currency_amount,
    profile_sdu_levels,
    sdu_levels,
    set_ammo,
    set_challenge,
    set_character_level,
    set_currency,
    set_profile_currency,
    set_profile_sdu_level,
    set_sdu_level,
    set_item,
    set_item_flags,
    set_item_serial,
)
from name_hash import name_hash
from schema import Character, InventoryCategorySaveData, Profile


@pytest.fixture
def character(serial_db) -> Character:
    c = Character(save_game_id=1, experience_points=0)
    good = c.inventory_items.add()
    good.item_serial_number = encode_serial(make_item(), serial_db, seed=77)
    good.flags = 3
    good.pickup_order_index = 5
    bad = c.inventory_items.add()
    bad.item_serial_number = b'\x04\x01'
    bad.pickup_order_index = 2
    return c


def test_list_items_reports_bad_serials(character, serial_db) -> None:
    entries = list_items(character, serial_db)
    assert len(entries) == 2

    good, bad = entries
    assert good.item is not None
    assert good.item.level == 42
    assert good.item.seed == 77
    assert good.flags == ItemFlags.SEEN | ItemFlags.FAVORITE
    assert good.pickup_order_index == 5
    assert good.error is None

    assert bad.item is None
    assert isinstance(bad.error, OutOfRangeError)
    assert bad.serial == b'\x04\x01'


def test_set_item(character, serial_db) -> None:
    item = list_items(character, serial_db)[0].item
    item.level = 50
    serial = set_item(character, 0, item, serial_db)

    assert bytes(character.inventory_items[0].item_serial_number) == serial
    assert decode_serial(serial, serial_db).level == 50
    assert decode_serial(serial, serial_db).seed == 77


def test_set_item_out_of_range(character, serial_db) -> None:
    with pytest.raises(OutOfRangeError):
        set_item(character, 2, make_item(), serial_db)
    with pytest.raises(OutOfRangeError):
        set_item_serial(character, -1, b'')


def test_set_item_flags_keeps_unknown_bits(character) -> None:
    character.inventory_items[1].flags = 8 | 1
    set_item_flags(character, 1, ItemFlags.JUNK)
    assert character.inventory_items[1].flags == 8 | 4


def test_add_item(character, serial_db) -> None:
    serial = encode_serial(make_item(level=3), serial_db)
    index = add_item(character, serial)

    assert index == 2
    saved = character.inventory_items[index]
    assert bytes(saved.item_serial_number) == serial
    assert saved.flags == int(ItemFlags.SEEN)
    assert saved.pickup_order_index == 6


def test_add_item_to_empty_inventory() -> None:
    c = Character()
    assert add_item(c, b'\x04', ItemFlags.NONE) == 0
    assert c.inventory_items[0].pickup_order_index == 1


def test_currency_lookup_by_hash() -> None:
    c = Character()
    c.inventory_category_list.add(base_category_definition_hash=618814354, quantity=500)
    assert currency_amount(c, CURRENCIES['money']) == 500
    assert currency_amount(c, CURRENCIES['eridium']) == 0


def test_set_currency_adds_entry() -> None:
    c = Character()
    c.inventory_category_list.add(base_category_definition_hash=618814354, quantity=500)
    set_currency(c, CURRENCIES['eridium'], 12000)
    set_currency(c, CURRENCIES['money'], 1)

    entries = {e.base_category_definition_hash: e.quantity for e in c.inventory_category_list}
    assert entries == {618814354: 1, 3679636065: 12000}


@pytest.mark.parametrize('amount', [-1, 1 << 31])
def test_set_currency_range(amount: int) -> None:
    with pytest.raises(OutOfRangeError):
        set_currency(Character(), CURRENCIES['money'], amount)


@pytest.mark.parametrize(
    'xp,level',
    [(0, 1), (357, 1), (358, 2), (1240, 2), (1241, 3), (12787954, 79), (12787955, 80), (99999999, 80)],
)
def test_experience_to_level(xp: int, level: int) -> None:
    assert experience_to_level(xp) == level


def test_negative_experience_is_level_one() -> None:
    assert experience_to_level(-5) == 1


def test_set_character_level() -> None:
    c = Character(experience_points=100)
    set_character_level(c, 72)
    assert c.experience_points == level_to_experience(72) == 9520932
    assert character_level(c) == 72


@pytest.mark.parametrize('level', [0, MAX_CHARACTER_LEVEL + 1])
def test_level_range(level: int) -> None:
    with pytest.raises(OutOfRangeError):
        level_to_experience(level)


def test_describe_flags() -> None:
    assert describe_flags(ItemFlags.NONE) == '-'
    assert describe_flags(ItemFlags.SEEN | ItemFlags.FAVORITE) == 'SEEN|FAVORITE'
    assert describe_flags(ItemFlags.JUNK) == 'JUNK'


# ============================================================================
# SDU upgrades, ammo, challenges
# ============================================================================

def test_sdu_levels_default_to_zero() -> None:
    levels = sdu_levels(Character())
    assert list(levels) == list(SAVE_SDU_SLOTS)
    assert set(levels.values()) == {0}


def test_set_sdu_level() -> None:
    c = Character()
    # stored paths are matched regardless of case
    c.sdu_list.add(sdu_data_path=SAVE_SDU_SLOTS['backpack'][0].lower(), sdu_level=2)

    set_sdu_level(c, 'backpack', 13)
    set_sdu_level(c, 'pistol', 4)

    assert len(c.sdu_list) == 2
    assert c.sdu_list[0].sdu_level == 13
    assert c.sdu_list[1].sdu_data_path == '/Game/Pickups/SDU/SDU_Pistol.SDU_Pistol'
    levels = sdu_levels(c)
    assert (levels['backpack'], levels['pistol'], levels['heavy']) == (13, 4, 0)


@pytest.mark.parametrize('name,level', [('backpack', 14), ('pistol', 11), ('smg', -1)])
def test_sdu_level_range(name: str, level: int) -> None:
    with pytest.raises(OutOfRangeError):
        set_sdu_level(Character(), name, level)


def test_unknown_sdu_slot() -> None:
    with pytest.raises(OutOfRangeError, match='Unknown SDU slot'):
        set_sdu_level(Character(), 'bank', 1)


def test_ammo() -> None:
    c = Character()
    c.resource_pools.add(resource_path='/Game/GameData/Economy/Resource_Eridium.Resource_Eridium',
                         amount=50)
    set_ammo(c, 'pistol', 1200)

    assert ammo_amounts(c)['pistol'] == 1200
    assert ammo_amounts(c)['heavy'] == 0
    assert len(c.resource_pools) == 2
    with pytest.raises(OutOfRangeError):
        set_ammo(c, 'heavy', 52)


def test_challenges() -> None:
    c = Character()
    c.challenge_data.add(challenge_class_path=CHALLENGES['mayhem_mode'], currently_completed=True)
    c.challenge_data.add(challenge_class_path=CHALLENGES['artifact_slot'], is_active=True)

    status = challenge_status(c)
    assert status['mayhem_mode'] is True
    assert status['artifact_slot'] is False
    assert status['siren_class_mod'] is False

    set_challenge(c, 'artifact_slot')
    set_challenge(c, 'siren_class_mod')
    set_challenge(c, 'mayhem_mode', completed=False)

    status = challenge_status(c)
    assert (status['artifact_slot'], status['siren_class_mod'], status['mayhem_mode']) == (True, True, False)
    assert len(c.challenge_data) == 3
    assert c.challenge_data[1].completed_count == 1
    assert c.challenge_data[0].completed_count == 0


def test_upgrades_survive_serialization() -> None:
    c = Character()
    set_sdu_level(c, 'heavy', 7)
    set_ammo(c, 'grenade', 13)
    set_challenge(c, 'eridian_analyzer')

    parsed = Character.FromString(c.SerializeToString())
    assert sdu_levels(parsed)['heavy'] == 7
    assert ammo_amounts(parsed)['grenade'] == 13
    assert challenge_status(parsed)['eridian_analyzer'] is True


# ============================================================================
# Profile
# ============================================================================

def test_profile_currency() -> None:
    p = Profile()
    other = InventoryCategorySaveData(base_category_definition_hash=1234, quantity=9).SerializeToString()
    p.bank_inventory_category_list.append(other)

    assert profile_currency_amount(p, PROFILE_CURRENCIES['golden_keys']) == 0
    set_profile_currency(p, PROFILE_CURRENCIES['golden_keys'], 255)
    set_profile_currency(p, PROFILE_CURRENCIES['golden_keys'], 300)
    set_profile_currency(p, PROFILE_CURRENCIES['vault_card_1_keys'], 4)

    assert len(p.bank_inventory_category_list) == 3
    assert p.bank_inventory_category_list[0] == other
    entry = InventoryCategorySaveData.FromString(p.bank_inventory_category_list[1])
    assert entry.base_category_definition_hash == name_hash(PROFILE_CURRENCIES['golden_keys'])
    assert entry.quantity == 300
    assert profile_currency_amount(p, PROFILE_CURRENCIES['vault_card_1_keys']) == 4
    assert profile_currency_amount(p, PROFILE_CURRENCIES['diamond_keys']) == 0


def test_profile_currency_range() -> None:
    with pytest.raises(OutOfRangeError):
        set_profile_currency(Profile(), PROFILE_CURRENCIES['diamond_keys'], -1)


def test_keys_are_not_character_currencies() -> None:
    assert set(CURRENCIES) == {'money', 'eridium'}
    assert not set(PROFILE_CURRENCIES) & set(CURRENCIES)


def test_profile_corrupt_entry() -> None:
    p = Profile()
    p.bank_inventory_category_list.append(b'/Game/not a message')
    with pytest.raises(CorruptPayloadError):
        profile_currency_amount(p, PROFILE_CURRENCIES['golden_keys'])


def test_profile_sdu_levels() -> None:
    p = Profile()
    assert profile_sdu_levels(p) == {'bank': 0, 'lost_loot': 0}

    set_profile_sdu_level(p, 'bank', 23)
    set_profile_sdu_level(p, 'lost_loot', 2)
    set_profile_sdu_level(p, 'lost_loot', 10)

    assert profile_sdu_levels(p) == {'bank': 23, 'lost_loot': 10}
    assert len(p.profile_sdu_list) == 2
    with pytest.raises(OutOfRangeError):
        set_profile_sdu_level(p, 'bank', 24)
    with pytest.raises(OutOfRangeError):
        set_profile_sdu_level(p, 'backpack', 1)


def test_profile_round_trip_keeps_entries() -> None:
    p = Profile()
    set_profile_currency(p, PROFILE_CURRENCIES['golden_keys'], 12)
    set_profile_sdu_level(p, 'bank', 8)

    parsed = Profile.FromString(p.SerializeToString())
    assert profile_currency_amount(parsed, PROFILE_CURRENCIES['golden_keys']) == 12
    assert profile_sdu_levels(parsed)['bank'] == 8


def test_list_bank_items(serial_db) -> None:
    p = Profile()
    p.bank_inventory_list.append(encode_serial(make_item(), serial_db))
    p.bank_inventory_list.append(b'\x04\x01')

    good, bad = list_bank_items(p, serial_db)
    assert good.index == 0
    assert good.item.level == 42
    assert good.flags == ItemFlags.NONE
    assert bad.item is None
    assert isinstance(bad.error, OutOfRangeError)
