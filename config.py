"""
BL3 Save Editor - Configuration
=================================
Central configuration for paths, keys, format constants and game data.
Edit the values in this file to match your environment.
"""

import os

# ============================================================================
# PATHS
# ============================================================================

# Directory where this script lives (used for relative path resolution)
_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))

# Inventory serial database (category -> version/bit widths + asset list).
# Same layout as the community "Inventory Serial Number Database.json".
DEFAULT_SERIAL_DB_FILE = os.path.join(_SCRIPT_DIR, 'data', 'inventory_serial_db.json')

# Balance ident -> part category ("part inventory key") mapping.
DEFAULT_BALANCE_MAP_FILE = os.path.join(_SCRIPT_DIR, 'data', 'balance_to_inv_key.json')

# ============================================================================
# CONTAINER ENVELOPE ("BL3S" / "BL3P")
# ============================================================================
# Layout (little-endian):
#   char[4] Magic
#   uint32  Version
#   uint32  Flags
#   uint32  PayloadLength
#   bytes   Payload          (PayloadLength bytes)
#   uint32  CRC32            (over the decompressed message bytes)

SAVE_MAGIC = b'BL3S'
PROFILE_MAGIC = b'BL3P'

CONTAINER_VERSION = 2
SUPPORTED_CONTAINER_VERSIONS = (2,)

CONTAINER_HEADER_FORMAT = '<4sIII'
CONTAINER_HEADER_SIZE = 16
CONTAINER_CHECKSUM_SIZE = 4

FLAG_COMPRESSED = 0x01      # payload is a raw DEFLATE stream
FLAG_OBFUSCATED_PC = 0x02
FLAG_OBFUSCATED_PS4 = 0x04
KNOWN_FLAGS = FLAG_COMPRESSED | FLAG_OBFUSCATED_PC | FLAG_OBFUSCATED_PS4

DEFAULT_COMPRESSION_LEVEL = 9

# ============================================================================
# GVAS (UE4 SaveGame) FILES
# ============================================================================

GVAS_MAGIC = b'GVAS'

SAVE_GAME_TYPE = 'OakSaveGame'
PROFILE_GAME_TYPE = 'BP_DefaultOakProfile_C'

KIND_SAVE = 'save'
KIND_PROFILE = 'profile'

PLATFORM_PC = 'pc'
PLATFORM_PS4 = 'ps4'
PLATFORMS = (PLATFORM_PC, PLATFORM_PS4)

# ============================================================================
# PLATFORM OBFUSCATION KEYS
# ============================================================================
# (kind, platform) -> (prefix key, xor key). Both keys are 32 bytes.
#   out[i] = in[i] ^ (prefix[i] if i < 32 else stored[i - 32]) ^ xor[i % 32]

OBFUSCATION_KEYS = {
    (KIND_SAVE, PLATFORM_PC): (
        bytes.fromhex('713436B35663255FEAE28373F498B8182EE5422E50A20F498724E6659AF07CD7'),
        bytes.fromhex('7C076983317E0C825F2E367F76B4A271382B6E87390502C6CDD8B1CCA133F9B6'),
    ),
    (KIND_PROFILE, PLATFORM_PC): (
        bytes.fromhex('D804B9085C4E2BC0619F7C8D5D340056E77B4EC0A4D6A7011415A9931F272C8F'),
        bytes.fromhex('E8DC3A66F7EF85E0BD4AA9735799308C946359A8C9AED9587D51B01EBED07743'),
    ),
    (KIND_SAVE, PLATFORM_PS4): (
        bytes.fromhex('D17BBF754CC180303792BDD0183E4A5F43A246A0EDDB2D9F565F8B3D6E73E6B8'),
        bytes.fromhex('FBFDFD513A5CDB20BB5EC7AF666FB69A9A52670F195DD3841519C94A7967DA6D'),
    ),
    (KIND_PROFILE, PLATFORM_PS4): (
        bytes.fromhex('AD1E604E429EA933B2F501E1024D0875B1AD1A3DA1036B1A17E6EC0F608DB4F9'),
        bytes.fromhex('BA0E861D58E1922130D6CBF0D082D5583612E1F6394488EA4EFB047407953AA2'),
    ),
}

# ============================================================================
# ITEM SERIALS
# ============================================================================
# Outer layout: uint8 SerialVersion, int32 Seed (big-endian), then the
# (possibly encrypted) body: uint16 Checksum (big-endian) + bit-packed data.

SUPPORTED_SERIAL_VERSIONS = (3, 4)
SERIAL_HEADER_SIZE = 5
SERIAL_CHECKSUM_SIZE = 2

# Header ident byte of the bit-packed data. 0 marks an item that was never
# obfuscated by the game.
SERIAL_IDENTS = (128, 0)
DEFAULT_SERIAL_IDENT = 128

# Fixed widths of the non-table fields (bits)
IDENT_BITS = 8
DATA_VERSION_BITS = 7
LEVEL_BITS = 7
PART_COUNT_BITS = 6
GENERIC_COUNT_BITS = 4
ADDITIONAL_COUNT_BITS = 8
ADDITIONAL_VALUE_BITS = 8
NUM_CUSTOMS_BITS = 4
REROLLED_BITS = 8

MAX_ITEM_PARTS = (1 << PART_COUNT_BITS) - 1          # 63
MAX_ITEM_ANOINTMENTS = (1 << GENERIC_COUNT_BITS) - 1  # 15

# Serial database categories
BALANCE_CATEGORY = 'InventoryBalanceData'
INV_DATA_CATEGORY = 'InventoryData'
MANUFACTURER_CATEGORY = 'ManufacturerData'
GENERIC_PART_CATEGORY = 'InventoryGenericPartData'

# Base64 transport wrapper: BL3(<base64>)
SERIAL_TEXT_PREFIX = 'BL3('
SERIAL_TEXT_SUFFIX = ')'

# Weapon type markers found in balance idents
WEAPON_TYPES = {
    '_PS_': 'Pistol',
    '_SG_': 'Shotgun',
    '_SM_': 'SMG',
    '_AR_': 'Assault Rifle',
    '_SR_': 'Sniper',
    '_HW_': 'Heavy',
}

# Part category -> item type (anything else is a weapon)
ITEM_TYPES = {
    'BPInvPart_Artifact_C': 'Artifact',
    'BPInvPart_GrenadeMod_C': 'Grenade Mod',
    'BPInvPart_Shield_C': 'Shield',
}
DEFAULT_ITEM_TYPE = 'Weapon'

# ============================================================================
# GAME DATA: Inventory categories (stored as name hashes)
# ============================================================================

_CATEGORY_DIR = '/Game/Gear/_Shared/_Design/InventoryCategories'

CURRENCIES = {
    'money': f'{_CATEGORY_DIR}/InventoryCategory_Money',
    'eridium': f'{_CATEGORY_DIR}/InventoryCategory_Eridium',
}

# Keys live in the profile's bank category list, shared by all characters
PROFILE_CURRENCIES = {
    'golden_keys': f'{_CATEGORY_DIR}/InventoryCategory_GoldenKey',
    'diamond_keys': f'{_CATEGORY_DIR}/InventoryCategory_DiamondKey',
    'vault_card_1_keys': f'{_CATEGORY_DIR}/InventoryCategory_VaultCard1Key',
    'vault_card_2_keys': f'{_CATEGORY_DIR}/InventoryCategory_VaultCard2Key',
    'vault_card_3_keys': f'{_CATEGORY_DIR}/InventoryCategory_VaultCard3Key',
}

# ============================================================================
# GAME DATA: SDU upgrades (name -> (object path, max level))
# ============================================================================

_SDU_DIR = '/Game/Pickups/SDU'

SAVE_SDU_SLOTS = {
    'backpack': (f'{_SDU_DIR}/SDU_Backpack.SDU_Backpack', 13),
    'sniper': (f'{_SDU_DIR}/SDU_SniperRifle.SDU_SniperRifle', 13),
    'shotgun': (f'{_SDU_DIR}/SDU_Shotgun.SDU_Shotgun', 10),
    'pistol': (f'{_SDU_DIR}/SDU_Pistol.SDU_Pistol', 10),
    'grenade': (f'{_SDU_DIR}/SDU_Grenade.SDU_Grenade', 10),
    'smg': (f'{_SDU_DIR}/SDU_SMG.SDU_SMG', 10),
    'ar': (f'{_SDU_DIR}/SDU_AssaultRifle.SDU_AssaultRifle', 10),
    'heavy': (f'{_SDU_DIR}/SDU_Heavy.SDU_Heavy', 13),
}

PROFILE_SDU_SLOTS = {
    'bank': (f'{_SDU_DIR}/SDU_Bank.SDU_Bank', 23),
    'lost_loot': (f'{_SDU_DIR}/SDU_LostLoot.SDU_LostLoot', 10),
}

# ============================================================================
# GAME DATA: Ammo pools (name -> (resource path, max amount))
# ============================================================================

_AMMO_DIR = '/Game/GameData/Weapons/Ammo'

AMMO_POOLS = {
    'grenade': (f'{_AMMO_DIR}/Resource_Ammo_Grenade.Resource_Ammo_Grenade', 13),
    'pistol': (f'{_AMMO_DIR}/Resource_Ammo_Pistol.Resource_Ammo_Pistol', 1200),
    'shotgun': (f'{_AMMO_DIR}/Resource_Ammo_Shotgun.Resource_Ammo_Shotgun', 280),
    'smg': (f'{_AMMO_DIR}/Resource_Ammo_SMG.Resource_Ammo_SMG', 2160),
    'ar': (f'{_AMMO_DIR}/Resource_Ammo_AssaultRifle.Resource_Ammo_AssaultRifle', 1680),
    'sniper': (f'{_AMMO_DIR}/Resource_Ammo_Sniper.Resource_Ammo_Sniper', 204),
    'heavy': (f'{_AMMO_DIR}/Resource_Ammo_Heavy.Resource_Ammo_Heavy', 51),
}

# ============================================================================
# GAME DATA: Challenges that unlock features (name -> challenge class path)
# ============================================================================

_ACCOUNT_CHALLENGES = '/Game/GameData/Challenges/Account'
_CLASS_CHALLENGES = '/Game/GameData/Challenges/Character'

CHALLENGES = {
    'artifact_slot': f'{_ACCOUNT_CHALLENGES}/Challenge_VaultReward_ArtifactSlot.Challenge_VaultReward_ArtifactSlot_C',
    'eridian_analyzer': f'{_ACCOUNT_CHALLENGES}/Challenge_VaultReward_Analyzer.Challenge_VaultReward_Analyzer_C',
    'eridian_resonator': f'{_ACCOUNT_CHALLENGES}/Challenge_VaultReward_Resonator.Challenge_VaultReward_Resonator_C',
    'mayhem_mode': f'{_ACCOUNT_CHALLENGES}/Challenge_VaultReward_Mayhem.Challenge_VaultReward_Mayhem_C',
    'beastmaster_class_mod': f'{_CLASS_CHALLENGES}/Beastmaster/BP_Challenge_Beastmaster_ClassMod.BP_Challenge_Beastmaster_ClassMod_C',
    'gunner_class_mod': f'{_CLASS_CHALLENGES}/Gunner/BP_Challenge_Gunner_ClassMod.BP_Challenge_Gunner_ClassMod_C',
    'operative_class_mod': f'{_CLASS_CHALLENGES}/Operative/BP_Challenge_Operative_ClassMod.BP_Challenge_Operative_ClassMod_C',
    'siren_class_mod': f'{_CLASS_CHALLENGES}/Siren/BP_Challenge_Siren_ClassMod.BP_Challenge_Siren_ClassMod_C',
}

# ============================================================================
# GAME DATA: Experience required per level
# ============================================================================
# REQUIRED_XP[n - 1] is the experience needed to reach level n.

REQUIRED_XP = (
    0, 358, 1241, 2850, 5376, 8997, 13886, 20208, 28126, 37798,
    49377, 63016, 78861, 97061, 117757, 141092, 167206, 196238, 228322, 263595,
    302190, 344238, 389873, 439222, 492414, 549578, 610840, 676325, 746158, 820463,
    899363, 982980, 1071435, 1164850, 1263343, 1367034, 1476041, 1590483, 1710476, 1836137,
    1967582, 2104926, 2248285, 2397772, 2553501, 2715586, 2884139, 3059273, 3241098, 3429728,
    3625271, 3827840, 4037543, 4254491, 4478792, 4710556, 4949890, 5196902, 5451701, 5714393,
    5985086, 6263885, 6550897, 6846227, 7149982, 7462266, 7783184, 8112840, 8451340, 8798786,
    9155282, 9520932, 9895837, 10280103, 10673830, 11077120, 11490077, 11912801, 12345393, 12787955,
)

MAX_CHARACTER_LEVEL = len(REQUIRED_XP)
