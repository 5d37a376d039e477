"""
BL3 Save Editor - Message Schema
==================================
Protobuf message classes for the decompressed save/profile payload.

Only the fields the editor works with are declared. Everything else the
game writes is kept by protobuf as unknown fields and serialized back
untouched, so undeclared data survives an edit/save round trip.

Declared subset of package OakSave:

    message InventoryCategorySaveData {
        uint32 base_category_definition_hash = 1;
        int32  quantity = 2;
    }
    message OakInventoryItemSaveGameData {
        bytes  item_serial_number = 1;
        int32  pickup_order_index = 2;
        int32  flags = 3;
        string weapon_skin_path = 4;
    }
    message EquippedInventorySaveGameData {
        int32  inventory_list_index = 1;
        bool   enabled = 2;
        string slot_data_path = 3;
        string trinket_data_path = 4;
    }
    message ResourcePoolSavegameData {
        float  amount = 1;
        string resource_path = 2;
    }
    message ChallengeSaveGameData {
        int32  completed_count = 1;
        bool   is_active = 2;
        bool   currently_completed = 3;
        int32  completed_progress_level = 4;
        int32  progress_counter = 5;
        string challenge_class_path = 7;
    }
    message OakSDUSaveGameData {
        int32  sdu_level = 1;
        string sdu_data_path = 2;
    }
    message Character {
        int32 save_game_id = 1;
        repeated ResourcePoolSavegameData resource_pools = 5;
        int32 experience_points = 7;
        repeated InventoryCategorySaveData inventory_category_list = 9;
        repeated OakInventoryItemSaveGameData inventory_items = 10;
        repeated EquippedInventorySaveGameData equipped_inventory_list = 11;
        repeated ChallengeSaveGameData challenge_data = 25;
        repeated OakSDUSaveGameData sdu_list = 26;
    }
    message Profile {
        repeated bytes bank_inventory_list = 2;             // item serials
        repeated bytes lost_loot_inventory_list = 3;        // item serials
        repeated bytes bank_inventory_category_list = 8;    // InventoryCategorySaveData
        repeated bytes profile_sdu_list = 12;               // OakSDUSaveGameData
    }

The profile's category and SDU lists are declared as raw entries and parsed
one at a time by the views with parse_message(). A raw entry
holds any length-delimited value, so the profile always parses and every
entry is written back as it was read.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError

from config import KIND_SAVE, KIND_PROFILE
from errors import CorruptPayloadError

PACKAGE = 'OakSave'

_F = descriptor_pb2.FieldDescriptorProto

# message name -> [(field name, number, type, label, message type name)]
_MESSAGES = {
    'InventoryCategorySaveData': [
        ('base_category_definition_hash', 1, _F.TYPE_UINT32, _F.LABEL_OPTIONAL, None),
        ('quantity', 2, _F.TYPE_INT32, _F.LABEL_OPTIONAL, None),
    ],
    'OakInventoryItemSaveGameData': [
        ('item_serial_number', 1, _F.TYPE_BYTES, _F.LABEL_OPTIONAL, None),
        ('pickup_order_index', 2, _F.TYPE_INT32, _F.LABEL_OPTIONAL, None),
        ('flags', 3, _F.TYPE_INT32, _F.LABEL_OPTIONAL, None),
        ('weapon_skin_path', 4, _F.TYPE_STRING, _F.LABEL_OPTIONAL, None),
    ],
    'EquippedInventorySaveGameData': [
        ('inventory_list_index', 1, _F.TYPE_INT32, _F.LABEL_OPTIONAL, None),
        ('enabled', 2, _F.TYPE_BOOL, _F.LABEL_OPTIONAL, None),
        ('slot_data_path', 3, _F.TYPE_STRING, _F.LABEL_OPTIONAL, None),
        ('trinket_data_path', 4, _F.TYPE_STRING, _F.LABEL_OPTIONAL, None),
    ],
    'ResourcePoolSavegameData': [
        ('amount', 1, _F.TYPE_FLOAT, _F.LABEL_OPTIONAL, None),
        ('resource_path', 2, _F.TYPE_STRING, _F.LABEL_OPTIONAL, None),
    ],
    'ChallengeSaveGameData': [
        ('completed_count', 1, _F.TYPE_INT32, _F.LABEL_OPTIONAL, None),
        ('is_active', 2, _F.TYPE_BOOL, _F.LABEL_OPTIONAL, None),
        ('currently_completed', 3, _F.TYPE_BOOL, _F.LABEL_OPTIONAL, None),
        ('completed_progress_level', 4, _F.TYPE_INT32, _F.LABEL_OPTIONAL, None),
        ('progress_counter', 5, _F.TYPE_INT32, _F.LABEL_OPTIONAL, None),
        ('challenge_class_path', 7, _F.TYPE_STRING, _F.LABEL_OPTIONAL, None),
    ],
    'OakSDUSaveGameData': [
        ('sdu_level', 1, _F.TYPE_INT32, _F.LABEL_OPTIONAL, None),
        ('sdu_data_path', 2, _F.TYPE_STRING, _F.LABEL_OPTIONAL, None),
    ],
    'Character': [
        ('save_game_id', 1, _F.TYPE_INT32, _F.LABEL_OPTIONAL, None),
        ('resource_pools', 5, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, 'ResourcePoolSavegameData'),
        ('experience_points', 7, _F.TYPE_INT32, _F.LABEL_OPTIONAL, None),
        ('inventory_category_list', 9, _F.TYPE_MESSAGE, _F.LABEL_REPEATED,
         'InventoryCategorySaveData'),
        ('inventory_items', 10, _F.TYPE_MESSAGE, _F.LABEL_REPEATED,
         'OakInventoryItemSaveGameData'),
        ('equipped_inventory_list', 11, _F.TYPE_MESSAGE, _F.LABEL_REPEATED,
         'EquippedInventorySaveGameData'),
        ('challenge_data', 25, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, 'ChallengeSaveGameData'),
        ('sdu_list', 26, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, 'OakSDUSaveGameData'),
    ],
    'Profile': [
        ('bank_inventory_list', 2, _F.TYPE_BYTES, _F.LABEL_REPEATED, None),
        ('lost_loot_inventory_list', 3, _F.TYPE_BYTES, _F.LABEL_REPEATED, None),
        ('bank_inventory_category_list', 8, _F.TYPE_BYTES, _F.LABEL_REPEATED, None),
        ('profile_sdu_list', 12, _F.TYPE_BYTES, _F.LABEL_REPEATED, None),
    ],
}


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name='oak_save_subset.proto',
        package=PACKAGE,
        syntax='proto3',
    )
    for message_name, fields in _MESSAGES.items():
        message = file_proto.message_type.add(name=message_name)
        for name, number, field_type, label, type_name in fields:
            f = message.field.add(name=name, number=number, type=field_type, label=label)
            if type_name:
                f.type_name = f'.{PACKAGE}.{type_name}'
    return file_proto


# Private pool so the subset never clashes with other OakSave definitions
_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_POOL.FindMessageTypeByName(f'{PACKAGE}.{name}'))


InventoryCategorySaveData = _message_class('InventoryCategorySaveData')
OakInventoryItemSaveGameData = _message_class('OakInventoryItemSaveGameData')
EquippedInventorySaveGameData = _message_class('EquippedInventorySaveGameData')
ResourcePoolSavegameData = _message_class('ResourcePoolSavegameData')
ChallengeSaveGameData = _message_class('ChallengeSaveGameData')
OakSDUSaveGameData = _message_class('OakSDUSaveGameData')
Character = _message_class('Character')
Profile = _message_class('Profile')

# File kind -> top-level message class
MESSAGE_TYPES = {
    KIND_SAVE: Character,
    KIND_PROFILE: Profile,
}


def parse_message(raw: bytes, message_type):
    """Parse payload bytes into a message, unknown fields included.

    Raises:
        CorruptPayloadError: The bytes are not a valid protobuf message.
    """
    message = message_type()
    try:
        message.ParseFromString(bytes(raw))
    except DecodeError as e:
        raise CorruptPayloadError(
            f'Payload is not a valid {message_type.DESCRIPTOR.name} message: {e}'
        ) from e
    return message
