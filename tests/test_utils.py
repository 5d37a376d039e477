from __future__ import annotations

import io
import struct

import pytest

from config import OBFUSCATION_KEYS, PROFILE_GAME_TYPE
from conftest import make_header
from errors import NotASaveFileError, UnsupportedVersionError
from utils import (
    deobfuscate,
    obfuscate,
    obfuscation_keys,
    parse_gvas_header,
    read_fstring,
    write_fstring,
    write_gvas_header,
)

PC_SAVE = obfuscation_keys('save', 'pc')


def test_every_key_pair_is_32_bytes() -> None:
    assert len(OBFUSCATION_KEYS) == 4
    for prefix, xor_key in OBFUSCATION_KEYS.values():
        assert len(prefix) == 32
        assert len(xor_key) == 32


def test_unknown_platform_has_no_keys() -> None:
    with pytest.raises(UnsupportedVersionError):
        obfuscation_keys('save', 'switch')


@pytest.mark.parametrize('length', [0, 1, 31, 32, 33, 64, 100])
@pytest.mark.parametrize('kind', ['save', 'profile'])
@pytest.mark.parametrize('platform', ['pc', 'ps4'])
def test_obfuscation_is_reversible(length: int, kind: str, platform: str) -> None:
    data = bytes((i * 7 + 3) & 0xFF for i in range(length))
    keys = obfuscation_keys(kind, platform)
    stored = obfuscate(data, *keys)
    assert len(stored) == length
    assert deobfuscate(stored, *keys) == data


def test_obfuscation_chains_on_stored_bytes() -> None:
    prefix, xor_key = PC_SAVE
    data = bytes(range(80))
    stored = obfuscate(data, prefix, xor_key)

    assert stored[0] == data[0] ^ prefix[0] ^ xor_key[0]
    assert stored[31] == data[31] ^ prefix[31] ^ xor_key[31]
    assert stored[40] == data[40] ^ stored[8] ^ xor_key[8]
    assert stored[79] == data[79] ^ stored[47] ^ xor_key[15]


def test_platform_keys_differ() -> None:
    data = bytes(64)
    assert obfuscate(data, *PC_SAVE) != obfuscate(data, *obfuscation_keys('save', 'ps4'))


@pytest.mark.parametrize('text', ['', 'OakSaveGame', "Zoë's Save"])
def test_fstring_round_trip(text: str) -> None:
    raw = write_fstring(text)
    assert read_fstring(io.BytesIO(raw)) == text


def test_fstring_encodings() -> None:
    assert write_fstring('') == b'\x00\x00\x00\x00'
    assert write_fstring('Oak') == b'\x04\x00\x00\x00Oak\x00'
    assert write_fstring('é') == struct.pack('<i', -2) + 'é'.encode('utf-16-le') + b'\x00\x00'


def test_truncated_fstring() -> None:
    with pytest.raises(NotASaveFileError):
        read_fstring(io.BytesIO(b'\x10\x00\x00\x00abc'))


def test_gvas_header_round_trip() -> None:
    header = make_header(PROFILE_GAME_TYPE)
    raw = write_gvas_header(header)
    parsed = parse_gvas_header(raw + b'\x05\x00\x00\x00trailing')

    assert parsed.save_game_version == 2
    assert parsed.package_version == 505
    assert (parsed.engine_version_major, parsed.engine_version_minor) == (4, 20)
    assert parsed.build_id == 'OAK-PATCHWIN641-49'
    assert parsed.custom_version_format == 3
    assert parsed.custom_versions == header.custom_versions
    assert parsed.save_game_type == PROFILE_GAME_TYPE
    assert parsed.header_size == len(raw)
    assert parsed.raw == raw
    assert write_gvas_header(parsed) == raw


def test_gvas_header_rejects_other_files() -> None:
    with pytest.raises(NotASaveFileError):
        parse_gvas_header(b'PK\x03\x04' + bytes(60))


def test_gvas_header_rejects_truncation() -> None:
    raw = write_gvas_header(make_header())
    with pytest.raises(NotASaveFileError):
        parse_gvas_header(raw[:30])


BAD_UTF16 = struct.pack('<i', -1) + b'\x00\xd8'


def test_fstring_with_invalid_utf16() -> None:
    with pytest.raises(NotASaveFileError):
        read_fstring(io.BytesIO(BAD_UTF16))


def bad_build_id_header() -> bytes:
    """A GVAS header whose build id is a lone UTF-16 surrogate."""
    header = make_header()
    raw = write_gvas_header(header)
    start = 22
    end = start + len(write_fstring(header.build_id))
    return raw[:start] + BAD_UTF16 + raw[end:]


def test_gvas_header_with_invalid_build_id() -> None:
    with pytest.raises(NotASaveFileError):
        parse_gvas_header(bad_build_id_header())
