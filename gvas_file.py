"""
BL3 Save Editor - GVAS Save/Profile Files
===========================================
Reads and writes the .sav files the game itself produces: a UE4 GVAS
header followed by an obfuscated protobuf payload.

File Layout:
    GVAS header             (see utils.parse_gvas_header)
    uint32  PayloadLength
    bytes   Payload         (chained-XOR obfuscated protobuf message)

The file kind comes from the header's save game type. The platform decides
which obfuscation keys apply; when it is not given, PC keys are tried
first, then PS4, and the first one whose payload parses wins.

Usage:
    f = read_file(load_save('1.sav'))
    print(f.kind, f.platform, f.message.message.experience_points)
    write_save('1.sav', write_file(f))
"""

import struct

from config import (
    SAVE_GAME_TYPE, PROFILE_GAME_TYPE, KIND_SAVE, KIND_PROFILE, PLATFORMS,
    SAVE_MAGIC, PROFILE_MAGIC,
)
from container import LogicalMessage, decode_container, encode_container
from errors import NotASaveFileError, CorruptPayloadError, UnsupportedVersionError
from schema import MESSAGE_TYPES
from utils import (
    GvasHeader, parse_gvas_header, write_gvas_header, obfuscate, deobfuscate, obfuscation_keys,
)

_GAME_TYPE_KINDS = {
    SAVE_GAME_TYPE: KIND_SAVE,
    PROFILE_GAME_TYPE: KIND_PROFILE,
}


class GvasFile:
    """A decoded save or profile file."""

    def __init__(self, header: GvasHeader, kind: str, platform: str,
                 message: LogicalMessage, stored_payload: bytes | None = None):
        self.header = header
        self.kind = kind
        self.platform = platform
        self.message = message
        self._stored_payload = stored_payload
        self._stored_platform = platform
        self._stored_message = message.raw if stored_payload is not None else None

    def __repr__(self):
        return (
            f'GvasFile(kind={self.kind}, platform={self.platform}, '
            f'type="{self.header.save_game_type}", payload={len(self.message.raw)} bytes)'
        )


def file_kind(header: GvasHeader) -> str:
    try:
        return _GAME_TYPE_KINDS[header.save_game_type]
    except KeyError:
        raise NotASaveFileError(
            f'Unknown save game type "{header.save_game_type}" '
            f'(expected {SAVE_GAME_TYPE} or {PROFILE_GAME_TYPE})'
        ) from None


def _split_payload(data: bytes, header: GvasHeader) -> bytes:
    start = header.header_size + 4
    if len(data) < start:
        raise NotASaveFileError('File ends before the payload length')
    length = struct.unpack_from('<I', data, header.header_size)[0]
    payload = data[start:]
    if len(payload) != length:
        raise CorruptPayloadError(
            f'Payload is {len(payload)} bytes but the header says {length}'
        )
    return payload


def _decode_payload(payload: bytes, kind: str, platform: str, parse: bool) -> LogicalMessage:
    plain = deobfuscate(payload, *obfuscation_keys(kind, platform))
    return LogicalMessage(plain, MESSAGE_TYPES[kind] if parse else None)


def read_file(data: bytes, platform: str | None = None, parse: bool = True) -> GvasFile:
    """Decode a save or profile file.

    Args:
        data: File bytes.
        platform: 'pc' or 'ps4'. None tries each platform in turn (needs parse).
        parse: Parse the payload with the schema for the file kind.

    Raises:
        NotASaveFileError: Not a GVAS file, unknown save game type, or no
            platform's keys produce a parseable payload.
        CorruptPayloadError: Payload length mismatch, or the payload does not
            parse with the given platform's keys.
    """
    data = bytes(data)
    header = parse_gvas_header(data)
    kind = file_kind(header)
    payload = _split_payload(data, header)

    if platform is not None:
        if platform not in PLATFORMS:
            raise UnsupportedVersionError(f'Unknown platform "{platform}"')
        message = _decode_payload(payload, kind, platform, parse)
        return GvasFile(header, kind, platform, message, payload)

    if not parse:
        raise UnsupportedVersionError('Platform detection needs the payload to be parsed')

    for candidate in PLATFORMS:
        try:
            message = _decode_payload(payload, kind, candidate, parse)
        except CorruptPayloadError:
            continue
        return GvasFile(header, kind, candidate, message, payload)

    raise NotASaveFileError(f'Payload does not decode as a {kind} for any known platform')


def write_file(f: GvasFile) -> bytes:
    """Encode a GvasFile back to file bytes.

    The original header bytes are kept. The payload is re-obfuscated only
    when the message changed or the platform was switched.
    """
    data = f.message.to_bytes()
    unchanged = (
        f._stored_payload is not None
        and f.platform == f._stored_platform
        and data == f._stored_message
    )
    if unchanged:
        payload = f._stored_payload
    else:
        payload = obfuscate(data, *obfuscation_keys(f.kind, f.platform))

    return f.header.raw + struct.pack('<I', len(payload)) + payload


def new_file(header: GvasHeader, message, platform: str) -> GvasFile:
    """Build a file from a header and a schema message (e.g. to convert or synthesize saves)."""
    kind = file_kind(header)
    if not header.raw:
        header.raw = write_gvas_header(header)
        header.header_size = len(header.raw)
    logical = LogicalMessage(message.SerializeToString(deterministic=True), type(message))
    return GvasFile(header, kind, platform, logical)


# ============================================================================
# ANY SAVE FORMAT
# ============================================================================

def read_save_data(data: bytes, platform: str | None = None):
    """Decode either a GVAS file or a BL3S/BL3P container, by its magic.

    Both results expose `kind` and `message` (a LogicalMessage).
    """
    if bytes(data[:4]) in (SAVE_MAGIC, PROFILE_MAGIC):
        return decode_container(data)
    return read_file(data, platform)


def write_save_data(f) -> bytes:
    if isinstance(f, GvasFile):
        return write_file(f)
    return encode_container(f)
