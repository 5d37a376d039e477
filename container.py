"""
BL3 Save Editor - Container Framer
====================================
Decodes a BL3S (save) / BL3P (profile) container into its logical message
and encodes it back.

Container Layout (little-endian):
    char[4] Magic               ("BL3S" or "BL3P")
    uint32  Version             (2)
    uint32  Flags               (0x01 deflate, 0x02 PC obfuscation, 0x04 PS4 obfuscation)
    uint32  PayloadLength
    bytes   Payload
    uint32  CRC32               (of the decompressed message bytes)

Decode order is magic, version, flags, length, de-obfuscate, inflate,
CRC32 check, then schema parse. Any failure aborts the whole decode.

A container that is encoded without changes to its message reproduces the
original file bytes exactly: the stored payload is reused instead of being
compressed again.

Usage:
    container = decode_container(load_save('1.bl3s'))
    container.message.message.experience_points = 1000
    write_save('1.bl3s', encode_container(container))
"""

import struct
import zlib
from dataclasses import dataclass

from config import (
    SAVE_MAGIC, PROFILE_MAGIC, CONTAINER_VERSION, SUPPORTED_CONTAINER_VERSIONS,
    CONTAINER_HEADER_FORMAT, CONTAINER_HEADER_SIZE, CONTAINER_CHECKSUM_SIZE,
    FLAG_COMPRESSED, FLAG_OBFUSCATED_PC, FLAG_OBFUSCATED_PS4, KNOWN_FLAGS,
    DEFAULT_COMPRESSION_LEVEL, KIND_SAVE, KIND_PROFILE, PLATFORM_PC, PLATFORM_PS4,
)
from errors import (
    NotASaveFileError, UnsupportedVersionError, CorruptPayloadError, ChecksumMismatchError,
)
from schema import MESSAGE_TYPES, parse_message
from utils import obfuscate, deobfuscate, obfuscation_keys

_MAGIC_KINDS = {
    SAVE_MAGIC: KIND_SAVE,
    PROFILE_MAGIC: KIND_PROFILE,
}

_PLATFORM_FLAGS = {
    FLAG_OBFUSCATED_PC: PLATFORM_PC,
    FLAG_OBFUSCATED_PS4: PLATFORM_PS4,
}


# ============================================================================
# LOGICAL MESSAGE
# ============================================================================

class LogicalMessage:
    """Decompressed message bytes plus (optionally) the parsed message.

    Edits go through `message`; to_bytes() re-serializes it only when its
    content actually changed, so untouched messages keep their exact bytes.
    """

    def __init__(self, raw: bytes, message_type=None):
        self.raw = bytes(raw)
        self.message = None
        self._baseline = None
        if message_type is not None:
            self.message = parse_message(self.raw, message_type)
            self._baseline = self.message.SerializeToString(deterministic=True)

    @property
    def modified(self) -> bool:
        if self.message is None:
            return False
        return self.message.SerializeToString(deterministic=True) != self._baseline

    def to_bytes(self) -> bytes:
        if self.message is None or not self.modified:
            return self.raw
        return self.message.SerializeToString(deterministic=True)


# ============================================================================
# CONTAINER TYPES
# ============================================================================

@dataclass(frozen=True)
class ContainerHeader:
    magic: bytes
    version: int
    flags: int
    payload_length: int

    @property
    def compressed(self) -> bool:
        return bool(self.flags & FLAG_COMPRESSED)

    @property
    def platform(self) -> str | None:
        """Obfuscation platform selected by the flags, or None."""
        for flag, platform in _PLATFORM_FLAGS.items():
            if self.flags & flag:
                return platform
        return None


class SaveContainer:
    """A decoded BL3S file: header + logical message + checksum."""
    kind = KIND_SAVE
    magic = SAVE_MAGIC

    def __init__(self, message: LogicalMessage, flags: int = FLAG_COMPRESSED,
                 version: int = CONTAINER_VERSION,
                 compression_level: int = DEFAULT_COMPRESSION_LEVEL):
        _check_version(version)
        _check_flags(flags)
        self.message = message
        self.compression_level = compression_level
        self._version = version
        self._flags = flags
        # What was read from disk, reused while the message is unchanged
        self._stored_payload = None
        self._stored_message = None
        self._stored_checksum = None

    @property
    def header(self) -> ContainerHeader:
        length = len(self._stored_payload) if self._stored_payload is not None else 0
        return ContainerHeader(self.magic, self._version, self._flags, length)

    @property
    def platform(self) -> str | None:
        return self.header.platform

    @property
    def checksum(self) -> int:
        """CRC32 of the current message bytes (always recomputed)."""
        return zlib.crc32(self.message.to_bytes())

    @property
    def stored_checksum(self) -> int | None:
        return self._stored_checksum

    def __repr__(self):
        return (
            f'{type(self).__name__}(version={self._version}, flags=0x{self._flags:02X}, '
            f'message={len(self.message.to_bytes())} bytes)'
        )


class ProfileContainer(SaveContainer):
    """A decoded BL3P file."""
    kind = KIND_PROFILE
    magic = PROFILE_MAGIC


_CONTAINER_TYPES = {
    KIND_SAVE: SaveContainer,
    KIND_PROFILE: ProfileContainer,
}


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def _check_version(version: int) -> None:
    if version not in SUPPORTED_CONTAINER_VERSIONS:
        raise UnsupportedVersionError(
            f'Container version {version} is not supported '
            f'(known: {", ".join(map(str, SUPPORTED_CONTAINER_VERSIONS))})'
        )


def _check_flags(flags: int) -> None:
    unknown = flags & ~KNOWN_FLAGS
    if unknown:
        raise UnsupportedVersionError(f'Unknown container flags 0x{unknown:X}')
    if flags & FLAG_OBFUSCATED_PC and flags & FLAG_OBFUSCATED_PS4:
        raise UnsupportedVersionError('Container flags select both PC and PS4 obfuscation')


def inflate(payload: bytes) -> bytes:
    """Decompress a raw DEFLATE stream, which must end exactly at the payload end."""
    d = zlib.decompressobj(-zlib.MAX_WBITS)
    try:
        data = d.decompress(payload) + d.flush()
    except zlib.error as e:
        raise CorruptPayloadError(f'Payload failed to decompress: {e}') from e
    if not d.eof:
        raise CorruptPayloadError('Compressed payload is truncated')
    if d.unused_data:
        raise CorruptPayloadError(
            f'{len(d.unused_data)} unexpected bytes after the compressed payload'
        )
    return data


def deflate(data: bytes, level: int = DEFAULT_COMPRESSION_LEVEL) -> bytes:
    c = zlib.compressobj(level, zlib.DEFLATED, -zlib.MAX_WBITS)
    return c.compress(data) + c.flush()


# ============================================================================
# DECODE / ENCODE
# ============================================================================

def parse_container_header(raw: bytes) -> ContainerHeader:
    """Read and validate the fixed 16-byte header."""
    if len(raw) < CONTAINER_HEADER_SIZE:
        raise NotASaveFileError(
            f'File too short for a container header: {len(raw)} bytes'
        )
    magic, version, flags, length = struct.unpack_from(CONTAINER_HEADER_FORMAT, raw, 0)
    if magic not in _MAGIC_KINDS:
        raise NotASaveFileError(
            f'Not a BL3 container: magic={magic!r}, expected {SAVE_MAGIC!r} or {PROFILE_MAGIC!r}'
        )
    _check_version(version)
    _check_flags(flags)
    return ContainerHeader(magic, version, flags, length)


def decode_container(raw: bytes, parse: bool = True) -> SaveContainer:
    """Decode a whole container file.

    Args:
        raw: File bytes.
        parse: Parse the message with the schema for its kind. When False
            the message is only available as raw bytes.

    Returns:
        SaveContainer or ProfileContainer, depending on the magic.

    Raises:
        NotASaveFileError: Short header or unknown magic.
        UnsupportedVersionError: Unknown version or flags.
        CorruptPayloadError: Wrong length, bad deflate stream, or unparseable message.
        ChecksumMismatchError: CRC32 trailer does not match the message.
    """
    raw = bytes(raw)
    header = parse_container_header(raw)
    kind = _MAGIC_KINDS[header.magic]

    expected = CONTAINER_HEADER_SIZE + header.payload_length + CONTAINER_CHECKSUM_SIZE
    if len(raw) != expected:
        raise CorruptPayloadError(
            f'Container is {len(raw)} bytes but its header describes {expected}'
        )

    stored_payload = raw[CONTAINER_HEADER_SIZE:CONTAINER_HEADER_SIZE + header.payload_length]
    stored_checksum = struct.unpack_from('<I', raw, expected - CONTAINER_CHECKSUM_SIZE)[0]

    payload = stored_payload
    if header.platform is not None:
        payload = deobfuscate(payload, *obfuscation_keys(kind, header.platform))

    data = inflate(payload) if header.compressed else payload

    computed = zlib.crc32(data)
    if computed != stored_checksum:
        raise ChecksumMismatchError(
            f'Container checksum mismatch: stored 0x{stored_checksum:08X}, '
            f'computed 0x{computed:08X}'
        )

    message = LogicalMessage(data, MESSAGE_TYPES[kind] if parse else None)

    container = _CONTAINER_TYPES[kind](message, flags=header.flags, version=header.version)
    container._stored_payload = stored_payload
    container._stored_message = data
    container._stored_checksum = stored_checksum
    return container


def encode_container(container: SaveContainer) -> bytes:
    """Encode a container back to file bytes.

    The checksum and payload length are recomputed. An unchanged message
    reuses the stored payload so the output matches the original file.
    """
    header = container.header
    data = container.message.to_bytes()

    if container._stored_payload is not None and data == container._stored_message:
        payload = container._stored_payload
    else:
        payload = deflate(data, container.compression_level) if header.compressed else data
        if header.platform is not None:
            payload = obfuscate(payload, *obfuscation_keys(container.kind, header.platform))

    return (
        struct.pack(CONTAINER_HEADER_FORMAT, header.magic, header.version,
                    header.flags, len(payload))
        + payload
        + struct.pack('<I', zlib.crc32(data))
    )
