"""
BL3 Save Editor - Core Utilities
==================================
Shared functions for the platform payload obfuscation, UE4 FStrings,
GVAS header parsing and save file I/O.
"""

import struct
import io
import os

try:
    from Crypto.Util.strxor import strxor
    HAS_PYCRYPTODOME = True
except ImportError:
    HAS_PYCRYPTODOME = False

from config import GVAS_MAGIC, OBFUSCATION_KEYS
from errors import NotASaveFileError, UnsupportedVersionError

# Obfuscation keys are this long; each output byte also depends on the
# stored byte this many positions earlier.
KEY_SIZE = 32


# ============================================================================
# PAYLOAD OBFUSCATION
# ============================================================================

def _require_strxor() -> None:
    if not HAS_PYCRYPTODOME:
        raise ImportError(
            'pycryptodome is required for save payload obfuscation.\n'
            'Install it with: pip install pycryptodome'
        )


def _keystream(xor_key: bytes, length: int) -> bytes:
    return (xor_key * (length // KEY_SIZE + 1))[:length]


def obfuscation_keys(kind: str, platform: str) -> tuple[bytes, bytes]:
    """Return the (prefix, xor) key pair for a file kind and platform."""
    try:
        return OBFUSCATION_KEYS[(kind, platform)]
    except KeyError:
        raise UnsupportedVersionError(
            f'No obfuscation keys for {kind} files on platform "{platform}"'
        ) from None


def deobfuscate(data: bytes, prefix: bytes, xor_key: bytes) -> bytes:
    """Reverse the chained XOR the game applies to stored payloads.

        plain[i] = stored[i] ^ (prefix[i] if i < 32 else stored[i - 32]) ^ xor_key[i % 32]

    Every term comes from the stored bytes, so this is one pass of strxor.
    """
    _require_strxor()
    n = len(data)
    if n == 0:
        return b''
    data = bytes(data)
    chain = (prefix + data[:-KEY_SIZE])[:n]
    return strxor(strxor(data, chain), _keystream(xor_key, n))


def obfuscate(data: bytes, prefix: bytes, xor_key: bytes) -> bytes:
    """Apply the chained XOR; the inverse of deobfuscate().

    Each 32-byte block is chained on the previous *stored* block, so blocks
    are produced in order.
    """
    _require_strxor()
    out = bytearray()
    previous = prefix
    for start in range(0, len(data), KEY_SIZE):
        block = bytes(data[start:start + KEY_SIZE])
        size = len(block)
        stored = strxor(strxor(block, previous[:size]), xor_key[:size])
        out += stored
        previous = stored
    return bytes(out)


# ============================================================================
# UE4 FSTRINGS
# ============================================================================

def _read(stream: io.BytesIO, size: int) -> bytes:
    chunk = stream.read(size)
    if len(chunk) != size:
        raise NotASaveFileError(
            f'Unexpected end of data at offset {stream.tell()} '
            f'(wanted {size} bytes, got {len(chunk)})'
        )
    return chunk


def read_fstring(stream: io.BytesIO) -> str:
    """Read a UE4 FString (int32 length + data + null terminator).
    Handles both ASCII (positive length) and UTF-16 (negative length).
    """
    length = struct.unpack('<i', _read(stream, 4))[0]
    if length == 0:
        return ''
    if length < 0:
        # UTF-16 encoded
        count = -length
        raw = _read(stream, count * 2)
        try:
            return raw.decode('utf-16-le').rstrip('\x00')
        except UnicodeDecodeError as e:
            raise NotASaveFileError(
                f'Invalid UTF-16 string at offset {stream.tell() - len(raw)}: {e}'
            ) from e
    else:
        raw = _read(stream, length)
        return raw.decode('utf-8', errors='replace').rstrip('\x00')


def write_fstring(text: str) -> bytes:
    """Encode a UE4 FString; non-ASCII text is written as UTF-16."""
    if not text:
        return struct.pack('<i', 0)
    if text.isascii():
        raw = text.encode('ascii') + b'\x00'
        return struct.pack('<i', len(raw)) + raw
    raw = text.encode('utf-16-le') + b'\x00\x00'
    return struct.pack('<i', -(len(raw) // 2)) + raw


# ============================================================================
# GVAS HEADER PARSER
# ============================================================================

class GvasHeader:
    """Parsed GVAS (UE4 save file) header."""
    def __init__(self):
        self.magic = b''
        self.save_game_version = 0
        self.package_version = 0
        self.engine_version_major = 0
        self.engine_version_minor = 0
        self.engine_version_patch = 0
        self.engine_version_build = 0
        self.build_id = ''
        self.custom_version_format = 0
        self.custom_versions = []
        self.save_game_type = ''
        self.header_size = 0
        self.raw = b''

    def __repr__(self):
        return (
            f'GvasHeader(save_ver={self.save_game_version}, '
            f'pkg_ver={self.package_version}, '
            f'engine={self.engine_version_major}.{self.engine_version_minor}.'
            f'{self.engine_version_patch}+{self.engine_version_build}, '
            f'type="{self.save_game_type}")'
        )


def parse_gvas_header(data: bytes) -> GvasHeader:
    """Parse the GVAS header from a save or profile file.

    GVAS Header Layout (BL3, UE4 4.20):
        char[4] Magic               ("GVAS")
        uint32  SaveGameVersion
        uint32  PackageVersion
        uint16  EngineMajor
        uint16  EngineMinor
        uint16  EnginePatch
        uint32  EngineBuild
        FString BuildId             (e.g. "OAK-PATCHWIN64-41")
        uint32  CustomVersionFormat
        uint32  CustomVersionCount
        [CustomVersionCount x (GUID(16) + int32(4))]
        FString SaveGameType        ("OakSaveGame" / "BP_DefaultOakProfile_C")

    The raw header bytes are kept on the result so the header can be written
    back unchanged.

    Raises:
        NotASaveFileError: Wrong magic or truncated header.
    """
    s = io.BytesIO(data)
    h = GvasHeader()

    h.magic = s.read(4)
    if h.magic != GVAS_MAGIC:
        raise NotASaveFileError(f'Not a GVAS file: magic={h.magic!r}, expected {GVAS_MAGIC!r}')

    h.save_game_version, h.package_version = struct.unpack('<II', _read(s, 8))
    (h.engine_version_major, h.engine_version_minor,
     h.engine_version_patch) = struct.unpack('<HHH', _read(s, 6))
    h.engine_version_build = struct.unpack('<I', _read(s, 4))[0]
    h.build_id = read_fstring(s)

    h.custom_version_format = struct.unpack('<I', _read(s, 4))[0]
    count = struct.unpack('<I', _read(s, 4))[0]
    h.custom_versions = []
    for _ in range(count):
        guid = _read(s, 16)
        version = struct.unpack('<i', _read(s, 4))[0]
        h.custom_versions.append((guid, version))

    h.save_game_type = read_fstring(s)
    h.header_size = s.tell()
    h.raw = bytes(data[:h.header_size])

    return h


def write_gvas_header(h: GvasHeader) -> bytes:
    """Serialize a GvasHeader from its fields (ignores h.raw)."""
    out = bytearray(GVAS_MAGIC)
    out += struct.pack('<II', h.save_game_version, h.package_version)
    out += struct.pack('<HHH', h.engine_version_major, h.engine_version_minor,
                       h.engine_version_patch)
    out += struct.pack('<I', h.engine_version_build)
    out += write_fstring(h.build_id)
    out += struct.pack('<II', h.custom_version_format, len(h.custom_versions))
    for guid, version in h.custom_versions:
        out += bytes(guid) + struct.pack('<i', version)
    out += write_fstring(h.save_game_type)
    return bytes(out)


# ============================================================================
# SAVE FILE I/O
# ============================================================================

def load_save(filepath: str) -> bytes:
    """Load a save file and return its raw bytes."""
    if not os.path.exists(filepath):
        raise FileNotFoundError(f'Save file not found: {filepath}')
    with open(filepath, 'rb') as f:
        return f.read()


def write_save(filepath: str, data: bytes) -> None:
    """Write raw bytes to a save file."""
    with open(filepath, 'wb') as f:
        f.write(data)
