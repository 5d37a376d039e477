"""
BL3 Save Editor - Errors
==========================
Exception types raised by the codecs. Every decoding failure is a
SaveEditError (a ValueError, like any other malformed-file error), so
callers can catch one type for "this file or item is bad" and still
tell the kinds apart when they need to.
"""


class SaveEditError(ValueError):
    """Base class for all save/profile/item decoding and encoding errors."""


class OutOfRangeError(SaveEditError):
    """A bit read or write went past the buffer, or a value does not fit its field."""


class InvalidChecksumError(SaveEditError):
    """Stored checksum does not match the data it protects."""


class ChecksumMismatchError(InvalidChecksumError):
    """Container CRC32 trailer does not match the decompressed message."""


class UnsupportedVersionError(SaveEditError):
    """Format version (or flag/ident) outside the known set."""


class NotASaveFileError(SaveEditError):
    """Header magic missing or header truncated."""


class CorruptPayloadError(SaveEditError):
    """Payload could not be de-obfuscated, decompressed or parsed."""


class MalformedTextError(SaveEditError):
    """Item serial text form could not be decoded."""
