# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = 'MpidError', 'MetadataTooLargeError', 'BodyTooLargeError', 'EncodingError', 'UnknownWrapperTypeError', 'OutboxFullError'  # noqa: RUF022


class MpidError(Exception):
    """Base class for the errors raised by the MPID messaging types."""


class MetadataTooLargeError(MpidError, ValueError):
    """Raised when the metadata of a header exceeds the maximum allowed size."""

    def __init__(self, size: int, maxsize: int) -> None:
        super().__init__(f'Header metadata is too large ({size} > {maxsize} bytes)')
        self.size = size
        self.maxsize = maxsize


class BodyTooLargeError(MpidError, ValueError):
    """Raised when the body of a message exceeds the maximum allowed size."""

    def __init__(self, size: int, maxsize: int) -> None:
        super().__init__(f'Message body is too large ({size} > {maxsize} bytes)')
        self.size = size
        self.maxsize = maxsize


class EncodingError(MpidError):
    """Raised when a value cannot be encoded for signing or hashing."""


class UnknownWrapperTypeError(MpidError, ValueError):
    """Raised when decoding a wrapper with a type code that is not defined."""

    def __init__(self, code: int) -> None:
        super().__init__(f'Unknown message wrapper type code 0x{code:02x}')
        self.code = code


class OutboxFullError(MpidError):
    """Raised when storing an envelope would exceed the outbox capacity."""
