# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
MPID messaging envelopes.

   A client that wants to send a message to another account first creates
   an MpidHeader, which is a small, self contained and signed notification
   that carries the sender's name, a random GUID and up to 128 bytes of
   metadata. The header can be embedded in an MpidMessage that adds the
   recipient's name and a body of up to 101,760 bytes, signed separately.

     +------------------------------------------+
     | MpidMessage                              |
     |   +----------------------------------+   |
     |   | MpidHeader                       |   |
     |   |   sender | guid | metadata | sig |   |
     |   +----------------------------------+   |
     |   recipient | body | signature           |
     +------------------------------------------+

   The header signature covers the encoding of (sender, guid, metadata),
   while the message signature covers the encoding of (recipient, body).
   A message is valid only if both signatures verify with the same public
   key. The name of a header (and of any message embedding it) is the
   SHA-512 hash of the header's complete encoding, including its signature.

   Headers, messages and requests are exchanged between clients and the
   manager nodes wrapped in one of the MpidMessageWrapper variants.

"""

import logging
from collections.abc import MutableMapping
from io import BytesIO
from typing import ClassVar, Self

from mpid.python import hexsummary
from mpid.trust import PrivateKey, PublicKey, sign, verify_signature

from .datamodel import GUID, Opaque8Adapter, OpaqueAdapter, RandomSource, UInt8, WireData, XorName, secure_random_bytes
from .elements import AnnotatedStructure, Element, ListElement, Structure
from .exceptions import BodyTooLargeError, EncodingError, MetadataTooLargeError, UnknownWrapperTypeError

__all__ = (  # noqa: RUF022
    # Constants
    'GUID_SIZE',
    'MAX_HEADER_METADATA_SIZE',
    'MAX_BODY_SIZE',
    'MAX_INBOX_SIZE',
    'MAX_OUTBOX_SIZE',

    # Identifiers
    'GUID',
    'XorName',

    # Envelopes
    'HeaderContents',
    'MessageContents',
    'MpidHeader',
    'MpidMessage',

    # Message wrappers (the mailbox protocol operations)
    'MpidMessageWrapper',

    'Online',
    'PutMessage',
    'PutHeader',
    'GetMessage',
    'OutboxHas',
    'OutboxHasResponse',
    'GetOutboxHeaders',
    'GetOutboxHeadersResponse',

    # Helpers
    'mpid_header_name',
    'mpid_message_name',
)


log = logging.getLogger(__name__)


GUID_SIZE = GUID._size_                                       # 16 bytes
MAX_HEADER_METADATA_SIZE = 128                                # 128 bytes
MAX_BODY_SIZE = 102400 - 512 - MAX_HEADER_METADATA_SIZE       # 101,760 bytes
MAX_INBOX_SIZE = 1 << 27                                      # 128 MiB
MAX_OUTBOX_SIZE = 1 << 27                                     # 128 MiB


# Custom adapters

class MetadataAdapter(OpaqueAdapter, maxsize=MAX_HEADER_METADATA_SIZE):
    @classmethod
    def validate(cls, value: bytes, /) -> bytes:
        if len(value) > cls._maxsize_:
            raise MetadataTooLargeError(len(value), cls._maxsize_)
        return bytes(value)


class BodyAdapter(OpaqueAdapter, maxsize=MAX_BODY_SIZE):
    @classmethod
    def validate(cls, value: bytes, /) -> bytes:
        if len(value) > cls._maxsize_:
            raise BodyTooLargeError(len(value), cls._maxsize_)
        return bytes(value)


# Signed contents

class HeaderContents(AnnotatedStructure):
    """The part of a header that is covered by the header signature"""

    sender: Element[XorName] = Element(XorName)
    guid: Element[GUID] = Element(GUID)
    metadata: Element[bytes] = Element(bytes, adapter=MetadataAdapter)


class MessageContents(AnnotatedStructure):
    """The part of a message that is covered by the message signature"""

    recipient: Element[XorName] = Element(XorName)
    body: Element[bytes] = Element(bytes, adapter=BodyAdapter)


def _encode(value: Structure) -> bytes:
    try:
        return value.to_wire()
    except (ValueError, OverflowError) as exc:
        raise EncodingError(f'Cannot encode {value.__class__.__qualname__}: {exc}') from exc


# Envelopes

class MpidHeader(AnnotatedStructure):
    sender: Element[XorName] = Element(XorName)
    guid: Element[GUID] = Element(GUID)
    metadata: Element[bytes] = Element(bytes, adapter=MetadataAdapter)
    signature: Element[bytes] = Element(bytes, adapter=Opaque8Adapter)

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: sender={hexsummary(self.sender)} guid={self.guid.hex()} metadata={hexsummary(self.metadata)} signature={hexsummary(self.signature)}>'

    @classmethod
    def new(cls, sender: XorName, metadata: bytes, secret_key: PrivateKey, *, random_bytes: RandomSource = secure_random_bytes) -> Self:
        """
        Create a signed header.

        The metadata is arbitrary, user supplied data that can be empty, but
        it must not exceed MAX_HEADER_METADATA_SIZE bytes. A fresh GUID is
        drawn from random_bytes for every header, which makes headers with
        the same sender and metadata distinguishable from each other.

        Raises MetadataTooLargeError if the metadata is too large and
        EncodingError if the header contents cannot be encoded for signing.
        """
        if len(metadata) > MAX_HEADER_METADATA_SIZE:
            raise MetadataTooLargeError(len(metadata), MAX_HEADER_METADATA_SIZE)
        contents = HeaderContents(sender=sender, guid=GUID.generate(random_bytes), metadata=metadata)
        signature = sign(secret_key, _encode(contents))
        return cls(sender=contents.sender, guid=contents.guid, metadata=contents.metadata, signature=signature)

    @property
    def contents(self) -> HeaderContents:
        return HeaderContents(sender=self.sender, guid=self.guid, metadata=self.metadata)

    def name(self) -> XorName:
        """The name of the header, which is the hash of its complete encoding (signature included)"""
        return XorName.for_data(_encode(self))

    def verify(self, public_key: PublicKey) -> bool:
        """Check the header signature against the public key"""
        try:
            signed_data = self.contents.to_wire()
        except (ValueError, OverflowError) as exc:
            log.debug('Cannot encode the contents of %r for verification: %s', self, exc)
            return False
        if not verify_signature(public_key, self.signature, signed_data):
            log.debug('Invalid signature for %r', self)
            return False
        return True


class MpidMessage(AnnotatedStructure):
    header: Element[MpidHeader] = Element(MpidHeader)
    recipient: Element[XorName] = Element(XorName)
    body: Element[bytes] = Element(bytes, adapter=BodyAdapter)
    signature: Element[bytes] = Element(bytes, adapter=Opaque8Adapter)

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: header={self.header!r} recipient={hexsummary(self.recipient)} body={hexsummary(self.body)} ({len(self.body)} bytes) signature={hexsummary(self.signature)}>'

    @classmethod
    def new(cls, header: MpidHeader, recipient: XorName, body: bytes, secret_key: PrivateKey) -> Self:
        """
        Create a signed message that embeds the given header.

        The body is arbitrary, user supplied data that can be empty, but it
        must not exceed MAX_BODY_SIZE bytes. The header is embedded as is.
        It is not verified, but for the message to verify the header must
        have been signed with the same key as the message.

        Raises BodyTooLargeError if the body is too large and EncodingError
        if the message contents cannot be encoded for signing.
        """
        if len(body) > MAX_BODY_SIZE:
            raise BodyTooLargeError(len(body), MAX_BODY_SIZE)
        contents = MessageContents(recipient=recipient, body=body)
        signature = sign(secret_key, _encode(contents))
        return cls(header=header, recipient=contents.recipient, body=contents.body, signature=signature)

    @classmethod
    def compose(cls, sender: XorName, metadata: bytes, recipient: XorName, body: bytes, secret_key: PrivateKey, *, random_bytes: RandomSource = secure_random_bytes) -> Self:
        """Create a new header for sender and metadata and a message that embeds it"""
        if len(body) > MAX_BODY_SIZE:
            raise BodyTooLargeError(len(body), MAX_BODY_SIZE)
        header = MpidHeader.new(sender, metadata, secret_key, random_bytes=random_bytes)
        return cls.new(header, recipient, body, secret_key)

    @property
    def contents(self) -> MessageContents:
        return MessageContents(recipient=self.recipient, body=self.body)

    def name(self) -> XorName:
        """The name of the message, which is the name of its header"""
        return self.header.name()

    def verify_signature(self, public_key: PublicKey) -> bool:
        """Check only the message signature (not the header) against the public key"""
        try:
            signed_data = self.contents.to_wire()
        except (ValueError, OverflowError) as exc:
            log.debug('Cannot encode the contents of %r for verification: %s', self, exc)
            return False
        if not verify_signature(public_key, self.signature, signed_data):
            log.debug('Invalid signature for %r', self)
            return False
        return True

    def verify(self, public_key: PublicKey) -> bool:
        """Check both the message and the header signatures against the public key"""
        return self.verify_signature(public_key) and self.header.verify(public_key)


# Message wrappers (the mailbox protocol operations)

type WrapperType = type[MpidMessageWrapper]


class MpidMessageWrapper(AnnotatedStructure):
    # wrapper code 0 is invalid and marks abstract wrapper types
    # the wrapper code should be overridden by subclasses

    _code_: ClassVar[UInt8] = UInt8()
    _registry_: ClassVar[MutableMapping[int, WrapperType]] = {}

    def __init_subclass__(cls, *, code: int = 0, **kw: object) -> None:
        super().__init_subclass__(**kw)
        if cls._code_ != 0 and code == 0:
            raise TypeError('When inheriting a message wrapper type with a non-zero code, the new type code must be different from 0')
        cls._code_ = UInt8(code)
        if cls._code_ != 0 and cls._registry_.setdefault(cls._code_, cls) is not cls:
            raise TypeError(f'Message wrapper code 0x{cls._code_:02x} is already used by {cls._registry_[cls._code_].__qualname__!r}')

    def __new__(cls, **kw: object) -> Self:
        if cls._code_ == 0:
            raise TypeError(f'Cannot instantiate abstract message wrapper type {cls.__qualname__!r}')
        return super().__new__(cls, **kw)

    def __class_getitem__(cls, code: int) -> WrapperType:
        try:
            return cls._registry_[code]
        except KeyError as exc:
            raise TypeError(f'Unknown message wrapper code 0x{code:x}') from exc

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        try:
            code = UInt8.from_wire(buffer)
        except ValueError as exc:
            raise ValueError(f'Insufficient data in buffer to extract the {cls.__qualname__} type code') from exc
        wrapper_type = cls._registry_.get(code)
        if wrapper_type is None:
            raise UnknownWrapperTypeError(code)
        if not issubclass(wrapper_type, cls):
            raise ValueError(f'Wire data contains a {wrapper_type.__qualname__!r} instead of a {cls.__qualname__!r}')
        wrapper = super(MpidMessageWrapper, wrapper_type).from_wire(buffer)
        if trailing_data := buffer.read():
            raise ValueError(f'Wire data has {len(trailing_data)} unexpected trailing bytes after the {wrapper_type.__qualname__} message wrapper')
        return wrapper

    def to_wire(self) -> bytes:
        return self._code_.to_wire() + super().to_wire()

    def wire_length(self) -> int:
        return self._code_.wire_length() + super().wire_length()


class Online(MpidMessageWrapper, code=0x01):
    pass


class PutMessage(MpidMessageWrapper, code=0x02):
    message: Element[MpidMessage] = Element(MpidMessage)


class PutHeader(MpidMessageWrapper, code=0x03):
    header: Element[MpidHeader] = Element(MpidHeader)


# Requests the body of the message that a previously received header announced
class GetMessage(MpidMessageWrapper, code=0x04):
    header: Element[MpidHeader] = Element(MpidHeader)


class OutboxHas(MpidMessageWrapper, code=0x05):
    names: ListElement[XorName] = ListElement(XorName, default=(), maxsize=2**32 - 1)


# Contains the headers for the queried names that are still present in the outbox
class OutboxHasResponse(MpidMessageWrapper, code=0x06):
    headers: ListElement[MpidHeader] = ListElement(MpidHeader, default=(), maxsize=2**32 - 1)


class GetOutboxHeaders(MpidMessageWrapper, code=0x07):
    pass


class GetOutboxHeadersResponse(MpidMessageWrapper, code=0x08):
    headers: ListElement[MpidHeader] = ListElement(MpidHeader, default=(), maxsize=2**32 - 1)


# Helpers

def mpid_header_name(header: MpidHeader) -> XorName:
    return header.name()


def mpid_message_name(message: MpidMessage) -> XorName:
    return message.name()
