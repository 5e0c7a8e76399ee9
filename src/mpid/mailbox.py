# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
In-memory account outbox.

The outbox holds the headers and messages that an account has sent, keyed
by their name, and answers the mailbox protocol requests about them. It
only accepts envelopes sent by the account that owns it and signed with
the account's key, and it keeps the encoded size of the stored envelopes
within the configured capacity.

The outbox is not persistent and it is not safe to use from multiple
threads without external locking.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from mpid.configuration import MailboxConfiguration
from mpid.messages import (
    GetMessage,
    GetOutboxHeaders,
    GetOutboxHeadersResponse,
    MpidHeader,
    MpidMessage,
    MpidMessageWrapper,
    Online,
    OutboxHas,
    OutboxHasResponse,
    PutHeader,
    PutMessage,
    XorName,
)
from mpid.messages.exceptions import OutboxFullError
from mpid.trust import PublicKey

__all__ = 'Outbox',  # noqa: COM818


log = logging.getLogger(__name__)


@dataclass(slots=True)
class OutboxEntry:
    header: MpidHeader
    message: MpidMessage | None
    size: int


class Outbox:
    def __init__(self, owner: XorName, public_key: PublicKey, *, configuration: MailboxConfiguration | None = None) -> None:
        self.owner = owner
        self.public_key = public_key
        self.configuration = configuration if configuration is not None else MailboxConfiguration()
        self._entries: dict[XorName, OutboxEntry] = {}
        self._size = 0

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: owner={self.owner!s} entries={len(self._entries)} size={self._size}/{self.capacity}>'

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[XorName]:
        return iter(self._entries)

    @property
    def size(self) -> int:
        """The total encoded size of the stored envelopes"""
        return self._size

    @property
    def capacity(self) -> int:
        return self.configuration.max_outbox_size

    def add_header(self, header: MpidHeader) -> bool:
        """Store a header. Returns False if the header was rejected."""
        if header.sender != self.owner:
            log.warning('Rejected %r: the sender does not own this outbox', header)
            return False
        if not header.verify(self.public_key):
            log.warning('Rejected %r: the signature does not verify', header)
            return False
        self._store(header, None)
        return True

    def add_message(self, message: MpidMessage) -> bool:
        """Store a message. Returns False if the message was rejected."""
        if message.header.sender != self.owner:
            log.warning('Rejected %r: the sender does not own this outbox', message)
            return False
        if not message.verify(self.public_key):
            log.warning('Rejected %r: the signature does not verify', message)
            return False
        self._store(message.header, message)
        return True

    def remove(self, name: XorName) -> MpidHeader | None:
        """Remove the envelope with the given name and return its header (or None if it was not stored)"""
        entry = self._entries.pop(name, None)
        if entry is None:
            return None
        self._size -= entry.size
        log.debug('Removed %s from the outbox of %s (%d bytes released)', name, self.owner, entry.size)
        return entry.header

    def has(self, names: Iterable[XorName]) -> list[MpidHeader]:
        """Return the headers for the names that are present, with each name considered once"""
        return [self._entries[name].header for name in dict.fromkeys(names) if name in self._entries]

    def headers(self) -> list[MpidHeader]:
        return [entry.header for entry in self._entries.values()]

    def get_message(self, header: MpidHeader) -> MpidMessage | None:
        entry = self._entries.get(header.name())
        if entry is None or entry.header != header:
            return None
        return entry.message

    def handle(self, wrapper: MpidMessageWrapper) -> MpidMessageWrapper | None:
        """Process a request and return the response to send back, if any"""
        match wrapper:
            case PutMessage(message=message):
                self.add_message(message)
                return None
            case PutHeader(header=header):
                self.add_header(header)
                return None
            case GetMessage(header=header):
                message = self.get_message(header)
                return PutMessage(message=message) if message is not None else None
            case OutboxHas(names=names):
                return OutboxHasResponse(headers=self.has(names))
            case GetOutboxHeaders():
                return GetOutboxHeadersResponse(headers=self.headers())
            case Online() | OutboxHasResponse() | GetOutboxHeadersResponse():
                return None
            case _:
                raise TypeError(f'Unsupported message wrapper: {wrapper.__class__.__qualname__!r}')

    def _store(self, header: MpidHeader, message: MpidMessage | None) -> None:
        name = header.name()
        existing = self._entries.get(name)
        if existing is not None and (existing.message is not None or message is None):
            return  # already stored (a stored message is not replaced by its header)
        envelope_size = message.wire_length() if message is not None else header.wire_length()
        released_size = existing.size if existing is not None else 0
        if self._size - released_size + envelope_size > self.capacity:
            raise OutboxFullError(f'Cannot store {name}: the outbox of {self.owner} would exceed its capacity of {self.capacity} bytes')
        self._entries[name] = OutboxEntry(header, message, envelope_size)
        self._size += envelope_size - released_size
        log.debug('Stored %s in the outbox of %s (%d bytes, %d/%d used)', name, self.owner, envelope_size, self._size, self.capacity)
