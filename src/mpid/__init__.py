# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Signed message envelopes for account to account messaging in an XOR addressed network."""

from .__info__ import __version__
from .configuration import MailboxConfiguration
from .mailbox import Outbox
from .messages import (
    GUID,
    GUID_SIZE,
    MAX_BODY_SIZE,
    MAX_HEADER_METADATA_SIZE,
    MAX_INBOX_SIZE,
    MAX_OUTBOX_SIZE,
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
    mpid_header_name,
    mpid_message_name,
)
from .messages.exceptions import BodyTooLargeError, EncodingError, MetadataTooLargeError, MpidError, OutboxFullError, UnknownWrapperTypeError
from .trust import KeyType

__all__ = (  # noqa: RUF022
    '__version__',

    # Constants
    'GUID_SIZE',
    'MAX_HEADER_METADATA_SIZE',
    'MAX_BODY_SIZE',
    'MAX_INBOX_SIZE',
    'MAX_OUTBOX_SIZE',

    # Types
    'GUID',
    'XorName',
    'MpidHeader',
    'MpidMessage',
    'MpidMessageWrapper',
    'Online',
    'PutMessage',
    'PutHeader',
    'GetMessage',
    'OutboxHas',
    'OutboxHasResponse',
    'GetOutboxHeaders',
    'GetOutboxHeadersResponse',
    'mpid_header_name',
    'mpid_message_name',

    # Errors
    'MpidError',
    'MetadataTooLargeError',
    'BodyTooLargeError',
    'EncodingError',
    'UnknownWrapperTypeError',
    'OutboxFullError',

    # Mailbox
    'KeyType',
    'MailboxConfiguration',
    'Outbox',
)
