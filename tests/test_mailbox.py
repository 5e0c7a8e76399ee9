# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging

import pytest
from mpid.configuration import MailboxConfiguration
from mpid.mailbox import Outbox
from mpid.messages import (
    MAX_HEADER_METADATA_SIZE,
    GetMessage,
    GetOutboxHeaders,
    GetOutboxHeadersResponse,
    MpidHeader,
    MpidMessage,
    Online,
    OutboxHas,
    OutboxHasResponse,
    PutHeader,
    PutMessage,
    XorName,
)
from mpid.messages.exceptions import OutboxFullError
from mpid.trust import KeyType, PrivateKey


@pytest.fixture
def secret_key() -> PrivateKey:
    return KeyType.ED25519.generate()


@pytest.fixture
def owner() -> XorName:
    return XorName.generate()


@pytest.fixture
def outbox(owner: XorName, secret_key: PrivateKey) -> Outbox:
    return Outbox(owner, secret_key.public_key())


class TestOutbox:

    def test_header_lifecycle(self, outbox: Outbox, owner: XorName, secret_key: PrivateKey) -> None:
        header = MpidHeader.new(owner, bytes(MAX_HEADER_METADATA_SIZE), secret_key)
        assert len(header.metadata) == MAX_HEADER_METADATA_SIZE
        name = header.name()
        unknown_name = XorName.generate()

        assert outbox.handle(PutHeader(header=header)) is None
        assert name in outbox
        assert len(outbox) == 1
        assert outbox.size == header.wire_length()

        response = outbox.handle(OutboxHas(names=[name, unknown_name, name]))
        assert response == OutboxHasResponse(headers=[header])

        assert outbox.remove(name) == header
        assert name not in outbox
        assert outbox.size == 0
        assert outbox.remove(name) is None
        assert outbox.handle(OutboxHas(names=[name])) == OutboxHasResponse(headers=[])

    def test_wire_exchange(self, outbox: Outbox, owner: XorName, secret_key: PrivateKey) -> None:
        header = MpidHeader.new(owner, b'metadata', secret_key)
        request = PutHeader.from_wire(PutHeader(header=header).to_wire())
        outbox.handle(request)
        query = OutboxHas.from_wire(OutboxHas(names=[header.name()]).to_wire())
        response = OutboxHasResponse.from_wire(outbox.handle(query).to_wire())
        assert list(response.headers) == [header]
        assert response.headers[0].verify(secret_key.public_key())

    def test_messages(self, outbox: Outbox, owner: XorName, secret_key: PrivateKey) -> None:
        message = MpidMessage.compose(owner, b'metadata', XorName.generate(), b'body', secret_key)
        assert outbox.add_message(message)
        assert message.name() in outbox
        assert outbox.size == message.wire_length()
        assert outbox.get_message(message.header) == message
        assert outbox.handle(GetMessage(header=message.header)) == PutMessage(message=message)

        other_header = MpidHeader.new(owner, b'metadata', secret_key)
        assert outbox.get_message(other_header) is None
        assert outbox.handle(GetMessage(header=other_header)) is None

    def test_header_upgrade(self, outbox: Outbox, owner: XorName, secret_key: PrivateKey) -> None:
        header = MpidHeader.new(owner, b'metadata', secret_key)
        message = MpidMessage.new(header, XorName.generate(), b'body', secret_key)

        assert outbox.add_header(header)
        assert outbox.get_message(header) is None
        assert outbox.handle(GetMessage(header=header)) is None

        assert outbox.add_message(message)
        assert len(outbox) == 1
        assert outbox.size == message.wire_length()
        assert outbox.get_message(header) == message

        # storing the header again does not discard the message
        assert outbox.add_header(header)
        assert outbox.size == message.wire_length()
        assert outbox.get_message(header) == message

    def test_idempotent_store(self, outbox: Outbox, owner: XorName, secret_key: PrivateKey) -> None:
        message = MpidMessage.compose(owner, b'metadata', XorName.generate(), b'body', secret_key)
        outbox.handle(PutMessage(message=message))
        outbox.handle(PutMessage(message=message))
        assert len(outbox) == 1
        assert outbox.size == message.wire_length()

    def test_headers(self, outbox: Outbox, owner: XorName, secret_key: PrivateKey) -> None:
        assert outbox.handle(GetOutboxHeaders()) == GetOutboxHeadersResponse(headers=[])
        headers = [MpidHeader.new(owner, bytes([n]), secret_key) for n in range(3)]
        for header in headers:
            outbox.add_header(header)
        assert outbox.headers() == headers
        assert outbox.handle(GetOutboxHeaders()) == GetOutboxHeadersResponse(headers=headers)
        assert list(outbox) == [header.name() for header in headers]
        assert outbox.has([headers[2].name(), headers[0].name()]) == [headers[2], headers[0]]

    def test_rejections(self, outbox: Outbox, owner: XorName, secret_key: PrivateKey, caplog: pytest.LogCaptureFixture) -> None:
        foreign_header = MpidHeader.new(XorName.generate(), b'metadata', secret_key)
        forged_header = MpidHeader.new(owner, b'metadata', KeyType.ED25519.generate())
        forged_message = MpidMessage.compose(owner, b'metadata', XorName.generate(), b'body', KeyType.ED25519.generate())

        with caplog.at_level(logging.WARNING, logger='mpid.mailbox'):
            assert not outbox.add_header(foreign_header)
            assert not outbox.add_header(forged_header)
            assert not outbox.add_message(forged_message)
            assert outbox.handle(PutHeader(header=forged_header)) is None

        assert len(outbox) == 0
        assert outbox.size == 0
        assert len(caplog.records) == 4
        assert 'the sender does not own this outbox' in caplog.records[0].getMessage()
        assert 'the signature does not verify' in caplog.records[1].getMessage()

    def test_capacity(self, owner: XorName, secret_key: PrivateKey) -> None:
        header = MpidHeader.new(owner, b'metadata', secret_key)
        configuration = MailboxConfiguration(max_outbox_size=2 * header.wire_length())
        outbox = Outbox(owner, secret_key.public_key(), configuration=configuration)
        assert outbox.capacity == 2 * header.wire_length()

        outbox.add_header(header)
        outbox.add_header(MpidHeader.new(owner, b'metadata', secret_key))
        assert outbox.size == outbox.capacity

        extra_header = MpidHeader.new(owner, b'metadata', secret_key)
        with pytest.raises(OutboxFullError, match='would exceed its capacity'):
            outbox.add_header(extra_header)
        assert extra_header.name() not in outbox
        assert outbox.size == outbox.capacity

        # an envelope that is already stored is accepted when the outbox is full
        assert outbox.add_header(header)

        outbox.remove(header.name())
        assert outbox.add_header(extra_header)

    def test_capacity_on_upgrade(self, owner: XorName, secret_key: PrivateKey) -> None:
        header = MpidHeader.new(owner, b'metadata', secret_key)
        message = MpidMessage.new(header, XorName.generate(), 1000 * b'b', secret_key)
        configuration = MailboxConfiguration(max_outbox_size=message.wire_length() - 1)
        outbox = Outbox(owner, secret_key.public_key(), configuration=configuration)
        outbox.add_header(header)
        with pytest.raises(OutboxFullError):
            outbox.add_message(message)
        assert outbox.get_message(header) is None
        assert outbox.size == header.wire_length()

    def test_other_requests(self, outbox: Outbox, owner: XorName, secret_key: PrivateKey) -> None:
        header = MpidHeader.new(owner, b'metadata', secret_key)
        assert outbox.handle(Online()) is None
        assert outbox.handle(OutboxHasResponse(headers=[header])) is None
        assert outbox.handle(GetOutboxHeadersResponse(headers=[header])) is None
        assert len(outbox) == 0
        with pytest.raises(TypeError, match='Unsupported message wrapper'):
            outbox.handle(header)

    def test_repr(self, outbox: Outbox, owner: XorName) -> None:
        assert repr(outbox) == f'<Outbox: owner={owner} entries=0 size=0/{2**27}>'
