# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Mailbox configuration.

The configuration can be created directly or loaded from an XML document:

    <mailbox xmlns="urn:mpid:params:xml:ns:mailbox-config">
        <max-inbox-size>134217728</max-inbox-size>
        <max-outbox-size>67108864</max-outbox-size>
    </mailbox>

Elements that are missing use the protocol defaults.
"""

from dataclasses import dataclass, fields
from os import PathLike
from pathlib import Path
from typing import ClassVar, Self

from lxml import etree

from mpid.messages import MAX_INBOX_SIZE, MAX_OUTBOX_SIZE

__all__ = 'MailboxConfiguration',  # noqa: COM818


type ETreeElement = etree._Element  # noqa: SLF001


ns_mailbox = 'urn:mpid:params:xml:ns:mailbox-config'


@dataclass(kw_only=True, frozen=True, slots=True)
class MailboxConfiguration:
    max_inbox_size: int = MAX_INBOX_SIZE
    max_outbox_size: int = MAX_OUTBOX_SIZE

    _ceilings_: ClassVar[dict[str, int]] = {
        'max_inbox_size': MAX_INBOX_SIZE,
        'max_outbox_size': MAX_OUTBOX_SIZE,
    }

    def __post_init__(self) -> None:
        for name, ceiling in self._ceilings_.items():
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f'The {name} setting must be an integer, got {value.__class__.__qualname__!r}')
            if not 0 < value <= ceiling:
                raise ValueError(f'The {name} setting must be between 1 and {ceiling} bytes, got {value}')

    @classmethod
    def from_xml(cls, element: ETreeElement) -> Self:
        tag = f'{{{ns_mailbox}}}mailbox'
        if element.tag != tag:
            raise ValueError(f'The XML element tag does not match the mailbox configuration tag: {element.tag!r} != {tag!r}')
        settings = {}
        for field in fields(cls):
            text = element.findtext(f'{{{ns_mailbox}}}{field.name.replace('_', '-')}')
            if text is None:
                continue
            try:
                settings[field.name] = int(text.strip())
            except ValueError as exc:
                raise ValueError(f'Invalid value for the {field.name} setting: {text!r}') from exc
        return cls(**settings)

    @classmethod
    def from_string(cls, data: str | bytes) -> Self:
        if isinstance(data, str):
            data = data.encode()
        try:
            element = etree.fromstring(data)
        except etree.XMLSyntaxError as exc:
            raise ValueError(f'Cannot parse the mailbox configuration: {exc}') from exc
        return cls.from_xml(element)

    @classmethod
    def load(cls, path: str | PathLike[str]) -> Self:
        return cls.from_string(Path(path).expanduser().read_bytes())
