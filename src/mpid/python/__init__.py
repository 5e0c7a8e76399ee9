# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Buffer
from enum import Enum
from types import GenericAlias, NoneType, UnionType
from typing import TypeAliasType

__all__ = 'hexsummary', 'reprproxy'


class reprproxy:  # noqa: N801
    """
    A proxy to provide better representation for certain types.

    The representation will mimic their appearance in the code,
    which can be useful to make error messages more readable.

    This applies to type aliases, generic aliases, union types,
    classes and Enum members. Everything else gets their normal
    representation.
    """

    def __init__(self, value: object) -> None:
        self.value = value

    def __repr__(self) -> str:
        match self.value:
            case TypeAliasType() as value:
                return reprproxy(value.__value__).__repr__()
            case GenericAlias() as value:
                return f'{value.__origin__.__qualname__}[{', '.join(reprproxy(_value).__repr__() for _value in value.__args__)}]'
            case UnionType() as value:
                return ' | '.join('None' if _type is NoneType else reprproxy(_type).__repr__() for _type in value.__args__)
            case Enum() as value:
                return f'{value.__class__.__qualname__}.{value.name}'
            case type() as value:
                return value.__qualname__
            case value:
                return '...' if value is Ellipsis else repr(value)

    __str__ = __repr__


def hexsummary(data: Buffer, /) -> str:
    """
    Format data as hex, keeping only the first and last 3 bytes if longer than 6 bytes.

    For b'\\x01\\x02\\x03' the result is '010203', while for the 15 bytes 1, 2, ..., 15
    the result is '010203..0d0e0f'.
    """
    data = memoryview(data).cast('B')
    if len(data) <= 6:  # noqa: PLR2004
        return data.hex()
    return f'{data[:3].hex()}..{data[-3:].hex()}'
