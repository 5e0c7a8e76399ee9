# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Canonical binary encoding for the MPID messaging data types.

All integers are represented in network byte order. Variable length byte
strings are prefixed with their length, using the minimum number of bytes
needed to represent their maximum size. Lists are prefixed with the length
of their encoded items. Structures are encoded as the concatenation of their
elements, in the order they were defined.

The encoding is a pure function of the values being encoded, which makes it
suitable as the input for signatures and hashes.
"""

import hashlib
from collections.abc import Buffer, Callable, Iterable
from io import BytesIO
from secrets import token_bytes as secure_random_bytes
from types import GenericAlias, NotImplementedType, new_class
from typing import ClassVar, Protocol, Self, SupportsIndex, TypeVar, runtime_checkable

from mpid.python import hexsummary

__all__ = (  # noqa: RUF022
    # Protocols and types
    'WireData',
    'DataWireProtocol',
    'DataWireAdapter',

    # Adapters
    'OpaqueAdapter',
    'Opaque8Adapter',

    # Data types
    'UInt8',
    'FixedSize',
    'GUID',
    'XorName',
    'List',
    'make_list_type',

    # Helpers
    'RandomSource',
    'byte_length',
    'read_exactly',
    'secure_random_bytes',
)


type WireData = bytes | bytearray | memoryview | BytesIO

type RandomSource = Callable[[int], bytes]


# Protocols

@runtime_checkable
class DataWireProtocol(Protocol):
    """The wire protocol for MPID message data elements"""

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self: ...

    def to_wire(self) -> bytes: ...

    def wire_length(self) -> int: ...


@runtime_checkable
class DataWireAdapter[T](Protocol):
    """Wire protocol adapter for an MPID message data element of type T"""

    _abstract_: ClassVar[bool] = True

    @staticmethod
    def from_wire(buffer: WireData) -> T: ...

    @staticmethod
    def to_wire(value: T, /) -> bytes: ...

    @staticmethod
    def wire_length(value: T, /) -> int: ...

    @staticmethod
    def validate(value: T, /) -> T: ...


# Helpers

def byte_length(number: int) -> int:
    """Return the number of bytes needed to represent the number"""
    return (number.bit_length() + 7) // 8


def read_exactly(buffer: WireData, size: int, what: str) -> bytes:
    """Read size bytes from the buffer, advancing it if it is a stream"""
    data = buffer.read(size) if isinstance(buffer, BytesIO) else bytes(buffer[:size])
    if len(data) < size:
        raise ValueError(f'Insufficient data in buffer to extract {what}')
    return data


# Adapters

class OpaqueAdapter:
    """Adapter for a bytes buffer of up to maxsize bytes, prefixed with its length"""

    _abstract_: ClassVar[bool] = True
    _maxsize_: ClassVar[int] = NotImplemented
    _sizelen_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, maxsize: int = NotImplemented, **kw: object) -> None:
        super().__init_subclass__(**kw)
        if maxsize is not NotImplemented:
            cls._maxsize_ = maxsize
            cls._sizelen_ = byte_length(maxsize)
            cls._abstract_ = False

    @classmethod
    def from_wire(cls, buffer: WireData) -> bytes:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        length = int.from_bytes(read_exactly(buffer, cls._sizelen_, 'the opaque bytes length'), byteorder='big')
        if length > cls._maxsize_:
            raise ValueError(f'Data length is too big for opaque bytes ({length} > {cls._maxsize_})')
        return read_exactly(buffer, length, 'the opaque bytes')

    @classmethod
    def to_wire(cls, value: bytes, /) -> bytes:
        return len(value).to_bytes(cls._sizelen_, byteorder='big') + value

    @classmethod
    def wire_length(cls, value: bytes, /) -> int:
        return cls._sizelen_ + len(value)

    @classmethod
    def validate(cls, value: bytes, /) -> bytes:
        if len(value) > cls._maxsize_:
            raise ValueError(f'Value is too long for opaque bytes (max length is {cls._maxsize_}, value has {len(value)} bytes)')
        return bytes(value)  # mutable buffers are copied so the stored value cannot change


class Opaque8Adapter(OpaqueAdapter, maxsize=2**8 - 1):
    pass


# Data types

class UInt8(int):
    """An unsigned 8-bit integer (the message wrapper type code)"""

    def __new__(cls, value: SupportsIndex = 0, /) -> Self:
        instance = super().__new__(cls, value)
        if not 0 <= instance <= 0xff:  # noqa: PLR2004
            raise ValueError(f'Value is out of range for unsigned 8-bits integer: {value!r}')
        return instance

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({int(self)})'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        return cls(read_exactly(buffer, 1, f'{cls.__qualname__!r}')[0])

    def to_wire(self) -> bytes:
        return bytes((self,))

    def wire_length(self) -> int:
        return 1


class FixedSize(bytes):
    """A fixed size bytes buffer"""

    _size_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, size: int = NotImplemented, **kw: object) -> None:
        super().__init_subclass__(**kw)
        if size is not NotImplemented:
            cls._size_ = size

    def __new__(cls, value: Buffer | Iterable[SupportsIndex], /) -> Self:
        if cls._size_ is NotImplemented:
            raise TypeError(f'Cannot instantiate fixed size bytes type {cls.__qualname__!r} that does not define its size')
        instance = super().__new__(cls, value)
        if len(instance) != cls._size_:
            raise ValueError(f'{cls.__qualname__!r} objects must have {cls._size_} bytes')
        return instance

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({super().__repr__()})'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if cls._size_ is NotImplemented:
            raise TypeError(f'Cannot instantiate fixed size bytes type {cls.__qualname__!r} that does not define its size')
        return cls(read_exactly(buffer, cls._size_, f'{cls.__qualname__!r}'))

    def to_wire(self) -> bytes:
        return bytes(self)

    def wire_length(self) -> int:
        return self._size_

    @classmethod
    def generate(cls, random_bytes: RandomSource = secure_random_bytes) -> Self:
        return cls(random_bytes(cls._size_))


class GUID(FixedSize, size=16):
    """The random identifier that distinguishes otherwise identical headers"""

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: {self.hex()}>'


class XorName(FixedSize, size=64):
    """A name in the network's XOR address space (the length of a SHA-512 digest)"""

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: {hexsummary(self)}>'

    def __str__(self) -> str:
        return hexsummary(self)

    @property
    def value(self) -> int:
        return int.from_bytes(self, byteorder='big')

    def distance(self, other: 'XorName', /) -> int:
        return self.value ^ other.value

    @classmethod
    def for_data(cls, data: str | bytes | bytearray | memoryview) -> Self:
        if isinstance(data, str):
            data = data.encode()
        return cls(hashlib.sha512(data).digest())


class List[T: DataWireProtocol](tuple[T, ...]):
    """
    An immutable list of items, prefixed on the wire with the length of the encoded items.

    Concrete lists are created by parameterizing the item type and specifying the maximum
    length of the encoded items, which determines the size of the length prefix:

        class NameList(List[XorName], maxsize=2**32 - 1):
            pass
    """

    _type_: ClassVar[type] = NotImplementedType
    _maxsize_: ClassVar[int] = NotImplemented
    _sizelen_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, maxsize: int = NotImplemented, **kw: object) -> None:
        super().__init_subclass__(**kw)
        if maxsize is not NotImplemented:
            cls._maxsize_ = maxsize
            cls._sizelen_ = byte_length(maxsize)
        for base in getattr(cls, '__orig_bases__', ()):
            if isinstance(base, GenericAlias) and isinstance(base.__origin__, type) and issubclass(base.__origin__, List):
                match base.__args__[0]:
                    case TypeVar():
                        pass  # still generic
                    case type() as item_type:
                        cls._type_ = item_type
                    case _:
                        raise TypeError(f'The {cls.__qualname__!r} type can only be parameterized with a single base type or a type variable')

    def __new__(cls, iterable: Iterable[T] = (), /) -> Self:
        cls._check_concrete()
        return super().__new__(cls, iterable)

    @classmethod
    def _check_concrete(cls) -> None:
        if cls._type_ is NotImplementedType or cls._sizelen_ is NotImplemented:
            raise TypeError(f'Cannot instantiate abstract list {cls.__qualname__!r} that does not define its item type and max size')

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        cls._check_concrete()
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        size = int.from_bytes(read_exactly(buffer, cls._sizelen_, f'list length for {cls.__qualname__!r}'), byteorder='big')
        if size > cls._maxsize_:
            raise ValueError(f'Data length is too big for {cls.__qualname__!r} ({size} > {cls._maxsize_})')
        items_buffer = BytesIO(read_exactly(buffer, size, f'list values for {cls.__qualname__!r}'))
        items = []
        while items_buffer.tell() < size:
            items.append(cls._type_.from_wire(items_buffer))
        return cls(items)

    def to_wire(self) -> bytes:
        items_data = b''.join(item.to_wire() for item in self)
        if len(items_data) > self._maxsize_:
            raise ValueError(f'The encoded items are too long for {self.__class__.__qualname__!r} ({len(items_data)} > {self._maxsize_})')
        return len(items_data).to_bytes(self._sizelen_, byteorder='big') + items_data

    def wire_length(self) -> int:
        return self._sizelen_ + sum(item.wire_length() for item in self)


def make_list_type[T: DataWireProtocol](item_type: type[T], /, *, maxsize: int) -> type[List[T]]:
    return new_class(f'{item_type.__name__}List', (List[item_type],), kwds={'maxsize': maxsize})  # type: ignore[valid-type]
