# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from abc import ABC, abstractmethod
from collections.abc import Sequence
from inspect import Parameter, Signature
from io import BytesIO
from types import new_class
from typing import Any, ClassVar, Self, cast, dataclass_transform, overload

from mpid.python import reprproxy

from .datamodel import DataWireAdapter, DataWireProtocol, List, WireData, make_list_type

__all__ = (  # noqa: RUF022
    'Structure',
    'AnnotatedStructure',

    'Element',
    'ListElement',
)


class Structure:
    """
    A structure is encoded as the concatenation of its fields, in the order they were defined.

    Structures are immutable: every field is assigned exactly once, when the structure
    is created, after which it can neither be changed nor deleted. Structures compare
    by type and field values and can be used as dictionary keys or set members.
    """

    __signature__: ClassVar[Signature] = Signature()

    _fields_: ClassVar[dict[str, 'FieldDescriptor']] = {}

    _all_arguments: ClassVar[frozenset[str]]
    _mandatory_arguments: ClassVar[frozenset[str]]
    _default_arguments: ClassVar[dict[str, object]]

    def __new__(cls, **kw: object) -> Self:
        if not cls._all_arguments.issuperset(kw):
            raise TypeError(f'Got an unexpected keyword argument {next(iter(set(kw) - cls._all_arguments))!r}')
        if not cls._mandatory_arguments.issubset(kw):
            raise TypeError(f'Missing a required keyword argument {next(iter(cls._mandatory_arguments - set(kw)))!r}')
        return super().__new__(cls)

    def __init__(self, **kw: object) -> None:
        kw = self._default_arguments | kw
        for name in self._fields_:
            setattr(self, name, kw[name])

    def __init_subclass__(cls, **kw: object) -> None:
        super().__init_subclass__(**kw)

        # inherited fields come first, followed by the ones defined locally
        cls._fields_ = cls._fields_ | {name: value for name, value in cls.__dict__.items() if isinstance(value, FieldDescriptor)}

        parameters = [descriptor.signature_parameter for descriptor in cls._fields_.values()]
        cls.__signature__ = Signature(parameters=parameters)
        cls._all_arguments = frozenset(p.name for p in parameters)
        cls._mandatory_arguments = frozenset(p.name for p in parameters if p.default is Parameter.empty)
        cls._default_arguments = {p.name: p.default for p in parameters if p.default is not Parameter.empty}

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({', '.join(f'{name}={reprproxy(getattr(self, name))!r}' for name in self._fields_)})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Structure):
            return self.__class__ is other.__class__ and all(getattr(self, name) == getattr(other, name) for name in self._fields_)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.__class__, *(getattr(self, name) for name in self._fields_)))

    def __setattr__(self, name: str, value: object) -> None:
        if name not in self._fields_:
            raise AttributeError(f'{self.__class__.__qualname__!r} object has no field {name!r}')
        super().__setattr__(name, value)

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        instance = super().__new__(cls)
        for field in cls._fields_.values():
            field.from_wire(instance, buffer)
        return instance

    def to_wire(self) -> bytes:
        return b''.join(field.to_wire(self) for field in self._fields_.values())

    def wire_length(self) -> int:
        return sum(field.wire_length(self) for field in self._fields_.values())


# Helpers

def _protocol2adapter[T: DataWireProtocol](proto: type[T]) -> type[DataWireAdapter[T]]:
    # Turn a DataWireProtocol into a DataWireAdapter by creating a stand-in adapter on the fly.
    # The stand-in adapter adds a validate method that checks the value type and returns it.

    def validate(value: T, /) -> T:
        if not isinstance(value, proto):
            raise TypeError(f'Expected a value of type {proto.__qualname__!r}, got {value.__class__.__qualname__!r}')
        return value

    def prepare(ns: dict) -> None:
        ns['_abstract_'] = False
        ns['from_wire'] = staticmethod(proto.from_wire)
        ns['to_wire'] = staticmethod(proto.to_wire)
        ns['wire_length'] = staticmethod(proto.wire_length)
        ns['validate'] = staticmethod(validate)

    adapter = new_class(f'{proto.__name__}AdapterStandIn', (DataWireAdapter[T],), exec_body=prepare)
    adapter.__module__ = __name__
    adapter.__qualname__ = f'_protocol2adapter.<generated>.{adapter.__name__}'

    return adapter


type DataWireAdapterType[T] = type[DataWireAdapter[T]]


# Field descriptors

class FieldDescriptor(ABC):
    """
    Base class for the structure fields.

    The field values live in the instance __dict__ under the field name. They are
    set once when the structure is created (or decoded) and are read-only after.
    """

    name: str | None
    default: Any
    annotation: Any

    def __set_name__(self, owner: type[Structure], name: str) -> None:
        if self.name is None:
            self.name = name
        elif name != self.name:
            raise TypeError(f'Cannot assign the same {self.__class__.__qualname__!r} to two different names: {self.name!r} and {name!r}')

    def __get__(self, instance: Structure | None, owner: type[Structure] | None = None) -> Any:
        if instance is None:
            return self
        name = self._check_name()
        try:
            return instance.__dict__[name]
        except KeyError as exc:
            raise AttributeError(f'Attribute {name!r} of object {instance.__class__.__qualname__!r} is not set') from exc

    def __set__(self, instance: Structure, value: Any) -> None:
        name = self._check_name()
        if name in instance.__dict__:
            raise AttributeError(f'Attribute {name!r} of {instance.__class__.__qualname__!r} object is read-only')
        instance.__dict__[name] = self.validate(value)

    def __delete__(self, instance: Structure) -> None:
        raise AttributeError(f'Attribute {self.name!r} of {instance.__class__.__qualname__!r} object cannot be deleted')

    @property
    def signature_parameter(self) -> Parameter:
        name = self._check_name()
        kwds = {} if self.default is NotImplemented else {'default': self.default}
        return Parameter(name=name, kind=Parameter.KEYWORD_ONLY, annotation=self.annotation, **kwds)

    def from_wire(self, instance: Structure, buffer: WireData) -> None:
        name = self._check_name()
        try:
            instance.__dict__[name] = self.decode(buffer)
        except ValueError as exc:
            raise ValueError(f'Failed to read the {instance.__class__.__qualname__}.{name} element from wire: {exc}') from exc

    @abstractmethod
    def validate(self, value: Any) -> Any: ...

    @abstractmethod
    def decode(self, buffer: WireData) -> Any: ...

    @abstractmethod
    def to_wire(self, instance: Structure) -> bytes: ...

    @abstractmethod
    def wire_length(self, instance: Structure) -> int: ...

    def _check_name(self) -> str:
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')
        return self.name


class Element[T](FieldDescriptor):
    def __init__(self, element_type: type[T], /, *, default: T = NotImplemented, adapter: DataWireAdapterType[T] | None = None) -> None:
        self.name = None
        self.type = self.annotation = element_type
        self.default = default
        self.provided_adapter = adapter
        if adapter is None:
            if not issubclass(element_type, DataWireProtocol):
                raise TypeError('Either the element type must implement the DataWireProtocol or an adapter must be provided')
            adapter = cast(DataWireAdapterType[T], _protocol2adapter(element_type))
        if adapter._abstract_:
            raise TypeError(f'Cannot use abstract adapter {adapter.__qualname__!r} (need to select a concrete implementation of it, usually one that defines its size)')
        self.adapter = adapter

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({reprproxy(self.type)!r}, default={self.default!r}, adapter={reprproxy(self.provided_adapter)!r})'

    @overload
    def __get__(self, instance: None, owner: type[Structure]) -> Self: ...

    @overload
    def __get__(self, instance: Structure, owner: type[Structure] | None = None) -> T: ...

    def __get__(self, instance: Structure | None, owner: type[Structure] | None = None) -> Self | T:
        return super().__get__(instance, owner)

    def validate(self, value: T) -> T:
        return self.adapter.validate(value)

    def decode(self, buffer: WireData) -> T:
        return self.adapter.from_wire(buffer)

    def to_wire(self, instance: Structure) -> bytes:
        return self.adapter.to_wire(self.__get__(instance))

    def wire_length(self, instance: Structure) -> int:
        return self.adapter.wire_length(self.__get__(instance))


class ListElement[T: DataWireProtocol](FieldDescriptor):
    def __init__(self, item_type: type[T], /, *, maxsize: int, default: Sequence[T] = NotImplemented) -> None:
        self.name = None
        self.default = default
        self.maxsize = maxsize
        self.item_type = item_type
        self.annotation = Sequence[item_type]  # type: ignore[valid-type]
        self.list_type = make_list_type(item_type, maxsize=maxsize)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.item_type.__qualname__}, maxsize={self.maxsize!r}, default={self.default!r})'

    @overload
    def __get__(self, instance: None, owner: type[Structure]) -> Self: ...

    @overload
    def __get__(self, instance: Structure, owner: type[Structure] | None = None) -> List[T]: ...

    def __get__(self, instance: Structure | None, owner: type[Structure] | None = None) -> Self | List[T]:
        return super().__get__(instance, owner)

    def validate(self, value: Sequence[T]) -> List[T]:
        items = self.list_type(value)
        for item in items:
            if not isinstance(item, self.item_type):
                raise TypeError(f'The items of the {self.name!r} field should be of type {self.item_type.__qualname__!r}, got {item.__class__.__qualname__!r}')
        return items

    def decode(self, buffer: WireData) -> List[T]:
        return self.list_type.from_wire(buffer)

    def to_wire(self, instance: Structure) -> bytes:
        return self.__get__(instance).to_wire()

    def wire_length(self, instance: Structure) -> int:
        return self.__get__(instance).wire_length()


@dataclass_transform(kw_only_default=True, field_specifiers=(Element, ListElement))
class AnnotatedStructure(Structure):
    pass
