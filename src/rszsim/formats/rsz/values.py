"""
Decoded RSZ values.

Every field of a decoded instance is an RSZValue: a (kind, value) pair.
The wire width of a field is a property of its schema, not of the value,
so int8..int64 all decode to ValueKind.INT and so on. References hold the
target's instance index; they are validated in a post-pass once the whole
instance table is known.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional


class ValueKind(Enum):
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"
    REFERENCE = "reference"
    ARRAY = "array"


@dataclass(frozen=True)
class Reference:
    """Index of another instance in the same graph."""
    index: int

    def __str__(self) -> str:
        return f"@{self.index}"


@dataclass(frozen=True)
class RSZValue:
    """Tagged union of every value a field can hold."""
    kind: ValueKind
    value: Any
    element_kind: Optional[ValueKind] = None   # only for ARRAY

    @classmethod
    def of_int(cls, value: int) -> 'RSZValue':
        return cls(ValueKind.INT, int(value))

    @classmethod
    def of_uint(cls, value: int) -> 'RSZValue':
        return cls(ValueKind.UINT, int(value))

    @classmethod
    def of_float(cls, value: float) -> 'RSZValue':
        return cls(ValueKind.FLOAT, value)

    @classmethod
    def of_bool(cls, value: bool) -> 'RSZValue':
        return cls(ValueKind.BOOL, bool(value))

    @classmethod
    def of_string(cls, value: str) -> 'RSZValue':
        return cls(ValueKind.STRING, value)

    @classmethod
    def of_bytes(cls, value: bytes) -> 'RSZValue':
        return cls(ValueKind.BYTES, bytes(value))

    @classmethod
    def of_reference(cls, index: Optional[int]) -> 'RSZValue':
        """A reference to ``index``, or a null reference for None."""
        return cls(ValueKind.REFERENCE, None if index is None else Reference(index))

    @classmethod
    def of_array(cls, element_kind: ValueKind, items) -> 'RSZValue':
        items = tuple(items)
        for item in items:
            if item.kind is not element_kind:
                raise ValueError(f"array of {element_kind.value} holds a {item.kind.value}")
        return cls(ValueKind.ARRAY, items, element_kind)

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.REFERENCE and self.value is None

    @property
    def is_array(self) -> bool:
        return self.kind is ValueKind.ARRAY

    def references(self) -> Iterator[Reference]:
        """Yield every non-null reference held by this value."""
        if self.kind is ValueKind.REFERENCE:
            if self.value is not None:
                yield self.value
        elif self.kind is ValueKind.ARRAY and self.element_kind is ValueKind.REFERENCE:
            for item in self.value:
                if item.value is not None:
                    yield item.value

    def to_python(self) -> Any:
        """Plain python value: arrays become lists, references their index."""
        if self.kind is ValueKind.ARRAY:
            return [item.to_python() for item in self.value]
        if self.kind is ValueKind.REFERENCE:
            return None if self.value is None else self.value.index
        return self.value

    def __str__(self) -> str:
        if self.kind is ValueKind.ARRAY:
            return "[" + ", ".join(str(item) for item in self.value) + "]"
        if self.is_null:
            return "null"
        return str(self.value)


@dataclass(frozen=True)
class FieldValue:
    """A named field of a decoded instance."""
    name: str
    value: RSZValue


@dataclass(frozen=True)
class RawInstance:
    """
    One decoded object from the graph.

    Placeholder instances come from type hashes the registry does not know;
    they carry their raw record bytes and no fields.
    """
    index: int
    type_hash: int
    type_name: str
    fields: tuple = ()
    placeholder: bool = False
    raw_data: bytes = b""

    def get(self, name: str) -> Optional[RSZValue]:
        """Field value by name, or None."""
        for item in self.fields:
            if item.name == name:
                return item.value
        return None

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    @property
    def field_names(self) -> tuple:
        return tuple(item.name for item in self.fields)

    def as_dict(self) -> dict:
        return {item.name: item.value.to_python() for item in self.fields}

    def references(self) -> Iterator[tuple]:
        """Yield (field name, Reference) for every non-null reference."""
        for item in self.fields:
            for ref in item.value.references():
                yield item.name, ref

    def __str__(self) -> str:
        suffix = " (placeholder)" if self.placeholder else ""
        return f"#{self.index} {self.type_name}{suffix}"


# Recoverable decode issues

@dataclass(frozen=True)
class UnknownTypeHash:
    """An instance whose type hash is not in the registry."""
    instance: int
    type_hash: int

    def describe(self) -> str:
        return f"instance {self.instance}: unknown type hash 0x{self.type_hash:08X}, kept as placeholder"


@dataclass(frozen=True)
class TrailingBytes:
    """A record declared more bytes than its schema consumed."""
    instance: int
    type_name: str
    unread: int

    def describe(self) -> str:
        return f"instance {self.instance} ({self.type_name}): {self.unread} unread bytes at end of record"
