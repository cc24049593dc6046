"""
RSZ Schema Registry

Maps a type hash to the ordered field layout needed to decode instances of
that type. A registry belongs to one schema version (a game-data revision);
overlays for a newer revision are applied with register()/overlay(), where
the last write for a hash wins.

The registry is pure data. Loading a schema dump from disk is the caller's
job: from_dict() accepts the already-parsed JSON mapping.
"""

import logging
import zlib
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional

from .values import ValueKind

logger = logging.getLogger(__name__)


class FieldKind(Enum):
    """Wire kind of a schema field."""
    INT8 = "S8"
    UINT8 = "U8"
    INT16 = "S16"
    UINT16 = "U16"
    INT32 = "S32"
    UINT32 = "U32"
    INT64 = "S64"
    UINT64 = "U64"
    FLOAT = "F32"
    DOUBLE = "F64"
    BOOL = "Bool"
    FLAGS = "Flags"        # u32 bit-flag word
    STRING = "String"
    BYTES = "Data"
    REFERENCE = "Object"

    @property
    def value_kind(self) -> ValueKind:
        return _WIRE_INFO[self][0]

    @property
    def size(self) -> int:
        """Fixed wire size, or 0 for variable-length kinds."""
        return _WIRE_INFO[self][1]

    @property
    def alignment(self) -> int:
        return _WIRE_INFO[self][2]

    @property
    def is_integer(self) -> bool:
        return self.value_kind in (ValueKind.INT, ValueKind.UINT)


# kind -> (decoded value kind, fixed size, alignment)
_WIRE_INFO = {
    FieldKind.INT8: (ValueKind.INT, 1, 1),
    FieldKind.UINT8: (ValueKind.UINT, 1, 1),
    FieldKind.INT16: (ValueKind.INT, 2, 2),
    FieldKind.UINT16: (ValueKind.UINT, 2, 2),
    FieldKind.INT32: (ValueKind.INT, 4, 4),
    FieldKind.UINT32: (ValueKind.UINT, 4, 4),
    FieldKind.INT64: (ValueKind.INT, 8, 8),
    FieldKind.UINT64: (ValueKind.UINT, 8, 8),
    FieldKind.FLOAT: (ValueKind.FLOAT, 4, 4),
    FieldKind.DOUBLE: (ValueKind.FLOAT, 8, 8),
    FieldKind.BOOL: (ValueKind.BOOL, 1, 1),
    FieldKind.FLAGS: (ValueKind.UINT, 4, 4),
    FieldKind.STRING: (ValueKind.STRING, 0, 4),
    FieldKind.BYTES: (ValueKind.BYTES, 0, 4),
    FieldKind.REFERENCE: (ValueKind.REFERENCE, 4, 4),
}

# Extra spellings found in RE Engine schema dumps
_KIND_ALIASES = {
    "Int8": FieldKind.INT8, "UInt8": FieldKind.UINT8,
    "Int16": FieldKind.INT16, "UInt16": FieldKind.UINT16,
    "Int32": FieldKind.INT32, "UInt32": FieldKind.UINT32,
    "Int64": FieldKind.INT64, "UInt64": FieldKind.UINT64,
    "Float": FieldKind.FLOAT, "Double": FieldKind.DOUBLE,
    "Resource": FieldKind.STRING,
    "UserData": FieldKind.REFERENCE,
}


def parse_field_kind(name: str) -> FieldKind:
    """FieldKind from its dump spelling ('S32', 'Object', 'UInt8', ...)."""
    try:
        return FieldKind(name)
    except ValueError:
        pass
    if name in _KIND_ALIASES:
        return _KIND_ALIASES[name]
    raise ValueError(f"unknown field kind: {name!r}")


def type_hash(name: str) -> int:
    """Stable 32-bit hash for a type name (CRC-32 of its UTF-8 bytes)."""
    return zlib.crc32(name.encode('utf-8')) & 0xFFFFFFFF


@dataclass(frozen=True)
class FieldDescriptor:
    """One field of a type layout."""
    name: str
    kind: FieldKind
    is_array: bool = False

    def __str__(self) -> str:
        suffix = "[]" if self.is_array else ""
        return f"{self.name}: {self.kind.value}{suffix}"


@dataclass(frozen=True)
class SchemaDescriptor:
    """Ordered field layout for one type hash. Immutable once registered."""
    type_hash: int
    name: str
    fields: tuple = ()
    placeholder: bool = False

    def field(self, name: str) -> Optional[FieldDescriptor]:
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        return None

    @property
    def field_names(self) -> tuple:
        return tuple(f.name for f in self.fields)

    def __str__(self) -> str:
        return f"{self.name} (0x{self.type_hash:08X}, {len(self.fields)} fields)"


def placeholder_type(hash_value: int) -> SchemaDescriptor:
    """Descriptor standing in for a type hash the registry does not know."""
    return SchemaDescriptor(
        type_hash=hash_value,
        name=f"Unknown_{hash_value:08X}",
        fields=(),
        placeholder=True,
    )


def _coerce_field(spec) -> FieldDescriptor:
    if isinstance(spec, FieldDescriptor):
        return spec
    if isinstance(spec, dict):
        return FieldDescriptor(
            name=spec["name"],
            kind=parse_field_kind(spec["type"]),
            is_array=bool(spec.get("array", False)),
        )
    name, kind, *rest = spec
    if not isinstance(kind, FieldKind):
        kind = parse_field_kind(kind)
    return FieldDescriptor(name, kind, bool(rest[0]) if rest else False)


class SchemaRegistry:
    """Type hash -> SchemaDescriptor, for one schema version."""

    DEFAULT_VERSION = "sf6"

    def __init__(self, version: str = DEFAULT_VERSION):
        self.version = version
        self._types: dict[int, SchemaDescriptor] = {}

    def register(self, hash_value: int, fields: Iterable, name: Optional[str] = None) -> SchemaDescriptor:
        """
        Add or overwrite the layout of ``hash_value``.

        ``fields`` items may be FieldDescriptor, (name, kind[, is_array])
        tuples, or dump-style dicts. Last write wins.
        """
        descriptor = SchemaDescriptor(
            type_hash=hash_value,
            name=name or f"Type_{hash_value:08X}",
            fields=tuple(_coerce_field(spec) for spec in fields),
        )
        if hash_value in self._types:
            logger.debug(f"Schema {self.version}: overwriting 0x{hash_value:08X} ({descriptor.name})")
        self._types[hash_value] = descriptor
        return descriptor

    def register_type(self, name: str, fields: Iterable) -> SchemaDescriptor:
        """Register a layout under the hash of its name."""
        return self.register(type_hash(name), fields, name=name)

    def lookup(self, hash_value: int) -> Optional[SchemaDescriptor]:
        return self._types.get(hash_value)

    def lookup_name(self, name: str) -> Optional[SchemaDescriptor]:
        for descriptor in self._types.values():
            if descriptor.name == name:
                return descriptor
        return None

    def overlay(self, other: 'SchemaRegistry') -> 'SchemaRegistry':
        """Apply every descriptor of ``other`` on top of this registry."""
        for descriptor in other:
            self._types[descriptor.type_hash] = descriptor
        self.version = other.version
        return self

    def copy(self) -> 'SchemaRegistry':
        clone = SchemaRegistry(self.version)
        clone._types = dict(self._types)
        return clone

    @classmethod
    def from_dict(cls, mapping: dict, version: str = DEFAULT_VERSION) -> 'SchemaRegistry':
        """
        Build a registry from an RE Engine style schema dump:

            {"1a2b3c4d": {"name": "ActionData",
                          "fields": [{"name": "frames", "type": "S32", "array": false}]}}

        Keys are hex type hashes; entries without a name or with hash 0 are skipped.
        """
        registry = cls(version)
        for key, entry in mapping.items():
            hash_value = int(key, 16) if isinstance(key, str) else int(key)
            if hash_value == 0 or not entry.get("name"):
                continue
            registry.register(hash_value, entry.get("fields", []), name=entry["name"])
        logger.debug(f"Schema {version}: loaded {len(registry)} types")
        return registry

    def __contains__(self, hash_value: int) -> bool:
        return hash_value in self._types

    def __iter__(self) -> Iterator[SchemaDescriptor]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)
