"""
RSZ object graph format.

- schema:     type hash -> field layout registry
- values:     decoded field values and raw instances
- rsz_file:   decoder producing a reference-checked ObjectGraph
- rsz_writer: encoder for synthetic and re-encoded graphs
"""
from .schema import (
    FieldDescriptor, FieldKind, SchemaDescriptor, SchemaRegistry,
    parse_field_kind, placeholder_type, type_hash,
)
from .values import (
    FieldValue, RawInstance, Reference, RSZValue, TrailingBytes,
    UnknownTypeHash, ValueKind,
)
from .rsz_file import NULL_REFERENCE, RSZ_MAGIC, ObjectGraph, RSZFile, RSZHeader, TypeEntry
from .rsz_writer import RSZWriter

__all__ = [
    # Schema
    'SchemaRegistry', 'SchemaDescriptor', 'FieldDescriptor', 'FieldKind',
    'parse_field_kind', 'placeholder_type', 'type_hash',
    # Values
    'ValueKind', 'RSZValue', 'Reference', 'FieldValue', 'RawInstance',
    'UnknownTypeHash', 'TrailingBytes',
    # File
    'RSZFile', 'RSZWriter', 'ObjectGraph', 'RSZHeader', 'TypeEntry',
    'RSZ_MAGIC', 'NULL_REFERENCE',
]
