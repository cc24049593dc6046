"""
RSZ Object Graph Writer

Produces byte buffers that RSZFile decodes. Used to author synthetic graphs
(fixtures, converted schema samples) and to re-encode a decoded graph.

Instances are written in the order they are added. Each run of consecutive
instances sharing a type becomes one type table entry, so instance indices
handed out by add() are the indices the decoder will report.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from ...utils.binary import RecordWriter
from .rsz_file import HEADER_SIZE, NULL_REFERENCE, RSZ_MAGIC, ObjectGraph
from .schema import FieldDescriptor, FieldKind, SchemaDescriptor, SchemaRegistry, type_hash
from .values import Reference, RSZValue, ValueKind

logger = logging.getLogger(__name__)


@dataclass
class _PendingInstance:
    type_hash: int
    descriptor: Optional[SchemaDescriptor]
    values: dict
    raw_data: bytes = b""


class RSZWriter:
    """Accumulates instances and serializes them as one RSZ graph."""

    def __init__(self, registry: SchemaRegistry, version: int = 17):
        self.registry = registry
        self.version = version
        self._instances: list[_PendingInstance] = []

    def __len__(self) -> int:
        return len(self._instances)

    def add(self, type_ref: Union[int, str], **values) -> int:
        """
        Append an instance of a registered type; returns its index.

        ``type_ref`` is a type hash or a registered type name. Field values
        are python values (int, float, bool, str, bytes, list, None or an
        index for references) or RSZValue; omitted fields get zero values.
        """
        descriptor = self._resolve(type_ref)
        unknown = set(values) - set(descriptor.field_names)
        if unknown:
            raise ValueError(f"{descriptor.name} has no fields {sorted(unknown)}")
        self._instances.append(_PendingInstance(descriptor.type_hash, descriptor, values))
        return len(self._instances) - 1

    def add_raw(self, hash_value: int, raw_data: bytes = b"") -> int:
        """Append an opaque record, e.g. one of a type the reader will not know."""
        self._instances.append(_PendingInstance(hash_value, None, {}, bytes(raw_data)))
        return len(self._instances) - 1

    def _resolve(self, type_ref: Union[int, str]) -> SchemaDescriptor:
        if isinstance(type_ref, str):
            descriptor = self.registry.lookup_name(type_ref) or self.registry.lookup(type_hash(type_ref))
        else:
            descriptor = self.registry.lookup(type_ref)
        if descriptor is None:
            raise KeyError(f"type {type_ref!r} is not registered")
        return descriptor

    @classmethod
    def from_graph(cls, graph: ObjectGraph, registry: SchemaRegistry) -> 'RSZWriter':
        """Writer pre-filled with every instance of a decoded graph."""
        writer = cls(registry, graph.header.version)
        for inst in graph.instances:
            if inst.placeholder:
                writer.add_raw(inst.type_hash, inst.raw_data)
            else:
                writer.add(inst.type_hash, **{f.name: f.value for f in inst.fields})
        return writer

    def to_bytes(self) -> bytes:
        runs = self._type_runs()
        out = RecordWriter()

        out.write_bytes(RSZ_MAGIC)
        out.write_uint32(self.version)
        out.write_uint32(len(runs))
        out.write_uint32(len(self._instances))
        out.write_uint64(HEADER_SIZE)
        data_offset_pos = out.position
        out.write_uint64(0)

        for hash_value, count in runs:
            out.write_uint32(hash_value)
            out.write_uint32(0)
            out.write_uint32(count)

        out.align(16)
        out.patch_uint64(data_offset_pos, out.position)

        for pending in self._instances:
            out.align(4)
            size_pos = out.position
            out.write_uint32(0)
            start = out.position
            if pending.descriptor is None:
                out.write_bytes(pending.raw_data)
            else:
                for spec in pending.descriptor.fields:
                    self._write_field(out, spec, pending.values.get(spec.name))
            out.patch_uint32(size_pos, out.position - start)

        logger.debug(f"RSZ: wrote {len(self._instances)} instances in {len(runs)} type runs")
        return out.getvalue()

    def _type_runs(self) -> list[tuple]:
        runs: list[list] = []
        for pending in self._instances:
            if runs and runs[-1][0] == pending.type_hash:
                runs[-1][1] += 1
            else:
                runs.append([pending.type_hash, 1])
        return [tuple(run) for run in runs]

    def _write_field(self, out: RecordWriter, spec: FieldDescriptor, value):
        if spec.is_array:
            items = [] if value is None else list(_unwrap_array(value))
            out.align(4)
            out.write_uint32(len(items))
            for item in items:
                self._write_scalar(out, spec.kind, item)
        else:
            self._write_scalar(out, spec.kind, value)

    def _write_scalar(self, out: RecordWriter, kind: FieldKind, value):
        if isinstance(value, RSZValue):
            value = value.value
        out.align(kind.alignment)

        if kind is FieldKind.REFERENCE:
            if isinstance(value, Reference):
                value = value.index
            out.write_uint32(NULL_REFERENCE if value is None else value)
            return
        if kind is FieldKind.STRING:
            out.write_wstring(value or "")
            return
        if kind is FieldKind.BYTES:
            raw = bytes(value or b"")
            out.write_uint32(len(raw))
            out.write_bytes(raw)
            return

        value = 0 if value is None else value
        writers = {
            FieldKind.INT8: out.write_int8,
            FieldKind.UINT8: out.write_uint8,
            FieldKind.INT16: out.write_int16,
            FieldKind.UINT16: out.write_uint16,
            FieldKind.INT32: out.write_int32,
            FieldKind.UINT32: out.write_uint32,
            FieldKind.FLAGS: out.write_uint32,
            FieldKind.INT64: out.write_int64,
            FieldKind.UINT64: out.write_uint64,
            FieldKind.FLOAT: out.write_float,
            FieldKind.DOUBLE: out.write_double,
            FieldKind.BOOL: out.write_bool,
        }
        if kind in (FieldKind.FLOAT, FieldKind.DOUBLE):
            writers[kind](float(value))
        elif kind is FieldKind.BOOL:
            writers[kind](bool(value))
        else:
            writers[kind](int(value))


def _unwrap_array(value):
    if isinstance(value, RSZValue):
        if value.kind is not ValueKind.ARRAY:
            raise ValueError(f"expected an array value, got {value.kind.value}")
        return value.value
    return value
