"""
RSZ Object Graph Parser

RSZ is the self-describing object serialization used by RE Engine game data
(.fchar character files embed one graph per data table). A graph is a type
table followed by instance records; instances refer to each other by index,
forwards or backwards, so references are only validated once every record
has been read.

Layout (little endian):

    header            magic "RSZ\\0", version, type_count, instance_count,
                      type_offset (u64), data_offset (u64)
    type table        type_count x (type_hash u32, crc u32, instance_count u32)
    instance records  instance_count x (record_size u32, field data)

Instances appear in type table order: the first ``instance_count`` records
of entry 0, then those of entry 1, and so on.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

from ...errors import DanglingReference, InvalidHeader, UnsupportedVersion
from ...utils.binary import RecordReader
from .schema import FieldDescriptor, FieldKind, SchemaDescriptor, SchemaRegistry, placeholder_type
from .values import FieldValue, RawInstance, Reference, RSZValue, TrailingBytes, UnknownTypeHash

logger = logging.getLogger(__name__)


RSZ_MAGIC = b"RSZ\0"
HEADER_SIZE = 32
TYPE_ENTRY_SIZE = 12
NULL_REFERENCE = 0xFFFFFFFF


@dataclass
class RSZHeader:
    magic: bytes = RSZ_MAGIC
    version: int = 0
    type_count: int = 0
    instance_count: int = 0
    type_offset: int = HEADER_SIZE
    data_offset: int = 0


@dataclass(frozen=True)
class TypeEntry:
    """One row of the type table, resolved against the registry."""
    type_hash: int
    crc: int
    instance_count: int
    descriptor: SchemaDescriptor

    @property
    def is_placeholder(self) -> bool:
        return self.descriptor.placeholder


@dataclass
class ObjectGraph:
    """
    Decoded RSZ graph: an arena of RawInstances addressed by index.

    Every non-null reference inside ``instances`` is guaranteed to resolve.
    ``issues`` holds the recoverable problems met while decoding.
    """
    header: RSZHeader
    types: list[TypeEntry] = field(default_factory=list)
    instances: list[RawInstance] = field(default_factory=list)
    issues: list = field(default_factory=list)
    schema_version: str = SchemaRegistry.DEFAULT_VERSION

    def __len__(self) -> int:
        return len(self.instances)

    def __iter__(self) -> Iterator[RawInstance]:
        return iter(self.instances)

    def __getitem__(self, index: int) -> RawInstance:
        return self.instances[index]

    def deref(self, value) -> Optional[RawInstance]:
        """Instance behind a Reference or a REFERENCE RSZValue; None for null."""
        if isinstance(value, RSZValue):
            value = value.value
        if value is None:
            return None
        if isinstance(value, Reference):
            return self.instances[value.index]
        return self.instances[int(value)]

    def instances_of(self, type_name: str) -> list[RawInstance]:
        return [inst for inst in self.instances if inst.type_name == type_name]

    def instances_with_hash(self, hash_value: int) -> list[RawInstance]:
        return [inst for inst in self.instances if inst.type_hash == hash_value]

    @property
    def placeholders(self) -> list[RawInstance]:
        return [inst for inst in self.instances if inst.placeholder]

    def referrers(self, index: int) -> list[tuple]:
        """(source index, field name) of every reference to ``index``."""
        found = []
        for inst in self.instances:
            for field_name, ref in inst.references():
                if ref.index == index:
                    found.append((inst.index, field_name))
        return found

    def summary(self) -> str:
        """Get a summary of the types in this graph."""
        lines = [
            f"RSZ v{self.header.version}: {len(self.instances)} instances, {len(self.types)} types",
        ]
        for entry in self.types:
            marker = " (placeholder)" if entry.is_placeholder else ""
            lines.append(f"  {entry.descriptor.name}: {entry.instance_count}{marker}")
        if self.issues:
            lines.append(f"  issues: {len(self.issues)}")
        return "\n".join(lines)


class RSZFile:
    """Decoder for one RSZ byte buffer."""

    SUPPORTED_VERSIONS = (16, 17)

    def __init__(self, registry: SchemaRegistry, supported_versions: Optional[tuple] = None):
        self.registry = registry
        self.supported_versions = tuple(supported_versions or self.SUPPORTED_VERSIONS)

    @classmethod
    def decode(cls, data: bytes, registry: SchemaRegistry) -> ObjectGraph:
        """Decode ``data`` into a fully resolved ObjectGraph."""
        return cls(registry).read(data)

    def read(self, data: bytes) -> ObjectGraph:
        io = RecordReader.from_bytes(data)
        header = self._read_header(io)
        graph = ObjectGraph(header=header, schema_version=self.registry.version)

        io.seek(header.type_offset)
        graph.types = self._read_type_table(io, header)

        io.seek(header.data_offset)
        index = 0
        for entry in graph.types:
            for _ in range(entry.instance_count):
                graph.instances.append(self._read_instance(io, index, entry, graph.issues))
                index += 1

        self._resolve_references(graph)
        logger.debug(
            f"RSZ: decoded {len(graph.instances)} instances, "
            f"{len(graph.placeholders)} placeholders, {len(graph.issues)} issues"
        )
        return graph

    def _read_header(self, io: RecordReader) -> RSZHeader:
        header = RSZHeader()
        header.magic = io.read_bytes(4)
        if header.magic != RSZ_MAGIC:
            raise InvalidHeader(f"Invalid RSZ magic: {header.magic!r}")

        header.version = io.read_uint32()
        if header.version not in self.supported_versions:
            raise UnsupportedVersion(header.version, self.supported_versions)

        header.type_count = io.read_uint32()
        header.instance_count = io.read_uint32()
        header.type_offset = io.read_uint64()
        header.data_offset = io.read_uint64()

        table_end = header.type_offset + header.type_count * TYPE_ENTRY_SIZE
        if header.type_offset < HEADER_SIZE or table_end > header.data_offset:
            raise InvalidHeader(
                f"type table [0x{header.type_offset:X}, 0x{table_end:X}) overlaps "
                f"header or instance data at 0x{header.data_offset:X}"
            )

        logger.debug(
            f"RSZ: version={header.version}, types={header.type_count}, "
            f"instances={header.instance_count}"
        )
        return header

    def _read_type_table(self, io: RecordReader, header: RSZHeader) -> list[TypeEntry]:
        entries = []
        for _ in range(header.type_count):
            hash_value = io.read_uint32()
            crc = io.read_uint32()
            count = io.read_uint32()
            descriptor = self.registry.lookup(hash_value)
            if descriptor is None:
                logger.warning(f"RSZ: type 0x{hash_value:08X} not in schema {self.registry.version}")
                descriptor = placeholder_type(hash_value)
            entries.append(TypeEntry(hash_value, crc, count, descriptor))

        declared = sum(entry.instance_count for entry in entries)
        if declared != header.instance_count:
            raise InvalidHeader(
                f"type table declares {declared} instances, header declares {header.instance_count}"
            )
        return entries

    def _read_instance(self, io: RecordReader, index: int, entry: TypeEntry, issues: list) -> RawInstance:
        io.align(4)
        record_size = io.read_uint32()
        record = io.sub_reader(record_size)
        descriptor = entry.descriptor

        if descriptor.placeholder:
            issues.append(UnknownTypeHash(index, entry.type_hash))
            return RawInstance(
                index=index,
                type_hash=entry.type_hash,
                type_name=descriptor.name,
                placeholder=True,
                raw_data=record.read_bytes(record_size),
            )

        values = tuple(
            FieldValue(spec.name, self._read_field(record, spec))
            for spec in descriptor.fields
        )
        if record.remaining:
            logger.warning(f"RSZ: instance {index} ({descriptor.name}) left {record.remaining} bytes unread")
            issues.append(TrailingBytes(index, descriptor.name, record.remaining))

        return RawInstance(
            index=index,
            type_hash=entry.type_hash,
            type_name=descriptor.name,
            fields=values,
        )

    def _read_field(self, io: RecordReader, spec: FieldDescriptor) -> RSZValue:
        if spec.is_array:
            io.align(4)
            count = io.read_uint32()
            items = [self._read_scalar(io, spec.kind) for _ in range(count)]
            return RSZValue.of_array(spec.kind.value_kind, items)
        return self._read_scalar(io, spec.kind)

    def _read_scalar(self, io: RecordReader, kind: FieldKind) -> RSZValue:
        io.align(kind.alignment)

        if kind is FieldKind.INT8:
            return RSZValue.of_int(io.read_int8())
        if kind is FieldKind.UINT8:
            return RSZValue.of_uint(io.read_uint8())
        if kind is FieldKind.INT16:
            return RSZValue.of_int(io.read_int16())
        if kind is FieldKind.UINT16:
            return RSZValue.of_uint(io.read_uint16())
        if kind is FieldKind.INT32:
            return RSZValue.of_int(io.read_int32())
        if kind in (FieldKind.UINT32, FieldKind.FLAGS):
            return RSZValue.of_uint(io.read_uint32())
        if kind is FieldKind.INT64:
            return RSZValue.of_int(io.read_int64())
        if kind is FieldKind.UINT64:
            return RSZValue.of_uint(io.read_uint64())
        if kind is FieldKind.FLOAT:
            return RSZValue.of_float(io.read_float())
        if kind is FieldKind.DOUBLE:
            return RSZValue.of_float(io.read_double())
        if kind is FieldKind.BOOL:
            return RSZValue.of_bool(io.read_bool())
        if kind is FieldKind.STRING:
            return RSZValue.of_string(io.read_wstring())
        if kind is FieldKind.BYTES:
            return RSZValue.of_bytes(io.read_bytes(io.read_uint32()))
        if kind is FieldKind.REFERENCE:
            target = io.read_uint32()
            return RSZValue.of_reference(None if target == NULL_REFERENCE else target)
        raise ValueError(f"Unhandled field kind: {kind}")

    def _resolve_references(self, graph: ObjectGraph):
        """Fail the whole graph on the first reference that does not resolve."""
        count = len(graph.instances)
        for inst in graph.instances:
            for field_name, ref in inst.references():
                if not 0 <= ref.index < count:
                    raise DanglingReference(inst.index, field_name, ref.index, count)
