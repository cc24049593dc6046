"""Bounded binary I/O utilities for RSZ parsing."""

import struct
from enum import Enum, IntFlag
from typing import Optional, Type, TypeVar

from ..errors import OutOfBounds


F = TypeVar('F', bound=IntFlag)


class ByteOrder(Enum):
    """Byte order enum for struct packing/unpacking."""
    BIG_ENDIAN = ">"
    LITTLE_ENDIAN = "<"


class RecordReader:
    """
    Forward cursor over a byte buffer with endian support.

    The reader never reads past ``end``. A read that would cross it raises
    OutOfBounds and poisons the reader: every later read raises the same
    error, so a half-decoded graph can never be mistaken for a good one.
    Offsets are always absolute, including inside sub readers, so alignment
    rules stay correct for nested records.
    """

    def __init__(self, data: bytes, offset: int = 0, end: Optional[int] = None,
                 byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN):
        self.data = bytes(data)
        self.byte_order = byte_order
        self._pos = offset
        self._end = len(self.data) if end is None else end
        self._failure: Optional[OutOfBounds] = None
        if self._end > len(self.data) or offset > self._end:
            raise OutOfBounds(offset, self._end - offset, len(self.data))

    @classmethod
    def from_bytes(cls, data: bytes, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> 'RecordReader':
        """Create from bytes."""
        return cls(data, byte_order=byte_order)

    @property
    def position(self) -> int:
        """Current absolute position."""
        return self._pos

    @property
    def end(self) -> int:
        return self._end

    @property
    def remaining(self) -> int:
        """Bytes left before the boundary."""
        return self._end - self._pos

    @property
    def has_more(self) -> bool:
        return self._pos < self._end

    def has_bytes(self, num_bytes: int) -> bool:
        """Check if there are at least num_bytes remaining."""
        return self.remaining >= num_bytes

    def _check(self, size: int):
        if self._failure is not None:
            raise self._failure
        if size < 0 or self._pos + size > self._end:
            self._failure = OutOfBounds(self._pos, size, self._end)
            raise self._failure

    def _take(self, size: int) -> bytes:
        self._check(size)
        chunk = self.data[self._pos:self._pos + size]
        self._pos += size
        return chunk

    def _unpack(self, code: str, size: int):
        return struct.unpack(f"{self.byte_order.value}{code}", self._take(size))[0]

    # Positioning

    def seek(self, offset: int):
        """Absolute jump, used for table offsets named in a header."""
        if self._failure is not None:
            raise self._failure
        if offset < 0 or offset > self._end:
            self._failure = OutOfBounds(offset, 0, self._end)
            raise self._failure
        self._pos = offset

    def skip(self, num_bytes: int):
        """Skip bytes from current position."""
        self._check(num_bytes)
        self._pos += num_bytes

    def align(self, alignment: int):
        """Advance to the next absolute multiple of ``alignment``."""
        if alignment > 1:
            pad = (-self._pos) % alignment
            if pad:
                self.skip(pad)

    def sub_reader(self, size: int) -> 'RecordReader':
        """Bounded reader over the next ``size`` bytes; this reader skips past them."""
        self._check(size)
        child = RecordReader(self.data, self._pos, self._pos + size, self.byte_order)
        self._pos += size
        return child

    # Primitive reads

    def read_bytes(self, count: int) -> bytes:
        """Read raw bytes."""
        return self._take(count)

    def read_uint8(self) -> int:
        return self._take(1)[0]

    def read_int8(self) -> int:
        return self._unpack('b', 1)

    def read_bool(self) -> bool:
        return self.read_uint8() != 0

    def read_uint16(self) -> int:
        return self._unpack('H', 2)

    def read_int16(self) -> int:
        return self._unpack('h', 2)

    def read_uint32(self) -> int:
        return self._unpack('I', 4)

    def read_int32(self) -> int:
        return self._unpack('i', 4)

    def read_uint64(self) -> int:
        return self._unpack('Q', 8)

    def read_int64(self) -> int:
        return self._unpack('q', 8)

    def read_float(self) -> float:
        """Read 32-bit float."""
        return self._unpack('f', 4)

    def read_double(self) -> float:
        """Read 64-bit double."""
        return self._unpack('d', 8)

    def read_flags(self, flag_type: Type[F], width: int = 4) -> F:
        """Read a fixed-size bit-flag word and map it onto ``flag_type``."""
        readers = {1: self.read_uint8, 2: self.read_uint16, 4: self.read_uint32, 8: self.read_uint64}
        if width not in readers:
            raise ValueError(f"unsupported flag word width: {width}")
        return flag_type(readers[width]())

    # Strings

    def read_cstring(self, encoding: str = 'utf-8') -> str:
        """Read a null-terminated string."""
        self._check(0)
        null_idx = self.data.find(b'\0', self._pos, self._end)
        if null_idx == -1:
            self._failure = OutOfBounds(self._pos, self._end - self._pos + 1, self._end)
            raise self._failure
        raw = self._take(null_idx - self._pos)
        self._pos += 1
        return raw.decode(encoding, errors='replace')

    def read_pascal_string(self) -> str:
        """Read length-prefixed string (u32 byte length, UTF-8)."""
        length = self.read_uint32()
        return self._take(length).decode('utf-8', errors='replace')

    def read_wstring(self) -> str:
        """Read an RSZ string: u32 char count including terminator, UTF-16LE."""
        count = self.read_uint32()
        if count == 0:
            return ""
        raw = self._take(count * 2)
        text = raw.decode('utf-16-le', errors='replace')
        null_idx = text.find('\0')
        return text if null_idx == -1 else text[:null_idx]


class RecordWriter:
    """Append-only binary writer mirroring RecordReader."""

    def __init__(self, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN):
        self.byte_order = byte_order
        self._buffer = bytearray()

    @property
    def position(self) -> int:
        return len(self._buffer)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def _pack(self, code: str, value):
        self._buffer += struct.pack(f"{self.byte_order.value}{code}", value)

    def align(self, alignment: int):
        if alignment > 1:
            self._buffer += b'\0' * ((-len(self._buffer)) % alignment)

    def write_bytes(self, data: bytes):
        """Write raw bytes."""
        self._buffer += data

    def write_uint8(self, value: int):
        self._pack('B', value)

    def write_int8(self, value: int):
        self._pack('b', value)

    def write_bool(self, value: bool):
        self._pack('B', 1 if value else 0)

    def write_uint16(self, value: int):
        self._pack('H', value)

    def write_int16(self, value: int):
        self._pack('h', value)

    def write_uint32(self, value: int):
        self._pack('I', value)

    def write_int32(self, value: int):
        self._pack('i', value)

    def write_uint64(self, value: int):
        self._pack('Q', value)

    def write_int64(self, value: int):
        self._pack('q', value)

    def write_float(self, value: float):
        self._pack('f', value)

    def write_double(self, value: float):
        self._pack('d', value)

    def write_cstring(self, value: str, encoding: str = 'utf-8'):
        self._buffer += value.encode(encoding) + b'\0'

    def write_pascal_string(self, value: str):
        raw = value.encode('utf-8')
        self.write_uint32(len(raw))
        self._buffer += raw

    def write_wstring(self, value: str):
        raw = (value + '\0').encode('utf-16-le')
        self.write_uint32(len(raw) // 2)
        self._buffer += raw

    def patch_uint32(self, offset: int, value: int):
        """Overwrite a previously reserved u32 (sizes, offsets)."""
        struct.pack_into(f"{self.byte_order.value}I", self._buffer, offset, value)

    def patch_uint64(self, offset: int, value: int):
        struct.pack_into(f"{self.byte_order.value}Q", self._buffer, offset, value)
