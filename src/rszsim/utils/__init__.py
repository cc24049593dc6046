"""Low-level binary helpers."""
from .binary import ByteOrder, RecordReader, RecordWriter

__all__ = ['ByteOrder', 'RecordReader', 'RecordWriter']
