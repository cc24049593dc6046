"""
Error taxonomy for RSZ decoding, model building and simulation.

Fatal conditions are exceptions and abort the whole load. Conditions local
to one instance or one move are not raised at all: they are recorded as
issue values (see ``rszsim.formats.rsz.values`` and
``rszsim.entities.builder``) and returned next to the partial result.
"""

from typing import Optional


class RSZError(Exception):
    """Base class for every error raised by rszsim."""


class LoadError(RSZError):
    """A character could not be loaded at all."""


class DecodeError(LoadError):
    """The byte buffer is not a structurally sound RSZ graph."""


class OutOfBounds(DecodeError):
    """A read asked for more bytes than the buffer has left."""

    def __init__(self, offset: int, size: int, end: int):
        self.offset = offset
        self.size = size
        self.end = end
        super().__init__(
            f"read of {size} bytes at offset 0x{offset:X} exceeds boundary 0x{end:X}"
        )


class InvalidHeader(DecodeError):
    """Magic, counts or table offsets in the header are inconsistent."""


class UnsupportedVersion(DecodeError):
    """The graph was written by a format revision we do not decode."""

    def __init__(self, version: int, supported: tuple):
        self.version = version
        self.supported = tuple(supported)
        super().__init__(
            f"RSZ version {version} is not supported (supported: {', '.join(map(str, self.supported))})"
        )


class DanglingReference(DecodeError):
    """A non-null reference points outside the instance table."""

    def __init__(self, instance: int, field: str, target: int, instance_count: int):
        self.instance = instance
        self.field = field
        self.target = target
        self.instance_count = instance_count
        super().__init__(
            f"instance {instance} field '{field}' references index {target}, "
            f"graph has {instance_count} instances"
        )


class InvalidSimulationArgument(RSZError, ValueError):
    """advance()/seek() was called with an argument it cannot honour."""

    def __init__(self, operation: str, value, reason: Optional[str] = None):
        self.operation = operation
        self.value = value
        message = f"{operation}({value!r}) rejected"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class UnknownMove(RSZError, KeyError):
    """A move id or name is not part of the loaded character."""

    def __init__(self, key):
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return f"no move {self.key!r} in character"
