"""
Bounds-Checked Byte Reader for Binary Telemetry Decoding

This module provides a sequential little-endian reader over an in-memory
buffer. Every read either returns a value and advances, or raises
EndOfBuffer and leaves the position untouched.
"""

import struct


class EndOfBuffer(ValueError):
    """Raised when a read would go past the end of the buffer."""


class BinaryCursor:
    """
    Sequential reader over a bytes-like buffer.

    The cursor is an explicit value handed to each decoding step; it never
    reads outside ``data`` and ``skip`` clamps to the buffer length.
    """

    def __init__(self, data: bytes, pos: int = 0):
        self.data = bytes(data)
        self.pos = min(max(pos, 0), len(self.data))

    def __len__(self) -> int:
        return len(self.data)

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def _unpack(self, fmt: str, size: int):
        if self.remaining < size:
            raise EndOfBuffer(
                f"Need {size} byte(s) at offset {self.pos}, only {self.remaining} left"
            )
        value = struct.unpack_from(fmt, self.data, self.pos)[0]
        self.pos += size
        return value

    def read_u8(self) -> int:
        return self._unpack("<B", 1)

    def read_u16_le(self) -> int:
        return self._unpack("<H", 2)

    def read_u32_le(self) -> int:
        return self._unpack("<I", 4)

    def read_i32_le(self) -> int:
        return self._unpack("<i", 4)

    def read_bytes(self, n: int) -> bytes:
        if n < 0 or self.remaining < n:
            raise EndOfBuffer(
                f"Need {n} byte(s) at offset {self.pos}, only {self.remaining} left"
            )
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def skip(self, n: int) -> int:
        """
        Advance by ``n`` bytes, stopping at the end of the buffer.

        Args:
            n: Number of bytes to skip. Negative values are treated as 0.

        Returns:
            The number of bytes actually skipped.
        """
        step = min(max(n, 0), self.remaining)
        self.pos += step
        return step

    def skip_to_end(self) -> None:
        self.pos = len(self.data)
