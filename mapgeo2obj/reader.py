from __future__ import annotations

import struct
from typing import Tuple

from .errors import DecodeError


class Reader:
    """Little-endian cursor over an in-memory byte string."""

    def __init__(self, data: bytes, base: int = 0):
        self.data = data
        self.ofs = base

    def tell(self) -> int:
        return self.ofs

    def length(self) -> int:
        return len(self.data)

    def remaining(self) -> int:
        return len(self.data) - self.ofs

    def seek(self, ofs: int) -> None:
        if not (0 <= ofs <= len(self.data)):
            raise DecodeError(f"seek out of range: {ofs:#x}", self.ofs)
        self.ofs = ofs

    def skip(self, n: int) -> None:
        self.seek(self.ofs + n)

    def _need(self, n: int) -> None:
        if n < 0 or self.ofs + n > len(self.data):
            raise DecodeError(f"unexpected EOF reading {n} bytes", self.ofs)

    def u8(self) -> int:
        self._need(1)
        v = self.data[self.ofs]
        self.ofs += 1
        return v

    def u16(self) -> int:
        self._need(2)
        v = struct.unpack_from("<H", self.data, self.ofs)[0]
        self.ofs += 2
        return v

    def i32(self) -> int:
        self._need(4)
        v = struct.unpack_from("<i", self.data, self.ofs)[0]
        self.ofs += 4
        return v

    def f32(self) -> float:
        self._need(4)
        v = struct.unpack_from("<f", self.data, self.ofs)[0]
        self.ofs += 4
        return v

    def u16s(self, count: int) -> Tuple[int, ...]:
        self._need(count * 2)
        v = struct.unpack_from(f"<{count}H", self.data, self.ofs)
        self.ofs += count * 2
        return v

    def f32s(self, count: int) -> Tuple[float, ...]:
        self._need(count * 4)
        v = struct.unpack_from(f"<{count}f", self.data, self.ofs)
        self.ofs += count * 4
        return v

    def bytes(self, n: int) -> bytes:
        self._need(n)
        b = self.data[self.ofs : self.ofs + n]
        self.ofs += n
        return b

    def fixed_str(self, n: int) -> str:
        """Length-prefixed strings in mapgeo carry no terminator."""
        return self.bytes(n).decode("utf-8", "replace")

    def cstr(self) -> str:
        end = self.data.find(b"\x00", self.ofs)
        if end < 0:
            raise DecodeError("unterminated cstr", self.ofs)
        s = self.data[self.ofs : end].decode("utf-8", "replace")
        self.ofs = end + 1
        return s
