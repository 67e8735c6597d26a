"""Ruby Marshal 4.8 writer for the legacy Bundler dependency endpoint.

Only the types the endpoint emits are supported: nil, true/false, fixnums,
UTF-8 strings, symbols, arrays and hashes. Symbols are written once and
referenced by index afterwards, matching what ``Marshal.dump`` produces.
"""

from __future__ import annotations

MAJOR_VERSION = 4
MINOR_VERSION = 8

_FIXNUM_MIN = -(2 ** 30)
_FIXNUM_MAX = 2 ** 30 - 1


class Symbol(str):
    """A string that marshals as a Ruby symbol."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f":{str(self)}"


def _long(n: int) -> bytes:
    if n == 0:
        return b"\x00"
    if 0 < n < 123:
        return bytes([n + 5])
    if -124 < n < 0:
        return bytes([(n - 5) & 0xFF])
    out = bytearray()
    for i in range(1, 5):
        out.append(n & 0xFF)
        n >>= 8
        if n == 0:
            return bytes([i]) + bytes(out)
        if n == -1:
            return bytes([(-i) & 0xFF]) + bytes(out)
    raise ValueError("integer too large for a marshal long")


class _Writer:
    def __init__(self) -> None:
        self.buf = bytearray([MAJOR_VERSION, MINOR_VERSION])
        self.symbols: dict[str, int] = {}

    def symbol(self, name: str) -> None:
        index = self.symbols.get(name)
        if index is not None:
            self.buf += b";" + _long(index)
            return
        self.symbols[name] = len(self.symbols)
        raw = name.encode("utf-8")
        self.buf += b":" + _long(len(raw)) + raw

    def dump(self, obj) -> None:
        if obj is None:
            self.buf += b"0"
        elif obj is True:
            self.buf += b"T"
        elif obj is False:
            self.buf += b"F"
        elif isinstance(obj, int):
            if not _FIXNUM_MIN <= obj <= _FIXNUM_MAX:
                raise ValueError(f"integer {obj} outside fixnum range")
            self.buf += b"i" + _long(obj)
        elif isinstance(obj, Symbol):
            self.symbol(obj)
        elif isinstance(obj, str):
            raw = obj.encode("utf-8")
            # String with one instance variable: E => true (UTF-8)
            self.buf += b'I"' + _long(len(raw)) + raw + _long(1)
            self.symbol("E")
            self.buf += b"T"
        elif isinstance(obj, (list, tuple)):
            self.buf += b"[" + _long(len(obj))
            for item in obj:
                self.dump(item)
        elif isinstance(obj, dict):
            self.buf += b"{" + _long(len(obj))
            for key, value in obj.items():
                self.dump(key)
                self.dump(value)
        else:
            raise TypeError(f"cannot marshal {type(obj).__name__}")


def dumps(obj) -> bytes:
    """Serialize *obj* to Ruby Marshal 4.8 bytes."""
    writer = _Writer()
    writer.dump(obj)
    return bytes(writer.buf)
