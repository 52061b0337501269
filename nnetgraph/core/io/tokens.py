"""
Token-level readers and writers for persisted networks.

Two encodings are supported:

- **text**: whitespace separated tokens, matrices as ``[ v v v ... ]``.
  Floats are written with enough digits to round-trip exactly.
- **binary**: a ``\\0B`` header followed by space-terminated ASCII tokens,
  size-prefixed little-endian scalars and raw little-endian matrix bytes.
"""

from __future__ import annotations

import os
import struct
from contextlib import contextmanager
from typing import IO, TYPE_CHECKING

import numpy as np

from nnetgraph.utils.errors.exceptions import ConfigError, DimensionMismatchError

if TYPE_CHECKING:
    from collections.abc import Iterator

BINARY_HEADER = b"\x00B"

_SCALAR_TAG = b"\x04"
_DOUBLE_TAG = b"\x08"
_MATRIX_TOKENS = {np.dtype(np.float32): "FM", np.dtype(np.float64): "DM"}
_VECTOR_TOKENS = {np.dtype(np.float32): "FV", np.dtype(np.float64): "DV"}


def _float_format(dtype: np.dtype) -> str:
    return ".9g" if np.dtype(dtype).itemsize <= 4 else ".17g"


# ================================================
# Readers
# ================================================
class TokenReader:
    """Common interface of the text and binary readers."""

    binary: bool = False

    def read_token(self) -> str:
        raise NotImplementedError

    def peek_token(self) -> str | None:
        """Return the next token without consuming it, or None if the next item is not a token."""
        raise NotImplementedError

    def at_end(self) -> bool:
        raise NotImplementedError

    def read_int(self) -> int:
        raise NotImplementedError

    def read_float(self) -> float:
        raise NotImplementedError

    def read_matrix(self, rows: int, cols: int, dtype: np.dtype) -> np.ndarray:
        raise NotImplementedError

    def read_vector(self, dim: int, dtype: np.dtype) -> np.ndarray:
        raise NotImplementedError

    def expect_token(self, expected: str) -> None:
        """
        Consume the next token and check it equals `expected`.

        Raises:
            ConfigError: If a different token is found.

        """
        token = self.read_token()
        if token != expected:
            msg = f"Expected token `{expected}`, got `{token}`."
            raise ConfigError(msg, token=token)

    def read_int_list(self) -> list[int]:
        """Read a count-prefixed list of integers."""
        count = self.read_int()
        return [self.read_int() for _ in range(count)]


class TextTokenReader(TokenReader):
    """Reader over a whitespace-tokenized text document."""

    def __init__(self, text: str):
        self._tokens = text.split()
        self._pos = 0

    def _next(self) -> str:
        if self._pos >= len(self._tokens):
            msg = "Unexpected end of stream."
            raise ConfigError(msg)
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def read_token(self) -> str:
        return self._next()

    def peek_token(self) -> str | None:
        if self._pos >= len(self._tokens):
            return None
        return self._tokens[self._pos]

    def at_end(self) -> bool:
        return self._pos >= len(self._tokens)

    def read_int(self) -> int:
        token = self._next()
        try:
            return int(token)
        except ValueError as exc:
            msg = f"Expected an integer, got `{token}`."
            raise ConfigError(msg, token=token) from exc

    def read_float(self) -> float:
        token = self._next()
        try:
            return float(token)
        except ValueError as exc:
            msg = f"Expected a float, got `{token}`."
            raise ConfigError(msg, token=token) from exc

    def _read_bracketed(self, dtype: np.dtype) -> np.ndarray:
        self.expect_token("[")
        values: list[float] = []
        while True:
            token = self._next()
            if token == "]":
                break
            try:
                values.append(float(token))
            except ValueError as exc:
                msg = f"Expected a float or `]`, got `{token}`."
                raise ConfigError(msg, token=token) from exc
        return np.asarray(values, dtype=dtype)

    def read_matrix(self, rows: int, cols: int, dtype: np.dtype) -> np.ndarray:
        flat = self._read_bracketed(dtype)
        if flat.size != rows * cols:
            raise DimensionMismatchError(
                expected=(rows, cols),
                received=flat.size,
                message=f"Matrix of shape {(rows, cols)} needs {rows * cols} values, got {flat.size}.",
            )
        return flat.reshape(rows, cols)

    def read_vector(self, dim: int, dtype: np.dtype) -> np.ndarray:
        flat = self._read_bracketed(dtype)
        if flat.size != dim:
            raise DimensionMismatchError(expected=dim, received=flat.size)
        return flat


class BinaryTokenReader(TokenReader):
    """Reader over the binary encoding (header already stripped)."""

    binary = True

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    def _take(self, n: int) -> bytes:
        if self._pos + n > len(self._data):
            msg = "Unexpected end of binary stream."
            raise ConfigError(msg)
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def read_token(self) -> str:
        end = self._data.find(b" ", self._pos)
        if end < 0:
            msg = "Unterminated token in binary stream."
            raise ConfigError(msg)
        token = self._data[self._pos : end].decode("utf-8")
        self._pos = end + 1
        return token

    def peek_token(self) -> str | None:
        if self.at_end() or self._data[self._pos : self._pos + 1] != b"<":
            return None
        end = self._data.find(b" ", self._pos)
        if end < 0:
            return None
        return self._data[self._pos : end].decode("utf-8")

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def read_int(self) -> int:
        tag = self._take(1)
        if tag != _SCALAR_TAG:
            msg = f"Expected an int32 tag, got {tag!r}."
            raise ConfigError(msg)
        return struct.unpack("<i", self._take(4))[0]

    def read_float(self) -> float:
        tag = self._take(1)
        if tag == _SCALAR_TAG:
            return struct.unpack("<f", self._take(4))[0]
        if tag == _DOUBLE_TAG:
            return struct.unpack("<d", self._take(8))[0]
        msg = f"Expected a float tag, got {tag!r}."
        raise ConfigError(msg)

    def _read_raw(self, count: int, kind: str, tokens: dict) -> np.ndarray:
        lookup = {v: k for k, v in tokens.items()}
        if kind not in lookup:
            msg = f"Unknown binary array token `{kind}`."
            raise ConfigError(msg, token=kind)
        dtype = lookup[kind].newbyteorder("<")
        raw = self._take(count * dtype.itemsize)
        return np.frombuffer(raw, dtype=dtype).astype(lookup[kind])

    def read_matrix(self, rows: int, cols: int, dtype: np.dtype) -> np.ndarray:
        kind = self.read_token()
        shape = (self.read_int(), self.read_int())
        if shape != (rows, cols):
            raise DimensionMismatchError(expected=(rows, cols), received=shape)
        values = self._read_raw(rows * cols, kind, _MATRIX_TOKENS)
        return values.reshape(rows, cols).astype(dtype, copy=False)

    def read_vector(self, dim: int, dtype: np.dtype) -> np.ndarray:
        kind = self.read_token()
        n = self.read_int()
        if n != dim:
            raise DimensionMismatchError(expected=dim, received=n)
        return self._read_raw(dim, kind, _VECTOR_TOKENS).astype(dtype, copy=False)


def reader_from(source: str | os.PathLike | IO) -> TokenReader:
    """
    Build a reader from a path or an open stream, detecting the encoding.

    Args:
        source (str | os.PathLike | IO): File path, text stream or binary stream.

    Returns:
        TokenReader: Binary reader when the content starts with the binary
        header, text reader otherwise.

    """
    if isinstance(source, (str, os.PathLike)):
        with open(source, "rb") as f:
            data = f.read()
    else:
        data = source.read()

    if isinstance(data, str):
        return TextTokenReader(data)
    if data.startswith(BINARY_HEADER):
        return BinaryTokenReader(data[len(BINARY_HEADER) :])
    return TextTokenReader(data.decode("utf-8"))


# ================================================
# Writers
# ================================================
class TokenWriter:
    """Common interface of the text and binary writers."""

    binary: bool = False

    def __init__(self, stream: IO):
        self._stream = stream

    def write_token(self, token: str) -> None:
        raise NotImplementedError

    def write_int(self, value: int) -> None:
        raise NotImplementedError

    def write_float(self, value: float, dtype: np.dtype = np.dtype(np.float32)) -> None:
        raise NotImplementedError

    def write_matrix(self, mat: np.ndarray) -> None:
        raise NotImplementedError

    def write_vector(self, vec: np.ndarray) -> None:
        raise NotImplementedError

    def newline(self) -> None:
        """End the current line (text only)."""

    def write_int_list(self, values: list[int]) -> None:
        """Write a count-prefixed list of integers."""
        self.write_int(len(values))
        for v in values:
            self.write_int(v)


class TextTokenWriter(TokenWriter):
    def write_token(self, token: str) -> None:
        self._stream.write(f"{token} ")

    def write_int(self, value: int) -> None:
        self._stream.write(f"{int(value)} ")

    def write_float(self, value: float, dtype: np.dtype = np.dtype(np.float32)) -> None:
        self._stream.write(f"{value:{_float_format(dtype)}} ")

    def write_matrix(self, mat: np.ndarray) -> None:
        fmt = _float_format(mat.dtype)
        self._stream.write(" [")
        for row in mat:
            self._stream.write("\n  " + " ".join(f"{v:{fmt}}" for v in row))
        self._stream.write(" ]\n")

    def write_vector(self, vec: np.ndarray) -> None:
        fmt = _float_format(vec.dtype)
        self._stream.write(" [ " + " ".join(f"{v:{fmt}}" for v in vec) + " ]\n")

    def newline(self) -> None:
        self._stream.write("\n")


class BinaryTokenWriter(TokenWriter):
    binary = True

    def write_token(self, token: str) -> None:
        self._stream.write(token.encode("utf-8") + b" ")

    def write_int(self, value: int) -> None:
        self._stream.write(_SCALAR_TAG + struct.pack("<i", int(value)))

    def write_float(self, value: float, dtype: np.dtype = np.dtype(np.float32)) -> None:
        if np.dtype(dtype).itemsize <= 4:
            self._stream.write(_SCALAR_TAG + struct.pack("<f", value))
        else:
            self._stream.write(_DOUBLE_TAG + struct.pack("<d", value))

    def _write_raw(self, arr: np.ndarray) -> None:
        self._stream.write(np.ascontiguousarray(arr, dtype=arr.dtype.newbyteorder("<")).tobytes())

    def write_matrix(self, mat: np.ndarray) -> None:
        self.write_token(_MATRIX_TOKENS[np.dtype(mat.dtype)])
        self.write_int(mat.shape[0])
        self.write_int(mat.shape[1])
        self._write_raw(mat)

    def write_vector(self, vec: np.ndarray) -> None:
        self.write_token(_VECTOR_TOKENS[np.dtype(vec.dtype)])
        self.write_int(vec.shape[0])
        self._write_raw(vec)


@contextmanager
def writer_to(target: str | os.PathLike | IO, *, binary: bool = False) -> Iterator[TokenWriter]:
    """
    Yield a writer over a path or an open stream.

    Paths are opened (and closed) here. Binary output is prefixed with
    :data:`BINARY_HEADER`; `target` must then accept bytes.

    Args:
        target (str | os.PathLike | IO): Destination path or stream.
        binary (bool): Use the binary encoding.

    Yields:
        TokenWriter: Writer bound to the destination.

    """
    if isinstance(target, (str, os.PathLike)):
        with open(target, "wb" if binary else "w", encoding=None if binary else "utf-8") as f:
            with writer_to(f, binary=binary) as w:
                yield w
        return

    if binary:
        target.write(BINARY_HEADER)
        yield BinaryTokenWriter(target)
    else:
        yield TextTokenWriter(target)
