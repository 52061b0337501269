from .tokens import (
    BINARY_HEADER,
    BinaryTokenReader,
    BinaryTokenWriter,
    TextTokenReader,
    TextTokenWriter,
    TokenReader,
    TokenWriter,
    reader_from,
    writer_to,
)

__all__ = [
    "BINARY_HEADER",
    "BinaryTokenReader",
    "BinaryTokenWriter",
    "TextTokenReader",
    "TextTokenWriter",
    "TokenReader",
    "TokenWriter",
    "reader_from",
    "writer_to",
]
