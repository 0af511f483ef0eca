"""Stream adapters shared by the rewriters and the digest layer.

Codec objects (``zipfile.ZipFile``, ``tarfile.TarFile``) are free to close the
file object they are handed. When that file object is itself an entry of an
enclosing archive being rewritten, the close must not reach the shared stream,
so every stream handed to a codec goes through :class:`UnclosableStream`.
"""

from __future__ import annotations

from typing import BinaryIO


class UnclosableStream:
    """Delegate everything to ``raw`` except ``close()``, which is a no-op."""

    def __init__(self, raw: BinaryIO):
        self._raw = raw

    def __getattr__(self, name):
        return getattr(self._raw, name)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __iter__(self):
        return iter(self._raw)

    def read(self, size: int = -1) -> bytes:
        return self._raw.read(size)

    def write(self, data) -> int:
        return self._raw.write(data)

    def close(self) -> None:
        pass

    @property
    def closed(self) -> bool:
        return self._raw.closed


class NullSink:
    """Write-only sink that discards everything; used to drain digesting readers."""

    def write(self, data) -> int:
        return len(data)

    def flush(self) -> None:
        pass

    def writable(self) -> bool:
        return True

    def close(self) -> None:
        pass
