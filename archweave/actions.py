from __future__ import annotations

import io
import os
from typing import Callable, Union

from .containers import ArchiveSink, ZipSource
from .errors import ReadFailure, UnsupportedOutputTarget

Content = Union[bytes, str, "os.PathLike[str]", Callable[[], bytes]]


def resolve_content(content: Content) -> bytes:
    """Materialize entry content.

    ``bytes`` are used as is, ``str`` is UTF-8 text, a path-like is read from
    disk and a zero-argument callable is invoked on every use.
    """
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    if isinstance(content, str):
        return content.encode("utf-8")
    if isinstance(content, os.PathLike):
        path = os.fspath(content)
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except OSError as exc:
            raise ReadFailure(path, exc) from exc
    if callable(content):
        return resolve_content(content())
    raise TypeError(f"unsupported entry content {type(content).__name__}")


def _require_sink(target) -> ArchiveSink:
    if not isinstance(target, ArchiveSink):
        raise UnsupportedOutputTarget(target)
    return target


class InsertEntry:
    """Hook that writes one new entry into whatever container is being built."""

    def __init__(self, name: str, content: Content):
        self.name = name
        self.content = content

    def __repr__(self) -> str:
        return f"InsertEntry({self.name!r})"

    def __call__(self, sink) -> None:
        sink = _require_sink(sink)
        sink.insert(self.name, resolve_content(self.content))


class InlineJar:
    """Hook copying every entry of another jar into the container being built.

    Timestamps, mode bits and (for zip targets) the compression method of the
    inlined entries are kept.
    """

    def __init__(self, content: Content):
        self.content = content

    def __call__(self, sink) -> None:
        sink = _require_sink(sink)
        data = resolve_content(self.content)
        with ZipSource(io.BytesIO(data), label="<inlined jar>") as source:
            for entry in source:
                if entry.is_dir:
                    sink.add_directory(entry.name)
                elif entry.is_file:
                    sink.add_file(entry.name, source.read(entry), source=entry)
