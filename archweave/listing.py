"""Recursive textual listings of containers.

One line per entry: ``<name>  <short hash>`` for files, the bare name for
directories and ``<name> -> <target>`` for links. Entries of nested
containers are listed after their parent as ``outer > inner``.
"""

from __future__ import annotations

import io
import os
from typing import BinaryIO, Iterator, List

from .constants import JAR_SUFFIXES, KIND_DIR, KIND_FILE, TAR_GZ_SUFFIXES, ZIP_SUFFIXES
from .containers import TarGzSource, ZipSource
from .errors import ReadFailure, UnsupportedContainerType
from .hashutil import short_hash

NESTING_SEPARATOR = " > "


def is_container(name: str) -> bool:
    return name.endswith(ZIP_SUFFIXES + JAR_SUFFIXES + TAR_GZ_SUFFIXES)


def open_source(name: str, stream: BinaryIO, *, label=None):
    if name.endswith(TAR_GZ_SUFFIXES):
        return TarGzSource(stream, label=label)
    if name.endswith(ZIP_SUFFIXES + JAR_SUFFIXES):
        return ZipSource(stream, label=label)
    raise UnsupportedContainerType(name)


def iter_listing(name: str, stream: BinaryIO, prefix: str = "") -> Iterator[str]:
    with open_source(name, stream, label=prefix + name) as source:
        for entry in source:
            path = prefix + entry.name
            if entry.kind == KIND_DIR:
                yield path
            elif entry.kind == KIND_FILE:
                data = source.read(entry)
                yield f"{path}  {short_hash(data)}"
                if is_container(entry.name):
                    yield from iter_listing(entry.name, io.BytesIO(data), path + NESTING_SEPARATOR)
            else:
                yield f"{path} -> {entry.linkname or ''}"


def list_archive(path) -> List[str]:
    path = os.fspath(path)
    try:
        fh = open(path, "rb")
    except OSError as exc:
        raise ReadFailure(path, exc) from exc
    with fh:
        return list(iter_listing(os.path.basename(path), fh))


def list_bytes(name: str, data: bytes) -> List[str]:
    return list(iter_listing(name, io.BytesIO(data)))
