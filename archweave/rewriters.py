"""Container rewriters.

Each rewriter streams the entries of a source container through a
:class:`~archweave.registry.Transformations` registry into a fresh container
of the same format. The registry decides which entries are dropped, which are
transformed and which hooks fire around them.
"""

from __future__ import annotations

import io
import os
from typing import BinaryIO

from .constants import (
    COPY_BUFSIZE,
    JAR_SUFFIXES,
    KIND_DIR,
    KIND_FILE,
    PASSTHROUGH_SUFFIXES,
    TAR_GZ_SUFFIXES,
    ZIP_SUFFIXES,
)
from .containers import ArchiveSink, JarSink, TarGzSink, TarGzSource, ZipSink, ZipSource
from .errors import ReadFailure, UnsupportedContainerType, WriteFailure
from .sidecar import Binary
from .streams import UnclosableStream


class Rewriter:
    """Base rewriter; subclasses pick the entry source and sink."""

    def __init__(self, transformations):
        self.transformations = transformations

    def _open_source(self, stream: BinaryIO):
        raise NotImplementedError

    def _open_sink(self, stream: BinaryIO, source) -> ArchiveSink:
        raise NotImplementedError

    def transform(self, source: BinaryIO, destination: BinaryIO) -> None:
        """Rewrite ``source`` into ``destination``; neither stream is closed."""
        src = self._open_source(UnclosableStream(source))
        try:
            sink = self._open_sink(UnclosableStream(destination), src)
            try:
                self._rewrite(src, sink)
            except BaseException:
                sink.abort()
                raise
            sink.close()
        finally:
            src.close()

    def _rewrite(self, source, sink: ArchiveSink) -> None:
        t = self.transformations
        t.before_archive(sink)
        for entry in source:
            name = entry.name
            if t.should_skip(name):
                continue
            t.before_entry(name, sink)
            if entry.kind == KIND_DIR:
                sink.add_directory(name)
            elif entry.kind == KIND_FILE:
                data = source.read(entry)
                sink.add_file(name, t.apply(name, data), source=entry)
            else:
                sink.add_link(entry)
            t.after_entry(name, sink)
        t.after_archive(sink)

    def transform_file(self, source, destination) -> None:
        """Rewrite the file at ``source`` into ``destination``.

        ``destination`` may be a path or a :class:`Binary`; for the latter the
        output goes through its digesting writer and sidecars are produced,
        unless the rewrite fails.
        """
        src_path = os.fspath(source)
        try:
            fin = open(src_path, "rb")
        except OSError as exc:
            raise ReadFailure(src_path, exc) from exc
        with fin:
            if isinstance(destination, Binary):
                out = destination.write()
            else:
                dest_path = os.fspath(destination)
                try:
                    out = open(dest_path, "wb")
                except OSError as exc:
                    raise WriteFailure(dest_path, exc) from exc
            with out:
                self.transform(fin, out)

    def apply(self, data: bytes) -> bytes:
        """In-memory rewrite, used for containers nested in other containers."""
        out = io.BytesIO()
        self.transform(io.BytesIO(data), out)
        return out.getvalue()


class ZipRewriter(Rewriter):
    def _open_source(self, stream):
        return ZipSource(stream)

    def _open_sink(self, stream, source):
        return ZipSink(stream, comment=source.comment)


class JarRewriter(ZipRewriter):
    def _open_sink(self, stream, source):
        return JarSink(stream, comment=source.comment)


class TarGzRewriter(Rewriter):
    def _open_source(self, stream):
        return TarGzSource(stream)

    def _open_sink(self, stream, source):
        return TarGzSink(stream)


class PassThroughRewriter(Rewriter):
    """Copies the bytes verbatim; registry rules and hooks are not consulted."""

    def transform(self, source: BinaryIO, destination: BinaryIO) -> None:
        label_in = getattr(source, "name", None)
        label_out = getattr(destination, "name", None)
        while True:
            try:
                buf = source.read(COPY_BUFSIZE)
            except OSError as exc:
                raise ReadFailure(label_in, exc) from exc
            if not buf:
                break
            try:
                destination.write(buf)
            except OSError as exc:
                raise WriteFailure(label_out, exc) from exc


def rewriter_for(name: str, transformations) -> Rewriter:
    """Select the rewriter for a file or entry name by its suffix."""
    if name.endswith(ZIP_SUFFIXES):
        return ZipRewriter(transformations)
    if name.endswith(TAR_GZ_SUFFIXES):
        return TarGzRewriter(transformations)
    if name.endswith(JAR_SUFFIXES):
        return JarRewriter(transformations)
    if name.endswith(PASSTHROUGH_SUFFIXES):
        return PassThroughRewriter(transformations)
    raise UnsupportedContainerType(name)
