"""Entry-level access to zip, jar and tar.gz containers.

Sources iterate the entries of an existing container and hand back their
bytes; sinks are the write side given to the rewriters and to every hook. The
byte-level encoding is left to :mod:`zipfile` and :mod:`tarfile`; this module
maps their entry types onto :class:`Entry` and carries per-entry metadata
(timestamps, mode bits, CRC32) across a rewrite.
"""

from __future__ import annotations

import copy
import io
import struct
import tarfile
import tempfile
import time
import zipfile
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Dict, Iterator, Optional

from .constants import (
    COPY_BUFSIZE,
    DEFAULT_DIR_MODE,
    DEFAULT_FILE_MODE,
    EXTRA_EXT_TIMESTAMP,
    EXTRA_JAR_MARKER,
    EXTRA_NTFS,
    KIND_DIR,
    KIND_FILE,
    KIND_HARDLINK,
    KIND_OTHER,
    KIND_SYMLINK,
    NTFS_EPOCH_OFFSET,
    SPOOL_MAX_BYTES,
)
from .errors import ReadFailure, WriteFailure
from .hashutil import crc32

# Errors the codecs raise for damaged, truncated or encrypted input
_DECODE_ERRORS = (
    OSError,
    EOFError,
    zlib.error,
    zipfile.BadZipFile,
    tarfile.TarError,
    ValueError,
    NotImplementedError,
    RuntimeError,  # zipfile: encrypted entry, no password
)

_ZIP_METHODS = (zipfile.ZIP_STORED, zipfile.ZIP_DEFLATED, zipfile.ZIP_BZIP2, zipfile.ZIP_LZMA)

_EXTRA_HDR = struct.Struct("<HH")
_JAR_MARKER = _EXTRA_HDR.pack(EXTRA_JAR_MARKER, 0)


@dataclass
class Entry:
    name: str
    kind: int  # KIND_FILE, KIND_DIR, KIND_SYMLINK, KIND_HARDLINK, KIND_OTHER
    size: int = 0
    mode: Optional[int] = None
    mtime: Optional[float] = None
    atime: Optional[float] = None
    ctime: Optional[float] = None
    linkname: Optional[str] = None
    native: object = None  # ZipInfo / TarInfo as decoded

    @property
    def is_dir(self) -> bool:
        return self.kind == KIND_DIR

    @property
    def is_file(self) -> bool:
        return self.kind == KIND_FILE

    @property
    def is_link(self) -> bool:
        return self.kind in (KIND_SYMLINK, KIND_HARDLINK)


# -------- zip extra fields --------

def _iter_extra(extra: bytes) -> Iterator[tuple]:
    pos = 0
    while pos + _EXTRA_HDR.size <= len(extra):
        hid, size = _EXTRA_HDR.unpack_from(extra, pos)
        pos += _EXTRA_HDR.size
        if pos + size > len(extra):
            return
        yield hid, extra[pos:pos + size]
        pos += size


def _parse_ext_timestamp(body: bytes) -> Dict[str, float]:
    # flags: bit0 mtime, bit1 atime, bit2 ctime; each a signed 32-bit epoch
    out: Dict[str, float] = {}
    if not body:
        return out
    flags = body[0]
    pos = 1
    for bit, key in ((1, "mtime"), (2, "atime"), (4, "ctime")):
        if flags & bit:
            if pos + 4 > len(body):
                break
            out[key] = float(struct.unpack_from("<i", body, pos)[0])
            pos += 4
    return out


def _parse_ntfs(body: bytes) -> Dict[str, float]:
    out: Dict[str, float] = {}
    pos = 4  # reserved
    while pos + 4 <= len(body):
        tag, size = _EXTRA_HDR.unpack_from(body, pos)
        pos += 4
        if tag == 1 and size >= 24 and pos + 24 <= len(body):
            mt, at, ct = struct.unpack_from("<QQQ", body, pos)
            for key, ft in (("mtime", mt), ("atime", at), ("ctime", ct)):
                if ft:
                    out[key] = (ft - NTFS_EPOCH_OFFSET) / 10_000_000
            break
        pos += size
    return out


def zip_timestamps(info: zipfile.ZipInfo) -> Dict[str, float]:
    """Collect mtime/atime/ctime from a ZipInfo's extra fields and DOS date."""
    stamps: Dict[str, float] = {}
    for hid, body in _iter_extra(info.extra or b""):
        if hid == EXTRA_NTFS:
            stamps.update({k: v for k, v in _parse_ntfs(body).items() if k not in stamps})
        elif hid == EXTRA_EXT_TIMESTAMP:
            stamps.update(_parse_ext_timestamp(body))
    if "mtime" not in stamps:
        try:
            stamps["mtime"] = time.mktime(info.date_time + (0, 0, -1))
        except (OverflowError, ValueError):
            pass
    return stamps


def _ext_timestamp_extra(entry: Entry) -> bytes:
    flags = 0
    body = b""
    for bit, value in ((1, entry.mtime), (2, entry.atime), (4, entry.ctime)):
        if value is None:
            continue
        secs = int(value)
        if not -(2 ** 31) <= secs < 2 ** 31:
            continue
        flags |= bit
        body += struct.pack("<i", secs)
    if not flags:
        return b""
    return _EXTRA_HDR.pack(EXTRA_EXT_TIMESTAMP, 1 + len(body)) + bytes([flags]) + body


def _dos_date_time(ts: Optional[float]) -> tuple:
    if ts is None:
        ts = time.time()
    dt = time.localtime(ts)[:6]
    if dt[0] < 1980:
        return (1980, 1, 1, 0, 0, 0)
    if dt[0] > 2107:
        return (2107, 12, 31, 23, 59, 58)
    return dt


def _entry_from_zipinfo(info: zipfile.ZipInfo) -> Entry:
    stamps = zip_timestamps(info)
    mode = (info.external_attr >> 16) & 0o7777 if info.create_system == 3 else None
    return Entry(
        name=info.filename,
        kind=KIND_DIR if info.is_dir() else KIND_FILE,
        size=info.file_size,
        mode=mode or None,
        mtime=stamps.get("mtime"),
        atime=stamps.get("atime"),
        ctime=stamps.get("ctime"),
        native=info,
    )


def _entry_from_tarinfo(info: tarfile.TarInfo) -> Entry:
    if info.isdir():
        kind = KIND_DIR
    elif info.issym():
        kind = KIND_SYMLINK
    elif info.islnk():
        kind = KIND_HARDLINK
    elif info.isreg():
        kind = KIND_FILE
    else:
        kind = KIND_OTHER
    pax = info.pax_headers or {}

    def _pax_time(key: str) -> Optional[float]:
        try:
            return float(pax[key]) if key in pax else None
        except ValueError:
            return None

    return Entry(
        name=info.name,
        kind=kind,
        size=info.size,
        mode=info.mode,
        mtime=float(info.mtime),
        atime=_pax_time("atime"),
        ctime=_pax_time("ctime"),
        linkname=info.linkname or None,
        native=info,
    )


# -------- sources --------

class ZipSource:
    """Iterate the entries of a zip (or jar) stream in central-directory order.

    The zip codec needs random access; non-seekable input is first spooled to
    a temporary file.
    """

    def __init__(self, fileobj: BinaryIO, *, label=None):
        self.label = label if label is not None else getattr(fileobj, "name", None)
        self._spool = None
        try:
            if not _seekable(fileobj):
                self._spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_BYTES)
                while True:
                    buf = fileobj.read(COPY_BUFSIZE)
                    if not buf:
                        break
                    self._spool.write(buf)
                self._spool.seek(0)
                fileobj = self._spool
            self._zf = zipfile.ZipFile(fileobj, "r")
        except _DECODE_ERRORS as exc:
            self._close_spool()
            raise ReadFailure(self.label, exc) from exc

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def comment(self) -> bytes:
        return self._zf.comment

    def __iter__(self) -> Iterator[Entry]:
        for info in self._zf.infolist():
            yield _entry_from_zipinfo(info)

    def read(self, entry: Entry) -> bytes:
        try:
            return self._zf.read(entry.native)
        except _DECODE_ERRORS as exc:
            raise ReadFailure(self.label, exc) from exc

    def _close_spool(self) -> None:
        if self._spool is not None:
            self._spool.close()
            self._spool = None

    def close(self) -> None:
        zf = getattr(self, "_zf", None)
        if zf is not None:
            zf.close()
            self._zf = None
        self._close_spool()


class TarGzSource:
    """Stream the members of a gzip-compressed tar, one at a time."""

    def __init__(self, fileobj: BinaryIO, *, label=None):
        self.label = label if label is not None else getattr(fileobj, "name", None)
        try:
            self._tf = tarfile.open(fileobj=fileobj, mode="r|gz")
        except _DECODE_ERRORS as exc:
            raise ReadFailure(self.label, exc) from exc

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __iter__(self) -> Iterator[Entry]:
        while True:
            try:
                info = self._tf.next()
            except _DECODE_ERRORS as exc:
                raise ReadFailure(self.label, exc) from exc
            if info is None:
                return
            yield _entry_from_tarinfo(info)

    def read(self, entry: Entry) -> bytes:
        """Read the current member; members must be read in iteration order."""
        try:
            fh = self._tf.extractfile(entry.native)
            if fh is None:
                return b""
            return fh.read()
        except _DECODE_ERRORS as exc:
            raise ReadFailure(self.label, exc) from exc

    def close(self) -> None:
        if self._tf is not None:
            self._tf.close()
            self._tf = None


def _seekable(fileobj) -> bool:
    try:
        return bool(fileobj.seekable())
    except (AttributeError, OSError, ValueError):
        return False


# -------- sinks --------

class ArchiveSink:
    """Write side of a container, handed to the rewriter loop and to hooks."""

    format = "archive"

    def __init__(self, label=None):
        self.label = label
        self.names = []  # entry names written so far, in order

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def add_directory(self, name: str) -> None:
        raise NotImplementedError

    def add_file(self, name: str, data: bytes, *, source: Optional[Entry] = None) -> None:
        """Write a regular file entry.

        Args:
            name: Entry name.
            data: Full entry content.
            source: Entry whose timestamps/mode are carried over; None for new entries.
        """
        raise NotImplementedError

    def add_link(self, entry: Entry) -> None:
        raise WriteFailure(self.label, entry=entry.name, cause=ValueError(f"{self.format} containers do not hold links"))

    def insert(self, name: str, data: bytes) -> None:
        """Add a brand new entry (directory when ``name`` ends with '/')."""
        if name.endswith("/"):
            self.add_directory(name)
        else:
            self.add_file(name, data)

    def close(self) -> None:
        raise NotImplementedError

    def abort(self) -> None:
        """Let go of the codec without finishing the container."""
        raise NotImplementedError


class ZipSink(ArchiveSink):
    format = "zip"

    def __init__(self, fileobj: BinaryIO, *, label=None, comment: bytes = b""):
        super().__init__(label if label is not None else getattr(fileobj, "name", None))
        try:
            self._zf = zipfile.ZipFile(fileobj, "w", compression=zipfile.ZIP_DEFLATED)
        except OSError as exc:
            raise WriteFailure(self.label, exc) from exc
        if comment:
            self._zf.comment = comment

    def _extra_prefix(self) -> bytes:
        return b""

    def _put(self, info: zipfile.ZipInfo, data: bytes) -> None:
        if not self.names:
            info.extra = self._extra_prefix() + info.extra
        try:
            self._zf.writestr(info, data)
        except (OSError, ValueError, zlib.error) as exc:
            raise WriteFailure(self.label, exc, entry=info.filename) from exc
        self.names.append(info.filename)

    def add_directory(self, name: str) -> None:
        if not name.endswith("/"):
            name += "/"
        info = zipfile.ZipInfo(name, date_time=_dos_date_time(None))
        info.external_attr = ((0o40000 | DEFAULT_DIR_MODE) << 16) | 0x10
        info.compress_type = zipfile.ZIP_STORED
        self._put(info, b"")

    def add_file(self, name: str, data: bytes, *, source: Optional[Entry] = None) -> None:
        info = zipfile.ZipInfo(name, date_time=_dos_date_time(source.mtime if source else None))
        src = source.native if source is not None else None
        if isinstance(src, zipfile.ZipInfo):
            info.date_time = src.date_time
            info.compress_type = src.compress_type if src.compress_type in _ZIP_METHODS else zipfile.ZIP_DEFLATED
            info.create_system = src.create_system
            info.external_attr = src.external_attr
            info.comment = src.comment
        else:
            info.compress_type = zipfile.ZIP_DEFLATED
            mode = source.mode if source is not None and source.mode else DEFAULT_FILE_MODE
            info.external_attr = (0o100000 | mode) << 16
        if source is not None:
            info.extra = _ext_timestamp_extra(source)
        info.file_size = len(data)
        info.CRC = crc32(data)
        self._put(info, data)

    def close(self) -> None:
        if self._zf is None:
            return
        zf, self._zf = self._zf, None
        try:
            zf.close()
        except OSError as exc:
            raise WriteFailure(self.label, exc) from exc

    def abort(self) -> None:
        if self._zf is None:
            return
        zf, self._zf = self._zf, None
        # ZipFile.close() (also run from __del__) returns early without a file
        zf.fp = None


class JarSink(ZipSink):
    """Zip sink that tags the first entry with the jar marker extra field."""

    format = "jar"

    def _extra_prefix(self) -> bytes:
        return _JAR_MARKER


class TarGzSink(ArchiveSink):
    format = "tar.gz"

    def __init__(self, fileobj: BinaryIO, *, label=None):
        super().__init__(label if label is not None else getattr(fileobj, "name", None))
        try:
            self._tf = tarfile.open(fileobj=fileobj, mode="w|gz", format=tarfile.PAX_FORMAT)
        except (OSError, tarfile.TarError) as exc:
            raise WriteFailure(self.label, exc) from exc

    def _put(self, info: tarfile.TarInfo, data: Optional[bytes] = None) -> None:
        try:
            self._tf.addfile(info, io.BytesIO(data) if data is not None else None)
        except (OSError, tarfile.TarError, ValueError) as exc:
            raise WriteFailure(self.label, exc, entry=info.name) from exc
        self.names.append(info.name)

    def add_directory(self, name: str) -> None:
        info = tarfile.TarInfo(name.rstrip("/"))
        info.type = tarfile.DIRTYPE
        info.mode = DEFAULT_DIR_MODE
        info.mtime = int(time.time())
        self._put(info)

    def add_file(self, name: str, data: bytes, *, source: Optional[Entry] = None) -> None:
        info = tarfile.TarInfo(name)
        info.size = len(data)
        info.mode = DEFAULT_FILE_MODE
        info.mtime = int(time.time())
        if source is not None:
            if source.mode is not None:
                info.mode = source.mode
            if source.mtime is not None:
                info.mtime = int(source.mtime) if float(source.mtime).is_integer() else source.mtime
            pax = {}
            for key in ("atime", "ctime"):
                value = getattr(source, key)
                if value is not None:
                    pax[key] = repr(float(value))
            if pax:
                info.pax_headers = pax
        self._put(info, data)

    def add_link(self, entry: Entry) -> None:
        """Copy a link (or other special member) exactly as it was decoded."""
        info = copy.copy(entry.native) if isinstance(entry.native, tarfile.TarInfo) else None
        if info is None:
            info = tarfile.TarInfo(entry.name)
            info.type = tarfile.SYMTYPE if entry.kind == KIND_SYMLINK else tarfile.LNKTYPE
            info.linkname = entry.linkname or ""
            if entry.mode is not None:
                info.mode = entry.mode
            if entry.mtime is not None:
                info.mtime = entry.mtime
        self._put(info)

    def close(self) -> None:
        if self._tf is None:
            return
        tf, self._tf = self._tf, None
        try:
            tf.close()
        except (OSError, tarfile.TarError) as exc:
            raise WriteFailure(self.label, exc) from exc

    def abort(self) -> None:
        if self._tf is None:
            return
        tf, self._tf = self._tf, None
        # No end-of-archive blocks, and the gzip stream is never flushed
        tf.closed = True
        tf.fileobj.closed = True

