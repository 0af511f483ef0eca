"""Archive fixtures for the test modules, built in memory with the stdlib codecs."""

from __future__ import annotations

import base64
import hashlib
import io
import struct
import tarfile
import zipfile
from typing import List, Optional, Sequence, Tuple

FIXED_MTIME = 1_600_000_000

COLORS = [
    ("META-INF/", None),
    ("META-INF/MANIFEST.MF", b"Manifest-Version: 1.0\r\nCreated-By: colors\r\n\r\n"),
    ("META-INF/LICENSE", b"Licensed under the Apache License, Version 2.0\n"),
    ("com/", None),
    ("com/example/", None),
    ("com/example/Blue.class", b"\xca\xfe\xba\xbe blue"),
    ("com/example/Red.class", b"\xca\xfe\xba\xbe red"),
    ("com/example/Green.class", b"\xca\xfe\xba\xbe green"),
]


class Link:
    def __init__(self, target: str):
        self.target = target


def make_zip(entries: Sequence[Tuple[str, Optional[bytes]]], *, comment: bytes = b"", stored: Sequence[str] = ()) -> bytes:
    """Zip of ``(name, data)`` pairs; ``data`` None makes a directory entry."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries:
            if data is None:
                zf.writestr(name if name.endswith("/") else name + "/", b"")
            elif name in stored:
                zf.writestr(name, data, compress_type=zipfile.ZIP_STORED)
            else:
                zf.writestr(name, data)
        zf.comment = comment
    return buf.getvalue()


def colors_jar() -> bytes:
    return make_zip(COLORS)


def zip_entries(data: bytes) -> List[Tuple[str, bytes]]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return [(info.filename, zf.read(info)) for info in zf.infolist()]


def zip_names(data: bytes) -> List[str]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return zf.namelist()


def make_tar_gz(entries) -> bytes:
    """Tar.gz of ``(name, data)`` pairs; ``data`` None is a directory, a :class:`Link` a symlink."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz", format=tarfile.PAX_FORMAT) as tf:
        for name, data in entries:
            info = tarfile.TarInfo(name)
            info.mtime = FIXED_MTIME
            if data is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tf.addfile(info)
            elif isinstance(data, Link):
                info.type = tarfile.SYMTYPE
                info.linkname = data.target
                info.mode = 0o777
                tf.addfile(info)
            else:
                info.size = len(data)
                info.mode = 0o640
                tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def tar_members(data: bytes) -> List[Tuple[tarfile.TarInfo, Optional[bytes]]]:
    out = []
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tf:
        for member in tf.getmembers():
            content = tf.extractfile(member).read() if member.isreg() else None
            out.append((member, content))
    return out


def _b64_sha256(data: bytes) -> str:
    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")


def signed_jar(
    files: Sequence[Tuple[str, bytes]],
    *,
    signer: str = "SIGNER",
    block_suffix: str = ".RSA",
    tamper: bool = False,
) -> bytes:
    """A jar laid out like a signed one: per-entry manifest digests, .SF and block file.

    The block file is not a real PKCS#7 structure. With ``tamper`` the entry
    bytes no longer match their manifest digests.
    """
    main = "Manifest-Version: 1.0\r\nCreated-By: fixtures\r\n\r\n"
    sections = "".join(f"Name: {name}\r\nSHA-256-Digest: {_b64_sha256(data)}\r\n\r\n" for name, data in files)
    sf = "Signature-Version: 1.0\r\nSHA-256-Digest-Manifest: AAAA\r\n\r\n" + "".join(
        f"Name: {name}\r\nSHA-256-Digest: AAAA\r\n\r\n" for name, _ in files
    )
    entries: List[Tuple[str, Optional[bytes]]] = [
        ("META-INF/", None),
        ("META-INF/MANIFEST.MF", (main + sections).encode("utf-8")),
        (f"META-INF/{signer}.SF", sf.encode("utf-8")),
    ]
    if block_suffix:
        entries.append((f"META-INF/{signer}{block_suffix}", b"\x30\x82\x00\x00not-a-real-signature"))
    for name, data in files:
        entries.append((name, data + b"!" if tamper else data))
    return make_zip(entries)


def mark_encrypted(data: bytes, name: str) -> bytes:
    """Set the "encrypted" flag bit of ``name`` in its local and central headers.

    The entry bytes stay as they are, so the zip codec refuses to read the
    entry without a password.
    """
    buf = bytearray(data)
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        local = zf.getinfo(name).header_offset
    buf[local + 6] |= 0x01
    wanted = name.encode("utf-8")
    pos = buf.find(b"PK\x01\x02")
    while pos != -1:
        (name_len,) = struct.unpack_from("<H", buf, pos + 28)
        if bytes(buf[pos + 46 : pos + 46 + name_len]) == wanted:
            buf[pos + 8] |= 0x01
        pos = buf.find(b"PK\x01\x02", pos + 46)
    return bytes(buf)
