"""Streaming multi-digest support.

A :class:`DigestChain` stacks one digesting layer per algorithm over a byte
stream so every byte read (or written) updates MD5, SHA-1 and SHA-256 in a
single pass. Hash primitives come from PyCryptodomex; their state is consumed
when finalized, so :class:`DigestAccumulator` finalizes once and caches.
"""

from __future__ import annotations

import base64
import io
import shutil
from dataclasses import dataclass
from typing import BinaryIO, Dict, Iterable, List, Optional, Sequence

from Cryptodome.Hash import MD5 as _MD5, SHA1 as _SHA1, SHA256 as _SHA256

from .constants import COPY_BUFSIZE
from .errors import DigestCreationError
from .streams import NullSink


@dataclass(frozen=True)
class Digest:
    algorithm: str  # display name, e.g. "SHA-256"
    extension: str  # sidecar extension, e.g. "sha256"
    module: object

    def new(self):
        return self.module.new()

    def accumulator(self) -> "DigestAccumulator":
        return DigestAccumulator(self)

    def reader(self, raw: BinaryIO) -> "DigestReader":
        return DigestReader(raw, self)

    def writer(self, raw: BinaryIO) -> "DigestWriter":
        return DigestWriter(raw, self)

    def hex_of(self, data: bytes) -> str:
        acc = self.accumulator()
        acc.update(data)
        return acc.hex()

    def file_hex(self, path) -> str:
        """Hash a whole file. Meant for small files; large ones should go through a chain."""
        try:
            with open(path, "rb") as fh:
                r = self.reader(fh)
                shutil.copyfileobj(r, NullSink(), COPY_BUFSIZE)
                return r.hex()
        except OSError as exc:
            raise DigestCreationError(self.algorithm, path, exc) from exc

    @staticmethod
    def from_name(name: str) -> Optional["Digest"]:
        """Resolve names as they appear in manifests ("SHA-256", "SHA1", "md5")."""
        key = name.replace("-", "").upper()
        for d in DIGESTS:
            if d.algorithm.replace("-", "").upper() == key:
                return d
        return None


MD5 = Digest("MD5", "md5", _MD5)
SHA1 = Digest("SHA-1", "sha1", _SHA1)
SHA256 = Digest("SHA-256", "sha256", _SHA256)

# Cascade order expected by downstream consumers
DIGESTS = (MD5, SHA1, SHA256)


class DigestAccumulator:
    def __init__(self, digest: Digest):
        self.digest_type = digest
        self._hash = digest.new()
        self._result: Optional[bytes] = None
        self.byte_count = 0

    def update(self, data) -> None:
        if self._result is not None:
            raise RuntimeError(f"{self.digest_type.algorithm} digest already finalized")
        if not data:
            return
        self._hash.update(bytes(data))
        self.byte_count += len(data)

    def digest(self) -> bytes:
        if self._result is None:
            self._result = self._hash.digest()
        return self._result

    def hex(self) -> str:
        return self.digest().hex()

    def b64(self) -> str:
        return base64.b64encode(self.digest()).decode("ascii")


class DigestReader(io.RawIOBase):
    """Readable layer that hashes every byte pulled through it.

    The digest is only complete once the stream has been read to its end.
    """

    def __init__(self, raw: BinaryIO, digest: Digest):
        super().__init__()
        self._raw = raw
        self.accumulator = DigestAccumulator(digest)

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        data = self._raw.read(len(b))
        n = len(data)
        if n:
            b[:n] = data
            self.accumulator.update(data)
        return n

    def close(self) -> None:
        if not self.closed:
            try:
                super().close()
            finally:
                self._raw.close()

    def digest(self) -> bytes:
        return self.accumulator.digest()

    def hex(self) -> str:
        return self.accumulator.hex()

    @property
    def byte_count(self) -> int:
        return self.accumulator.byte_count


class DigestWriter(io.RawIOBase):
    """Writable layer that hashes every byte before passing it down."""

    def __init__(self, raw: BinaryIO, digest: Digest):
        super().__init__()
        self._raw = raw
        self.accumulator = DigestAccumulator(digest)

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        data = bytes(b)
        self.accumulator.update(data)
        self._raw.write(data)
        return len(data)

    def flush(self) -> None:
        if not self.closed:
            self._raw.flush()

    def close(self) -> None:
        if not self.closed:
            try:
                super().close()
            finally:
                self._raw.close()

    def digest(self) -> bytes:
        return self.accumulator.digest()

    def hex(self) -> str:
        return self.accumulator.hex()

    @property
    def byte_count(self) -> int:
        return self.accumulator.byte_count


class DigestChain:
    """A cascade of digest layers over one stream.

    The first digest wraps the raw stream, each following one wraps the
    previous layer, and ``stream`` is the outermost layer callers use.
    """

    def __init__(self, layers: List[io.RawIOBase]):
        if not layers:
            raise ValueError("DigestChain needs at least one digest")
        self._layers = layers
        self.stream = layers[-1]

    @classmethod
    def reading(cls, raw: BinaryIO, digests: Sequence[Digest] = DIGESTS) -> "DigestChain":
        layers: List[io.RawIOBase] = []
        top = raw
        for d in digests:
            top = DigestReader(top, d)
            layers.append(top)
        return cls(layers)

    @classmethod
    def writing(cls, raw: BinaryIO, digests: Sequence[Digest] = DIGESTS) -> "DigestChain":
        layers: List[io.RawIOBase] = []
        top = raw
        for d in digests:
            top = DigestWriter(top, d)
            layers.append(top)
        return cls(layers)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def digests(self) -> List[Digest]:
        return [layer.accumulator.digest_type for layer in self._layers]

    def layer(self, digest: Digest):
        for layer in self._layers:
            if layer.accumulator.digest_type == digest:
                return layer
        raise KeyError(digest.algorithm)

    def hex(self, digest: Digest) -> str:
        return self.layer(digest).hex()

    def hexes(self) -> Dict[str, str]:
        """Map of sidecar extension -> hex digest, in cascade order."""
        return {layer.accumulator.digest_type.extension: layer.hex() for layer in self._layers}

    @property
    def byte_count(self) -> int:
        return self.stream.byte_count

    def drain(self) -> int:
        """Read the stream to its end, discarding the content."""
        shutil.copyfileobj(self.stream, NullSink(), COPY_BUFSIZE)
        return self.byte_count

    def read(self, size: int = -1) -> bytes:
        return self.stream.read(size)

    def write(self, data) -> int:
        return self.stream.write(data)

    def close(self) -> None:
        self.stream.close()


def digest_bytes(data: bytes, digests: Iterable[Digest] = DIGESTS) -> Dict[str, str]:
    """Hash ``data`` through a chain and return extension -> hex."""
    chain = DigestChain.reading(io.BytesIO(data), tuple(digests))
    chain.drain()
    return chain.hexes()
