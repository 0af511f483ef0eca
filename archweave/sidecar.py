from __future__ import annotations

import io
import os
import sys
from typing import Dict, Optional, TextIO

from .digests import DIGESTS, MD5, SHA1, SHA256, Digest, DigestChain
from .errors import ReadFailure, VerificationFailed, VerificationImpossible, WriteFailure


class Binary:
    """A file bound to its ``.md5``, ``.sha1`` and ``.sha256`` sidecar files.

    Sidecars are siblings of the file, named ``<file>.<ext>``, each holding the
    lowercase hex digest of the file as its whole content.
    """

    def __init__(self, path):
        self.path = os.path.abspath(os.fspath(path))
        self.sidecars: Dict[Digest, str] = {d: f"{self.path}.{d.extension}" for d in DIGESTS}

    @classmethod
    def of(cls, path) -> "Binary":
        if isinstance(path, Binary):
            return path
        return cls(path)

    def __fspath__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return f"Binary({self.path!r})"

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    # -------- stored digests --------

    def stored(self, digest: Digest) -> Optional[str]:
        """Return the hex held by ``digest``'s sidecar, or None when absent."""
        side = self.sidecars[digest]
        if not os.path.exists(side):
            return None
        try:
            with open(side, "r", encoding="ascii") as fh:
                return fh.read().strip().lower()
        except (OSError, UnicodeDecodeError) as exc:
            raise ReadFailure(side, exc) from exc

    @property
    def md5(self) -> Optional[str]:
        return self.stored(MD5)

    @property
    def sha1(self) -> Optional[str]:
        return self.stored(SHA1)

    @property
    def sha256(self) -> Optional[str]:
        return self.stored(SHA256)

    def present(self) -> Dict[Digest, str]:
        """Sidecars that exist on disk, in cascade order."""
        return {d: p for d, p in self.sidecars.items() if os.path.exists(p)}

    # -------- streams --------

    def read(self) -> DigestChain:
        """Open the file through a 3-way digest chain."""
        try:
            fh = open(self.path, "rb")
        except OSError as exc:
            raise ReadFailure(self.path, exc) from exc
        return DigestChain.reading(fh, DIGESTS)

    def write(self) -> "BinaryWriter":
        """Open the file for writing; closing the writer produces all three sidecars."""
        return BinaryWriter(self)

    def _compute(self) -> DigestChain:
        chain = self.read()
        try:
            chain.drain()
        except OSError as exc:
            raise ReadFailure(self.path, exc) from exc
        finally:
            chain.close()
        return chain

    def _store(self, digest: Digest, hex_value: str) -> None:
        side = self.sidecars[digest]
        try:
            with open(side, "w", encoding="ascii") as fh:
                fh.write(hex_value)
        except OSError as exc:
            raise WriteFailure(side, exc) from exc

    # -------- protocol --------

    def generate(self, overwrite: bool = False) -> Dict[str, str]:
        """Write missing sidecars (all of them when ``overwrite``).

        Returns:
            Mapping of extension -> hex for every digest computed.
        """
        chain = self._compute()
        for d in DIGESTS:
            if overwrite or not os.path.exists(self.sidecars[d]):
                self._store(d, chain.hex(d))
        return chain.hexes()

    def verify(self, reporter: Optional[TextIO] = None) -> bool:
        """Compare the file against its sidecars.

        Without ``reporter`` this fails fast: it raises
        :class:`VerificationImpossible` when no sidecar exists and
        :class:`VerificationFailed` on the first mismatch. With a ``reporter``
        text stream every problem is printed there and the overall result is
        returned instead.
        """
        present = self.present()
        if not present:
            if reporter is None:
                raise VerificationImpossible(self.path, self.sidecars.values())
            names = ", ".join(os.path.basename(p) for p in self.sidecars.values())
            print(f"Unable to verify '{self.name}'. No digest files found. Looked for: {names}", file=reporter)
            return False

        chain = self._compute()
        passed = True
        for d in present:
            expected = self.stored(d)
            actual = chain.hex(d)
            if expected == actual:
                continue
            if reporter is None:
                raise VerificationFailed(self.path, d.algorithm, expected, actual)
            print(
                f"Verification failed for {self.name}: expected {d.algorithm} hash {expected}, found {actual}",
                file=reporter,
            )
            passed = False
        return passed


class BinaryWriter(io.RawIOBase):
    """Digesting writer for a :class:`Binary`; sidecars materialize on close."""

    def __init__(self, binary: Binary):
        super().__init__()
        self.binary = binary
        try:
            fh = open(binary.path, "wb")
        except OSError as exc:
            raise WriteFailure(binary.path, exc) from exc
        self._chain = DigestChain.writing(fh, DIGESTS)

    @property
    def name(self) -> str:
        return self.binary.path

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        try:
            return self._chain.write(b)
        except OSError as exc:
            raise WriteFailure(self.binary.path, exc) from exc

    def flush(self) -> None:
        if not self.closed:
            self._chain.stream.flush()

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
        else:
            self.discard()

    def _close_file(self) -> None:
        try:
            super().close()
            self._chain.close()
        except OSError as exc:
            raise WriteFailure(self.binary.path, exc) from exc

    def close(self) -> None:
        if self.closed:
            return
        self._close_file()
        for d in DIGESTS:
            self.binary._store(d, self._chain.hex(d))

    def discard(self) -> None:
        """Close the file without writing sidecars; the output is incomplete."""
        if self.closed:
            return
        self._close_file()

    def hexes(self) -> Dict[str, str]:
        return self._chain.hexes()

    @property
    def byte_count(self) -> int:
        return self._chain.byte_count


def verify_all(paths, reporter: TextIO = sys.stderr) -> bool:
    """Non-fail-fast verification of several files; True only if all pass."""
    ok = True
    for p in paths:
        ok = Binary.of(p).verify(reporter) and ok
    return ok
