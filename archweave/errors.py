from __future__ import annotations

import os
from typing import Iterable, Optional


class ArchweaveError(Exception):
    """Base class for archweave-specific errors."""


def _label(path) -> str:
    if path is None:
        return "<stream>"
    try:
        return os.fspath(path)
    except TypeError:
        return str(path)


# I/O boundaries
class ReadFailure(ArchweaveError):
    def __init__(self, path, cause: Optional[BaseException] = None):
        self.path = _label(path)
        self.cause = cause
        msg = f"Unable to read '{self.path}'"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class WriteFailure(ArchweaveError):
    def __init__(self, path, cause: Optional[BaseException] = None, *, entry: Optional[str] = None):
        self.path = _label(path)
        self.cause = cause
        self.entry = entry
        msg = f"Unable to write '{self.path}'"
        if entry is not None:
            msg += f" (entry '{entry}')"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


# Digest / sidecar verification
class VerificationFailed(ArchweaveError):
    def __init__(self, path, algorithm: str, expected: str, actual: str):
        self.path = _label(path)
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Verification failed for {os.path.basename(self.path)}: "
            f"expected {algorithm} hash {expected}, found {actual}"
        )


class VerificationImpossible(ArchweaveError):
    def __init__(self, path, tried_paths: Iterable):
        self.path = _label(path)
        self.tried_paths = [_label(p) for p in tried_paths]
        super().__init__(
            f"Unable to verify '{os.path.basename(self.path)}'. No digest files found. Looked for: "
            + ", ".join(self.tried_paths)
        )


class DigestCreationError(ArchweaveError):
    def __init__(self, algorithm: str, path, cause: Optional[BaseException] = None):
        self.algorithm = algorithm
        self.path = _label(path)
        self.cause = cause
        super().__init__(f"Unable to create {algorithm} hash for file '{os.path.basename(self.path)}'")


# Selection / configuration
class UnsupportedContainerType(ArchweaveError):
    def __init__(self, filename):
        self.filename = os.path.basename(_label(filename))
        super().__init__(
            f"Unsupported file type '{self.filename}'. "
            "Supported types are zip, tar.gz, jar, war, ear, rar and pdf"
        )


class UnsupportedOutputTarget(ArchweaveError):
    def __init__(self, target):
        self.target = target
        super().__init__(f"Unsupported output target '{type(target).__name__}'")


class BuilderNotSettled(ArchweaveError):
    def __init__(self, rounds: int):
        self.rounds = rounds
        super().__init__(f"Builder consumers still queueing new consumers after {rounds} rounds")
