"""Heuristic detection of signed jars.

Rewriting any entry of a signed jar invalidates its signature, so signed jars
are passed through untouched. The check is deliberately shallow: it looks for
per-entry digests in the manifest and for a signature file / signature block
pair covering at least one entry. Signature blocks are never validated
cryptographically.
"""

from __future__ import annotations

import base64
import binascii
import io
import posixpath
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .constants import MANIFEST_NAME, SIGNATURE_BLOCK_SUFFIXES, SIGNATURE_FILE_SUFFIX, SIGNED_CHECK_SUFFIX
from .digests import Digest

_PARSE_ERRORS = (
    OSError,
    EOFError,
    ValueError,
    KeyError,
    NotImplementedError,
    RuntimeError,  # encrypted entries
    zlib.error,
    zipfile.BadZipFile,
    binascii.Error,
)


@dataclass
class Manifest:
    main: Dict[str, str] = field(default_factory=dict)
    entries: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def has_entry_digests(self) -> bool:
        return any("-digest" in key.lower() for attrs in self.entries.values() for key in attrs)


def _logical_lines(text: str) -> List[str]:
    # A line starting with a single space continues the previous one
    lines: List[str] = []
    for raw in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if raw.startswith(" ") and lines and lines[-1]:
            lines[-1] += raw[1:]
        else:
            lines.append(raw)
    return lines


def parse_manifest(data: bytes) -> Manifest:
    """Parse a manifest or signature file into main and per-entry sections.

    Raises:
        ValueError: a header line has no ``:`` separator.
    """
    text = data.decode("utf-8")
    manifest = Manifest()
    current = manifest.main
    in_main = True
    fresh = True  # at the start of a section
    for line in _logical_lines(text):
        if not line:
            if not fresh:
                in_main = False
                current = None
                fresh = True
            continue
        key, sep, value = line.partition(":")
        if not sep:
            raise ValueError(f"malformed manifest line: {line!r}")
        key = key.strip()
        value = value.strip()
        if fresh and not in_main:
            if key.lower() != "name":
                # Sections without a name carry nothing we use
                current = {}
            else:
                current = manifest.entries.setdefault(value, {})
        elif current is not None:
            current[key] = value
        fresh = False
    return manifest


def _find(names: List[str], wanted: str) -> Optional[str]:
    lower = wanted.lower()
    for n in names:
        if n.lower() == lower:
            return n
    return None


def _signers(zf: zipfile.ZipFile) -> List[Manifest]:
    """Parsed ``.SF`` files under META-INF/ that have a matching signature block."""
    names = zf.namelist()
    out = []
    for n in names:
        if posixpath.dirname(n).upper() != "META-INF" or not n.upper().endswith(SIGNATURE_FILE_SUFFIX):
            continue
        stem = n[: -len(SIGNATURE_FILE_SUFFIX)]
        if any(_find(names, stem + suffix) for suffix in SIGNATURE_BLOCK_SUFFIXES):
            out.append(parse_manifest(zf.read(n)))
    return out


def _digest_matches(attrs: Dict[str, str], data: bytes) -> bool:
    for key, value in attrs.items():
        if not key.lower().endswith("-digest"):
            continue
        d = Digest.from_name(key[: -len("-digest")])
        if d is None:
            continue
        acc = d.accumulator()
        acc.update(data)
        if acc.digest() != base64.b64decode(value, validate=True):
            return False
    return True


def has_code_signer(zf: zipfile.ZipFile, info: zipfile.ZipInfo, manifest: Manifest, signers: List[Manifest]) -> bool:
    """True if ``info`` is listed by some signer and its manifest digests hold."""
    if not any(info.filename in sf.entries for sf in signers):
        return False
    attrs = manifest.entries.get(info.filename)
    if attrs is None:
        return False
    return _digest_matches(attrs, zf.read(info))


def is_signed(name: str, content: bytes) -> bool:
    """Decide whether ``content`` (named ``name``) is a signed jar.

    Only names ending in ``.jar`` are inspected. Anything that fails to parse
    is reported as not signed.
    """
    if not name.endswith(SIGNED_CHECK_SUFFIX):
        return False
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            manifest_name = _find(zf.namelist(), MANIFEST_NAME)
            if manifest_name is None:
                return False
            manifest = parse_manifest(zf.read(manifest_name))
            if not manifest.has_entry_digests():
                return False
            signers = _signers(zf)
            if not signers:
                return False
            for info in zf.infolist():
                if info.is_dir():
                    continue
                if has_code_signer(zf, info, manifest, signers):
                    return True
    except _PARSE_ERRORS:
        return False
    return False
