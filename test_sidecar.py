from __future__ import annotations

import hashlib
import io
import os
import tempfile
import unittest
from pathlib import Path

from archweave.digests import MD5, SHA1, SHA256
from archweave.errors import VerificationFailed, VerificationImpossible
from archweave.sidecar import Binary, verify_all


def _make_file(base: Path, name: str = "artifact.bin", data: bytes = b"artifact bytes\n") -> Path:
    p = base / name
    p.write_bytes(data)
    return p


class SidecarTests(unittest.TestCase):
    def test_generate_writes_all_three(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = _make_file(Path(tmp))
            data = p.read_bytes()
            hexes = Binary(p).generate()
            self.assertEqual(hexes["sha256"], hashlib.sha256(data).hexdigest())
            for ext, fn in (("md5", hashlib.md5), ("sha1", hashlib.sha1), ("sha256", hashlib.sha256)):
                side = Path(f"{p}.{ext}")
                self.assertTrue(side.exists(), side)
                self.assertEqual(side.read_text(), fn(data).hexdigest())

            b = Binary(p)
            self.assertEqual(b.md5, hashlib.md5(data).hexdigest())
            self.assertEqual(b.sha1, hashlib.sha1(data).hexdigest())
            self.assertTrue(b.verify())

    def test_generate_keeps_existing_unless_overwrite(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = _make_file(Path(tmp))
            Path(f"{p}.md5").write_text("stale")
            Binary(p).generate()
            self.assertEqual(Path(f"{p}.md5").read_text(), "stale")
            Binary(p).generate(overwrite=True)
            self.assertEqual(Path(f"{p}.md5").read_text(), hashlib.md5(p.read_bytes()).hexdigest())

    def test_verify_without_sidecars_is_impossible(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = _make_file(Path(tmp))
            with self.assertRaises(VerificationImpossible) as ctx:
                Binary(p).verify()
            self.assertEqual(len(ctx.exception.tried_paths), 3)
            self.assertIn("No digest files found", str(ctx.exception))

            report = io.StringIO()
            self.assertFalse(Binary(p).verify(report))
            self.assertIn("Unable to verify 'artifact.bin'", report.getvalue())

    def test_fail_fast_reports_first_mismatch(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = _make_file(Path(tmp))
            Binary(p).generate()
            Path(f"{p}.sha1").write_text("0" * 40)
            with self.assertRaises(VerificationFailed) as ctx:
                Binary(p).verify()
            err = ctx.exception
            self.assertEqual(err.algorithm, "SHA-1")
            self.assertEqual(err.expected, "0" * 40)
            self.assertEqual(err.actual, hashlib.sha1(p.read_bytes()).hexdigest())

    def test_reporter_collects_every_mismatch(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = _make_file(Path(tmp))
            Binary(p).generate()
            Path(f"{p}.md5").write_text("0" * 32)
            Path(f"{p}.sha256").write_text("f" * 64)
            report = io.StringIO()
            self.assertFalse(Binary(p).verify(report))
            lines = report.getvalue().strip().splitlines()
            self.assertEqual(len(lines), 2)
            self.assertIn("MD5", lines[0])
            self.assertIn("SHA-256", lines[1])

    def test_single_sidecar_is_enough(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = _make_file(Path(tmp))
            Path(f"{p}.sha256").write_text("  " + hashlib.sha256(p.read_bytes()).hexdigest().upper() + "\n")
            b = Binary(p)
            self.assertEqual(list(b.present()), [SHA256])
            self.assertIsNone(b.md5)
            self.assertTrue(b.verify())

    def test_tampered_file_fails(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = _make_file(Path(tmp))
            Binary(p).generate()
            p.write_bytes(b"something else")
            with self.assertRaises(VerificationFailed) as ctx:
                Binary(p).verify()
            self.assertEqual(ctx.exception.algorithm, "MD5")

    def test_write_produces_sidecars_on_close(self):
        with tempfile.TemporaryDirectory() as tmp:
            b = Binary(Path(tmp) / "out.bin")
            with b.write() as w:
                w.write(b"abc")
                w.write(b"def")
                self.assertFalse(os.path.exists(b.sidecars[MD5]))
            self.assertEqual(w.byte_count, 6)
            self.assertEqual(Path(b.path).read_bytes(), b"abcdef")
            self.assertEqual(b.sha1, hashlib.sha1(b"abcdef").hexdigest())
            self.assertEqual(w.hexes()["md5"], hashlib.md5(b"abcdef").hexdigest())
            self.assertTrue(b.verify())

    def test_failed_write_leaves_no_sidecars(self):
        with tempfile.TemporaryDirectory() as tmp:
            b = Binary(Path(tmp) / "out.bin")
            with self.assertRaises(ValueError):
                with b.write() as w:
                    w.write(b"partial")
                    raise ValueError("interrupted")
            self.assertTrue(w.closed)
            self.assertEqual(b.present(), {})
            with self.assertRaises(VerificationImpossible):
                b.verify()

    def test_path_like_and_of(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = _make_file(Path(tmp))
            b = Binary(p)
            self.assertIs(Binary.of(b), b)
            self.assertEqual(os.fspath(b), os.path.abspath(p))
            self.assertEqual(b.sidecars[SHA1], os.path.abspath(p) + ".sha1")

    def test_verify_all(self):
        with tempfile.TemporaryDirectory() as tmp:
            good = _make_file(Path(tmp), "good.bin")
            bad = _make_file(Path(tmp), "bad.bin")
            Binary(good).generate()
            report = io.StringIO()
            self.assertTrue(verify_all([good], report))
            self.assertFalse(verify_all([good, bad], report))
            self.assertIn("bad.bin", report.getvalue())


if __name__ == "__main__":
    unittest.main()
