from __future__ import annotations

import hashlib
import io
import os
import subprocess
import sys
import tempfile
import unittest
import zipfile
from pathlib import Path

from archive_fixtures import colors_jar, make_zip


class CLIIntegrationTests(unittest.TestCase):
    def run_cli(self, args, *, expect: int | None = 0, cwd: Path | None = None):
        cmd = [sys.executable, "-m", "archweave.cli"] + [str(a) for a in args]
        env = os.environ.copy()
        repo_root = Path(__file__).resolve().parent
        existing = env.get("PYTHONPATH", "")
        env["PYTHONPATH"] = str(repo_root) if not existing else f"{repo_root}{os.pathsep}{existing}"
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env,
        )
        if expect is not None and proc.returncode != expect:
            raise AssertionError(
                f"CLI exited {proc.returncode}, expected {expect}\nCommand: {' '.join(cmd)}\nSTDOUT:\n{proc.stdout}\nSTDERR:\n{proc.stderr}"
            )
        return proc

    def test_rewrite_with_rules_and_sidecars(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            src = base / "colors.jar"
            src.write_bytes(colors_jar())
            extra = base / "extra.txt"
            extra.write_text("extra content")
            out = base / "out.jar"

            proc = self.run_cli(
                [
                    "rewrite", src, out,
                    "--skip-suffix", "Red.class",
                    "--prepend", "META-INF/LICENSE", "Copyright\n",
                    "--append", "META-INF/LICENSE", "\nEnd",
                    "--insert", "docs/extra.txt", extra,
                    "--sidecars",
                ]
            )
            self.assertIn(f"Wrote {out}", proc.stdout)
            data = out.read_bytes()
            self.assertIn(hashlib.sha256(data).hexdigest(), proc.stdout)
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                names = zf.namelist()
                license_text = zf.read("META-INF/LICENSE")
                self.assertEqual(zf.read("docs/extra.txt"), b"extra content")
            self.assertNotIn("com/example/Red.class", names)
            self.assertTrue(license_text.startswith(b"Copyright\n"))
            self.assertTrue(license_text.endswith(b"\nEnd"))

            verify = self.run_cli(["digest", "verify", out])
            self.assertIn("OK", verify.stdout)

    def test_rewrite_recurse_and_list(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            inner = make_zip([("LICENSE", b"MIT"), ("skip.me", b"x")])
            src = base / "outer.zip"
            src.write_bytes(make_zip([("lib/inner.jar", inner), ("skip.me", b"y")]))
            out = base / "out.zip"
            self.run_cli(["rewrite", src, out, "--skip", "skip.me", "--prepend", "LICENSE", "(c) ", "--recurse"])

            listing = self.run_cli(["list", out]).stdout.splitlines()
            self.assertEqual([line.split("  ")[0] for line in listing], ["lib/inner.jar", "lib/inner.jar > LICENSE"])

    def test_digest_generate_and_verify_failures(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            f = base / "artifact.bin"
            f.write_bytes(b"artifact")

            missing = self.run_cli(["digest", "verify", f], expect=1)
            self.assertIn("FAIL", missing.stdout)
            self.assertIn("No digest files found", missing.stderr)

            gen = self.run_cli(["digest", "generate", f])
            self.assertIn(hashlib.md5(b"artifact").hexdigest(), gen.stdout)
            self.assertTrue((base / "artifact.bin.sha1").exists())
            self.assertIn("OK", self.run_cli(["digest", "verify", f]).stdout)

            f.write_bytes(b"tampered")
            bad = self.run_cli(["digest", "verify", f], expect=1)
            self.assertIn("FAIL", bad.stdout)
            self.assertIn("Verification failed", bad.stderr)

            self.run_cli(["digest", "generate", f, "--overwrite"])
            self.run_cli(["digest", "verify", f])

    def test_errors_exit_2(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            txt = base / "notes.txt"
            txt.write_text("notes")
            unsupported = self.run_cli(["rewrite", txt, base / "out.txt"], expect=2)
            self.assertIn("Unsupported file type 'notes.txt'", unsupported.stderr)

            corrupt = base / "broken.zip"
            corrupt.write_bytes(b"not a zip")
            broken = self.run_cli(["list", corrupt], expect=2)
            self.assertIn("Error:", broken.stderr)


if __name__ == "__main__":
    unittest.main()
