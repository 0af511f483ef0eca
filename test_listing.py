from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from archive_fixtures import Link, make_tar_gz, make_zip
from archweave.errors import ReadFailure, UnsupportedContainerType
from archweave.hashutil import crc32, short_hash
from archweave.listing import is_container, list_archive, list_bytes


class ListingTests(unittest.TestCase):
    def test_nested_listing(self):
        inner = make_zip([("LICENSE", b"MIT")])
        tgz = make_tar_gz([("pkg", None), ("pkg/run", Link("run.sh"))])
        outer = make_zip([("lib/", None), ("lib/inner.jar", inner), ("bundle.tar.gz", tgz)])
        self.assertEqual(
            list_bytes("outer.zip", outer),
            [
                "lib/",
                f"lib/inner.jar  {short_hash(inner)}",
                f"lib/inner.jar > LICENSE  {short_hash(b'MIT')}",
                f"bundle.tar.gz  {short_hash(tgz)}",
                "bundle.tar.gz > pkg",
                "bundle.tar.gz > pkg/run -> run.sh",
            ],
        )

    def test_list_archive_from_disk(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = Path(tmp) / "a.zip"
            p.write_bytes(make_zip([("a.txt", b"a")]))
            self.assertEqual(list_archive(p), [f"a.txt  {short_hash(b'a')}"])
            with self.assertRaises(ReadFailure):
                list_archive(Path(tmp) / "missing.zip")
            with self.assertRaises(UnsupportedContainerType):
                list_bytes("a.txt", b"")

    def test_helpers(self):
        self.assertTrue(is_container("x.war"))
        self.assertTrue(is_container("x.tar.gz"))
        self.assertFalse(is_container("x.pdf"))
        self.assertEqual(len(short_hash(b"")), 8)
        self.assertEqual(crc32(b"123456789"), 0xCBF43926)


if __name__ == "__main__":
    unittest.main()
