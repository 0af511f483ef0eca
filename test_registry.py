from __future__ import annotations

import unittest

from archive_fixtures import make_zip, mark_encrypted, signed_jar, zip_entries
from archweave.errors import BuilderNotSettled, UnsupportedContainerType
from archweave.registry import Equals, Transformations, as_predicate
from archweave.rewriters import JarRewriter, PassThroughRewriter, TarGzRewriter, ZipRewriter


class RegistryTests(unittest.TestCase):
    def test_empty_registry_is_identity(self):
        t = Transformations.builder().build()
        self.assertEqual(t.apply("a.txt", b"data"), b"data")
        self.assertFalse(t.should_skip("a.txt"))

    def test_transforms_fold_in_registration_order(self):
        t = (
            Transformations.builder()
            .enhance("a.txt", lambda d: d + b"1")
            .enhance(lambda n: n.endswith(".txt"), lambda d: d + b"2")
            .enhance("b.txt", lambda d: d + b"3")
            .build()
        )
        self.assertEqual(t.apply("a.txt", b"x"), b"x12")
        self.assertEqual(t.apply("b.txt", b"x"), b"x23")
        self.assertEqual(t.apply("c.bin", b"x"), b"x")

    def test_canned_transforms(self):
        t = (
            Transformations.builder()
            .prepend("LICENSE", "header\n")
            .append("LICENSE", b"\nfooter")
            .replace("VERSION", "2.0")
            .build()
        )
        self.assertEqual(t.apply("LICENSE", b"body"), b"header\nbody\nfooter")
        self.assertEqual(t.apply("VERSION", b"1.0"), b"2.0")

    def test_skip_transformation_copies_verbatim(self):
        t = (
            Transformations.builder()
            .replace(lambda n: True, "gone")
            .skip_transformation("keep.txt")
            .build()
        )
        self.assertEqual(t.apply("keep.txt", b"kept"), b"kept")
        self.assertEqual(t.apply("other.txt", b"data"), b"gone")
        self.assertFalse(t.should_skip("keep.txt"))

    def test_skip_rules(self):
        t = Transformations.builder().skip("a.txt").skip(lambda n: n.startswith("tmp/")).build()
        self.assertTrue(t.should_skip("a.txt"))
        self.assertTrue(t.should_skip("tmp/x"))
        self.assertFalse(t.should_skip("b.txt"))

    def test_caller_passthrough_rule(self):
        t = (
            Transformations.builder()
            .replace(lambda n: True, "gone")
            .passthrough(lambda name, data: data.startswith(b"#!"))
            .build()
        )
        self.assertEqual(t.apply("run.sh", b"#!/bin/sh"), b"#!/bin/sh")
        self.assertEqual(t.apply("run.sh", b"echo"), b"gone")

    def test_signed_jar_is_passed_through(self):
        content = signed_jar([("com/example/Red.class", b"red")])
        t = Transformations.builder().replace("lib.jar", "gone").replace("lib.zip", "gone").build()
        self.assertEqual(t.apply("lib.jar", content), content)
        # Only .jar names are inspected
        self.assertEqual(t.apply("lib.zip", content), b"gone")

    def test_unreadable_signature_is_transformed(self):
        content = mark_encrypted(signed_jar([("com/example/Red.class", b"red")]), "META-INF/MANIFEST.MF")
        t = Transformations.builder().replace("lib.jar", "gone").build()
        self.assertEqual(t.apply("lib.jar", content), b"gone")

    def test_built_registry_ignores_later_rules(self):
        outer = make_zip([("lib/inner.jar", make_zip([("a.txt", b"orig")]))])
        b = Transformations.builder().recurse(lambda n: n.endswith(".jar"))
        first = b.build()
        b.replace("a.txt", "CHANGED")
        second = b.build()

        def inner_a(t):
            out = dict(zip_entries(t.transformer_for("outer.zip").apply(outer)))
            return dict(zip_entries(out["lib/inner.jar"]))["a.txt"]

        self.assertEqual(inner_a(first), b"orig")
        self.assertEqual(inner_a(second), b"CHANGED")

    def test_hooks_run_in_registration_order(self):
        calls = []
        t = (
            Transformations.builder()
            .before(lambda sink: calls.append(("before", 1, sink)))
            .before(lambda sink: calls.append(("before", 2, sink)))
            .after(lambda sink: calls.append(("after", 1, sink)))
            .before_entry(lambda n: n.endswith("Red.class"), lambda sink: calls.append(("before_entry", 1, sink)))
            .after_entry("Red.class", lambda sink: calls.append(("after_entry", 1, sink)))
            .build()
        )
        t.before_archive("S")
        t.before_entry("com/Red.class", "S")
        t.after_entry("com/Red.class", "S")
        t.after_entry("Red.class", "S")
        t.before_entry("Blue.class", "S")
        t.after_archive("S")
        self.assertEqual(
            calls,
            [
                ("before", 1, "S"),
                ("before", 2, "S"),
                ("before_entry", 1, "S"),
                ("after_entry", 1, "S"),
                ("after", 1, "S"),
            ],
        )

    def test_builder_consumers_reach_fixed_point(self):
        seen = []

        def second(b):
            seen.append("second")
            b.append("a.txt", "2")

        def first(b):
            seen.append("first")
            b.append("a.txt", "1").and_(second)

        builder = Transformations.builder().and_(first)
        t = builder.build()
        self.assertEqual(seen, ["first", "second"])
        self.assertEqual(t.apply("a.txt", b"x"), b"x12")

        # Consumers run once per builder
        builder.build()
        self.assertEqual(seen, ["first", "second"])

    def test_builder_that_never_settles(self):
        def forever(b):
            b.and_(forever)

        with self.assertRaises(BuilderNotSettled):
            Transformations.builder().and_(forever).build()

    def test_rewriter_selection(self):
        t = Transformations.builder().build()
        self.assertIsInstance(t.transformer_for("a.zip"), ZipRewriter)
        self.assertIsInstance(t.transformer_for("a.tar.gz"), TarGzRewriter)
        for name in ("a.jar", "a.ear", "a.war", "a.rar"):
            self.assertIsInstance(t.transformer_for(name), JarRewriter)
        self.assertIsInstance(t.transformer_for("a.pdf"), PassThroughRewriter)
        self.assertIsInstance(t.transformer("/some/dir/app.tar.gz"), TarGzRewriter)
        with self.assertRaises(UnsupportedContainerType) as ctx:
            t.transformer("/some/dir/notes.txt")
        self.assertEqual(ctx.exception.filename, "notes.txt")
        with self.assertRaises(UnsupportedContainerType):
            t.transformer_for("archive.tgz")

    def test_predicates(self):
        self.assertTrue(Equals("a")("a"))
        self.assertFalse(Equals("a")("dir/a"))
        self.assertIsInstance(as_predicate("a"), Equals)
        with self.assertRaises(TypeError):
            as_predicate(42)


if __name__ == "__main__":
    unittest.main()
