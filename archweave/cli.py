from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from archweave.errors import ArchweaveError, VerificationFailed, VerificationImpossible
from archweave.listing import is_container, list_archive
from archweave.registry import Transformations
from archweave.sidecar import Binary, verify_all


def _ends_with(suffix: str):
    def matches(name: str) -> bool:
        return name.endswith(suffix)

    return matches


def cmd_rewrite(
    source: str,
    destination: str,
    *,
    skip: Sequence[str] = (),
    skip_suffix: Sequence[str] = (),
    prepend: Sequence[Tuple[str, str]] = (),
    append: Sequence[Tuple[str, str]] = (),
    insert: Sequence[Tuple[str, str]] = (),
    recurse: bool = False,
    sidecars: bool = False,
) -> bool:
    """Rewrite one container into another.

    Args:
        source: Input container; its suffix picks the format.
        destination: Output path (same format as ``source``).
        skip: Exact entry names to drop.
        skip_suffix: Entry name suffixes to drop.
        prepend: (entry name, text) pairs to prepend to entry content.
        append: (entry name, text) pairs to append to entry content.
        insert: (entry name, local file) pairs added at the end of the archive.
        recurse: Apply the same rules inside nested containers.
        sidecars: Write .md5/.sha1/.sha256 sidecars next to ``destination``.
    """
    b = Transformations.builder()
    for name in skip:
        b.skip(name)
    for suffix in skip_suffix:
        b.skip(_ends_with(suffix))
    for name, text in prepend:
        b.prepend(name, text)
    for name, text in append:
        b.append(name, text)
    for name, path in insert:
        b.add(name, Path(path))
    if recurse:
        b.recurse(is_container)
    t = b.build()

    target = Binary(destination) if sidecars else destination
    t.transformer(source).transform_file(source, target)
    print(f"Wrote {destination}")
    if sidecars:
        for d, side in target.sidecars.items():
            print(f"{d.extension}\t{target.stored(d)}\t{Path(side).name}")
    return True


def cmd_list(archive: str) -> bool:
    """Print one line per entry, descending into nested containers."""
    for line in list_archive(archive):
        print(line)
    return True


def cmd_digest_generate(path: str, *, overwrite: bool = False) -> bool:
    hexes = Binary(path).generate(overwrite=overwrite)
    for ext, value in hexes.items():
        print(f"{ext}\t{value}")
    return True


def cmd_digest_verify(paths: Sequence[str]) -> bool:
    """Verify files against their sidecars.

    Prints:
        Each problem on stderr, then "OK" or "FAIL".
    """
    ok = verify_all(paths, reporter=sys.stderr)
    print("OK" if ok else "FAIL")
    return ok


def main(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(
        prog="archweave",
        description="Rewrite zip, jar and tar.gz containers entry by entry; manage digest sidecars",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    # rewrite
    ap_rewrite = sub.add_parser("rewrite", help="Rewrite a container applying entry rules")
    ap_rewrite.add_argument("source", help="Input container (.zip, .jar, .war, .ear, .rar, .tar.gz, .pdf)")
    ap_rewrite.add_argument("destination", help="Output path")
    ap_rewrite.add_argument("--skip", action="append", default=[], metavar="NAME", help="Drop the entry with this exact name")
    ap_rewrite.add_argument("--skip-suffix", action="append", default=[], metavar="SUFFIX", help="Drop entries whose name ends with SUFFIX")
    ap_rewrite.add_argument("--prepend", action="append", default=[], nargs=2, metavar=("NAME", "TEXT"), help="Prepend TEXT to entry NAME")
    ap_rewrite.add_argument("--append", action="append", default=[], nargs=2, metavar=("NAME", "TEXT"), help="Append TEXT to entry NAME")
    ap_rewrite.add_argument("--insert", action="append", default=[], nargs=2, metavar=("NAME", "FILE"), help="Add entry NAME with the content of FILE")
    ap_rewrite.add_argument("--recurse", action="store_true", help="Apply the same rules inside nested containers")
    ap_rewrite.add_argument("--sidecars", action="store_true", help="Write .md5/.sha1/.sha256 files next to the output")

    # list
    ap_list = sub.add_parser("list", help="List container entries with short content hashes")
    ap_list.add_argument("archive", help="Container path")

    # digest
    ap_digest = sub.add_parser("digest", help="Generate or verify digest sidecar files")
    digest_sub = ap_digest.add_subparsers(dest="digest_cmd", required=True)
    ap_gen = digest_sub.add_parser("generate", help="Write missing sidecars for a file")
    ap_gen.add_argument("file", help="File to hash")
    ap_gen.add_argument("--overwrite", action="store_true", help="Rewrite sidecars that already exist")
    ap_ver = digest_sub.add_parser("verify", help="Check files against their sidecars")
    ap_ver.add_argument("files", nargs="+", help="Files to verify")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "rewrite":
            cmd_rewrite(
                args.source,
                args.destination,
                skip=args.skip,
                skip_suffix=args.skip_suffix,
                prepend=[tuple(p) for p in args.prepend],
                append=[tuple(p) for p in args.append],
                insert=[tuple(p) for p in args.insert],
                recurse=args.recurse,
                sidecars=args.sidecars,
            )
        elif args.cmd == "list":
            cmd_list(args.archive)
        elif args.cmd == "digest":
            if args.digest_cmd == "generate":
                cmd_digest_generate(args.file, overwrite=args.overwrite)
            else:
                ok = cmd_digest_verify(args.files)
                sys.exit(0 if ok else 1)
        else:
            raise RuntimeError("Unknown command")
    except (VerificationFailed, VerificationImpossible) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (ArchweaveError, OSError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
