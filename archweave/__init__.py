"""
archweave: rewrite archive containers entry by entry.

Features:

- Zip, jar/war/ear/rar and tar.gz containers rewritten in one streaming pass,
  with per-entry content transforms, exclusion rules and hooks that can add
  entries before or after any entry or the whole archive.
- Containers nested inside containers rewritten with the same rules.
- Signed jars detected and passed through untouched.
- MD5 / SHA-1 / SHA-256 sidecar files generated and verified in a single read.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "registry",
    "rewriters",
    "containers",
    "actions",
    "sidecar",
    "digests",
]

# The programmatic API starts at archweave.registry.Transformations.builder();
# the CLI functions in archweave.cli (cmd_rewrite, cmd_list, ...) take normal parameters.
