# Container selection by file name suffix
ZIP_SUFFIXES = (".zip",)
TAR_GZ_SUFFIXES = (".tar.gz",)
JAR_SUFFIXES = (".jar", ".ear", ".war", ".rar")
PASSTHROUGH_SUFFIXES = (".pdf",)

# Only plain jars are inspected for signatures (not ear/war/rar)
SIGNED_CHECK_SUFFIX = ".jar"

MANIFEST_NAME = "META-INF/MANIFEST.MF"
SIGNATURE_FILE_SUFFIX = ".SF"
SIGNATURE_BLOCK_SUFFIXES = (".RSA", ".DSA", ".EC")


# Entry kinds (0=file, 1=dir, 2=symlink, 3=hardlink, 4=other tar special)
KIND_FILE = 0
KIND_DIR = 1
KIND_SYMLINK = 2
KIND_HARDLINK = 3
KIND_OTHER = 4


# Zip extra field header ids
EXTRA_NTFS = 0x000A
EXTRA_EXT_TIMESTAMP = 0x5455
EXTRA_JAR_MARKER = 0xCAFE

# NTFS FILETIME epoch offset (100ns intervals between 1601-01-01 and 1970-01-01)
NTFS_EPOCH_OFFSET = 116_444_736_000_000_000

# Mode bits written for entries created from scratch
DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644


COPY_BUFSIZE = 1_048_576  # 1 MiB
SPOOL_MAX_BYTES = 16 * 1_048_576  # zip sources above this spill to disk

# Upper bound on builder consumer rounds before giving up
MAX_BUILD_ROUNDS = 1000

# Length in hex chars of the content hash shown by listings
SHORT_HASH_HEX = 8
