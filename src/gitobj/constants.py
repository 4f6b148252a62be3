"""Constants used throughout gitobj."""

# Directory names
GIT_DIR = ".git"
OBJECTS_DIR = "objects"
REFS_DIR = "refs"
HEAD_FILE = "HEAD"
DEFAULT_HEAD = "ref: refs/heads/main\n"

# Environment variable overriding the repository directory
GIT_DIR_ENV = "GITOBJ_DIR"

# Hash algorithm
HASH_ALGORITHM = "sha1"
DIGEST_SIZE = 20   # raw bytes
HASH_LENGTH = 40   # hex characters

# Object framing
MAX_HEADER_SIZE = 64  # longest "<kind> <length>\0" we are willing to scan
COMPRESSION_LEVEL = 6  # zlib default
COPY_CHUNK_SIZE = 64 * 1024
OBJECT_FILE_MODE = 0o444  # loose objects are read-only, as Git leaves them

# Tree entry modes as they appear on disk
FILE_MODE = "100644"
EXECUTABLE_MODE = "100755"
SYMLINK_MODE = "120000"
GITLINK_MODE = "160000"
DIRECTORY_MODE = "40000"

# Entries never included when snapshotting a working directory
DEFAULT_SNAPSHOT_IGNORE = (GIT_DIR,)

# Exit codes
EXIT_USER_ERROR = 1
EXIT_SYSTEM_ERROR = 2
EXIT_DATA_ERROR = 3
