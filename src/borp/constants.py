"""Constants for borp."""

# Suffixes Borg appends to a lock base path
LOCK_NAME = "lock"
EXCLUSIVE_SUFFIX = ".exclusive"
ROSTER_SUFFIX = ".roster"

# Roster keys
SHARED = "shared"
EXCLUSIVE = "exclusive"

# Roster operations
ADD = "add"
REMOVE = "remove"

# Lock timing defaults (seconds)
DEFAULT_LOCK_WAIT = 1.0  # borg --lock-wait default
DEFAULT_TIMER_SLEEP = 1.0
DEFAULT_READER_SLEEP = 0.2

# Config file names inside a repository / cache directory
CONFIG_FILE = "config"
REPOSITORY_SECTION = "repository"
CACHE_SECTION = "cache"

# ConfigParser writes base64 keys wrapped at this width
BASE64_LINE_WIDTH = 80
