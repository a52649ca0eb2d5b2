"""Shared constants for grove."""

# Workspace layout
BARE_DIR_NAME = ".bare"
LOCK_FILE_NAME = ".grove-worktree.lock"

# Upper bound when walking parent directories (guards against symlink loops)
MAX_DIRECTORY_ITERATIONS = 100

# Workspace lock
MAX_LOCK_RETRIES = 3
LOCK_MAX_AGE_SECONDS = 30 * 60
LOCK_FILE_MODE = 0o600
# An empty lock file younger than this may belong to a process still writing its PID
LOCK_WRITE_GRACE_SECONDS = 5

# Prune
STALE_THRESHOLD = "30d"

# Fetch
FETCH_RETRIES = 1
REMOTE_CHECK_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_SSH_COMMAND": "ssh -o BatchMode=yes -o ConnectTimeout=5",
}

# Characters not allowed in worktree directory names
UNSAFE_DIR_CHARS = ("/", "<", ">", "|", '"')

# Ref prefixes
HEADS_PREFIX = "refs/heads/"
REMOTES_PREFIX = "refs/remotes/"

# Symbol constants
SYMBOL_NEW = "+"
SYMBOL_UPDATED = "*"
SYMBOL_PRUNED = "-"
SYMBOL_CURRENT = "*"
SYMBOL_DIRTY = "M"
SYMBOL_LOCKED = "L"
SYMBOL_GONE = "gone"

# Rich styles for fetch output
FETCH_STYLES = {
    "new": "green",
    "updated": "yellow",
    "pruned": "dim",
}
