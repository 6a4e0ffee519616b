"""
Constants used throughout the find and replace engine.
"""

# Scanner batching (documents read concurrently per batch)
SEARCH_BATCH_SIZE = 10
SEARCH_YIELD_DELAY = 0  # seconds to sleep between batches

# Default cap on visible search results (0 or None disables the cap)
DEFAULT_MAX_RESULTS = 1000

# Seconds a new search waits for a stale session to finish before forcing a reset
STALE_SESSION_TIMEOUT = 2.0

# Revalidation may remove at most this many records per consumed record
REVALIDATION_REMOVAL_MULTIPLIER = 3

# History
DEFAULT_MAX_HISTORY_SIZE = 50

# Log line format used by configure_logging
LOG_FORMAT = '%(asctime)s [%(name)s] %(levelname)s: %(message)s'

# A folder vault only holds these files unless told otherwise
DOCUMENT_EXTENSIONS = ('.md',)
