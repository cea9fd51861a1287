"""Shared constants."""

# Pagination defaults
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

# Treatment plan limits
MIN_TREATMENT_SESSIONS = 1
MAX_TREATMENT_SESSIONS = 50

# Every treatment course gets exactly this many follow-up reviews
REVIEWS_PER_COURSE = 3
