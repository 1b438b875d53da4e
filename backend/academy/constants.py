"""Shared limits and default messages."""

MIN_UID_LENGTH = 2
MIN_PASSWORD_LENGTH = 4

# Unfiltered result listings are bounded to keep admin payloads small.
MAX_RESULTS_LISTING = 500

DEFAULT_STRIKE_REASON = "Missed daily tasks"
DEFAULT_REMOVAL_REASON = "Removed by manager"
DEFAULT_ADMIN_PASSWORD = "admin123"
