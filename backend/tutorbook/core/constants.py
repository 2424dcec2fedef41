"""Application-wide constants for the tutorbook scheduling core."""

from __future__ import annotations

BRAND_NAME = "tutorbook"

API_TITLE = f"{BRAND_NAME} scheduling API"
API_DESCRIPTION = (
    "Bookable-slot generation, conflict-free session booking and "
    "payment-intent orchestration for a tutoring marketplace."
)
API_VERSION = "1.0.0"

# Weekday keys used by availability templates, indexed by date.weekday()
WEEKDAY_KEYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

# Name of the store-level overlap guard on tutoring_sessions
SESSION_OVERLAP_CONSTRAINT = "sessions_no_overlap_per_tutor"

# Text constraints
MAX_NOTES_LENGTH = 2000
MAX_REASON_LENGTH = 255
