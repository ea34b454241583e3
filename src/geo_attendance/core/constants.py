"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_RADIUS_M = 6_371_000.0

MIN_LATITUDE = -90.0
MAX_LATITUDE = 90.0
MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0

DEFAULT_SESSION_MINUTES = 60

# Matches attendance_session_records.override_reason VARCHAR(500).
MAX_OVERRIDE_REASON_LENGTH = 500
