"""Event type constants.

Learn: Centralizing event types as constants prevents typos and
makes it easy to discover all event types in the system.
"""

# ─── Credentials ─────────────────────────────────────────

OTP_REQUESTED = "otp.requested"
OTP_VERIFIED = "otp.verified"
USER_CREATED = "user.created"
USER_LOGGED_IN = "user.logged_in"
TOKEN_ISSUED = "token.issued"
TOKEN_REFRESHED = "token.refreshed"
TOKENS_REVOKED = "token.revoked"

# ─── Creators ────────────────────────────────────────────

CREATOR_ONBOARDED = "creator.onboarded"
CREATOR_UPDATED = "creator.updated"

# ─── Content ─────────────────────────────────────────────

SERIES_CREATED = "series.created"
SERIES_UPDATED = "series.updated"
SERIES_STATUS_CHANGED = "series.status_changed"
EPISODE_CREATED = "episode.created"
EPISODE_UPDATED = "episode.updated"
EPISODE_STATUS_CHANGED = "episode.status_changed"
EPISODE_DELETED = "episode.deleted"

# ─── Uploads ─────────────────────────────────────────────

UPLOAD_REQUESTED = "upload.requested"
UPLOAD_COMPLETED = "upload.completed"
