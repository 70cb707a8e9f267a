"""Domain business rules and constants."""

from typing import Final

# Request limits
MAX_IDS_PER_REQUEST: Final = 200
MAX_NOTE_LENGTH: Final = 500

# Pagination
DEFAULT_PAGE: Final = 1
DEFAULT_PAGE_SIZE: Final = 20
MAX_PAGE: Final = 100_000
MAX_PAGE_SIZE: Final = 100

# Dual confirmation
CONFIRMATION_PHRASE: Final = "RESTORE"

# Label columns tried when none of an entity's defaults exist
FALLBACK_LABEL_COLUMNS: Final = (
    "name",
    "title",
    "description",
    "username",
    "email",
    "subject",
)

# Archive table conventions
ARCHIVE_ID_COLUMNS: Final = ("archived_id", "archive_id")
ARCHIVE_TIME_COLUMNS: Final = ("archived_at", "timestamp", "created_at")
ARCHIVE_REASON_COLUMN: Final = "reason"
ARCHIVE_LABEL_COLUMNS: Final = (
    "user_code",
    "first_name",
    "last_name",
    "email",
    "username",
    "name",
)

# Audit actions
RESTORE_ACTION_PREFIX: Final = "emergency_restore_"
MAX_AUDIT_DETAILS_LENGTH: Final = 65_000

# Summary limits
RECENT_PER_ENTITY: Final = 3
RECENT_TOTAL: Final = 20

# Field error codes carried by request validation failures
FIELD_REQUIRED: Final = "field_required"
FIELD_TOO_LONG: Final = "field_too_long"
FIELD_INVALID_VALUE: Final = "field_invalid_value"
TOO_MANY_ITEMS: Final = "too_many_items"
CONFIRMATION_MISMATCH: Final = "confirmation_mismatch"
