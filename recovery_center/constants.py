"""Infrastructure and technical constants."""

from typing import Final

# Technical configuration constants
DEFAULT_PORT: Final = 8000
API_PREFIX: Final = "/api/v1"
AUDIT_TABLE_NAME: Final = "security_audit_logs"
