"""Request validation shared by the HTTP API and the operator CLI."""

from typing import Any

from ..domain.entities import RecoveryEntityConfig, RestoreRequest
from ..domain.exceptions import RecoveryValidationError, UnknownEntityError
from ..domain.registry import find_recovery_entity
from ..logging_config import get_logger
from ..logging_utils import log_validation_error

logger = get_logger(__name__)


def require_entity(key: str | None) -> RecoveryEntityConfig:
    """Resolve an entity key or fail with a client error.

    Raises:
        UnknownEntityError: If the key is blank or not registered
    """
    if not key or not key.strip():
        raise UnknownEntityError("Query parameter 'entity' is required.")
    entity = find_recovery_entity(key)
    if entity is None:
        logger.warning("Unsupported recovery entity requested", entity=key[:50])
        raise UnknownEntityError("Unsupported recovery entity.")
    return entity


def validate_restore_request_with_logging(
    ids: Any, reason: Any, approval_note: Any, confirm_phrase: Any
) -> RestoreRequest:
    """Validate a restore instruction, logging the rule that rejected it.

    Raises:
        RecoveryValidationError: On the first failing rule
    """
    try:
        return RestoreRequest.validate(ids, reason, approval_note, confirm_phrase)
    except RecoveryValidationError as e:
        field = e.field or "request"
        submitted = {
            "ids": ids,
            "reason": reason,
            "approvalNote": approval_note,
            "confirmPhrase": confirm_phrase,
        }
        log_validation_error(field, submitted.get(field), str(e))
        raise
