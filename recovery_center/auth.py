"""Administrative identity forwarded by the upstream session service.

Sessions and credentials are handled elsewhere; this service only trusts
the identity header the gateway sets after authenticating the request.
"""

from dataclasses import dataclass
from typing import Final

from fastapi import Request

from .config import settings
from .domain.exceptions import AuthenticationError
from .logging_config import get_logger

logger: Final = get_logger(__name__)

MAX_USER_ID_LENGTH: Final = 100


@dataclass(frozen=True)
class AdminIdentity:
    user_id: str


def get_admin_identity(request: Request) -> AdminIdentity:
    """FastAPI dependency resolving the acting administrator.

    Raises:
        AuthenticationError: If the identity header is missing or blank
    """
    raw = request.headers.get(settings.admin_user_header, "")
    user_id = raw.strip()[:MAX_USER_ID_LENGTH]
    if not user_id:
        logger.warning(
            "Recovery request without administrator identity",
            path=request.url.path,
            header=settings.admin_user_header,
        )
        raise AuthenticationError("Administrator authentication is required.")
    return AdminIdentity(user_id=user_id)
