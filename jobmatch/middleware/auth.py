"""
Caller identity established by the upstream gateway
"""
from typing import Dict, Optional

from fastapi import Request

from jobmatch.utils.logger import get_logger, set_request_context
from jobmatch.core.exceptions import AuthenticationError

logger = get_logger(__name__)

USER_ID_HEADER = "X-User-ID"
MAX_USER_ID_LENGTH = 128


def extract_user_id(request: Request) -> Optional[str]:
    """Return the trimmed user id header, or None when missing or unusable"""
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        return None
    return user_id


async def get_current_user(request: Request) -> Dict[str, str]:
    """
    FastAPI dependency resolving the authenticated user.

    Authentication happens upstream; this service only trusts the
    X-User-ID header the gateway forwards.

    Raises:
        AuthenticationError: when the header is missing or unusable
    """
    user_id = extract_user_id(request)
    request_id = getattr(request.state, 'request_id', None)

    if not user_id:
        logger.warning("missing_user_identity", path=request.url.path)
        raise AuthenticationError(
            f"Missing or invalid {USER_ID_HEADER} header",
            details={"header": USER_ID_HEADER}
        )

    request.state.user_id = user_id
    if request_id:
        set_request_context(request_id, user_id)

    return {"user_id": user_id}
