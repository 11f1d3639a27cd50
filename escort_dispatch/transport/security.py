# escort_dispatch/transport/security.py
"""
Admin authentication for the HTTP surface.

Bearer token only: ``Authorization: Bearer <admin_token>``, compared in
constant time. With no token configured the endpoints are open in dev and
unavailable in prod.
"""
import hmac

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from escort_dispatch.config import Settings
from escort_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(
    scheme_name="Admin Token",
    description="Enter your admin token (without 'Bearer ' prefix)",
    auto_error=False,
)


def _verify_bearer_token(
    credentials: HTTPAuthorizationCredentials | None,
    expected: str,
) -> tuple[bool, str | None]:
    """Verify Bearer token. Returns (is_valid, error_message)."""
    if not credentials:
        return False, "Missing Authorization header"

    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        return False, "Invalid token"

    return True, None


async def require_admin_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """
    Usage:
        @app.post("/admin/endpoint", dependencies=[Depends(require_admin_auth)])
    """
    settings: Settings = request.app.state.settings

    if not settings.admin_token:
        if settings.is_production:
            logger.critical("ADMIN_TOKEN not configured but admin endpoint accessed")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Service unavailable",
            )
        return

    valid, error = _verify_bearer_token(credentials, settings.admin_token)
    if valid:
        return

    logger.warning(f"Bearer auth failed: {error} ({request.method} {request.url.path})")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )
