import hmac

from fastapi import Header, HTTPException, status

from src.auth.context import InternalCallerContext
from src.config import settings


async def get_internal_caller(
    x_internal_secret: str | None = Header(None),
    x_internal_caller: str | None = Header(None),
) -> InternalCallerContext:
    """
    Shared-secret auth for operator routes. The route family is disabled until a secret is configured.
    """
    expected = settings.internal_api_secret
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Internal API is not configured",
        )

    if not x_internal_secret or not hmac.compare_digest(
        x_internal_secret.encode("utf-8"), expected.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid internal secret",
        )

    return InternalCallerContext(caller=x_internal_caller)
