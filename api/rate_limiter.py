"""
slowapi limits for the crisis endpoints, keyed by the patient/evaluator UUID
in the path or by client IP.
"""
import os
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from api.utils import find_uuid_in_path

logger = logging.getLogger("crisis-api.rate_limiter")

DEFAULT_RATE_LIMIT = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")
CRISIS_RATE_LIMIT = os.getenv("RATE_LIMIT_CRISIS", "10/minute")
DATA_ACCESS_RATE_LIMIT = os.getenv("RATE_LIMIT_DATA_ACCESS", "30/minute")

logger.info("Rate limits: default=%s crisis=%s data=%s",
            DEFAULT_RATE_LIMIT, CRISIS_RATE_LIMIT, DATA_ACCESS_RATE_LIMIT)


def get_rate_limit_key(request: Request) -> str:
    path_uuid = find_uuid_in_path(request.url.path)
    if path_uuid:
        return f"id:{path_uuid}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the API error shape, with Retry-After."""
    logger.warning("Rate limit exceeded key=%s path=%s", get_rate_limit_key(request), request.url.path)

    retry_after = getattr(exc, 'retry_after', 60)
    return JSONResponse(
        status_code=429,
        content={
            "error": "Muitas requisições. Tente novamente em instantes.",
            "detail": str(getattr(exc, 'detail', "Rate limit exceeded")),
            "retry_after": retry_after
        },
        headers={"Retry-After": str(retry_after)}
    )
