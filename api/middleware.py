# api/middleware.py
import time
import uuid
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from api.utils import find_uuid_in_path, hash_user_id_for_logging

logger = logging.getLogger("crisis-api.middleware")


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    Stamps X-Request-ID / X-Response-Time on every response. Ids found in
    the path are logged only as hashes.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        path_uuid = find_uuid_in_path(request.url.path)
        id_hash = hash_user_id_for_logging(path_uuid) if path_uuid else "none"
        log_path = request.url.path.replace(path_uuid, "<id>") if path_uuid else request.url.path

        request.state.request_id = request_id
        request.state.user_id_hash = id_hash
        start_time = time.time()

        logger.info(f"Request started: request_id={request_id} {request.method} {log_path} id_hash={id_hash}")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: request_id={request_id} error={e} "
                f"duration={(time.time() - start_time) * 1000:.2f}ms id_hash={id_hash}",
                exc_info=True
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        logger.info(
            f"Request completed: request_id={request_id} status={response.status_code} "
            f"duration={duration_ms:.2f}ms id_hash={id_hash}"
        )
        if hasattr(request.state, 'metrics'):
            logger.info(f"Request metrics: request_id={request_id}, {request.state.metrics}")

        return response


def add_request_metrics(request: Request, **metrics):
    """Attach values (risk_level, indicator_count, ...) logged once the response is sent."""
    if not hasattr(request.state, 'metrics'):
        request.state.metrics = {}
    request.state.metrics.update(metrics)
