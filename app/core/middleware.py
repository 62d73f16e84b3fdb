"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a request id (taken from the configured
header or generated) so admission decisions and annotation logs of one call
can be correlated. Deferred formula flushes run outside any request and
carry no id.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Set the request id in context for the duration of the request.

    Adds the request id header and ``X-Request-Duration-ms`` to the response,
    and clears the context afterwards so it does not leak into tasks that
    outlive the request.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(
        "X-Request-Duration-ms", f"{(time.perf_counter() - start) * 1000:.2f}"
    )
    return response
