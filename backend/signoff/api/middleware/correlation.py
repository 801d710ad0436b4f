"""
Correlation ID Middleware

Tags every request with a correlation ID so log lines and audit entries
written while serving it can be tied together.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from ...utils.logger import set_correlation_id
from ...utils.idgen import generate_correlation_id


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Reuse the caller's X-Correlation-Id or mint one, expose it to logging
    and echo it on the response.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = (
            request.headers.get("X-Correlation-Id") or generate_correlation_id()
        )
        set_correlation_id(correlation_id)

        response = await call_next(request)
        response.headers["X-Correlation-Id"] = correlation_id
        return response
