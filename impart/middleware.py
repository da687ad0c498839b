"""
Error recovery and cache-correctness middleware.

Domain errors (ImpartAPIError) are rendered by the exception handler in
exceptions.py. Anything else that escapes a route, from a database timeout
to a PrincipalNotResolvedError, lands here: it is logged with the request
method and URI, and the client receives a generic 500 with the connection
closed. Internal error text never reaches the client.

The principal, and so the body, of a response depends on the bearer token,
so VaryAuthorizationMiddleware adds "Vary: Authorization" for shared caches.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"


def server_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"detail": SERVER_ERROR_MESSAGE, "error_type": "server_error"},
        headers={"Connection": "close"},
    )


class RecoverPanicMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception:
            uri = request.url.path
            if request.url.query:
                uri = f"{uri}?{request.url.query}"
            logger.exception("unhandled error method=%s uri=%s", request.method, uri)
            return server_error_response()


class VaryAuthorizationMiddleware(BaseHTTPMiddleware):
    """Mark every response as depending on the Authorization header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.add_vary_header("Authorization")
        return response
