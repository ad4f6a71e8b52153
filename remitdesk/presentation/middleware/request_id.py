import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to ensure each request has a unique ID (x-request-id).

    - If a valid UUID is provided in the 'X-Request-ID' header, it's used.
    - Otherwise, a new UUIDv4 is generated.
    - The request ID is stored in request.state.request_id and echoed back
      on the response.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id")

        try:
            if request_id:
                uuid.UUID(request_id)
            else:
                request_id = str(uuid.uuid4())
        except (ValueError, TypeError):
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response
