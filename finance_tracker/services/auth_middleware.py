from __future__ import annotations

import logging
from typing import Any, Iterable, List, Set, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..auth import decode_access_token


class AuthMiddleware(BaseHTTPMiddleware):
    """Bearer-token guard middleware.

    - Only guards paths under /api; everything else passes through.
    - Allows routes marked @public (provided via regex+methods tuples).
    - Requires a valid `Authorization: Bearer <token>` for all other routes
      and attaches {"id", "email"} to request.state.user.
    - Unauthenticated requests get a 401 JSON response.
    """

    def __init__(
        self,
        app: Any,
        public_route_matchers: Iterable[Tuple[Any, Set[str]]],
    ) -> None:
        super().__init__(app)
        self.public_route_matchers: List[Tuple[Any, Set[str]]] = list(public_route_matchers)
        self.logger = logging.getLogger("finance_tracker.auth")

    def _is_public(self, path: str, method: str) -> bool:
        for regex, methods in self.public_route_matchers:
            if regex.match(path) and (not methods or method in methods):
                return True
        return False

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        method = (request.method or "GET").upper()

        if method == "OPTIONS" or not path.startswith("/api"):
            return await call_next(request)

        if self._is_public(path, method):
            self.logger.debug("AuthMiddleware: public route allowed: %s %s", method, path)
            return await call_next(request)

        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            self.logger.info("AuthMiddleware: missing token: %s %s", method, path)
            return JSONResponse(status_code=401, content={"detail": "Token not provided"})

        user = decode_access_token(token.strip())
        if user is None:
            self.logger.info("AuthMiddleware: invalid token: %s %s", method, path)
            return JSONResponse(status_code=401, content={"detail": "Invalid token"})

        request.state.user = user
        self.logger.debug("AuthMiddleware: authenticated user %s: %s %s", user["id"], method, path)
        return await call_next(request)
