"""Service API key middleware."""

import secrets
from collections.abc import Awaitable, Callable, Iterable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from mailmirror.routes import API_PREFIX, HEALTH_PATHS

logger = structlog.get_logger()


def public_paths(debug: bool, prefix: str = API_PREFIX) -> frozenset[str]:
    """Paths reachable without the service key.

    Health probes are always public; the OpenAPI schema and docs UI only
    exist, and are only exposed, in debug mode.

    Args:
        debug: Whether the docs endpoints are mounted.
        prefix: Router prefix the API is mounted under.

    Returns:
        Exact request paths exempt from the key check.
    """
    paths = {path.replace(API_PREFIX, prefix, 1) for path in HEALTH_PATHS}
    if debug:
        paths |= {f"{prefix}/docs", f"{prefix}/docs/oauth2-redirect", f"{prefix}/openapi.json"}
    return frozenset(paths)


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Admits only callers holding the mirror's service key.

    The key authenticates the upstream service that fronts the mirror; the
    mailbox owner arrives separately in X-User-Id. Rejections are logged with
    the claimed user so a misconfigured caller shows up in the request log.
    """

    def __init__(
        self,
        app: Callable[..., Awaitable[Response]],
        api_key: str,
        exempt_paths: Iterable[str] = HEALTH_PATHS,
    ) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application.
            api_key: Expected X-API-Key value.
            exempt_paths: Paths served without a key.
        """
        super().__init__(app)  # type: ignore[arg-type]
        self._api_key = api_key.encode()
        self._exempt = frozenset(exempt_paths)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        path = request.url.path
        if path in self._exempt or request.method == "OPTIONS":
            return await call_next(request)

        provided = request.headers.get("X-API-Key")
        if provided is None:
            reason = "missing"
        elif secrets.compare_digest(provided.encode(), self._api_key):
            return await call_next(request)
        else:
            reason = "invalid"

        logger.warning(
            "api_key_rejected",
            reason=reason,
            path=path,
            user_id=request.headers.get("X-User-Id"),
        )
        return JSONResponse(
            status_code=401,
            content={"detail": f"{reason.capitalize()} service API key"},
            headers={"WWW-Authenticate": "X-API-Key"},
        )
