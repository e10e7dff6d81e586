from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from accounts.core.config import get_settings
from accounts.core.logger import get_logger
from accounts.routers import account as account_router
from accounts.routers import auth as auth_router
from accounts.routers import hooks as hooks_router
from accounts.services.errors import AccountError

log = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers (anti clickjacking, nosniff, referrer policy)."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer-when-downgrade")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


async def _account_error_handler(request: Request, exc: AccountError):
    if exc.status_code >= 500:
        log.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(
        {"ok": False, "error": type(exc).__name__, "message": exc.message},
        status_code=exc.status_code,
    )


def create_app() -> FastAPI:
    """Factory compativel com uvicorn/gunicorn (--factory)."""
    settings = get_settings()
    application = FastAPI(title="Accounts API")

    allowed_cors = {settings.public_base_url}
    if settings.app_env != "prod":
        allowed_cors.update({"http://localhost:8000", "http://127.0.0.1:8000"})
    allowed_cors = {origin for origin in allowed_cors if origin}
    if allowed_cors:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=sorted(allowed_cors),
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )
    application.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")
    application.add_exception_handler(AccountError, _account_error_handler)

    application.include_router(auth_router.router)
    application.include_router(account_router.router)
    application.include_router(hooks_router.router)
    return application
