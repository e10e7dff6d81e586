from __future__ import annotations

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse

from accounts.core.rate_limiter import rate_limit_ip
from accounts.services.auth_service import AuthService
from accounts.services.session_service import (
    SESSION_COOKIE_NAME,
    SessionService,
    clear_session_cookie,
    set_session_cookie,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service() -> AuthService:
    return AuthService()


def get_session_service() -> SessionService:
    return SessionService()


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "on", "yes"}


@router.post("/register", status_code=201)
def register(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    service: AuthService = Depends(get_auth_service),
):
    rate_limit_ip(request, "auth:register", limit=5, window_seconds=300)
    result = service.register(email, password)
    return {"ok": True, "email": result.email, "email_sent": result.email_sent, "message": result.message}


@router.post("/verify")
def verify_email(
    email: str = Form(""),
    code: str = Form(""),
    service: AuthService = Depends(get_auth_service),
):
    result = service.verify_email(email, code)
    return {"ok": True, "email": result.email, "message": result.message}


@router.post("/login")
def do_login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    remember_me: str = Form(""),
    service: SessionService = Depends(get_session_service),
):
    rate_limit_ip(request, "auth:login", limit=10, window_seconds=60)
    outcome = service.login(email, password, remember_me=_truthy(remember_me))
    principal = outcome.principal
    resp = JSONResponse(
        {
            "ok": True,
            "email": principal.email,
            "subscription_status": principal.subscription_status,
            "session_max_age": outcome.max_age,
            "message": outcome.message,
        }
    )
    set_session_cookie(resp, outcome.session_token, outcome.max_age)
    return resp


@router.post("/logout")
def logout(request: Request, service: SessionService = Depends(get_session_service)):
    service.logout(request.cookies.get(SESSION_COOKIE_NAME))
    resp = JSONResponse({"ok": True, "message": "Sessao encerrada."})
    clear_session_cookie(resp)
    return resp


@router.post("/forgot")
def forgot_password(
    request: Request,
    email: str = Form(""),
    service: AuthService = Depends(get_auth_service),
):
    rate_limit_ip(request, "auth:forgot", limit=5, window_seconds=300)
    result = service.request_password_reset(email)
    return {"ok": True, "email": result.email, "email_sent": result.email_sent, "message": result.message}


@router.post("/reset")
def reset_password(
    request: Request,
    email: str = Form(""),
    code: str = Form(""),
    new_password: str = Form(""),
    service: AuthService = Depends(get_auth_service),
):
    rate_limit_ip(request, "auth:reset", limit=10, window_seconds=300)
    result = service.reset_password(email, code, new_password)
    return {"ok": True, "email": result.email, "message": result.message}
