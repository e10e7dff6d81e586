"""Coded e-mail messages (verification and password reset).

Sending is fire-and-forget for the state machine: callers get a bool and
the committed transition stays as it is.
"""
from __future__ import annotations

from accounts.core.logger import get_logger
from accounts.core.mailer import send_email

log = get_logger(__name__)


def _code_html(heading: str, code: str, footer: str = "") -> str:
    extra = f"<p>{footer}</p>" if footer else ""
    return f"""
        <h2>{heading}</h2>
        <p style="font-size:24px;letter-spacing:4px;"><b>{code}</b></p>
        {extra}
        """


def send_verification_code(email: str, code: str, ttl_seconds: int) -> bool:
    hours = max(1, ttl_seconds // 3600)
    sent = send_email(
        "Codigo de Verificacao de Conta",
        email,
        _code_html("Seu codigo de verificacao", code, f"Este codigo e valido por {hours} hora(s)."),
        f"Seu codigo de verificacao: {code}",
    )
    if not sent:
        log.warning("Verification code not delivered to %s", email)
    return sent


def send_reset_code(email: str, code: str, ttl_seconds: int) -> bool:
    minutes = max(1, ttl_seconds // 60)
    sent = send_email(
        "Codigo de Recuperacao de Senha",
        email,
        _code_html("Seu codigo de recuperacao", code, f"Este codigo e valido por {minutes} minutos."),
        f"Seu codigo de recuperacao: {code} (valido por {minutes} minutos)",
    )
    if not sent:
        log.warning("Reset code not delivered to %s", email)
    return sent
