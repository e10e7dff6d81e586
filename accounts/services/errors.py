"""Typed conditions raised by the account services.

Every condition is recoverable; routers render ``message`` with
``status_code``.
"""


class AccountError(Exception):
    """Base class for account-related conditions."""

    status_code = 400
    default_message = "Nao foi possivel concluir a operacao."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AccountError):
    status_code = 422
    default_message = "Dados invalidos."


class MissingFieldError(ValidationError):
    pass


class DuplicateEmail(ValidationError):
    status_code = 409
    default_message = "Este e-mail ja esta em uso."


class NotFound(AccountError):
    status_code = 404
    default_message = "E-mail nao encontrado."


class ExpiredToken(AccountError):
    status_code = 410
    default_message = "Codigo expirado."


class CodeMismatch(AccountError):
    default_message = "Codigo invalido."


class NoResetInFlight(AccountError):
    status_code = 409
    default_message = "Nenhuma redefinicao de senha pendente. Solicite um novo codigo."


class NotVerified(AccountError):
    status_code = 403
    default_message = "Conta nao verificada."


class InvalidCredentials(AccountError):
    status_code = 401
    default_message = "E-mail ou senha incorretos."


class ProviderError(AccountError):
    status_code = 502
    default_message = "Erro ao comunicar com o provedor de pagamento."


class AlreadyActiveOrPending(AccountError):
    status_code = 409
    default_message = "Ja existe uma assinatura ativa ou pendente."


class MissingReference(AccountError):
    default_message = "Referencia de pagamento ausente."


class ReferenceMismatch(AccountError):
    status_code = 409
    default_message = "Referencia de pagamento nao pertence a esta conta."
