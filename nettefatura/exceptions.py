"""
Exceções personalizadas do cliente NetteFatura e das mini apps.
"""

from enum import Enum


class AppError(Exception):
    """Exceção base para erros de mini apps."""
    pass


class AppConfigError(AppError):
    """Erro de configuração."""
    pass


class AppValidationError(AppError):
    """Erro de validação."""
    pass


class ConflictKind(Enum):
    """Tipos de conflito que o portal sinaliza apenas por texto livre."""

    ALREADY_REGISTERED = "already_registered"


class NetteFaturaError(Exception):
    """Exceção base para erros do portal NetteFatura."""
    pass


class PortalConfigError(NetteFaturaError, AppConfigError):
    """Configuração do cliente inválida (ex.: company id ausente)."""
    pass


class CustomerValidationError(NetteFaturaError):
    """Validação local do cliente falhou, antes de qualquer chamada de rede."""
    pass


class PortalTransportError(NetteFaturaError):
    """Erro de rede/timeout. Nunca é repetido."""
    pass


class PortalHTTPError(NetteFaturaError):
    """Status HTTP inesperado."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class PortalDecodeError(NetteFaturaError):
    """Resposta JSON/HTML malformada onde era esperada estrutura."""
    pass


class TokenNotFound(NetteFaturaError):
    """A página não contém o campo __RequestVerificationToken."""
    pass


class LoginFailed(NetteFaturaError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"login failed, status: {status_code}, body: {body}")
        self.status_code = status_code
        self.body = body


class CreateFailed(NetteFaturaError):
    """O portal respondeu com sucesso HTTP mas a criação do cliente falhou."""

    def __init__(self, message: str) -> None:
        super().__init__(f"customer create error: {message}")
        self.message = message


class CustomerAlreadyRegistered(CreateFailed):
    """Único erro de negócio que dispara a resolução por listagem."""

    kind = ConflictKind.ALREADY_REGISTERED


class IdMissing(NetteFaturaError):
    """Resposta de criação sem campo IdAlici."""
    pass


class CustomerNotFoundAfterConflict(NetteFaturaError):
    """Conflito confirmado mas nenhum candidato com o mesmo nome na listagem."""
    pass


class InvoiceCreateFailed(NetteFaturaError):
    pass


class LocationDataError(NetteFaturaError):
    """Falha ao carregar o dataset de províncias/distritos (defeito de empacotamento)."""
    pass
