"""
Erros de domínio do motor de circulação.

Os services nunca levantam HTTPException: levantam subclasses de
``CirculationError`` e a camada de API converte para ``ErrorResponse``
(ver ``school_library.main``).

Tipos de erro:
    - NotFound: entidade ausente ou removida (soft delete)
    - Conflict: pré-condição violada por mudança concorrente
    - LimitExceeded: limite de empréstimos ou reservas atingido
    - InvalidState: operação proibida no estado atual da entidade
    - ValidationError: entrada malformada
    - StorageFailure: banco indisponível ou transação abortada
    - Unauthorized: credenciais inválidas (camada de autenticação)
"""

from typing import Any


class CirculationError(Exception):
    """
    Erro base do domínio.

    Attributes:
        kind: Tipo do erro (NotFound, Conflict, ...)
        message: Mensagem legível
        details: Dados estruturados opcionais (ids, limites, ...)
    """

    kind = "CirculationError"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(CirculationError):
    kind = "NotFound"


class ConflictError(CirculationError):
    kind = "Conflict"


class LimitExceededError(CirculationError):
    kind = "LimitExceeded"


class InvalidStateError(CirculationError):
    kind = "InvalidState"


class ValidationError(CirculationError):
    kind = "ValidationError"


class StorageFailureError(CirculationError):
    kind = "StorageFailure"


class AuthenticationError(CirculationError):
    kind = "Unauthorized"


# ==========================================
# Erros específicos de circulação
# ==========================================

class CopyUnavailableError(ConflictError):
    """A cópia não está no estado exigido pela operação."""


class ReservationPendingError(ConflictError):
    """Outro estudante aguarda o título; renovação bloqueada."""


class LoanLimitReachedError(LimitExceededError):
    """Estudante já atingiu o máximo de empréstimos simultâneos."""


class ReservationLimitReachedError(LimitExceededError):
    """Estudante já atingiu o máximo de reservas ativas."""


class AlreadyReturnedError(InvalidStateError):
    """Empréstimo já devolvido."""
