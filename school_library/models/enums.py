"""
Enums utilizados nos models da aplicação.
"""

import enum


class TeacherRole(str, enum.Enum):
    """Papéis da equipe que opera o sistema."""
    ADMIN = "ADMIN"
    LIBRARIAN = "LIBRARIAN"


class CopyStatus(str, enum.Enum):
    """
    Status de uma cópia física.

    Fluxo típico:
        AVAILABLE -> BORROWED -> AVAILABLE (devolução sem fila)
        AVAILABLE -> RESERVED -> BORROWED (reserva retirada)
        BORROWED -> RESERVED (devolução com fila)
        BORROWED -> LOST / DAMAGED
        AVAILABLE/DAMAGED/LOST -> RETIRED
    """
    AVAILABLE = "AVAILABLE"
    BORROWED = "BORROWED"
    RESERVED = "RESERVED"
    DAMAGED = "DAMAGED"
    LOST = "LOST"
    RETIRED = "RETIRED"


class CopyCondition(str, enum.Enum):
    """Estado de conservação, do melhor para o pior."""
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"
    DAMAGED = "DAMAGED"


class LoanStatus(str, enum.Enum):
    """
    Status de um empréstimo.

    OVERDUE nunca é gravado pelo motor, mas linhas antigas com esse status
    contam como empréstimo aberto. Atraso é derivado de (aberto e
    due_date < now).
    """
    ACTIVE = "ACTIVE"
    RETURNED = "RETURNED"
    OVERDUE = "OVERDUE"
    LOST = "LOST"
    RENEWED = "RENEWED"


class ReservationState(str, enum.Enum):
    """Estado derivado de uma reserva (não persistido)."""
    PENDING = "PENDING"      # Ativa: na fila ou com cópia separada
    FULFILLED = "FULFILLED"  # Convertida em empréstimo
    CANCELLED = "CANCELLED"  # Cancelada
    EXPIRED = "EXPIRED"      # Prazo vencido sem cancelamento


class ReminderTier(str, enum.Enum):
    """Níveis de lembrete de devolução, cada um enviado no máximo uma vez."""
    FIRST = "FIRST"
    SECOND = "SECOND"
    OVERDUE = "OVERDUE"


class SettingCategory(str, enum.Enum):
    """Agrupamento das configurações na tela de administração."""
    GENERAL = "GENERAL"
    LOANS = "LOANS"
    RESERVATIONS = "RESERVATIONS"
    NOTIFICATIONS = "NOTIFICATIONS"
    ISBN = "ISBN"


class AuditAction(str, enum.Enum):
    """Ações registradas no log de auditoria."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"
    LOGIN = "LOGIN"
    LOAN_OPEN = "LOAN_OPEN"
    LOAN_RETURN = "LOAN_RETURN"
    LOAN_RENEW = "LOAN_RENEW"
    LOAN_LOST = "LOAN_LOST"
    REMINDER_SENT = "REMINDER_SENT"
    RESERVATION_CREATE = "RESERVATION_CREATE"
    RESERVATION_CANCEL = "RESERVATION_CANCEL"
    RESERVATION_FULFILL = "RESERVATION_FULFILL"
    RESERVATION_SWEEP = "RESERVATION_SWEEP"
    COPY_STATUS = "COPY_STATUS"
    METADATA_LOOKUP = "METADATA_LOOKUP"


# Empréstimos que ainda ocupam a cópia
OPEN_LOAN_STATUSES = (LoanStatus.ACTIVE, LoanStatus.RENEWED, LoanStatus.OVERDUE)

# Cópias que participam da circulação (podem voltar a ficar disponíveis)
CIRCULATING_COPY_STATUSES = (
    CopyStatus.AVAILABLE,
    CopyStatus.BORROWED,
    CopyStatus.RESERVED,
)

# Ordem de conservação usada para escolher a melhor cópia
CONDITION_ORDER = tuple(CopyCondition)

# Motivo gravado ao converter reserva em empréstimo
FULFILLED_REASON = "FULFILLED"
