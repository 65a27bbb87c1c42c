"""
Propriedades derivadas das entidades, como funções puras.

Nenhuma delas é persistida nem lê o relógio: o instante de referência
(``now``) é sempre passado pelo chamador.
"""

from datetime import datetime

from school_library.models.book import BookTitle
from school_library.models.enums import (
    FULFILLED_REASON,
    OPEN_LOAN_STATUSES,
    ReservationState,
)
from school_library.models.loan import Loan
from school_library.models.reservation import Reservation
from school_library.models.student import Student


# ==========================================
# Loan
# ==========================================

def is_open(loan: Loan) -> bool:
    """Empréstimo ainda ocupa a cópia (status aberto, sem devolução)."""
    return loan.status in OPEN_LOAN_STATUSES and loan.returned_at is None


def is_overdue(loan: Loan, now: datetime) -> bool:
    """Empréstimo aberto com due_date no passado. Nunca gravado como status."""
    return is_open(loan) and loan.due_date < now


def days_until_due(loan: Loan, now: datetime) -> int:
    """Dias de calendário até o vencimento (negativo se atrasado)."""
    return (loan.due_date.date() - now.date()).days


def needs_reminder(loan: Loan, now: datetime, threshold_days: int = 3) -> bool:
    """Empréstimo aberto que vence em até ``threshold_days`` dias (ou já venceu)."""
    return is_open(loan) and days_until_due(loan, now) <= threshold_days


# ==========================================
# Reservation
# ==========================================

def reservation_is_active(reservation: Reservation, now: datetime) -> bool:
    return reservation.cancelled_at is None and reservation.expires_at > now


def reservation_is_expired(reservation: Reservation, now: datetime) -> bool:
    return reservation.cancelled_at is None and reservation.expires_at <= now


def reservation_state(reservation: Reservation, now: datetime) -> ReservationState:
    """Estado lógico da reserva no instante ``now``."""
    if reservation.cancelled_at is not None:
        if reservation.cancellation_reason == FULFILLED_REASON:
            return ReservationState.FULFILLED
        return ReservationState.CANCELLED
    if reservation.expires_at <= now:
        return ReservationState.EXPIRED
    return ReservationState.PENDING


# ==========================================
# Nomes de exibição
# ==========================================

def student_display_name(student: Student) -> str:
    """Ex.: "Lena (5b)"."""
    return f"{student.first_name} ({student.class_code})"


def title_display(title: BookTitle) -> str:
    """Ex.: "Momo - Michael Ende"; só o título quando não há autor."""
    if title.author:
        return f"{title.title} - {title.author}"
    return title.title
