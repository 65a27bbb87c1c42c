"""
Models SQLAlchemy da aplicação.

Importar todos os models aqui para que ``init_models`` registre as tabelas.
"""

from school_library.models.enums import (
    AuditAction,
    CopyCondition,
    CopyStatus,
    LoanStatus,
    ReminderTier,
    ReservationState,
    SettingCategory,
    TeacherRole,
)
from school_library.models.student import Student
from school_library.models.teacher import Teacher
from school_library.models.book import BookTitle, BookCopy
from school_library.models.loan import Loan
from school_library.models.reservation import Reservation
from school_library.models.audit import AuditLog
from school_library.models.setting import AppSetting

__all__ = [
    "AuditAction",
    "CopyCondition",
    "CopyStatus",
    "LoanStatus",
    "ReminderTier",
    "ReservationState",
    "SettingCategory",
    "TeacherRole",
    "Student",
    "Teacher",
    "BookTitle",
    "BookCopy",
    "Loan",
    "Reservation",
    "AuditLog",
    "AppSetting",
]
