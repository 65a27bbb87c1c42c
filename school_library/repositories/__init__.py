"""
Módulo de repositórios - acesso a dados.
"""

from school_library.repositories.base import BaseRepository, visible
from school_library.repositories.student import StudentRepository
from school_library.repositories.teacher import TeacherRepository
from school_library.repositories.book import BookTitleRepository, BookCopyRepository
from school_library.repositories.loan import LoanRepository
from school_library.repositories.reservation import ReservationRepository
from school_library.repositories.audit import AuditLogRepository
from school_library.repositories.setting import SettingRepository

__all__ = [
    "BaseRepository",
    "visible",
    "StudentRepository",
    "TeacherRepository",
    "BookTitleRepository",
    "BookCopyRepository",
    "LoanRepository",
    "ReservationRepository",
    "AuditLogRepository",
    "SettingRepository",
]
