"""
Módulo de serviços - lógica de negócio.
"""

from school_library.services.audit import AuditService
from school_library.services.auth import AuthService
from school_library.services.catalog import CatalogService, MetadataProvider
from school_library.services.holds import HoldQueue
from school_library.services.loan import LoanService
from school_library.services.reporting import ReportingService
from school_library.services.reservation import ReservationService
from school_library.services.settings import SettingsService
from school_library.services.soft_delete import SoftDeleteService
from school_library.services.student import StudentService

__all__ = [
    "AuditService",
    "AuthService",
    "CatalogService",
    "HoldQueue",
    "LoanService",
    "MetadataProvider",
    "ReportingService",
    "ReservationService",
    "SettingsService",
    "SoftDeleteService",
    "StudentService",
]
