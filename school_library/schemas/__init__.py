"""
Schemas Pydantic da aplicação.
"""

from school_library.schemas.base import (
    BaseSchema,
    ErrorDetail,
    ErrorResponse,
    MessageResponse,
    PaginatedResponse,
    TimestampSchema,
)
from school_library.schemas.health import HealthResponse
from school_library.schemas.audit import SYSTEM_CONTEXT, AuditContext, AuditLogRead
from school_library.schemas.auth import (
    LoginRequest,
    TeacherCreate,
    TeacherRead,
    TeacherWithToken,
    TokenResponse,
)
from school_library.schemas.student import StudentCreate, StudentRead, StudentUpdate
from school_library.schemas.book import (
    BookCopyCreate,
    BookCopyRead,
    BookCopyUpdate,
    BookTitleCreate,
    BookTitleRead,
    BookTitleUpdate,
    MetadataLookupResult,
    PopularTitle,
    TitleSearchItem,
    TitleStatistics,
)
from school_library.schemas.loan import (
    LoanCreate,
    LoanDetail,
    LoanRead,
    LoanRenewRequest,
    LoanReturnRequest,
)
from school_library.schemas.reservation import (
    ReservationCancel,
    ReservationCreate,
    ReservationDetail,
    ReservationRead,
    SweepResult,
)
from school_library.schemas.setting import CirculationSettings, SettingRead, SettingUpdate
from school_library.schemas.report import DashboardStats

__all__ = [
    # Base
    "BaseSchema",
    "ErrorDetail",
    "ErrorResponse",
    "MessageResponse",
    "PaginatedResponse",
    "TimestampSchema",
    # Health
    "HealthResponse",
    # Audit
    "AuditContext",
    "AuditLogRead",
    "SYSTEM_CONTEXT",
    # Auth
    "LoginRequest",
    "TeacherCreate",
    "TeacherRead",
    "TeacherWithToken",
    "TokenResponse",
    # Student
    "StudentCreate",
    "StudentRead",
    "StudentUpdate",
    # Book
    "BookCopyCreate",
    "BookCopyRead",
    "BookCopyUpdate",
    "BookTitleCreate",
    "BookTitleRead",
    "BookTitleUpdate",
    "MetadataLookupResult",
    "PopularTitle",
    "TitleSearchItem",
    "TitleStatistics",
    # Loan
    "LoanCreate",
    "LoanDetail",
    "LoanRead",
    "LoanRenewRequest",
    "LoanReturnRequest",
    # Reservation
    "ReservationCancel",
    "ReservationCreate",
    "ReservationDetail",
    "ReservationRead",
    "SweepResult",
    # Settings / Reports
    "CirculationSettings",
    "SettingRead",
    "SettingUpdate",
    "DashboardStats",
]
