"""
Router principal da API v1.

Inclui todos os routers de endpoints.
"""

from fastapi import APIRouter

from school_library.api.v1.auth import router as auth_router
from school_library.api.v1.copies import router as copies_router
from school_library.api.v1.loans import router as loans_router
from school_library.api.v1.reports import router as reports_router
from school_library.api.v1.reservations import router as reservations_router
from school_library.api.v1.students import router as students_router
from school_library.api.v1.system import router as system_router
from school_library.api.v1.titles import router as titles_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth_router)
api_router.include_router(students_router)
api_router.include_router(titles_router)
api_router.include_router(copies_router)
api_router.include_router(loans_router)
api_router.include_router(reservations_router)
api_router.include_router(reports_router)
api_router.include_router(system_router)
