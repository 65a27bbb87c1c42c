"""
Schemas dos relatórios.
"""

from datetime import datetime

from school_library.schemas.base import BaseSchema


class DashboardStats(BaseSchema):
    """Números gerais do acervo e da circulação."""
    generated_at: datetime
    students: int
    titles: int
    copies: int
    open_loans: int
    overdue_loans: int
    active_reservations: int
