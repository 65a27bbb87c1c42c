"""
Mixins compartilhados pelos models SQLAlchemy.

Todo registro persistente tem id, created_at, updated_at; os que podem
ser ocultados (soft delete) têm também is_deleted.
"""

import uuid
from datetime import datetime
from typing import TypeVar

from sqlalchemy import Boolean, DateTime, Uuid, false
from sqlalchemy.orm import Mapped, mapped_column

from school_library.core.clock import utcnow


class UUIDMixin:
    """Mixin que adiciona ID do tipo UUID como primary key."""
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )


class TimestampMixin:
    """
    Mixin que adiciona timestamps de criação e atualização.

    created_at é gravado uma única vez; updated_at é renovado em todo
    UPDATE feito pelo ORM. Updates em massa (compare-and-set) passam
    updated_at explicitamente.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class SoftDeleteMixin:
    """Mixin de remoção lógica: registros marcados somem das leituras padrão."""
    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default=false(),
        nullable=False,
        index=True,
    )


SoftDeletable = TypeVar("SoftDeletable", bound=SoftDeleteMixin)
