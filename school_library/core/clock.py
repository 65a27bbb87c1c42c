"""
Relógio da aplicação.

Todos os timestamps persistidos são UTC "naive" (sem tzinfo), para que
comparações funcionem da mesma forma em SQLite e PostgreSQL.

Services recebem um ``Clock`` injetável; os testes passam um relógio fixo.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Retorna o instante atual em UTC, sem tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """
    Normaliza um datetime para UTC naive.

    Datetimes com tzinfo são convertidos para UTC; naive são
    considerados já em UTC.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
