"""
Liberação de cópias para a fila de reservas.

Compartilhado por devolução, cancelamento, sweep e retorno de reparo:
quando uma cópia sai de um estado (BORROWED, RESERVED, DAMAGED), ela vai
para a primeira reserva da fila do título ou volta para a estante.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.exceptions import ConflictError
from school_library.models.book import BookCopy
from school_library.models.enums import CopyStatus
from school_library.repositories.book import BookCopyRepository
from school_library.repositories.reservation import ReservationRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReleaseOutcome:
    """
    Resultado da liberação de uma cópia.

    Attributes:
        status: Novo status da cópia (RESERVED ou AVAILABLE)
        reservation_id: Reserva que recebeu a cópia, se houver
    """
    status: CopyStatus
    reservation_id: UUID | None = None


class HoldQueue:
    """Passa cópias liberadas para a fila FIFO de reservas."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.copy_repo = BookCopyRepository(db)
        self.reservation_repo = ReservationRepository(db)

    async def release(
        self,
        copy: BookCopy,
        expected: CopyStatus,
        now: datetime,
        reservation_days: int,
    ) -> ReleaseOutcome:
        """
        Libera a cópia, que deve estar em ``expected``.

        Se há reserva ativa do título aguardando cópia, a cópia fica
        RESERVED para ela e o prazo de retirada passa a ser
        ``now + reservation_days`` (se for maior que o atual). Senão a
        cópia fica AVAILABLE.

        Deve rodar dentro da transação do chamador.

        Raises:
            ConflictError: O status da cópia mudou concorrentemente
        """
        reservation = await self.reservation_repo.first_queued(copy.book_title_id, now)

        if reservation is not None:
            if not await self.copy_repo.transition_status(copy.id, expected, CopyStatus.RESERVED, now):
                raise self._conflict(copy, expected)

            expires_at = max(reservation.expires_at, now + timedelta(days=reservation_days))
            if not await self.reservation_repo.assign_copy(reservation.id, copy.id, expires_at, now):
                raise ConflictError(
                    "Reserva mudou durante a liberação da cópia",
                    {"reservation_id": str(reservation.id), "book_copy_id": str(copy.id)},
                )
            logger.info(f"Cópia {copy.qr_code} separada para a reserva {reservation.id}")
            return ReleaseOutcome(CopyStatus.RESERVED, reservation.id)

        if expected != CopyStatus.AVAILABLE:
            if not await self.copy_repo.transition_status(copy.id, expected, CopyStatus.AVAILABLE, now):
                raise self._conflict(copy, expected)
        return ReleaseOutcome(CopyStatus.AVAILABLE)

    @staticmethod
    def _conflict(copy: BookCopy, expected: CopyStatus) -> ConflictError:
        return ConflictError(
            f"Cópia {copy.qr_code} não está mais {expected.value}",
            {"book_copy_id": str(copy.id), "expected_status": expected.value},
        )
