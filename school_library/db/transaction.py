"""
Fronteira transacional das operações de circulação.

Cada operação pública de escrita roda dentro de ``atomic(db)``: ou tudo é
confirmado, ou nada. Repositories apenas fazem flush.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.exceptions import ConflictError, StorageFailureError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Executa o bloco como uma única transação.

    - Sucesso: commit.
    - Qualquer exceção (inclusive cancelamento da task): rollback.
    - IntegrityError vira ConflictError (o chamador deve reler o estado e
      tentar de novo); demais erros do SQLAlchemy viram StorageFailureError.

    Não há retry automático.

    Raises:
        ConflictError: Violação de unicidade/integridade no commit
        StorageFailureError: Banco indisponível ou transação abortada
    """
    try:
        yield db
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Conflito de integridade, transação desfeita: {e.orig}")
        raise ConflictError(
            "Conflito ao gravar: o estado mudou, releia e tente novamente",
        ) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Falha no banco, transação desfeita: {e}")
        raise StorageFailureError("Falha ao acessar o banco de dados") from e
    except BaseException:
        await db.rollback()
        raise
