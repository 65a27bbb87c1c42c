"""
Configuração de logging da aplicação.

Formato: timestamp | nível | logger | mensagem. O nível vem de LOG_LEVEL.
"""

import logging
import sys
from typing import Optional, TextIO

from school_library.core.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers de terceiros que só interessam em WARNING ou acima
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "httpx")


def setup_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    """
    Configura o root logger.

    Args:
        level: Nível de logging. Se não fornecido, usa LOG_LEVEL do .env
        stream: Destino dos logs (default: stdout)
    """
    log_level = (level or get_settings().LOG_LEVEL).upper()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Evita handlers duplicados quando chamado mais de uma vez
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configurado com nível: {log_level}")


def get_logger(name: str) -> logging.Logger:
    """Retorna o logger do módulo (geralmente ``__name__``)."""
    return logging.getLogger(name)
