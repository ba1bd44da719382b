"""
Logging do cliente NetteFatura e das mini apps: stdout e, se configurado,
o log_file do INI do portal.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers de topo que partilham os handlers do pacote.
APP_LOGGERS = ("orchestrator", "apps", "__main__")


def _handlers(log_file: Optional[Path]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file), encoding="utf-8"))
    fmt = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(fmt)
    return handlers


def _attach(logger: logging.Logger, handlers: List[logging.Handler], level: int) -> None:
    # Substitui os handlers anteriores; chamadas repetidas não duplicam linhas.
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers = list(handlers)


def setup_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    logger_name: str = "nettefatura"
) -> logging.Logger:
    """
    Configura um logger ("nettefatura" cobre o cliente do portal, o resolver e
    o lookup de localidades) para stdout e, opcionalmente, log_file.
    """
    logger = logging.getLogger(logger_name)
    _attach(logger, _handlers(log_file), level)
    return logger


def configure_all(log_file: Optional[Path] = None, level: int = logging.INFO) -> logging.Logger:
    """Configura o pacote, o orquestrador e as apps com os mesmos handlers."""
    root = setup_logging(log_file=log_file, level=level)
    for name in APP_LOGGERS:
        _attach(logging.getLogger(name), root.handlers, level)
    return root
