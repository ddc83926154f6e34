"""
Pipeline logger - logging estructurado para el pipeline de firma

Dos canales independientes:
- eventos (INFO+): eventLogger.log
- errores (ERROR+): errorLogger.log

Ambos escriben a consola y a un archivo con rotación por tamaño. La
instancia se construye una vez al iniciar la aplicación y se inyecta en
cada componente.
"""

import json
import logging
import logging.handlers
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

MAX_BYTES = 5 * 1024 * 1024  # 5MB por archivo
BACKUP_COUNT = 5

INFO_LOG_FILE = "eventLogger.log"
ERROR_LOG_FILE = "errorLogger.log"

SEPARATOR = "-" * 71


class SeparatorFormatter(logging.Formatter):
    """
    Formato de bloque: encabezado con timestamp y nivel, mensaje y separador.

    Los mensajes de XML firmado se escriben en una sola línea.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).isoformat()
        message = record.getMessage()
        if message.startswith("Signed XML"):
            message = " ".join(message.split("\n")).strip()
        text = f"{timestamp} - {record.levelname} - {SEPARATOR}\n{message}\n{SEPARATOR}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def _build_channel(name: str, level: int, log_file: Optional[Path], console: bool) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = True

    # Clear existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = SeparatorFormatter()

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.handlers.RotatingFileHandler(
            filename=str(log_file),
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


class PipelineLogger:
    """Logger estructurado con canal de eventos y canal de errores."""

    def __init__(self, name: str = "firmador", log_dir: Optional[Path] = None, console: bool = True):
        self.name = name
        self.log_dir = Path(log_dir) if log_dir else None

        info_file = error_file = None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            info_file = self.log_dir / INFO_LOG_FILE
            error_file = self.log_dir / ERROR_LOG_FILE

        self.info_logger = _build_channel(f"{name}.eventos", logging.INFO, info_file, console)
        self.error_logger = _build_channel(f"{name}.errores", logging.ERROR, error_file, console)

    @staticmethod
    def _render(message: str, data: dict) -> str:
        if not data:
            return message
        return f"{message} | {json.dumps(data, default=str, ensure_ascii=False)}"

    def info(self, message: str, **kwargs):
        """Log info message with optional structured data."""
        self.info_logger.info(self._render(message, kwargs))

    def warning(self, message: str, **kwargs):
        self.info_logger.warning(self._render(message, kwargs))

    def debug(self, message: str, **kwargs):
        self.info_logger.debug(self._render(message, kwargs))

    def error(self, message: str, exc_info=None, **kwargs):
        """Log error message with optional structured data."""
        self.error_logger.error(self._render(message, kwargs), exc_info=exc_info)

    def log_operation(self, operation: str, status: str, **data):
        self.info(f"Operation: {operation} - {status}", operation=operation, status=status, **data)

    @contextmanager
    def log_context(self, operation: str, **context):
        """Context manager for logging operation start/end."""
        start_time = datetime.now()
        self.log_operation(operation, "START", **context)

        try:
            yield
        except Exception as e:
            duration = (datetime.now() - start_time).total_seconds()
            failure = {"error": str(e)}
            for attr in ("stage", "kind"):
                if getattr(e, attr, None):
                    failure[attr] = getattr(e, attr)
            self.error(
                f"Operation failed: {operation}",
                operation=operation,
                duration=duration,
                **failure,
                **context
            )
            raise
        duration = (datetime.now() - start_time).total_seconds()
        self.log_operation(operation, "SUCCESS", duration=duration, **context)

    def close(self):
        for channel in (self.info_logger, self.error_logger):
            for handler in list(channel.handlers):
                channel.removeHandler(handler)
                handler.close()
