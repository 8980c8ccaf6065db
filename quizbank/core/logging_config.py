import logging
import logging.config
import json
from datetime import datetime
from typing import Dict, Any, Optional
from pathlib import Path

from quizbank.core.config import settings


class StructuredFormatter(logging.Formatter):
    """
    Formatter que genera logs en formato JSON estructurado
    para facilitar la integración con sistemas de monitoreo
    """

    EXTRA_FIELDS = (
        "service", "endpoint", "method", "status_code", "response_time_ms",
        "request_id", "exam_id", "source_file", "operation",
    )

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False)


def _file_handler(filename: str, level: str, backup_count: int = 10) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "structured",
        "filename": filename,
        "maxBytes": 10485760,  # 10MB
        "backupCount": backup_count,
        "level": level,
        "encoding": "utf-8",
    }


def setup_logging(log_dir: Optional[str] = None, to_file: Optional[bool] = None) -> None:
    """
    Configura el sistema de logging con rotación y formato estructurado
    para integración con sistemas de monitoreo
    """
    level = settings.LOG_LEVEL.upper()
    to_file = settings.LOG_TO_FILE if to_file is None else to_file

    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
            "level": level,
            "stream": "ext://sys.stdout"
        },
    }
    app_handlers = ["console"]
    catalog_handlers = ["console"]
    api_handlers = ["console"]

    if to_file:
        directory = Path(log_dir or settings.LOG_DIR)
        directory.mkdir(parents=True, exist_ok=True)
        handlers.update({
            "file_all": _file_handler(str(directory / "app.log"), "INFO"),
            "file_errors": _file_handler(str(directory / "errors.log"), "ERROR"),
            "file_catalog": _file_handler(str(directory / "catalog.log"), "INFO", backup_count=5),
            "file_api": _file_handler(str(directory / "api.log"), "INFO"),
        })
        app_handlers += ["file_all", "file_errors"]
        catalog_handlers += ["file_catalog", "file_errors"]
        api_handlers += ["file_api", "file_errors"]

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": StructuredFormatter,
            },
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": handlers,
        "loggers": {
            "quizbank": {
                "level": level,
                "handlers": app_handlers,
                "propagate": False
            },
            "quizbank.services.catalog_loader": {
                "level": level,
                "handlers": catalog_handlers,
                "propagate": False
            },
            "quizbank.api": {
                "level": level,
                "handlers": api_handlers,
                "propagate": False
            },
            "middleware.request_logging": {
                "level": level,
                "handlers": api_handlers,
                "propagate": False
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": api_handlers,
                "propagate": False
            },
        },
        "root": {
            "level": "WARNING",
            "handlers": ["console"]
        }
    }

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger("quizbank")
    logger.info("Logging system initialized successfully")
    if to_file:
        logger.info(f"Log files will be stored in: {Path(log_dir or settings.LOG_DIR).absolute()}")


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adapter personalizado para agregar contexto adicional a los logs
    """

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        if self.extra:
            kwargs.setdefault('extra', {}).update(self.extra)
        return msg, kwargs


def get_catalog_logger() -> LoggerAdapter:
    """
    Obtiene un logger específico para la carga del catálogo de exámenes
    """
    base_logger = logging.getLogger("quizbank.services.catalog_loader")
    return LoggerAdapter(base_logger, {"service": "catalog"})


def get_quiz_logger() -> LoggerAdapter:
    """
    Obtiene un logger específico para el flujo de sesiones de quiz
    """
    base_logger = logging.getLogger("quizbank.services.quiz_session")
    return LoggerAdapter(base_logger, {"service": "quiz"})


def log_api_request(logger: logging.Logger, method: str, endpoint: str,
                    status_code: int = None, response_time_ms: int = None,
                    request_id: str = None, **kwargs):
    """
    Registra información de una petición API con contexto estructurado

    Args:
        logger: Logger a usar
        method: Método HTTP
        endpoint: Endpoint accedido
        status_code: Código de respuesta HTTP
        response_time_ms: Tiempo de respuesta en millisegundos
        request_id: Identificador de la petición
        **kwargs: Información adicional
    """
    extra = {
        "method": method,
        "endpoint": endpoint,
        "service": "api"
    }

    if status_code:
        extra["status_code"] = status_code
    if response_time_ms is not None:
        extra["response_time_ms"] = response_time_ms
    if request_id:
        extra["request_id"] = request_id

    extra.update(kwargs)

    if status_code and status_code >= 500:
        logger.error(f"API request failed: {method} {endpoint}", extra=extra)
    elif status_code and status_code >= 400:
        logger.warning(f"API request rejected: {method} {endpoint}", extra=extra)
    else:
        logger.info(f"API request: {method} {endpoint}", extra=extra)


def log_catalog_load(logger: logging.Logger, directory: str, exams: int,
                     categories: int, diagnostics: int, response_time_ms: int = None):
    """
    Registra el resumen de una carga del catálogo

    Args:
        logger: Logger a usar
        directory: Directorio del banco de preguntas
        exams: Exámenes cargados
        categories: Categorías visibles
        diagnostics: Número de diagnósticos acumulados
        response_time_ms: Duración de la carga
    """
    extra = {
        "operation": "catalog_load",
        "service": "catalog",
    }
    if response_time_ms is not None:
        extra["response_time_ms"] = response_time_ms

    message = (
        f"Catalog loaded from {directory}: {exams} exams, "
        f"{categories} categories, {diagnostics} diagnostics"
    )
    if diagnostics:
        logger.warning(message, extra=extra)
    else:
        logger.info(message, extra=extra)
