"""
Logging setup for the intake service.

Production emits one JSON object per line with request metadata nested
under ``request``; development prints plain lines with the same metadata
appended as ``key=value`` pairs.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger


# Keys RequestLoggingMiddleware passes through ``extra``
REQUEST_FIELDS = ("method", "path", "status_code", "duration_ms", "client_ip")

NOISY_LOGGERS = ("urllib3", "boto3", "botocore", "s3transfer", "sqlalchemy.engine", "multipart")


def request_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in REQUEST_FIELDS if hasattr(record, key)}


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that stamps every record with the service name and the
    fields our log pipeline indexes on.
    """

    def __init__(self, *args, service: str = "candidate-intake", **kwargs):
        super().__init__(*args, **kwargs)
        self.service = service

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['service'] = self.service

        request = request_fields(record)
        if request:
            for key in request:
                log_record.pop(key, None)
            log_record['request'] = request
        else:
            log_record['module'] = record.module
            log_record['function'] = record.funcName

        if record.levelno >= logging.WARNING:
            log_record['line'] = record.lineno
            log_record['pathname'] = record.pathname


class ConsoleFormatter(logging.Formatter):
    """Plain formatter that keeps request metadata visible in development."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        request = request_fields(record)
        if request:
            line += " " + " ".join(f"{key}={value}" for key, value in request.items())
        return line


def setup_logging(log_level: str = "INFO", json_logs: bool = True, service: Optional[str] = None) -> None:
    """
    Configure root logging for the service.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON formatting for production, plain text for development
        service: Name stamped on JSON records
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)

    if json_logs:
        formatter = CustomJsonFormatter(
            '%(timestamp)s %(level)s %(logger)s %(message)s',
            service=service or "candidate-intake",
        )
    else:
        formatter = ConsoleFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    console_handler.setFormatter(formatter)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # RequestLoggingMiddleware already logs every request
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
