"""Structured logging configuration.

JSON lines for production, a readable single-line format for development.

Security Impact:
    - Callers log resource kind and stage only; nothing here adds payload data
    - httpx is quieted because it logs full request URLs at INFO
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn", "uvicorn.access", "fastapi")


class StructuredFormatter(logging.Formatter):
    """JSON formatter tagging every line with the service name.

    Parameters:
        service: Value of the ``service`` field (omitted when None)
    """

    def __init__(self, service: Optional[str] = None):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        if self.service is not None:
            log_data["service"] = self.service
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def setup_logging(use_json: bool = False, log_level: str = "INFO", service: Optional[str] = None) -> None:
    """Setup application logging.

    Parameters:
        use_json: Use JSON formatting (for production)
        log_level: Logging level name, case-insensitive
        service: Service name added to JSON lines
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if use_json:
        handler.setFormatter(StructuredFormatter(service=service))
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
