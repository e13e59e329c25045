import json
import logging
import logging.config
import sys


class JsonFormatter(logging.Formatter):
    """Single-line JSON log records (CloudWatch friendly)."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, ensure_ascii=False)


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    log_level = log_level.upper()
    formatter = "json" if json_logs else "simple"

    LOGGING_CONFIG = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": JsonFormatter,
            },
            "simple": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "formatter": formatter,
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
            },
            "error_console": {
                "formatter": formatter,
                "class": "logging.StreamHandler",
                "stream": sys.stderr,
                "level": "WARNING",
            },
        },
        "loggers": {
            "": {  # root logger
                "handlers": ["console", "error_console"],
                "level": log_level,
            },
            "uvicorn.error": {
                "handlers": ["console", "error_console"],
                "level": log_level,
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False,
            },
            "qaboard": {
                "handlers": ["console", "error_console"],
                "level": log_level,
                "propagate": False,
            },
            # web3 logs every RPC round trip at DEBUG
            "web3": {
                "level": "WARNING",
            },
        },
    }
    logging.config.dictConfig(LOGGING_CONFIG)
