import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional
from loguru import logger
import json
import re
from datetime import date

from app.config.settings import settings
from app.utils.context import get_request_id

CONFIG_PATH = Path(__file__).resolve().parents[2] / "logging_config.json"

# Standard library loggers routed through loguru
FRAMEWORK_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "celery",
    "celery.task",
    "sqlalchemy.engine",
)

# Registration links carry a bearer token in the last path segment
REGISTRATION_TOKEN_PATTERN = re.compile(r"(/registration/)[^/?#\s\"']+")
REDACTED = "***"


def redact_secrets(message: str) -> str:
    return REGISTRATION_TOKEN_PATTERN.sub(rf"\g<1>{REDACTED}", message)


def _redact_record(record) -> None:
    record["message"] = redact_secrets(record["message"])


class InterceptHandler(logging.Handler):
    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except (AttributeError, ValueError):
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        log = logger.bind(request_id=get_request_id() or "app")
        log.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class CustomizeLogger:
    """Configures loguru sinks from a named section of logging_config.json"""

    @classmethod
    def make_logger(
        cls,
        config_path: Path = CONFIG_PATH,
        environment: str = "logger",
        level: Optional[str] = None,
    ):
        config = cls.load_logging_config(config_path)
        section: Dict[str, Any] = config.get(environment, config.get("logger", {}))

        logger.remove()
        logger.configure(extra={"request_id": "app"}, patcher=_redact_record)
        level = (level or section.get("level", "info")).upper()

        # Console logger with colors
        logger.add(
            sys.stdout,
            enqueue=True,
            backtrace=True,
            level=level,
            format=section["console_format"],
            colorize=True,
        )

        if section.get("log_dir"):
            cls._add_file_sink(section, level)

        cls._setup_intercept_handlers()
        return logger

    @staticmethod
    def _add_file_sink(section: Dict[str, Any], level: str) -> None:
        filename = f"{date.today().strftime('%Y-%m-%d')}-{section['filename']}"
        options: Dict[str, Any] = {
            "rotation": section.get("rotation"),
            "retention": section.get("retention"),
            "enqueue": True,
            "backtrace": True,
            "level": level,
            "colorize": False,
        }
        if section.get("use_json_logs") and section.get("file_format") == "json":
            options["serialize"] = True
        else:
            options["format"] = section["file_format"]

        logger.add(str(Path(section["log_dir"]) / filename), **options)

    @staticmethod
    def _setup_intercept_handlers():
        logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

        for log_name in FRAMEWORK_LOGGERS:
            _logger = logging.getLogger(log_name)
            _logger.handlers = [InterceptHandler()]
            _logger.propagate = False
        # SQL echo stays off unless explicitly enabled on the engine
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    @staticmethod
    def load_logging_config(config_path: Path) -> Dict[str, Any]:
        with open(config_path, encoding="utf-8") as config_file:
            return json.load(config_file)


custom_logger = CustomizeLogger.make_logger(
    CONFIG_PATH,
    "production" if settings.ENVIRONMENT == "production" else "logger",
    settings.LOG_LEVEL,
)


def get_logger():
    """Get the custom logger instance with request ID binding."""
    return custom_logger.bind(request_id=get_request_id() or "app")
