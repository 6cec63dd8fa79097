import logging
import logging.config
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import structlog

from betvex_setup.constants import LOG_DIR_NAME

DEFAULT_LOG_LEVELS = {"": "INFO", "betvex_setup": "DEBUG", "urllib3": "WARNING"}


def construct_log_file_name(sub_command: str, data_path: Path) -> Path:
    file_name = f"betvex-setup-{sub_command}_{datetime.now():%Y-%m-%dT%H:%M:%S}.log"
    return data_path.joinpath(LOG_DIR_NAME, file_name)


def configure_logging(
    logger_level_config: Optional[Dict[str, str]] = None,
    debug_log_file_path: Optional[Path] = None,
) -> None:
    """Route structlog through the stdlib `logging` machinery.

    Human readable output goes to stderr at the configured levels. If
    `debug_log_file_path` is given, every event at DEBUG level and above is
    additionally written to that file as JSON lines.
    """
    logger_level_config = logger_level_config or DEFAULT_LOG_LEVELS

    timestamper = structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S.%f")
    pre_chain = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        timestamper,
    ]

    handlers = {
        "default": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "colorized",
            "stream": sys.stderr,
        }
    }
    if debug_log_file_path is not None:
        debug_log_file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers["debug-file"] = {
            "class": "logging.FileHandler",
            "level": "DEBUG",
            "formatter": "json",
            "filename": str(debug_log_file_path),
        }

    loggers = {
        name: {"level": level.upper(), "handlers": [], "propagate": True}
        for name, level in logger_level_config.items()
        if name
    }
    root_level = logger_level_config.get("", "INFO").upper()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "colorized": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        structlog.dev.ConsoleRenderer(),
                    ],
                    "foreign_pre_chain": pre_chain,
                },
                "json": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        structlog.processors.format_exc_info,
                        structlog.processors.JSONRenderer(),
                    ],
                    "foreign_pre_chain": pre_chain,
                },
            },
            "handlers": handlers,
            "loggers": loggers,
            "root": {"handlers": list(handlers), "level": root_level},
        }
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
