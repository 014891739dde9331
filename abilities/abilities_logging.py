import contextvars
import logging
import sys
from configparser import RawConfigParser
from contextlib import contextmanager
from logging import Logger
from logging import config as logging_config
from typing import TYPE_CHECKING, Any, Dict, Generator, List, Optional, Tuple

from abilities import config

if TYPE_CHECKING:
    from logging import LogRecord

# Default logging configuration
DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "loggers": {
        "abilities": {
            "level": "INFO",
            "handlers": ["consoleHandler"],
            "propagate": False,
        },
    },
    "handlers": {
        "consoleHandler": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "formatter_formatter",
            "stream": "ext://sys.stdout",
        }
    },
    "formatters": {
        "formatter_formatter": {
            "format": "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
}

try:
    logging_config.dictConfig(DEFAULT_LOGGING_CONFIG)
except (KeyError, ValueError):
    logging.basicConfig(format="%(asctime)s %(name)-12s %(levelname)-8s %(message)s", level=logging.INFO)


request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id")


def annotate_logger(logger: Logger) -> None:
    """
    Adds a request ID filter to all handlers of the specified logger.

    Args:
        logger (Logger): The logger instance to annotate.
    """
    request_id_filter = RequestIDFilter()

    for handler in logger.handlers:
        if not any(isinstance(f, RequestIDFilter) for f in handler.filters):
            handler.addFilter(request_id_filter)


def _parse_stream(args_str: str) -> Any:
    if args_str in ("", "()", "(sys.stdout,)"):
        return sys.stdout

    if args_str == "(sys.stderr,)":
        return sys.stderr

    raise ValueError(f"Invalid args format: {args_str}")


def _configure_logging_from_raw(raw_config: RawConfigParser) -> None:
    """
    Configures logging from the ``formatter_*``, ``handler_*`` and ``logger_*`` sections of a RawConfigParser object.
    Only stream and file handlers are supported.

    Args:
        raw_config (RawConfigParser): The source configuration containing logging sections.
    """
    formatters: Dict[str, logging.Formatter] = {}
    for section in raw_config.sections():
        if section.startswith("formatter_"):
            options = dict(raw_config.items(section))
            formatters[section.split("_", 1)[1]] = logging.Formatter(
                options.get("format", "%(message)s"), options.get("datefmt", None)
            )

    handlers: Dict[str, logging.Handler] = {}
    for section in raw_config.sections():
        if section.startswith("handler_"):
            options = dict(raw_config.items(section))
            handler_class = options.get("class", "logging.StreamHandler")
            handler: logging.Handler

            if "StreamHandler" in handler_class:
                handler = logging.StreamHandler(stream=_parse_stream(options.get("args", "()")))
            elif "FileHandler" in handler_class:
                handler = logging.FileHandler(filename=options.get("args", "").strip("()',\" "))
            else:
                raise ValueError(f"Unsupported handler class: {handler_class}")

            handler.setLevel(getattr(logging, options.get("level", "NOTSET").upper(), logging.NOTSET))
            if options.get("formatter") in formatters:
                handler.setFormatter(formatters[options["formatter"]])

            handlers[section.split("_", 1)[1]] = handler

    for section in raw_config.sections():
        if not section.startswith("logger_"):
            continue

        options = dict(raw_config.items(section))
        name = section.split("_", 1)[1]
        logger = logging.getLogger() if name == "root" else logging.getLogger(name)
        handler_names = [h.strip() for h in options.get("handlers", "").split(",") if h.strip()]

        logger.setLevel(options.get("level", "NOTSET").upper())
        if name != "root":
            logger.propagate = options.get("propagate", "1") == "1"

        logger.handlers = [handlers[h] for h in handler_names if h in handlers]


@contextmanager
def _safe_logging_configuration() -> Generator[None, None, None]:
    """
    Context manager to safely apply logging configuration. If an error occurs, all loggers are restored to their
    original handlers, levels and propagation settings.
    """
    backup: List[Tuple[Logger, List[logging.Handler], int, bool]] = [
        (logger, list(logger.handlers), logger.level, logger.propagate)
        for logger in logging.Logger.manager.loggerDict.values()
        if isinstance(logger, logging.Logger)
    ]
    root_logger = logging.getLogger()
    backup.append((root_logger, list(root_logger.handlers), root_logger.level, root_logger.propagate))

    try:
        yield
    except Exception:
        for logger, handlers, level, propagate in backup:
            logger.handlers = handlers
            logger.setLevel(level)
            logger.propagate = propagate
        raise


def _safe_get_config(component: str) -> Optional[RawConfigParser]:
    try:
        return config.get_config(component)
    except Exception:
        return None


def init_logging(loggername: str) -> Logger:
    """
    Initializes the logging system for a specific logger.

    Applies the logging configuration (if any) and adds request ID annotation to the handlers of the package logger,
    so that records carry the ID of the request being handled.

    Args:
        loggername (str): The name of the logger to initialize, relative to the ``abilities`` logger.

    Returns:
        Logger: The initialized logger instance.
    """
    logger = logging.getLogger(f"abilities.{loggername}")

    logging_conf = _safe_get_config("logging")

    if logging_conf and any(s.startswith("logger_") for s in logging_conf.sections()):
        try:
            with _safe_logging_configuration():
                _configure_logging_from_raw(logging_conf)
        except Exception as e:
            logger.error("Logging configuration error: %s", e)

    annotate_logger(logging.getLogger("abilities"))

    return logger


class RequestIDFilter(logging.Filter):
    """
    A logging filter that adds a request ID to log records.

    This filter retrieves the request ID from the `request_id_var` context variable
    and attaches it to each log record as `reqid` and `reqidf`.
    """

    def filter(self, record: "LogRecord") -> bool:
        reqid = request_id_var.get("")

        record.reqid = reqid
        record.reqidf = f"(reqid={reqid})" if reqid else ""

        return True
