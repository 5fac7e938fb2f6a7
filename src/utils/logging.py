"""structlog configuration for Ragline.

One shared processor chain feeds either a coloured console renderer
(development) or a JSON renderer (production, or ``json_output=True``).
The stdlib root logger is routed through the same chain so records from
chromadb, asyncpg, httpx and openai come out in the same format, and those
chatty libraries are held at WARNING unless the application itself runs at
DEBUG.

Every event carries ``app="ragline"`` so log shippers can separate engine
output from the host application's.
"""

import logging
import os
import sys

import structlog

APP_NAME = "ragline"

# Third-party loggers that flood INFO with per-request lines.
NOISY_LOGGERS: tuple[str, ...] = ("chromadb", "httpx", "httpcore", "openai", "asyncpg", "aiosqlite")


def _add_app_name(_logger, _method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("app", APP_NAME)
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        _add_app_name,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR.
        json_output: Force JSON rendering.  Otherwise JSON is used only when
            ``APP_ENV`` is ``production``.

    Returns:
        The root structlog logger.
    """
    level_name = log_level.upper()
    level = logging.getLevelName(level_name)
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        # stderr keeps CLI stdout clean for --json output.
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level_name)

    library_level = logging.DEBUG if level_name == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
