import sys

from loguru import logger

from .config import settings


def setup_logging(level: str | None = None, serialize: bool | None = None):
    """
    Configure the loguru sink for the service.

    Replaces loguru's default handler with a single stderr sink. Structured
    context passed as keyword arguments (``logger.info("msg", key=value)``)
    ends up in ``record["extra"]`` and is emitted as JSON when
    ``LOG_JSON=true``.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.log_level).upper(),
        serialize=settings.log_json if serialize is None else serialize,
        backtrace=False,
        diagnose=settings.app_env == "dev",
    )
    return logger
