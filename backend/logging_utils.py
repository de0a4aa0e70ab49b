import logging
import os


LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'
NOISY_LOGGERS = ('asyncio', 'urllib3', 'werkzeug', 'PIL')


def configure_logging() -> None:
    """Configure logging consistently for Lambda and local execution."""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    root = logging.getLogger()

    level = logging.getLevelName(log_level)
    root.setLevel(level if isinstance(level, int) else logging.INFO)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
