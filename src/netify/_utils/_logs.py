import logging
import sys

from .constants import LOGGER_NAME

_HANDLER_NAME = "netify-console"


def setup_logging(level: int | None) -> logging.Logger:
    """Attach a console handler to the ``netify`` logger.

    ``None`` leaves the logger untouched so applications that configure
    logging themselves keep full control. Calling it again only updates the
    level of the handler installed the first time.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if level is None:
        return logger

    handler = next((h for h in logger.handlers if h.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        logger.addHandler(handler)

    handler.setLevel(level)
    logger.setLevel(level)
    return logger
