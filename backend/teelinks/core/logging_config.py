"""Process-wide logging setup."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_HANDLER_NAME = "teelinks-stdout"


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stdout handler to the root logger at ``level``.

    Safe to call more than once; the handler is only installed the first time.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
