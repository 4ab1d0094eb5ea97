import logging
from logging.handlers import RotatingFileHandler

from .config import settings

FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

# Marks handlers installed here so a second call (another app startup in the
# same process, or a test) replaces them instead of stacking duplicates.
_OWNED = "_thermolight_handler"


def configure_logging(verbose: bool = False) -> None:
    """Send poll, light and vendor API logs to the console and `settings.log_file`.

    `verbose` turns on DEBUG, which includes every characteristic read/write
    decision. The file handler is skipped when `log_file` is empty.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    for h in [h for h in root.handlers if getattr(h, _OWNED, False)]:
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(RotatingFileHandler(settings.log_file, maxBytes=2_000_000, backupCount=5))

    for h in handlers:
        h.setFormatter(fmt)
        setattr(h, _OWNED, True)
        root.addHandler(h)

    # One line per vendor request is noise at a 3 minute poll interval
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
