import os, logging
from logging.handlers import RotatingFileHandler

log_formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
log = logging.getLogger("memoria")
log.setLevel(logging.DEBUG)

_handler = None


def set_log_file(path: str, max_bytes: int = 10 * 1024 * 1024):
    global _handler
    if _handler is not None:
        log.removeHandler(_handler)
        _handler.close()
    _handler = RotatingFileHandler(path, maxBytes=max_bytes, delay=True)
    _handler.setFormatter(log_formatter)
    log.addHandler(_handler)
    log.debug(f"Logging to {path}")


def set_log_level(level):
    log.setLevel(level)


set_log_file(os.getenv("MEMORIA_LOG_FILE", "memoria.log"))
