import logging
import sys

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the whole process."""
    global _configured
    if _configured:
        logging.getLogger().setLevel(level)
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)
    # uvicorn access lines are noisy next to the hub logs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    _configured = True
