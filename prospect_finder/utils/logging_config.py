import logging
import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from prospect_finder.config import settings


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "path": record.pathname,
            "line": record.lineno
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


_configured = False


def setup_logging(log_file: Optional[str] = None, level: int = logging.INFO):
    global _configured
    if _configured:
        return
    _configured = True

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if settings.debug else level)

    # Console handler
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    logger.addHandler(handler)

    # File handler (JSON)
    log_file = log_file or settings.log_file
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)
