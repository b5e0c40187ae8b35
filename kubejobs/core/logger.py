from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from kubejobs.core.trace import TraceContextFilter

LOGGER_NAME = "kubejobs"


def setup_logging(log_dir: str = "logs", level: str = "INFO") -> logging.Logger:
    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logger.propagate = False

    if not any(isinstance(f, TraceContextFilter) for f in logger.filters):
        logger.addFilter(TraceContextFilter())

    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        text_path = os.path.join(log_dir, "kubejobs.log")
        h = RotatingFileHandler(text_path, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | trace=%(trace_id)s run=%(ort_run_id)s | %(message)s")
        h.setFormatter(fmt)
        h.addFilter(TraceContextFilter())
        logger.addHandler(h)

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler) for h in logger.handlers):
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter("%(levelname)s %(name)s [%(trace_id)s] %(message)s"))
        sh.addFilter(TraceContextFilter())
        logger.addHandler(sh)

    return logger
