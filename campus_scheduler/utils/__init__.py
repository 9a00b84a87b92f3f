"""
Utilities package initialization.
"""
from .logger import get_logger, log_job_event, setup_logging
from .time import utc_now, ensure_utc

__all__ = ["get_logger", "log_job_event", "setup_logging", "utc_now", "ensure_utc"]
