"""Scheduled publishing and reminder pipeline for the college records backend.

Periodic triggers find records whose scheduled time has come (content and
notices to publish, fees overdue or coming due) and hand notification work to
an in-process job queue with bounded retries.
"""

__version__ = "1.0.0"

__all__: list[str] = ["__version__"]
