"""Core configuration & tunable job rules.

Everything that may need tuning per deployment (retry counts, attempt
timeouts, queue behaviour, reminder horizon, channel credentials) is
centralized here. Values are read from the environment once at import time;
tests monkeypatch the dicts directly.
"""
from __future__ import annotations

import os


def _env_bool(name: str, default: bool = False) -> bool:
	raw = os.getenv(name)
	if raw is None or not raw.strip():
		return default
	return raw.strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./campus.db")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE: str | None = os.getenv("LOG_FILE") or None

# ---------------------------------- Jobs ---------------------------------- #
# Per job type: attempts before the terminal-failure hook fires, and the
# wall-clock budget of a single attempt.
JOB_SETTINGS: dict[str, dict[str, int | str]] = {
	"fee_reminder": {
		"max_attempts": 3,
		"timeout_seconds": 300,
		"priority": "normal",
	},
	"staff_notification": {
		"max_attempts": 3,
		"timeout_seconds": 120,
		"priority": "normal",
	},
	"student_notification": {
		"max_attempts": 3,
		"timeout_seconds": 120,
		"priority": "normal",
	},
}

# --------------------------------- Backoff -------------------------------- #
# Delay between attempts of the same job. Not part of the job contract.
BACKOFF_POLICY: dict[str, int | float] = {
	"base_seconds": int(os.getenv("JOB_BACKOFF_BASE_SECONDS", "5")),
	"factor": 2,
	"max_seconds": 120,
	"jitter_pct": 0.10,
}

# --------------------------------- Queue ---------------------------------- #
QUEUE_SETTINGS: dict[str, dict[str, int] | int | float] = {
	"priorities": {  # Lower number = higher priority
		"high": 0,
		"normal": 5,
		"low": 10,
	},
	"warn_depth": 1000,
	"max_in_memory": 5000,
	"worker_count": int(os.getenv("QUEUE_WORKER_COUNT", "1")),
	"poll_timeout_seconds": 1.0,
	# How long a one-shot CLI run waits for submitted jobs before exiting.
	"drain_timeout_seconds": float(os.getenv("QUEUE_DRAIN_TIMEOUT_SECONDS", "900")),
}

# ------------------------------ Fee Reminders ----------------------------- #
FEE_REMINDER_SETTINGS: dict[str, int] = {
	"default_horizon_days": int(os.getenv("FEE_REMINDER_HORIZON_DAYS", "7")),
}

# ------------------------------ Mail Channel ------------------------------ #
MAIL_SETTINGS: dict[str, str | int | float | None] = {
	"driver": os.getenv("MAIL_DRIVER", "log"),  # "smtp" or "log"
	"host": os.getenv("MAIL_HOST", "localhost"),
	"port": int(os.getenv("MAIL_PORT", "587")),
	"username": os.getenv("MAIL_USERNAME") or None,
	"password": os.getenv("MAIL_PASSWORD") or None,
	"encryption": os.getenv("MAIL_ENCRYPTION", "tls"),  # tls | ssl | none
	"sender_email": os.getenv("MAIL_FROM_ADDRESS", "noreply@college.local"),
	"sender_name": os.getenv("MAIL_FROM_NAME", "College Management System"),
	"reply_email": os.getenv("MAIL_REPLY_TO") or None,
	"timeout_seconds": float(os.getenv("MAIL_TIMEOUT_SECONDS", "30")),
}

# ------------------------------- SMS Channel ------------------------------ #
SMS_SETTINGS: dict[str, str | float | None] = {
	"provider": os.getenv("SMS_PROVIDER", "simulation"),  # simulation | twilio | nexmo
	"twilio_sid": os.getenv("TWILIO_SID") or None,
	"twilio_auth_token": os.getenv("TWILIO_AUTH_TOKEN") or None,
	"twilio_number": os.getenv("TWILIO_NUMBER") or None,
	"nexmo_key": os.getenv("NEXMO_KEY") or None,
	"nexmo_secret": os.getenv("NEXMO_SECRET") or None,
	"nexmo_sender_name": os.getenv("NEXMO_SENDER_NAME") or None,
	"timeout_seconds": float(os.getenv("SMS_TIMEOUT_SECONDS", "15")),
}

# Verbose SQL echo for debugging store queries.
SQL_ECHO: bool = _env_bool("SQL_ECHO")

__all__ = [
	"DATABASE_URL",
	"LOG_LEVEL",
	"LOG_FILE",
	"SQL_ECHO",
	# Rule groups
	"JOB_SETTINGS",
	"BACKOFF_POLICY",
	"QUEUE_SETTINGS",
	"FEE_REMINDER_SETTINGS",
	"MAIL_SETTINGS",
	"SMS_SETTINGS",
]
