"""Eligibility, transitions, notification fan-out and the trigger flows built on them."""
