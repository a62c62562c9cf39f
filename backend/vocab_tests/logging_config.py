"""Logging configuration helpers for the API."""

from __future__ import annotations

import logging
from logging import Logger


def configure_logging(level: str = "INFO") -> Logger:
	"""Configure basic logging for the application and return the package logger."""
	logging.basicConfig(
		level=getattr(logging, str(level).upper(), logging.INFO),
		format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
	)
	return logging.getLogger("vocab_tests")
