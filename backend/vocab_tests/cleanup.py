from __future__ import annotations
import logging
from datetime import timedelta
from sqlalchemy import select
from sqlalchemy.orm import Session

from .attempts import AttemptService
from .models import AttemptStatus, TestAttempt, utcnow

logger = logging.getLogger(__name__)


def expire_stale_attempts(db: Session, days: int) -> int:
	"""Grade in-progress attempts started more than ``days`` ago.

	Unanswered questions count as incorrect, exactly as if the student had
	submitted. ``days <= 0`` disables expiry and abandoned attempts are
	resumed whenever the student comes back.
	"""
	if days <= 0:
		return 0
	threshold = utcnow() - timedelta(days=days)
	stmt = select(TestAttempt.id).where(
		TestAttempt.status == AttemptStatus.IN_PROGRESS,
		TestAttempt.started_at < threshold,
	)
	stale = list(db.execute(stmt).scalars())
	service = AttemptService(db)
	for attempt_id in stale:
		service.expire(attempt_id)
	if stale:
		logger.info("Expired %d stale in-progress attempts older than %d days", len(stale), days)
	return len(stale)
