from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import TestAnswer, new_id, utcnow

logger = logging.getLogger(__name__)


def _dialect_insert(dialect_name: str):
	if dialect_name == "postgresql":
		from sqlalchemy.dialects.postgresql import insert
		return insert
	if dialect_name == "sqlite":
		from sqlalchemy.dialects.sqlite import insert
		return insert
	return None


class AnswerStore:
	"""Persistence for answers, one row per (attempt, question).

	The store does not look at the attempt's status; callers decide whether a
	write is allowed. It flushes but never commits, so a caller can group
	several upserts and a completion into one transaction.
	"""

	def __init__(self, db: Session) -> None:
		self.db = db

	def get(self, attempt_id: str, question_id: str) -> Optional[TestAnswer]:
		stmt = select(TestAnswer).where(TestAnswer.attempt_id == attempt_id, TestAnswer.question_id == question_id)
		return self.db.execute(stmt).scalar_one_or_none()

	def list_for_attempt(self, attempt_id: str) -> List[TestAnswer]:
		stmt = select(TestAnswer).where(TestAnswer.attempt_id == attempt_id).order_by(TestAnswer.answered_at)
		return list(self.db.execute(stmt).scalars())

	def upsert(self, attempt_id: str, question_id: str, answer_text: str, answered_at: Optional[datetime] = None) -> TestAnswer:
		"""Insert or overwrite the answer for this question.

		Same-question writes are linearized on the unique row and the one with
		the newest ``answered_at`` wins, whatever order they arrive in. An
		overwrite clears ``is_correct``; correctness is decided at grading.
		"""
		answered_at = answered_at or utcnow()
		insert = _dialect_insert(self.db.get_bind().dialect.name)
		if insert is None:
			return self._upsert_locked(attempt_id, question_id, answer_text, answered_at)

		stmt = insert(TestAnswer).values(
			id=new_id(),
			attempt_id=attempt_id,
			question_id=question_id,
			answer=answer_text,
			is_correct=None,
			answered_at=answered_at,
		)
		stmt = stmt.on_conflict_do_update(
			index_elements=["attempt_id", "question_id"],
			set_={
				"answer": stmt.excluded.answer,
				"is_correct": None,
				"answered_at": stmt.excluded.answered_at,
			},
			where=TestAnswer.answered_at <= stmt.excluded.answered_at,
		)
		self.db.execute(stmt)
		row = self.db.execute(
			select(TestAnswer)
			.where(TestAnswer.attempt_id == attempt_id, TestAnswer.question_id == question_id)
			.execution_options(populate_existing=True)
		).scalar_one()
		if row.answered_at > answered_at:
			logger.debug("Ignored stale answer write for attempt=%s question=%s", attempt_id, question_id)
		return row

	def _upsert_locked(self, attempt_id: str, question_id: str, answer_text: str, answered_at: datetime) -> TestAnswer:
		stmt = (
			select(TestAnswer)
			.where(TestAnswer.attempt_id == attempt_id, TestAnswer.question_id == question_id)
			.with_for_update()
		)
		row = self.db.execute(stmt).scalar_one_or_none()
		if row is None:
			row = TestAnswer(attempt_id=attempt_id, question_id=question_id, answer=answer_text, answered_at=answered_at)
			self.db.add(row)
		elif row.answered_at <= answered_at:
			row.answer = answer_text
			row.is_correct = None
			row.answered_at = answered_at
		self.db.flush()
		return row
