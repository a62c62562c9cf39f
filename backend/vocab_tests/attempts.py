"""Attempt lifecycle: start or resume, autosave, completion and review.

Every public method is one unit of work against the session it was built
with: it either commits or raises, leaving nothing half-written.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .answer_store import AnswerStore
from .authorization import AccessGate
from .errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .grading import grade
from .models import (
	AttemptStatus,
	Student,
	Test,
	TestAnswer,
	TestAttempt,
	TestQuestion,
	utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class StartResult:
	attempt: TestAttempt
	resumed: bool
	answers: List[TestAnswer] = field(default_factory=list)
	questions: List[TestQuestion] = field(default_factory=list)


@dataclass
class ReviewItem:
	question: TestQuestion
	student_answer: Optional[str]
	is_correct: bool


class AttemptService:
	def __init__(self, db: Session, gate: Optional[AccessGate] = None, store: Optional[AnswerStore] = None) -> None:
		self.db = db
		self.gate = gate or AccessGate(db)
		self.store = store or AnswerStore(db)

	# Lookups

	def _get_attempt(self, attempt_id: str, *, lock: bool = False) -> TestAttempt:
		stmt = select(TestAttempt).where(TestAttempt.id == attempt_id)
		if lock:
			stmt = stmt.with_for_update()
		attempt = self.db.execute(stmt).scalar_one_or_none()
		if attempt is None:
			raise NotFoundError("Attempt not found")
		return attempt

	def _find_in_progress(self, test_id: str, student_id: str) -> Optional[TestAttempt]:
		stmt = select(TestAttempt).where(
			TestAttempt.test_id == test_id,
			TestAttempt.student_id == student_id,
			TestAttempt.status == AttemptStatus.IN_PROGRESS,
		)
		return self.db.execute(stmt).scalar_one_or_none()

	def _questions(self, test_id: str) -> List[TestQuestion]:
		stmt = select(TestQuestion).where(TestQuestion.test_id == test_id).order_by(TestQuestion.order_index)
		return list(self.db.execute(stmt).scalars())

	def _owned_attempt(self, attempt_id: str, user_id: str, *, lock: bool = False) -> TestAttempt:
		attempt = self._get_attempt(attempt_id, lock=lock)
		# Teachers may read attempts but only the student writes to them
		self.gate.require_student_owner(attempt.student_id, user_id)
		return attempt

	@staticmethod
	def _require_in_progress(attempt: TestAttempt) -> None:
		if attempt.is_terminal:
			raise ConflictError("Attempt already completed")

	# Operations

	def start_or_resume(self, test_id: str, student_id: str, user_id: str) -> StartResult:
		student = self.db.get(Student, student_id)
		if student is None or student.user_id != user_id:
			raise ForbiddenError()
		if self.db.get(Test, test_id) is None:
			raise NotFoundError("Test not found")
		if not self.gate.is_test_assigned_to_student(test_id, student_id):
			raise ForbiddenError("Test not assigned to your classroom")

		existing = self._find_in_progress(test_id, student_id)
		if existing is not None:
			return self._resumed(existing)

		total = self.db.execute(
			select(func.count()).select_from(TestQuestion).where(TestQuestion.test_id == test_id)
		).scalar_one()
		attempt = TestAttempt(
			test_id=test_id,
			student_id=student_id,
			total_questions=total,
			status=AttemptStatus.IN_PROGRESS,
			current_question_index=0,
			started_at=utcnow(),
		)
		self.db.add(attempt)
		try:
			self.db.commit()
		except IntegrityError:
			# A concurrent start won the race on the in-progress index
			self.db.rollback()
			existing = self._find_in_progress(test_id, student_id)
			if existing is None:
				raise
			return self._resumed(existing)
		self.db.refresh(attempt)
		logger.info("Started attempt %s (test=%s student=%s, %d questions)", attempt.id, test_id, student_id, total)
		return StartResult(attempt=attempt, resumed=False, questions=self._questions(test_id))

	def _resumed(self, attempt: TestAttempt) -> StartResult:
		logger.info("Resumed attempt %s at question %d", attempt.id, attempt.current_question_index)
		return StartResult(
			attempt=attempt,
			resumed=True,
			answers=self.store.list_for_attempt(attempt.id),
			questions=self._questions(attempt.test_id),
		)

	def get_attempt(self, attempt_id: str, user_id: str, student_id: Optional[str] = None) -> TestAttempt:
		attempt = self._get_attempt(attempt_id)
		if student_id is not None and student_id != attempt.student_id:
			raise ForbiddenError()
		self.gate.require_attempt_view(attempt, user_id)
		return attempt

	def update_progress(self, attempt_id: str, question_index: int, user_id: str) -> TestAttempt:
		attempt = self._owned_attempt(attempt_id, user_id)
		self._require_in_progress(attempt)
		last = max(attempt.total_questions - 1, 0)
		if question_index < 0 or question_index > last:
			raise ValidationError(f"question_index must be between 0 and {last}")
		if attempt.current_question_index != question_index:
			attempt.current_question_index = question_index
			self.db.commit()
		return attempt

	def submit_answer(self, attempt_id: str, question_id: str, answer_text: str, user_id: str, answered_at: Optional[datetime] = None) -> TestAnswer:
		attempt = self._owned_attempt(attempt_id, user_id)
		self._require_in_progress(attempt)
		self._check_question(attempt, question_id)
		answer = self.store.upsert(attempt.id, question_id, answer_text, answered_at=answered_at)
		self.db.commit()
		return answer

	def _check_question(self, attempt: TestAttempt, question_id: str) -> None:
		question = self.db.get(TestQuestion, question_id)
		if question is None:
			raise NotFoundError("Question not found")
		if question.test_id != attempt.test_id:
			raise ValidationError("Question does not belong to this test")

	def complete(self, attempt_id: str, user_id: str) -> TestAttempt:
		attempt = self._owned_attempt(attempt_id, user_id, lock=True)
		if attempt.is_terminal:
			logger.info("Attempt %s already completed; returning stored score %s", attempt.id, attempt.score)
			return attempt
		return self._finish(attempt)

	def expire(self, attempt_id: str) -> TestAttempt:
		"""Complete an abandoned attempt on the system's behalf (no caller check)."""
		attempt = self._get_attempt(attempt_id, lock=True)
		if attempt.is_terminal:
			return attempt
		return self._finish(attempt)

	def submit_all(self, attempt_id: str, answers: Iterable[Tuple[str, str]], user_id: str) -> TestAttempt:
		"""Save every ``(question_id, answer)`` pair, then complete."""
		attempt = self._owned_attempt(attempt_id, user_id, lock=True)
		if attempt.is_terminal:
			return attempt
		pairs = list(answers)
		for question_id, _ in pairs:
			self._check_question(attempt, question_id)
		for question_id, text in pairs:
			self.store.upsert(attempt.id, question_id, text)
		return self._finish(attempt)

	def _finish(self, attempt: TestAttempt) -> TestAttempt:
		# Caller holds the row lock; grading reads and the terminal write share the transaction
		self.db.flush()
		answers = self.store.list_for_attempt(attempt.id)
		result = grade(attempt.total_questions, answers, self._questions(attempt.test_id))
		for answer in answers:
			answer.is_correct = result.marks.get(answer.question_id, False)
		attempt.correct_answers = result.correct_answers
		attempt.score = result.score
		attempt.completed_at = utcnow()
		attempt.status = AttemptStatus.SUBMITTED
		self.db.commit()
		self.db.refresh(attempt)
		logger.info(
			"Completed attempt %s: %d/%d correct, score %d",
			attempt.id, result.correct_answers, attempt.total_questions, result.score,
		)
		return attempt

	def review(self, attempt_id: str, user_id: str) -> Tuple[TestAttempt, List[ReviewItem]]:
		attempt = self._get_attempt(attempt_id)
		self.gate.require_attempt_view(attempt, user_id)
		if not attempt.is_terminal:
			raise ConflictError("Attempt not completed yet")
		by_question = {a.question_id: a for a in self.store.list_for_attempt(attempt.id)}
		items = []
		for q in self._questions(attempt.test_id):
			answer = by_question.get(q.id)
			items.append(ReviewItem(
				question=q,
				student_answer=answer.answer if answer else None,
				is_correct=bool(answer and answer.is_correct),
			))
		return attempt, items

	def list_for_student(self, student_id: str, user_id: str) -> List[TestAttempt]:
		# Unknown students are denied like unrelated ones
		self.gate.require_student_access(student_id, user_id)
		stmt = (
			select(TestAttempt)
			.where(TestAttempt.student_id == student_id)
			.order_by(TestAttempt.started_at.desc())
		)
		return list(self.db.execute(stmt).scalars())

	def get_test(self, test_id: str, user_id: str) -> Test:
		test = self.db.get(Test, test_id)
		if test is None:
			raise NotFoundError("Test not found")
		if not self.gate.can_view_test(test_id, user_id):
			raise ForbiddenError()
		return test
