"""Scoring of completed attempts.

Grading is a pure function of the attempt's question count, its questions and
the answers saved for it. ``AttemptService.complete`` depends on that: grading
the same rows twice gives the same result, so a retried completion can never
double-count.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Optional


def normalize_answer(value: Optional[str]) -> str:
	return (value or "").strip().lower()


def answers_match(submitted: Optional[str], correct: str) -> bool:
	"""Case-insensitive comparison, ignoring leading/trailing whitespace.

	No partial credit and no fuzzy matching: ``"helloo"`` is simply wrong.
	"""
	if submitted is None:
		return False
	return normalize_answer(submitted) == normalize_answer(correct)


def percentage(correct: int, total: int) -> int:
	# Round half up (50.5 -> 51); Python's round() would go to the even neighbour
	if total <= 0:
		return 0
	value = Decimal(correct * 100) / Decimal(total)
	return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class GradeResult:
	correct_answers: int
	score: int
	# question_id -> correctness, for every question of the test
	marks: Dict[str, bool] = field(default_factory=dict)


def grade(total_questions: int, answers: Iterable, questions: Iterable) -> GradeResult:
	"""Grade saved answers against the test's questions.

	``answers`` need ``question_id`` and ``answer``; ``questions`` need ``id``
	and ``correct_answer``. A question without an answer counts as incorrect,
	and ``total_questions`` (the count snapshotted when the attempt started) is
	the denominator however many answers exist.
	"""
	by_question = {a.question_id: a.answer for a in answers}
	marks: Dict[str, bool] = {}
	for q in questions:
		marks[q.id] = answers_match(by_question.get(q.id), q.correct_answer)
	correct = sum(1 for ok in marks.values() if ok)
	return GradeResult(correct_answers=correct, score=percentage(correct, total_questions), marks=marks)
