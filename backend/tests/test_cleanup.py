from __future__ import annotations

import asyncio
from datetime import timedelta

from vocab_tests.attempts import AttemptService
from vocab_tests.cleanup import expire_stale_attempts
from vocab_tests.models import AttemptStatus, Student, TestAttempt, utcnow


def _started_days_ago(db, world, days: int):
	service = AttemptService(db)
	attempt = service.start_or_resume(world.test.id, world.student.id, world.student_user.id).attempt
	service.submit_answer(attempt.id, world.questions[0].id, "hello", world.student_user.id)
	attempt.started_at = utcnow() - timedelta(days=days)
	db.commit()
	return attempt


def test_disabled_by_default(db, world):
	attempt = _started_days_ago(db, world, 365)

	assert expire_stale_attempts(db, 0) == 0

	db.refresh(attempt)
	assert attempt.status == AttemptStatus.IN_PROGRESS


def test_stale_attempts_are_graded(db, world):
	attempt = _started_days_ago(db, world, 10)

	assert expire_stale_attempts(db, 7) == 1

	db.refresh(attempt)
	assert attempt.status == AttemptStatus.SUBMITTED
	assert (attempt.correct_answers, attempt.score) == (1, 25)


def test_recent_attempts_are_left_alone(db, world):
	attempt = _started_days_ago(db, world, 2)

	assert expire_stale_attempts(db, 7) == 0

	db.refresh(attempt)
	assert attempt.status == AttemptStatus.IN_PROGRESS


def test_attempts_of_students_without_login_are_expired(db, world):
	orphan = Student(name="No Login", user_id=None)
	db.add(orphan)
	db.flush()
	attempt = TestAttempt(
		test_id=world.test.id,
		student_id=orphan.id,
		total_questions=4,
		status=AttemptStatus.IN_PROGRESS,
		started_at=utcnow() - timedelta(days=30),
	)
	db.add(attempt)
	db.commit()

	assert expire_stale_attempts(db, 7) == 1

	db.refresh(attempt)
	assert (attempt.status, attempt.score) == (AttemptStatus.SUBMITTED, 0)


def test_startup_keeps_the_sweep_task_until_shutdown(monkeypatch):
	from vocab_tests import main

	monkeypatch.setattr(main.settings, "stale_attempt_days", 7)
	monkeypatch.setattr(main.settings, "cleanup_interval_seconds", 3600)
	sweeps = []
	monkeypatch.setattr(main, "_run_cleanup", lambda: sweeps.append(1))

	async def scenario():
		await main.startup_event()
		task = main._cleanup_task
		assert task is not None and not task.done()
		await main.shutdown_event()
		assert main._cleanup_task is None
		await asyncio.wait({task})
		return task

	task = asyncio.run(scenario())
	assert task.cancelled()
	assert sweeps == [1]
