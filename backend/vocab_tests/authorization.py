"""Access rules for student data.

Never compare a Student's id with a User's id: they come from different
tables. A user reaches a student either by owning the student record
(``Student.user_id``) or by teaching a classroom the student is enrolled in.

Correct access patterns:

1. Student viewing own data: ``Student.user_id == caller``
2. Teacher viewing a student in their classroom: an enrollment of the student
   in a classroom whose ``teacher_id == caller``
"""

from __future__ import annotations
from typing import Optional

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from .errors import ForbiddenError
from .models import (
	Classroom,
	Student,
	StudentEnrollment,
	Test,
	TestAssignment,
	TestAttempt,
	VocabularySheet,
)


class AccessGate:
	def __init__(self, db: Session) -> None:
		self.db = db

	def is_student_owner(self, student_id: str, user_id: str) -> bool:
		stmt = select(exists().where(Student.id == student_id, Student.user_id == user_id))
		return bool(self.db.execute(stmt).scalar())

	def is_teacher_of_student(self, student_id: str, user_id: str, test_id: Optional[str] = None) -> bool:
		"""True when the student is enrolled in one of the caller's classrooms.

		With ``test_id`` the classroom must also be one the test is assigned to,
		unless the caller owns the test's vocabulary sheet.
		"""
		conditions = [
			StudentEnrollment.student_id == student_id,
			StudentEnrollment.classroom_id == Classroom.id,
			Classroom.teacher_id == user_id,
		]
		if test_id is not None and not self.owns_test(test_id, user_id):
			conditions.append(
				exists().where(TestAssignment.test_id == test_id, TestAssignment.classroom_id == Classroom.id)
			)
		stmt = select(exists().where(*conditions))
		return bool(self.db.execute(stmt).scalar())

	def owns_test(self, test_id: str, user_id: str) -> bool:
		stmt = select(
			exists().where(Test.id == test_id, Test.sheet_id == VocabularySheet.id, VocabularySheet.teacher_id == user_id)
		)
		return bool(self.db.execute(stmt).scalar())

	def can_access_student_data(self, student_id: str, user_id: str) -> bool:
		return self.is_student_owner(student_id, user_id) or self.is_teacher_of_student(student_id, user_id)

	def can_view_attempt(self, attempt: TestAttempt, user_id: str) -> bool:
		return self.is_student_owner(attempt.student_id, user_id) or self.is_teacher_of_student(
			attempt.student_id, user_id, test_id=attempt.test_id
		)

	def is_test_assigned_to_student(self, test_id: str, student_id: str) -> bool:
		stmt = select(
			exists().where(
				TestAssignment.test_id == test_id,
				TestAssignment.classroom_id == StudentEnrollment.classroom_id,
				StudentEnrollment.student_id == student_id,
			)
		)
		return bool(self.db.execute(stmt).scalar())

	def can_view_test(self, test_id: str, user_id: str) -> bool:
		if self.owns_test(test_id, user_id):
			return True
		stmt = select(
			exists().where(
				Student.user_id == user_id,
				StudentEnrollment.student_id == Student.id,
				TestAssignment.classroom_id == StudentEnrollment.classroom_id,
				TestAssignment.test_id == test_id,
			)
		)
		return bool(self.db.execute(stmt).scalar())

	# Raising variants used by the service layer

	def require_student_owner(self, student_id: str, user_id: str) -> None:
		if not self.is_student_owner(student_id, user_id):
			raise ForbiddenError()

	def require_student_access(self, student_id: str, user_id: str) -> None:
		if not self.can_access_student_data(student_id, user_id):
			raise ForbiddenError()

	def require_attempt_view(self, attempt: TestAttempt, user_id: str) -> None:
		if not self.can_view_attempt(attempt, user_id):
			raise ForbiddenError()
