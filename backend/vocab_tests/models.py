from __future__ import annotations
import enum
import json
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
	Boolean,
	Column,
	DateTime,
	Enum,
	ForeignKey,
	Index,
	Integer,
	String,
	Text,
	UniqueConstraint,
	event,
	text,
)
from sqlalchemy.orm import relationship
from .db import Base


def utcnow() -> datetime:
	# Naive UTC, matching what SQLite hands back for DateTime columns
	return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
	return uuid.uuid4().hex


class UserRole(str, enum.Enum):
	TEACHER = "TEACHER"
	STUDENT = "STUDENT"


class QuestionType(str, enum.Enum):
	SPELLING = "SPELLING"
	DEFINITION = "DEFINITION"
	FILL_BLANK = "FILL_BLANK"
	MULTIPLE_CHOICE = "MULTIPLE_CHOICE"


class AttemptStatus(str, enum.Enum):
	IN_PROGRESS = "IN_PROGRESS"
	SUBMITTED = "SUBMITTED"
	GRADED = "GRADED"


class User(Base):
	__tablename__ = "users"
	id = Column(String(32), primary_key=True, default=new_id)
	email = Column(String(256), unique=True, index=True, nullable=False)
	name = Column(String(128), nullable=False)
	password_hash = Column(String(256), nullable=False)
	role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.TEACHER)
	created_at = Column(DateTime, default=utcnow, nullable=False)


class Student(Base):
	__tablename__ = "students"
	# Student.id and User.id are different identity spaces; join through user_id
	id = Column(String(32), primary_key=True, default=new_id)
	name = Column(String(128), nullable=False)
	user_id = Column(String(32), ForeignKey("users.id"), nullable=True, index=True)
	created_at = Column(DateTime, default=utcnow, nullable=False)

	enrollments = relationship("StudentEnrollment", back_populates="student")


class Classroom(Base):
	__tablename__ = "classrooms"
	id = Column(String(32), primary_key=True, default=new_id)
	name = Column(String(128), nullable=False)
	teacher_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
	created_at = Column(DateTime, default=utcnow, nullable=False)


class StudentEnrollment(Base):
	__tablename__ = "student_enrollments"
	__table_args__ = (UniqueConstraint("student_id", "classroom_id", name="uq_enrollment_student_classroom"),)
	id = Column(String(32), primary_key=True, default=new_id)
	student_id = Column(String(32), ForeignKey("students.id"), nullable=False, index=True)
	classroom_id = Column(String(32), ForeignKey("classrooms.id"), nullable=False, index=True)
	enrolled_at = Column(DateTime, default=utcnow, nullable=False)

	student = relationship("Student", back_populates="enrollments")
	classroom = relationship("Classroom")


class VocabularySheet(Base):
	__tablename__ = "vocabulary_sheets"
	id = Column(String(32), primary_key=True, default=new_id)
	name = Column(String(256), nullable=False)
	teacher_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
	uploaded_at = Column(DateTime, default=utcnow, nullable=False)


class Test(Base):
	__tablename__ = "tests"
	# Not a pytest test class
	__test__ = False
	id = Column(String(32), primary_key=True, default=new_id)
	name = Column(String(256), nullable=False)
	variant = Column(String(16), nullable=False)
	sheet_id = Column(String(32), ForeignKey("vocabulary_sheets.id"), nullable=False, index=True)
	created_at = Column(DateTime, default=utcnow, nullable=False)

	sheet = relationship("VocabularySheet")
	questions = relationship("TestQuestion", back_populates="test", order_by="TestQuestion.order_index")


class TestQuestion(Base):
	__tablename__ = "test_questions"
	__test__ = False
	id = Column(String(32), primary_key=True, default=new_id)
	test_id = Column(String(32), ForeignKey("tests.id"), nullable=False, index=True)
	question_text = Column(Text, nullable=False)
	question_type = Column(Enum(QuestionType, name="question_type"), nullable=False)
	correct_answer = Column(Text, nullable=False)
	options = Column(Text, nullable=True)  # JSON array of option strings
	order_index = Column(Integer, nullable=False)

	test = relationship("Test", back_populates="questions")

	def option_list(self) -> list[str] | None:
		if not self.options:
			return None
		return [str(o) for o in json.loads(self.options)]


@event.listens_for(TestQuestion, "before_insert")
@event.listens_for(TestQuestion, "before_update")
def _check_correct_answer_in_options(mapper, connection, target: TestQuestion) -> None:
	options = target.option_list()
	if options and target.correct_answer not in options:
		raise ValueError(f"correct answer {target.correct_answer!r} is not one of the options")


class TestAssignment(Base):
	__tablename__ = "test_assignments"
	__test__ = False
	__table_args__ = (UniqueConstraint("test_id", "classroom_id", name="uq_assignment_test_classroom"),)
	id = Column(String(32), primary_key=True, default=new_id)
	test_id = Column(String(32), ForeignKey("tests.id"), nullable=False, index=True)
	classroom_id = Column(String(32), ForeignKey("classrooms.id"), nullable=False, index=True)
	due_date = Column(DateTime, nullable=True)
	assigned_at = Column(DateTime, default=utcnow, nullable=False)


class TestAttempt(Base):
	__tablename__ = "test_attempts"
	__test__ = False
	__table_args__ = (
		# At most one IN_PROGRESS attempt per (test, student)
		Index(
			"uq_attempt_in_progress",
			"test_id",
			"student_id",
			unique=True,
			sqlite_where=text("status = 'IN_PROGRESS'"),
			postgresql_where=text("status = 'IN_PROGRESS'"),
		),
	)
	id = Column(String(32), primary_key=True, default=new_id)
	test_id = Column(String(32), ForeignKey("tests.id"), nullable=False, index=True)
	student_id = Column(String(32), ForeignKey("students.id"), nullable=False, index=True)
	total_questions = Column(Integer, nullable=False)
	correct_answers = Column(Integer, nullable=True)
	score = Column(Integer, nullable=True)
	status = Column(Enum(AttemptStatus, name="attempt_status"), nullable=False, default=AttemptStatus.IN_PROGRESS)
	current_question_index = Column(Integer, nullable=False, default=0)
	started_at = Column(DateTime, default=utcnow, nullable=False)
	completed_at = Column(DateTime, nullable=True)

	test = relationship("Test")
	student = relationship("Student")
	answers = relationship("TestAnswer", back_populates="attempt", order_by="TestAnswer.answered_at")

	@property
	def is_terminal(self) -> bool:
		return self.status != AttemptStatus.IN_PROGRESS


class TestAnswer(Base):
	__tablename__ = "test_answers"
	__test__ = False
	__table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),)
	id = Column(String(32), primary_key=True, default=new_id)
	attempt_id = Column(String(32), ForeignKey("test_attempts.id"), nullable=False, index=True)
	question_id = Column(String(32), ForeignKey("test_questions.id"), nullable=False, index=True)
	answer = Column(Text, nullable=False)
	is_correct = Column(Boolean, nullable=True)  # filled in when the attempt is graded
	answered_at = Column(DateTime, default=utcnow, nullable=False)

	attempt = relationship("TestAttempt", back_populates="answers")
