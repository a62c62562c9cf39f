from __future__ import annotations

import json
import os
from dataclasses import dataclass

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from vocab_tests.db import Base, get_db, make_engine
from vocab_tests.main import app
from vocab_tests.models import (
	Classroom,
	QuestionType,
	Student,
	StudentEnrollment,
	Test,
	TestAssignment,
	TestQuestion,
	User,
	UserRole,
	VocabularySheet,
)
from vocab_tests.routers.auth import token_for


@pytest.fixture
def engine():
	eng = make_engine("sqlite://")
	Base.metadata.create_all(bind=eng)
	yield eng
	eng.dispose()


@pytest.fixture
def session_factory(engine):
	return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture
def db(engine):
	# Fixture objects stay readable after commits made while seeding
	session = sessionmaker(autoflush=False, bind=engine, future=True, expire_on_commit=False)()
	yield session
	session.close()


@pytest.fixture
def client(session_factory):
	def _get_db():
		session = session_factory()
		try:
			yield session
		finally:
			session.close()

	app.dependency_overrides[get_db] = _get_db
	yield TestClient(app)
	app.dependency_overrides.clear()


@dataclass
class World:
	teacher: User
	other_teacher: User
	student_user: User
	other_student_user: User
	student: Student
	other_student: Student
	classroom: Classroom
	test: Test
	questions: list

	def headers(self, user: User) -> dict:
		return {"Authorization": f"Bearer {token_for(user)}"}


def add_user(db, email: str, role: UserRole) -> User:
	user = User(email=email, name=email.split("@")[0], password_hash="not-a-real-hash", role=role)
	db.add(user)
	db.flush()
	return user


def add_test(db, sheet: VocabularySheet, answers: list[str], variant: str = "A") -> Test:
	test = Test(name=f"{sheet.name} - Variant {variant}", variant=variant, sheet_id=sheet.id)
	db.add(test)
	db.flush()
	for idx, correct in enumerate(answers):
		db.add(TestQuestion(
			test_id=test.id,
			question_text=f"Spell the word #{idx + 1}",
			question_type=QuestionType.SPELLING,
			correct_answer=correct,
			order_index=idx,
		))
	db.flush()
	return test


def make_world(db, answers: list[str]) -> World:
	teacher = add_user(db, "teacher@example.com", UserRole.TEACHER)
	other_teacher = add_user(db, "other-teacher@example.com", UserRole.TEACHER)
	student_user = add_user(db, "student@example.com", UserRole.STUDENT)
	other_student_user = add_user(db, "other-student@example.com", UserRole.STUDENT)

	student = Student(name="Sam", user_id=student_user.id)
	other_student = Student(name="Alex", user_id=other_student_user.id)
	db.add_all([student, other_student])
	db.flush()

	classroom = Classroom(name="Grade 3", teacher_id=teacher.id)
	db.add(classroom)
	db.flush()
	db.add_all([
		StudentEnrollment(student_id=student.id, classroom_id=classroom.id),
		StudentEnrollment(student_id=other_student.id, classroom_id=classroom.id),
	])

	sheet = VocabularySheet(name="Week 1", teacher_id=teacher.id)
	db.add(sheet)
	db.flush()
	test = add_test(db, sheet, answers)
	db.add(TestAssignment(test_id=test.id, classroom_id=classroom.id))
	db.commit()
	return World(
		teacher=teacher,
		other_teacher=other_teacher,
		student_user=student_user,
		other_student_user=other_student_user,
		student=student,
		other_student=other_student,
		classroom=classroom,
		test=test,
		questions=sorted(test.questions, key=lambda q: q.order_index),
	)


@pytest.fixture
def world(db) -> World:
	return make_world(db, ["hello", "world", "apple", "banana"])


@pytest.fixture
def single_question_world(db) -> World:
	return make_world(db, ["hello"])


def multiple_choice_question(test_id: str, correct: str, options: list[str]) -> TestQuestion:
	return TestQuestion(
		test_id=test_id,
		question_text="Pick the right meaning",
		question_type=QuestionType.MULTIPLE_CHOICE,
		correct_answer=correct,
		options=json.dumps(options),
		order_index=99,
	)
