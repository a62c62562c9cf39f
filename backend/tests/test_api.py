from __future__ import annotations

from fastapi.testclient import TestClient

from vocab_tests.main import app
from vocab_tests.models import AttemptStatus, TestAttempt, User, UserRole
from vocab_tests.routers import tests as tests_router
from vocab_tests.routers.auth import hash_password


def _start(client, world, user=None):
	user = user or world.student_user
	return client.post(
		"/tests/attempts/start",
		json={"test_id": world.test.id, "student_id": world.student.id},
		headers=world.headers(user),
	)


def test_requires_bearer_token(client, world):
	resp = client.post("/tests/attempts/start", json={"test_id": world.test.id, "student_id": world.student.id})
	assert resp.status_code == 401

	resp = client.get("/tests/attempts/whatever", headers={"Authorization": "Bearer not-a-jwt"})
	assert resp.status_code == 401


def test_login_issues_usable_token(client, db):
	user = User(email="teacher@school.org", name="T", password_hash=hash_password("s3cret"), role=UserRole.TEACHER)
	db.add(user)
	db.commit()

	bad = client.post("/auth/token", data={"username": "teacher@school.org", "password": "nope"})
	assert bad.status_code == 401

	resp = client.post("/auth/token", data={"username": "teacher@school.org", "password": "s3cret"})
	assert resp.status_code == 200
	token = resp.json()["access_token"]

	me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
	assert me.status_code == 200
	assert me.json()["id"] == user.id


def test_start_then_resume(client, world, db):
	first = _start(client, world)
	assert first.status_code == 201
	body = first.json()
	assert body["resumed"] is False
	assert body["attempt"]["status"] == "IN_PROGRESS"
	assert len(body["questions"]) == 4
	assert all("correct_answer" not in q for q in body["questions"])

	second = _start(client, world)
	assert second.status_code == 200
	assert second.json()["resumed"] is True
	assert second.json()["attempt"]["id"] == body["attempt"]["id"]
	assert db.query(TestAttempt).filter(TestAttempt.status == AttemptStatus.IN_PROGRESS).count() == 1


def test_resume_after_reload(client, world):
	attempt_id = _start(client, world).json()["attempt"]["id"]
	headers = world.headers(world.student_user)
	q1 = world.questions[0]

	resp = client.post(f"/tests/attempts/{attempt_id}/answer", json={"question_id": q1.id, "answer": "hello"}, headers=headers)
	assert resp.status_code == 200
	resp = client.put(f"/tests/attempts/{attempt_id}/progress", json={"question_index": 1}, headers=headers)
	assert resp.status_code == 200
	assert resp.json() == {}

	resumed = _start(client, world).json()

	assert resumed["resumed"] is True
	assert resumed["attempt"]["current_question_index"] == 1
	assert [(a["question_id"], a["answer"]) for a in resumed["attempt"]["answers"]] == [(q1.id, "hello")]


def test_end_to_end_single_question(client, single_question_world):
	world = single_question_world
	headers = world.headers(world.student_user)
	attempt_id = _start(client, world).json()["attempt"]["id"]

	client.post(f"/tests/attempts/{attempt_id}/answer", json={"question_id": world.questions[0].id, "answer": "HELLO"}, headers=headers)
	resp = client.post(f"/tests/attempts/{attempt_id}/complete", headers=headers)

	assert resp.status_code == 200
	attempt = resp.json()["attempt"]
	assert attempt["correct_answers"] == 1
	assert attempt["score"] == 100
	assert attempt["status"] == "SUBMITTED"

	again = client.post(f"/tests/attempts/{attempt_id}/complete", headers=headers)
	assert again.status_code == 200
	assert again.json()["attempt"]["score"] == 100
	assert again.json()["attempt"]["completed_at"] == attempt["completed_at"]


def test_answer_after_completion_is_conflict(client, world):
	headers = world.headers(world.student_user)
	attempt_id = _start(client, world).json()["attempt"]["id"]
	client.post(f"/tests/attempts/{attempt_id}/complete", headers=headers)

	resp = client.post(f"/tests/attempts/{attempt_id}/answer", json={"question_id": world.questions[0].id, "answer": "late"}, headers=headers)

	assert resp.status_code == 409
	assert resp.json()["error"] == "conflict"


def test_progress_out_of_range_is_validation_error(client, world):
	headers = world.headers(world.student_user)
	attempt_id = _start(client, world).json()["attempt"]["id"]

	resp = client.put(f"/tests/attempts/{attempt_id}/progress", json={"question_index": 9}, headers=headers)

	assert resp.status_code == 400
	assert resp.json()["error"] == "validation_error"


def test_malformed_body_is_validation_error(client, world):
	headers = world.headers(world.student_user)
	attempt_id = _start(client, world).json()["attempt"]["id"]

	resp = client.post(f"/tests/attempts/{attempt_id}/answer", json={"answer": "no question id"}, headers=headers)

	assert resp.status_code == 400
	body = resp.json()
	assert body["error"] == "validation_error"
	assert any("question_id" in d["path"] for d in body["details"])


def test_unknown_attempt_is_not_found(client, world):
	resp = client.get("/tests/attempts/does-not-exist", headers=world.headers(world.student_user))
	assert resp.status_code == 404
	assert resp.json() == {"error": "not_found", "message": "Attempt not found"}


def test_review_access_rules(client, world):
	headers = world.headers(world.student_user)
	attempt_id = _start(client, world).json()["attempt"]["id"]
	client.post(f"/tests/attempts/{attempt_id}/answer", json={"question_id": world.questions[0].id, "answer": " Hello "}, headers=headers)
	client.post(f"/tests/attempts/{attempt_id}/complete", headers=headers)

	teacher = client.get(f"/tests/attempts/{attempt_id}/review", headers=world.headers(world.teacher))
	assert teacher.status_code == 200
	questions = teacher.json()["questions"]
	assert [q["is_correct"] for q in questions] == [True, False, False, False]
	assert questions[0]["correct_answer"] == "hello"
	assert questions[0]["student_answer"] == " Hello "
	assert questions[1]["student_answer"] is None

	own = client.get(f"/tests/attempts/{attempt_id}/review", headers=headers)
	assert own.status_code == 200

	for outsider in (world.other_teacher, world.other_student_user):
		resp = client.get(f"/tests/attempts/{attempt_id}/review", headers=world.headers(outsider))
		assert resp.status_code == 403
		assert resp.json()["error"] == "forbidden"


def test_get_attempt_with_student_query(client, world):
	headers = world.headers(world.student_user)
	attempt_id = _start(client, world).json()["attempt"]["id"]

	ok = client.get(f"/tests/attempts/{attempt_id}", params={"student_id": world.student.id}, headers=headers)
	assert ok.status_code == 200
	assert ok.json()["attempt"]["id"] == attempt_id

	wrong = client.get(f"/tests/attempts/{attempt_id}", params={"student_id": world.other_student.id}, headers=headers)
	assert wrong.status_code == 403


def test_submit_all_answers(client, world):
	headers = world.headers(world.student_user)
	attempt_id = _start(client, world).json()["attempt"]["id"]
	answers = [{"question_id": q.id, "answer": text} for q, text in zip(world.questions, ["hello", "world", "pear", ""])]

	resp = client.post(f"/tests/attempts/{attempt_id}/submit", json={"answers": answers}, headers=headers)

	assert resp.status_code == 200
	attempt = resp.json()["attempt"]
	assert attempt["status"] == "SUBMITTED"
	assert (attempt["correct_answers"], attempt["score"]) == (2, 50)
	assert len(attempt["answers"]) == 4


def test_student_attempt_history(client, world):
	headers = world.headers(world.student_user)
	attempt_id = _start(client, world).json()["attempt"]["id"]

	own = client.get(f"/tests/students/{world.student.id}/attempts", headers=headers)
	assert own.status_code == 200
	assert [a["id"] for a in own.json()["attempts"]] == [attempt_id]

	denied = client.get(f"/tests/students/{world.student.id}/attempts", headers=world.headers(world.other_student_user))
	assert denied.status_code == 403


def test_get_test_hides_correct_answers(client, world):
	resp = client.get(f"/tests/{world.test.id}", headers=world.headers(world.student_user))

	assert resp.status_code == 200
	body = resp.json()
	assert [q["order_index"] for q in body["questions"]] == [0, 1, 2, 3]
	assert all("correct_answer" not in q for q in body["questions"])

	assert client.get(f"/tests/{world.test.id}", headers=world.headers(world.other_teacher)).status_code == 403
	assert client.get("/tests/nope", headers=world.headers(world.teacher)).status_code == 404


def test_unexpected_errors_are_generic_500(client, world, monkeypatch):
	def boom(self, *args, **kwargs):
		raise RuntimeError("database password is hunter2")

	monkeypatch.setattr(tests_router.AttemptService, "start_or_resume", boom)
	quiet = TestClient(app, raise_server_exceptions=False)

	resp = quiet.post(
		"/tests/attempts/start",
		json={"test_id": world.test.id, "student_id": world.student.id},
		headers=world.headers(world.student_user),
	)

	assert resp.status_code == 500
	assert resp.json() == {"error": "internal_error", "message": "An unexpected error occurred"}
	assert "hunter2" not in resp.text
