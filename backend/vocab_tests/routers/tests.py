from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..attempts import AttemptService
from ..db import get_db
from ..models import AttemptStatus, QuestionType, TestAttempt, TestQuestion
from .auth import CurrentUser, get_current_user


router = APIRouter(prefix="/tests", tags=["tests"])


class AnswerOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	question_id: str
	answer: str
	is_correct: Optional[bool] = None
	answered_at: datetime


class AttemptOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	test_id: str
	student_id: str
	total_questions: int
	correct_answers: Optional[int] = None
	score: Optional[int] = None
	status: AttemptStatus
	current_question_index: int
	started_at: datetime
	completed_at: Optional[datetime] = None


class AttemptDetail(AttemptOut):
	answers: List[AnswerOut] = []


class QuestionOut(BaseModel):
	# Student-facing: never carries the correct answer
	id: str
	question_text: str
	question_type: QuestionType
	options: Optional[List[str]] = None
	order_index: int


class TestOut(BaseModel):
	id: str
	name: str
	variant: str
	questions: List[QuestionOut]


class StartRequest(BaseModel):
	test_id: str
	student_id: str


class StartResponse(BaseModel):
	attempt: AttemptDetail
	resumed: bool
	questions: List[QuestionOut]


class AttemptResponse(BaseModel):
	attempt: AttemptDetail


class AnswerRequest(BaseModel):
	question_id: str
	answer: str


class AnswerResponse(BaseModel):
	answer: AnswerOut


class ProgressRequest(BaseModel):
	question_index: int


class SubmitAllRequest(BaseModel):
	answers: List[AnswerRequest] = Field(default_factory=list)


class ReviewQuestion(QuestionOut):
	correct_answer: str
	student_answer: Optional[str] = None
	is_correct: bool


class ReviewResponse(BaseModel):
	attempt: AttemptOut
	questions: List[ReviewQuestion]


class AttemptListResponse(BaseModel):
	attempts: List[AttemptOut]


def _question_out(q: TestQuestion) -> QuestionOut:
	return QuestionOut(
		id=q.id,
		question_text=q.question_text,
		question_type=q.question_type,
		options=q.option_list(),
		order_index=q.order_index,
	)


def _attempt_detail(attempt: TestAttempt, answers=None) -> AttemptDetail:
	detail = AttemptDetail.model_validate(attempt)
	rows = attempt.answers if answers is None else answers
	detail.answers = [AnswerOut.model_validate(a) for a in rows]
	return detail


def get_service(db: Session = Depends(get_db)) -> AttemptService:
	return AttemptService(db)


@router.post("/attempts/start", response_model=StartResponse)
def start_attempt(
	req: StartRequest,
	response: Response,
	user: CurrentUser = Depends(get_current_user),
	service: AttemptService = Depends(get_service),
):
	result = service.start_or_resume(req.test_id, req.student_id, user.id)
	response.status_code = 200 if result.resumed else 201
	return StartResponse(
		attempt=_attempt_detail(result.attempt, result.answers),
		resumed=result.resumed,
		questions=[_question_out(q) for q in result.questions],
	)


@router.get("/attempts/{attempt_id}", response_model=AttemptResponse)
def get_attempt(
	attempt_id: str,
	student_id: Optional[str] = Query(default=None),
	user: CurrentUser = Depends(get_current_user),
	service: AttemptService = Depends(get_service),
):
	attempt = service.get_attempt(attempt_id, user.id, student_id=student_id)
	return AttemptResponse(attempt=_attempt_detail(attempt))


@router.post("/attempts/{attempt_id}/answer", response_model=AnswerResponse)
def submit_answer(
	attempt_id: str,
	req: AnswerRequest,
	user: CurrentUser = Depends(get_current_user),
	service: AttemptService = Depends(get_service),
):
	answer = service.submit_answer(attempt_id, req.question_id, req.answer, user.id)
	return AnswerResponse(answer=AnswerOut.model_validate(answer))


@router.put("/attempts/{attempt_id}/progress")
def update_progress(
	attempt_id: str,
	req: ProgressRequest,
	user: CurrentUser = Depends(get_current_user),
	service: AttemptService = Depends(get_service),
):
	service.update_progress(attempt_id, req.question_index, user.id)
	return {}


@router.post("/attempts/{attempt_id}/complete", response_model=AttemptResponse)
def complete_attempt(
	attempt_id: str,
	user: CurrentUser = Depends(get_current_user),
	service: AttemptService = Depends(get_service),
):
	attempt = service.complete(attempt_id, user.id)
	return AttemptResponse(attempt=_attempt_detail(attempt))


@router.post("/attempts/{attempt_id}/submit", response_model=AttemptResponse)
def submit_attempt(
	attempt_id: str,
	req: SubmitAllRequest,
	user: CurrentUser = Depends(get_current_user),
	service: AttemptService = Depends(get_service),
):
	pairs = [(a.question_id, a.answer) for a in req.answers]
	attempt = service.submit_all(attempt_id, pairs, user.id)
	return AttemptResponse(attempt=_attempt_detail(attempt))


@router.get("/attempts/{attempt_id}/review", response_model=ReviewResponse)
def review_attempt(
	attempt_id: str,
	user: CurrentUser = Depends(get_current_user),
	service: AttemptService = Depends(get_service),
):
	attempt, items = service.review(attempt_id, user.id)
	questions = []
	for item in items:
		base = _question_out(item.question)
		questions.append(ReviewQuestion(
			**base.model_dump(),
			correct_answer=item.question.correct_answer,
			student_answer=item.student_answer,
			is_correct=item.is_correct,
		))
	return ReviewResponse(attempt=AttemptOut.model_validate(attempt), questions=questions)


@router.get("/students/{student_id}/attempts", response_model=AttemptListResponse)
def list_student_attempts(
	student_id: str,
	user: CurrentUser = Depends(get_current_user),
	service: AttemptService = Depends(get_service),
):
	attempts = service.list_for_student(student_id, user.id)
	return AttemptListResponse(attempts=[AttemptOut.model_validate(a) for a in attempts])


@router.get("/{test_id}", response_model=TestOut)
def get_test(
	test_id: str,
	user: CurrentUser = Depends(get_current_user),
	service: AttemptService = Depends(get_service),
):
	test = service.get_test(test_id, user.id)
	return TestOut(
		id=test.id,
		name=test.name,
		variant=test.variant,
		questions=[_question_out(q) for q in sorted(test.questions, key=lambda q: q.order_index)],
	)
