from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

import httpx

from .api import ApiError
from .debounce import Debouncer

logger = logging.getLogger(__name__)

ANSWER_DEBOUNCE_SECONDS = 0.5
# Longer than the answer delay: navigation is bursty and progress is cheap to lose
PROGRESS_DEBOUNCE_SECONDS = 1.0

RESUME_NOTICE = "Test resumed - your previous answers and progress have been restored."


class UnansweredQuestionsError(Exception):
	"""Raised by ``submit`` when questions are blank and the gaps were not confirmed."""

	def __init__(self, question_ids: List[str]) -> None:
		count = len(question_ids)
		super().__init__(f"You have {count} unanswered question{'s' if count != 1 else ''}.")
		self.question_ids = question_ids


class AutosaveController:
	"""Client-side state for taking one test.

	Keeps the answers being edited and the current question, saves answers
	(per question) and progress in the background with separate debounce
	delays, and restores both when the server reports a resumed attempt.
	Use it as an async context manager so pending saves are cancelled when
	the session goes away.
	"""

	def __init__(self, api, test_id: str, student_id: str, *, answer_delay: float = ANSWER_DEBOUNCE_SECONDS, progress_delay: float = PROGRESS_DEBOUNCE_SECONDS) -> None:
		self.api = api
		self.test_id = test_id
		self.student_id = student_id
		self.answer_delay = answer_delay
		self.attempt: Optional[Dict[str, Any]] = None
		self.questions: List[Dict[str, Any]] = []
		self.answers: Dict[str, str] = {}
		self.current_index = 0
		self.resumed = False
		self.resume_notice: Optional[str] = None
		self.result: Optional[Dict[str, Any]] = None
		self._answer_savers: Dict[str, Debouncer] = {}
		self._progress_saver = Debouncer(progress_delay, self._save_progress)

	async def __aenter__(self) -> "AutosaveController":
		await self.open()
		return self

	async def __aexit__(self, *exc_info) -> None:
		self.close()

	@property
	def attempt_id(self) -> str:
		if self.attempt is None:
			raise RuntimeError("attempt not started; call open() first")
		return self.attempt["id"]

	@property
	def current_question(self) -> Optional[Dict[str, Any]]:
		if not self.questions:
			return None
		return self.questions[self.current_index]

	async def open(self) -> None:
		data = await self.api.start(self.test_id, self.student_id)
		self.attempt = data["attempt"]
		self.questions = sorted(data.get("questions") or [], key=lambda q: q["order_index"])
		self.resumed = bool(data.get("resumed"))
		if self.resumed:
			self.answers = {a["question_id"]: a["answer"] for a in self.attempt.get("answers") or []}
			saved = int(self.attempt.get("current_question_index") or 0)
			self.current_index = min(max(saved, 0), max(len(self.questions) - 1, 0))
			self.resume_notice = RESUME_NOTICE

	def close(self) -> None:
		for saver in self._answer_savers.values():
			saver.cancel()
		self._progress_saver.cancel()

	# Editing

	def set_answer(self, question_id: str, text: str) -> None:
		self.answers[question_id] = text
		saver = self._answer_savers.get(question_id)
		if saver is None:
			saver = self._answer_savers[question_id] = Debouncer(self.answer_delay, self._save_answer)
		saver(question_id, text)

	def next(self) -> int:
		if self.current_index < len(self.questions) - 1:
			self.current_index += 1
			self._progress_saver(self.current_index)
		return self.current_index

	def previous(self) -> int:
		if self.current_index > 0:
			self.current_index -= 1
			self._progress_saver(self.current_index)
		return self.current_index

	def unanswered(self) -> List[str]:
		return [q["id"] for q in self.questions if not (self.answers.get(q["id"]) or "").strip()]

	def jump_to_first_unanswered(self) -> int:
		ids = self.unanswered()
		if ids:
			self.current_index = next(i for i, q in enumerate(self.questions) if q["id"] == ids[0])
			self._progress_saver(self.current_index)
		return self.current_index

	async def flush(self) -> None:
		for saver in list(self._answer_savers.values()):
			await saver.flush()
		await self._progress_saver.flush()

	async def submit(self, *, confirm_unanswered: bool = False) -> Dict[str, Any]:
		"""Complete the attempt after saving everything still pending.

		Blank questions are graded as incorrect, so submitting with gaps needs
		``confirm_unanswered=True``.
		"""
		gaps = self.unanswered()
		if gaps and not confirm_unanswered:
			raise UnansweredQuestionsError(gaps)
		for saver in list(self._answer_savers.values()):
			await saver.flush()
		self._progress_saver.cancel()
		self.result = await self.api.complete(self.attempt_id)
		return self.result

	# Background saves

	async def _save_answer(self, question_id: str, text: str) -> None:
		try:
			await self.api.submit_answer(self.attempt_id, question_id, text)
		except (ApiError, httpx.HTTPError) as e:
			logger.warning("Auto-save of answer %s failed: %s", question_id, e)

	async def _save_progress(self, index: int) -> None:
		try:
			await self.api.update_progress(self.attempt_id, index)
		except (ApiError, httpx.HTTPError) as e:
			logger.warning("Saving progress failed: %s", e)
