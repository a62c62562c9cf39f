from __future__ import annotations
import httpx
from typing import Any, Dict, List, Optional, Tuple


class ApiError(Exception):
	def __init__(self, status_code: int, kind: str, message: str) -> None:
		super().__init__(f"{status_code} {kind}: {message}")
		self.status_code = status_code
		self.kind = kind
		self.message = message


class AttemptsApi:
	"""Thin async client for the ``/tests/attempts`` endpoints."""

	def __init__(self, base_url: str, token: str, *, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 30) -> None:
		self._client = httpx.AsyncClient(
			base_url=base_url,
			headers={"Authorization": f"Bearer {token}"},
			timeout=timeout,
			transport=transport,
		)

	async def aclose(self) -> None:
		await self._client.aclose()

	async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
		resp = await self._client.request(method, path, json=json)
		if resp.is_success:
			return resp.json() if resp.content else {}
		try:
			body = resp.json()
		except ValueError:
			body = {}
		raise ApiError(resp.status_code, str(body.get("error", "error")), str(body.get("message") or body.get("detail") or resp.reason_phrase))

	async def start(self, test_id: str, student_id: str) -> Dict[str, Any]:
		return await self._request("POST", "/tests/attempts/start", {"test_id": test_id, "student_id": student_id})

	async def submit_answer(self, attempt_id: str, question_id: str, answer: str) -> Dict[str, Any]:
		data = await self._request("POST", f"/tests/attempts/{attempt_id}/answer", {"question_id": question_id, "answer": answer})
		return data["answer"]

	async def update_progress(self, attempt_id: str, question_index: int) -> None:
		await self._request("PUT", f"/tests/attempts/{attempt_id}/progress", {"question_index": question_index})

	async def complete(self, attempt_id: str) -> Dict[str, Any]:
		data = await self._request("POST", f"/tests/attempts/{attempt_id}/complete")
		return data["attempt"]

	async def submit_all(self, attempt_id: str, answers: List[Tuple[str, str]]) -> Dict[str, Any]:
		payload = {"answers": [{"question_id": qid, "answer": text} for qid, text in answers]}
		data = await self._request("POST", f"/tests/attempts/{attempt_id}/submit", payload)
		return data["attempt"]

	async def review(self, attempt_id: str) -> Dict[str, Any]:
		return await self._request("GET", f"/tests/attempts/{attempt_id}/review")
