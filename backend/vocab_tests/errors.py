"""Errors raised by the attempt lifecycle.

Each error knows the HTTP status and machine-readable kind it is reported
with; the translation to a response happens once, in ``main``.
"""

from __future__ import annotations


class AttemptError(Exception):
	status_code = 500
	kind = "internal_error"

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message

	def to_dict(self) -> dict:
		return {"error": self.kind, "message": self.message}


class NotFoundError(AttemptError):
	status_code = 404
	kind = "not_found"


class ForbiddenError(AttemptError):
	status_code = 403
	kind = "forbidden"

	def __init__(self, message: str = "Unauthorized") -> None:
		super().__init__(message)


class ConflictError(AttemptError):
	status_code = 409
	kind = "conflict"


class ValidationError(AttemptError):
	status_code = 400
	kind = "validation_error"
