from .api import ApiError, AttemptsApi
from .autosave import (
	ANSWER_DEBOUNCE_SECONDS,
	PROGRESS_DEBOUNCE_SECONDS,
	RESUME_NOTICE,
	AutosaveController,
	UnansweredQuestionsError,
)
from .debounce import Debouncer

__all__ = [
	"ANSWER_DEBOUNCE_SECONDS",
	"PROGRESS_DEBOUNCE_SECONDS",
	"RESUME_NOTICE",
	"ApiError",
	"AttemptsApi",
	"AutosaveController",
	"Debouncer",
	"UnansweredQuestionsError",
]
