import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .db import Base, engine, SessionLocal, ensure_schema
from .cleanup import expire_stale_attempts
from .errors import AttemptError
from .logging_config import configure_logging
from .settings import settings
from .routers import auth
from .routers import tests

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Vocabulary Tests API")
app.include_router(auth.router)
app.include_router(tests.router)


@app.exception_handler(AttemptError)
async def attempt_error_handler(request: Request, exc: AttemptError):
	return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
	details = [
		{"path": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
		for err in exc.errors()
	]
	return JSONResponse(
		status_code=400,
		content={"error": "validation_error", "message": "Invalid request data", "details": details},
	)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
	logger.exception("Unhandled error on %s %s", request.method, request.url.path)
	return JSONResponse(
		status_code=500,
		content={"error": "internal_error", "message": "An unexpected error occurred"},
	)


@app.get("/info")
def root():
	return {"status": "ok"}


_cleanup_task: Optional[asyncio.Task] = None


def _run_cleanup() -> None:
	db = SessionLocal()
	try:
		expire_stale_attempts(db, settings.stale_attempt_days)
	except Exception:
		db.rollback()
		logger.exception("Stale attempt cleanup failed")
	finally:
		db.close()


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(settings.cleanup_interval_seconds)
		await run_in_threadpool(_run_cleanup)


@app.on_event("startup")
async def startup_event():
	global _cleanup_task
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	ensure_schema()
	if settings.stale_attempt_days > 0:
		await run_in_threadpool(_run_cleanup)
		_cleanup_task = asyncio.create_task(_cleanup_watcher())


@app.on_event("shutdown")
async def shutdown_event():
	global _cleanup_task
	if _cleanup_task is not None:
		_cleanup_task.cancel()
		_cleanup_task = None
