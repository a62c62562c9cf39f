from __future__ import annotations
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./app.db"


def make_engine(url: str):
	if not url.startswith("sqlite"):
		return create_engine(url, future=True)
	kwargs = {"connect_args": {"check_same_thread": False}}
	# In-memory databases live in one connection; share it across threads
	if url in ("sqlite://", "sqlite:///:memory:"):
		kwargs["poolclass"] = StaticPool
	return create_engine(url, future=True, **kwargs)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema(bind=None) -> None:
	bind = bind or engine
	inspector = inspect(bind)
	tables = set(inspector.get_table_names())
	if "test_attempts" in tables:
		cols = {c["name"] for c in inspector.get_columns("test_attempts")}
		with bind.begin() as conn:
			if "current_question_index" not in cols:
				conn.exec_driver_sql("ALTER TABLE test_attempts ADD COLUMN current_question_index INTEGER DEFAULT 0 NOT NULL")
