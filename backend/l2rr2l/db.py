from __future__ import annotations
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./l2rr2l.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}


def enable_sqlite_foreign_keys(target: Engine) -> None:
	"""SQLite leaves ON DELETE CASCADE unenforced unless each connection opts in."""
	if target.dialect.name != "sqlite":
		return

	@event.listens_for(target, "connect")
	def _set_sqlite_pragma(dbapi_conn, connection_record):
		cursor = dbapi_conn.cursor()
		cursor.execute("PRAGMA foreign_keys=ON")
		cursor.close()


engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
enable_sqlite_foreign_keys(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Lessons columns that older dev databases may lack; (name, DDL type)
_LESSON_LATE_COLUMNS = (
	("interests", "TEXT"),
	("tags", "TEXT"),
	("learning_styles", "TEXT"),
	("is_published", "INTEGER DEFAULT 1 NOT NULL"),
)


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema(bind=None) -> None:
	bind = bind or engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "lessons" in tables:
		cols = {c["name"] for c in inspector.get_columns("lessons")}
		with bind.begin() as conn:
			for name, ddl in _LESSON_LATE_COLUMNS:
				if name not in cols:
					conn.exec_driver_sql(f"ALTER TABLE lessons ADD COLUMN {name} {ddl}")
	if "children" in tables:
		cols = {c["name"] for c in inspector.get_columns("children")}
		with bind.begin() as conn:
			if "learning_style" not in cols:
				conn.exec_driver_sql("ALTER TABLE children ADD COLUMN learning_style VARCHAR(32)")
			if "interests" not in cols:
				conn.exec_driver_sql("ALTER TABLE children ADD COLUMN interests TEXT")
