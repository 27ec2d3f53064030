"""Store access for planpilot: engine, schema, file lock and transaction scope.

Every command invocation is a fresh process. Coordination between concurrent
invocations relies on two layers:

- an advisory ``fcntl`` lock on ``planpilot.lock`` held for the whole command;
- ``BEGIN IMMEDIATE`` transactions, so a read-modify-write sequence takes the
  SQLite write lock before its first read.
"""

from __future__ import annotations

import fcntl
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy import event as sa_event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlmodel import Session as SqlSession
from sqlmodel import SQLModel

from planpilot import paths
from planpilot.constants import DEFAULT_BUSY_TIMEOUT_MS
from planpilot.core.db_models import ActivePlan, Goal, Plan, Step, utcnow
from planpilot.core.errors import NotFoundError, UnavailableError

_TABLES = [Plan.__table__, Step.__table__, Goal.__table__, ActivePlan.__table__]  # type: ignore[attr-defined]


def _create_sync_engine(db_path: Path, busy_timeout_ms: int) -> Engine:
    """Create a sync SQLAlchemy engine with SQLite PRAGMAs set at connect time."""
    engine = create_engine(f"sqlite:///{db_path}")

    @sa_event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _connection_record):  # type: ignore[no-untyped-def]
        # Let SQLAlchemy emit BEGIN itself (see _begin_immediate)
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode = WAL")  # noqa: S608
        cursor.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")  # noqa: S608
        cursor.execute("PRAGMA foreign_keys = ON")  # noqa: S608
        cursor.close()

    @sa_event.listens_for(engine, "begin")
    def _begin_immediate(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


class Db:
    """Planpilot store bound to one agent session.

    One instance serves one command invocation. Mutations go through
    `transaction()`, which commits on success and rolls back on any error.
    """

    def __init__(self, db_path: str | Path, session_id: str, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        """Initialize store handle.

        Args:
            db_path: Path to the SQLite database file.
            session_id: Opaque agent session token used for bindings and touches.
            busy_timeout_ms: SQLite busy timeout for lock contention.
        """
        self.db_path = Path(db_path)
        self.session_id = session_id
        self._busy_timeout_ms = busy_timeout_ms
        self._engine: Optional[Engine] = None
        self._session: Optional[SqlSession] = None
        self._depth = 0

    def initialize(self) -> None:
        """Open the database and create the schema if needed.

        Raises:
            UnavailableError: If the file or directory cannot be opened.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._engine = _create_sync_engine(self.db_path, self._busy_timeout_ms)
            SQLModel.metadata.create_all(self._engine, tables=_TABLES)
        except (OSError, OperationalError) as exc:
            raise UnavailableError(f"cannot open store {self.db_path}: {exc}") from exc

        self._session = SqlSession(self._engine, expire_on_commit=False)
        logger.debug("Store opened", db_path=str(self.db_path), session_id=self.session_id[:8])

    @property
    def session(self) -> SqlSession:
        if self._session is None:
            raise RuntimeError("Db not initialized. Call initialize() first.")
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    @contextmanager
    def transaction(self) -> Iterator[SqlSession]:
        """Run the enclosed block as one atomic unit.

        Nested use joins the outer transaction.
        """
        if self._depth:
            yield self.session
            return

        self._depth += 1
        try:
            yield self.session
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._depth -= 1

    def touch_plan(self, plan_id: int) -> Plan:
        """Stamp a plan with this session and the current time."""
        plan = self.session.get(Plan, plan_id)
        if plan is None:
            raise NotFoundError(f"plan id {plan_id}")
        plan.last_session_id = self.session_id
        plan.updated_at = utcnow()
        self.session.add(plan)
        return plan

    def touch_plans(self, plan_ids: list[int]) -> None:
        for plan_id in plan_ids:
            self.touch_plan(plan_id)


@contextmanager
def store_lock(path: Path) -> Iterator[None]:
    """Hold an exclusive advisory lock on `path` for the duration of the block."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = open(path, "a+", encoding="utf-8")
    except OSError as exc:
        raise UnavailableError(f"cannot open lock file {path}: {exc}") from exc

    with lock_file:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


@contextmanager
def open_db(claude_home: Path, session_id: str, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> Iterator[Db]:
    """Lock the workspace store, open it, and close it again on exit."""
    with store_lock(paths.lock_path(claude_home)):
        db = Db(paths.db_path(claude_home), session_id, busy_timeout_ms)
        db.initialize()
        try:
            yield db
        finally:
            db.close()
