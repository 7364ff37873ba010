from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .errors import PersistenceUnavailable
from .results import Result
from .scoring import CategoryScore
from .session import AptitudeSession

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Seconds sqlite waits on a locked database before giving up. Kept short so a
# busy file lands the result in the pending queue instead of stalling a frame.
BUSY_TIMEOUT_S = 0.05


@dataclass(frozen=True, slots=True)
class Identity:
    """Opaque "current user" handle supplied by the sign-in layer."""

    user_id: str
    verified: bool = False


class HistoryStore(Protocol):
    def append(self, identity: Identity, result: Result) -> None: ...
    def load_history(self, identity: Identity) -> list[Result]: ...


class InMemoryHistoryStore:
    """Process-local store; also the fallback when nothing else is configured."""

    def __init__(self) -> None:
        self._rows: dict[str, list[Result]] = {}

    def append(self, identity: Identity, result: Result) -> None:
        rows = self._rows.setdefault(identity.user_id, [])
        if any(r.id == result.id for r in rows):
            return
        rows.append(result)

    def load_history(self, identity: Identity) -> list[Result]:
        return list(self._rows.get(identity.user_id, []))


def open_db(path: Path, *, timeout_s: float = BUSY_TIMEOUT_S) -> sqlite3.Connection:
    conn = sqlite3.connect(path, timeout=timeout_s)
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS result (
                seq INTEGER PRIMARY KEY,
                id TEXT NOT NULL UNIQUE,
                user_id TEXT NOT NULL,
                started_at_utc TEXT NOT NULL,
                completed_at_utc TEXT NOT NULL,
                score INTEGER NOT NULL,
                total_questions INTEGER NOT NULL,
                percentage INTEGER NOT NULL,
                time_taken_s INTEGER NOT NULL,
                auto_submitted INTEGER NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS category_score (
                result_seq INTEGER NOT NULL REFERENCES result(seq) ON DELETE CASCADE,
                category TEXT NOT NULL,
                correct INTEGER NOT NULL,
                total INTEGER NOT NULL,
                PRIMARY KEY (result_seq, category)
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS answer (
                result_seq INTEGER NOT NULL REFERENCES result(seq) ON DELETE CASCADE,
                question_id TEXT NOT NULL,
                option_index INTEGER NOT NULL,
                PRIMARY KEY (result_seq, question_id)
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_result_user_seq ON result(user_id, seq);")
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class SqliteHistoryStore:
    """Append-only result history in a local sqlite file.

    Appends are idempotent on result id. Every sqlite or filesystem failure
    surfaces as ``PersistenceUnavailable``.
    """

    def __init__(self, path: Path, *, timeout_s: float = BUSY_TIMEOUT_S) -> None:
        self._path = Path(path)
        self._timeout_s = float(timeout_s)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, identity: Identity, result: Result) -> None:
        try:
            conn = self._connect()
            try:
                _insert_result(conn=conn, user_id=identity.user_id, result=result)
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceUnavailable(f"could not save result {result.id}: {e}") from e

    def load_history(self, identity: Identity) -> list[Result]:
        try:
            conn = self._connect()
            try:
                return _select_results(conn=conn, user_id=identity.user_id)
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceUnavailable(f"could not load history: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        return open_db(self._path, timeout_s=self._timeout_s)


def _insert_result(*, conn: sqlite3.Connection, user_id: str, result: Result) -> None:
    with conn:
        cur = conn.execute(
            """
            INSERT OR IGNORE INTO result(
                id, user_id, started_at_utc, completed_at_utc,
                score, total_questions, percentage, time_taken_s, auto_submitted
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                result.id,
                user_id,
                result.started_at,
                result.completed_at,
                int(result.score),
                int(result.total_questions),
                int(result.percentage),
                int(result.time_taken_s),
                1 if result.auto_submitted else 0,
            ),
        )
        if cur.rowcount == 0:
            # Already stored.
            return
        seq = int(cur.lastrowid)

        for category, cs in result.category_scores.items():
            conn.execute(
                "INSERT INTO category_score(result_seq, category, correct, total) VALUES (?, ?, ?, ?)",
                (seq, category, int(cs.correct), int(cs.total)),
            )
        for question_id, option_index in result.answers.items():
            conn.execute(
                "INSERT INTO answer(result_seq, question_id, option_index) VALUES (?, ?, ?)",
                (seq, question_id, int(option_index)),
            )


def _select_results(*, conn: sqlite3.Connection, user_id: str) -> list[Result]:
    rows = conn.execute(
        """
        SELECT seq, id, started_at_utc, completed_at_utc, score, total_questions,
               percentage, time_taken_s, auto_submitted
        FROM result WHERE user_id = ? ORDER BY seq
        """,
        (user_id,),
    ).fetchall()

    out: list[Result] = []
    for seq, rid, started, completed, score, total, pct, taken, auto in rows:
        scores = {
            category: CategoryScore(correct=int(correct), total=int(cat_total))
            for category, correct, cat_total in conn.execute(
                "SELECT category, correct, total FROM category_score WHERE result_seq = ? ORDER BY rowid",
                (seq,),
            )
        }
        answers = {
            qid: int(opt)
            for qid, opt in conn.execute(
                "SELECT question_id, option_index FROM answer WHERE result_seq = ? ORDER BY rowid",
                (seq,),
            )
        }
        out.append(
            Result(
                id=str(rid),
                completed_at=str(completed),
                started_at=str(started),
                score=int(score),
                total_questions=int(total),
                percentage=int(pct),
                time_taken_s=int(taken),
                auto_submitted=bool(auto),
                category_scores=scores,
                answers=answers,
            )
        )
    return out


class HistoryRecorder:
    """Bridges session results to a history store without ever blocking submit.

    ``record`` only queues: it runs inside submit (and, on timer expiry, under
    the session lock), so it never touches the store. The host loop flushes
    the queue with ``retry_pending`` (see ``Simulator.pump``), and ``load``
    flushes before reading. Failed writes stay queued in order. A result id is
    written at most once.
    """

    def __init__(self, store: HistoryStore, identity: Identity | None) -> None:
        if identity is None or not identity.user_id:
            raise ValueError("history operations require a resolved identity")
        self._store = store
        self._identity = identity
        self._lock = threading.RLock()
        self._history: list[Result] = []
        self._known: set[str] = set()
        self._pending: list[Result] = []
        self._saved: set[str] = set()

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def attach(self, session: AptitudeSession) -> None:
        session.add_result_listener(self.record)

    def history(self) -> list[Result]:
        with self._lock:
            return list(self._history)

    def is_saved(self, result_id: str) -> bool:
        return result_id in self._saved

    def record(self, result: Result) -> None:
        with self._lock:
            if result.id in self._known:
                return
            self._known.add(result.id)
            self._history.append(result)
            self._pending.append(result)

    def retry_pending(self) -> int:
        """Flush queued results in order; stop at the first failure."""

        flushed = 0
        with self._lock:
            while self._pending:
                result = self._pending[0]
                try:
                    self._store.append(self._identity, result)
                except PersistenceUnavailable as e:
                    logger.warning("history unavailable, %d result(s) pending: %s", len(self._pending), e)
                    break
                self._pending.pop(0)
                self._saved.add(result.id)
                flushed += 1
        if flushed:
            logger.info("saved %d result(s) to history", flushed)
        return flushed

    def load(self) -> list[Result]:
        """Reload stored history, keeping unsaved results from this run."""

        self.retry_pending()
        try:
            stored = self._store.load_history(self._identity)
        except PersistenceUnavailable as e:
            logger.warning("could not load history, using in-memory results: %s", e)
            return self.history()

        with self._lock:
            self._history = _merge(stored, self._history)
            self._known = {r.id for r in self._history}
            self._saved.update(r.id for r in stored)
            return list(self._history)


def _merge(stored: Iterable[Result], local: Iterable[Result]) -> list[Result]:
    merged = list(stored)
    seen = {r.id for r in merged}
    for r in local:
        if r.id not in seen:
            merged.append(r)
            seen.add(r.id)
    return merged
