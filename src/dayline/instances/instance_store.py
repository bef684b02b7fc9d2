# src/dayline/instances/instance_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any

from ..core.errors import StoreError
from .instance_models import (
    ActionableInstance,
    CoverageRequest,
    CoverageStatus,
    EntityKind,
    InstanceNote,
    InstanceStatus,
)

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class InstanceStore:
    """
    SQLite store for actionable instances, instance notes and coverage requests.

    Every instance row is scoped to its owning user; callers pass user_id explicitly
    and no query crosses users except the coverage handoff (respond_to_coverage).

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "instances.sqlite3", *, unique_instances: bool = True) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._unique_instances = bool(unique_instances)
        self._ensure_schema()
        try:
            total = self.count_instances()
        except Exception:
            total = -1
        logger.info("InstanceStore ready db=%s total=%s unique=%s", self._db_path, total, self._unique_instances)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS actionable_instances (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    entity_kind TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    assignee_override TEXT,
                    deferred_to TEXT,
                    completed_at REAL,
                    skipped_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(actionable_instances)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE actionable_instances ADD COLUMN {name} {decl}")
                logger.info("InstanceStore migration: added column %s", name)

            add_col("status", "TEXT NOT NULL DEFAULT 'pending'")
            add_col("assignee_override", "TEXT")
            add_col("deferred_to", "TEXT")
            add_col("completed_at", "REAL")
            add_col("skipped_at", "REAL")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_instances_user_date ON actionable_instances(user_id, date)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_instances_entity "
                "ON actionable_instances(entity_kind, entity_id)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_instances_deferred "
                "ON actionable_instances(user_id, status, deferred_to)"
            )

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS instance_notes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    instance_id INTEGER NOT NULL
                        REFERENCES actionable_instances(id) ON DELETE CASCADE,
                    user_id TEXT NOT NULL,
                    note TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_notes_instance ON instance_notes(instance_id)")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS coverage_requests (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    instance_id INTEGER NOT NULL
                        REFERENCES actionable_instances(id) ON DELETE CASCADE,
                    requested_by TEXT NOT NULL,
                    covered_by TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    requested_at REAL NOT NULL,
                    responded_at REAL
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_coverage_instance ON coverage_requests(instance_id)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_coverage_requester ON coverage_requests(requested_by, status)"
            )

            conn.commit()

            if self._unique_instances:
                try:
                    cur.execute(
                        "CREATE UNIQUE INDEX IF NOT EXISTS ux_instances_key "
                        "ON actionable_instances(user_id, entity_kind, entity_id, date)"
                    )
                    conn.commit()
                except sqlite3.IntegrityError:
                    # Legacy DB with duplicate rows: keep tolerating them.
                    conn.rollback()
                    logger.warning(
                        "InstanceStore: duplicate instances present, unique index not created db=%s",
                        self._db_path,
                    )
        finally:
            conn.close()

    @staticmethod
    def _date_to_str(day: date) -> str:
        if isinstance(day, datetime):
            day = day.date()
        return day.isoformat()

    @staticmethod
    def _dt_to_str(dt: datetime | None) -> str | None:
        # Keep the caller's offset (or lack of one); the stored date prefix is authoritative.
        return dt.isoformat() if dt is not None else None

    @staticmethod
    def _str_to_dt(s: str | None) -> datetime | None:
        if not s:
            return None
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            logger.warning("Unparseable deferred_to value %r; ignoring.", s)
            return None

    def _row_to_instance(self, row: sqlite3.Row) -> ActionableInstance:
        return ActionableInstance(
            id=int(row["id"]),
            user_id=str(row["user_id"]),
            entity_kind=EntityKind(row["entity_kind"]),
            entity_id=str(row["entity_id"]),
            date=date.fromisoformat(row["date"]),
            status=InstanceStatus.from_db(row["status"]),
            assignee_override=row["assignee_override"],
            deferred_to=self._str_to_dt(row["deferred_to"]),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            skipped_at=float(row["skipped_at"]) if row["skipped_at"] is not None else None,
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    @staticmethod
    def _row_to_note(row: sqlite3.Row) -> InstanceNote:
        return InstanceNote(
            id=int(row["id"]),
            instance_id=int(row["instance_id"]),
            user_id=str(row["user_id"]),
            note=str(row["note"] or ""),
            created_at=float(row["created_at"] or 0.0),
        )

    @staticmethod
    def _row_to_coverage(row: sqlite3.Row) -> CoverageRequest:
        return CoverageRequest(
            id=int(row["id"]),
            instance_id=int(row["instance_id"]),
            requested_by=str(row["requested_by"]),
            covered_by=row["covered_by"],
            status=CoverageStatus.from_db(row["status"]),
            requested_at=float(row["requested_at"] or 0.0),
            responded_at=float(row["responded_at"]) if row["responded_at"] is not None else None,
        )

    # ---- instances ----

    def count_instances(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM actionable_instances")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def get_instance(
        self, *, user_id: str, kind: EntityKind, entity_id: str, day: date
    ) -> ActionableInstance | None:
        """
        Return the instance for (user, kind, entity, date).

        If duplicates exist (no unique index), the most recently updated row wins.
        """
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM actionable_instances
                WHERE user_id = ?
                  AND entity_kind = ?
                  AND entity_id = ?
                  AND date = ?
                ORDER BY updated_at DESC, id DESC
                    LIMIT 1
                """,
                (user_id, kind.value, str(entity_id), self._date_to_str(day)),
            )
            row = cur.fetchone()
            return self._row_to_instance(row) if row else None
        finally:
            conn.close()

    def get_instance_by_id(self, instance_id: int, *, user_id: str) -> ActionableInstance | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM actionable_instances WHERE id = ? AND user_id = ?",
                (int(instance_id), user_id),
            )
            row = cur.fetchone()
            return self._row_to_instance(row) if row else None
        finally:
            conn.close()

    def insert_instance(
        self,
        *,
        user_id: str,
        kind: EntityKind,
        entity_id: str,
        day: date,
        status: InstanceStatus = InstanceStatus.PENDING,
    ) -> ActionableInstance:
        """Insert a new instance row. Raises sqlite3.IntegrityError on a unique-key clash."""
        if not user_id:
            raise ValueError("user_id is required")
        if not entity_id or not str(entity_id).strip():
            raise ValueError("entity_id is required")

        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO actionable_instances(
                    user_id, entity_kind, entity_id, date, status, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (user_id, kind.value, str(entity_id).strip(), self._date_to_str(day), status.value, now, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreError("SQLite did not return lastrowid for instance insert")
            cur.execute("SELECT * FROM actionable_instances WHERE id = ?", (int(rowid),))
            row = cur.fetchone()
            if row is None:
                raise StoreError(f"Inserted instance id={rowid} not readable")
            instance = self._row_to_instance(row)
            logger.debug(
                "Instance added id=%s user=%s kind=%s entity=%s date=%s",
                instance.id,
                user_id,
                kind.value,
                instance.entity_id,
                instance.date,
            )
            return instance
        finally:
            conn.close()

    def get_or_create_instance(
        self, *, user_id: str, kind: EntityKind, entity_id: str, day: date
    ) -> ActionableInstance:
        existing = self.get_instance(user_id=user_id, kind=kind, entity_id=entity_id, day=day)
        if existing is not None:
            return existing

        try:
            return self.insert_instance(user_id=user_id, kind=kind, entity_id=entity_id, day=day)
        except sqlite3.IntegrityError:
            # Lost a get-or-create race against another session: read the winner.
            logger.debug("get_or_create race for %s/%s on %s; re-reading", kind.value, entity_id, day)
            winner = self.get_instance(user_id=user_id, kind=kind, entity_id=entity_id, day=day)
            if winner is None:
                raise StoreError(f"Instance {kind.value}/{entity_id} on {day} vanished after conflict")
            return winner

    def list_instances_for_date(self, *, user_id: str, day: date) -> list[ActionableInstance]:
        """
        Instances dated `day`, plus instances deferred TO `day` from another date.

        The deferred-to date is compared on the stored text, so it is read back
        in the same offset it was written with.
        """
        day_s = self._date_to_str(day)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM actionable_instances
                WHERE user_id = ?
                  AND (
                    date = ?
                        OR (status = 'deferred' AND substr(deferred_to, 1, 10) = ?)
                    )
                ORDER BY date ASC, id ASC
                """,
                (user_id, day_s, day_s),
            )
            return [self._row_to_instance(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_instances_in_window(self, *, user_id: str, start: date, end: date) -> list[ActionableInstance]:
        """All of the user's instances dated within [start, end] (inclusive)."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM actionable_instances
                WHERE user_id = ?
                  AND date >= ?
                  AND date <= ?
                ORDER BY date ASC, updated_at ASC, id ASC
                """,
                (user_id, self._date_to_str(start), self._date_to_str(end)),
            )
            return [self._row_to_instance(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def update_instance(
        self,
        instance_id: int,
        *,
        user_id: str,
        status: InstanceStatus | None = None,
        deferred_to: datetime | None = _UNSET,
        completed_at: float | None = _UNSET,
        skipped_at: float | None = _UNSET,
        assignee_override: str | None = _UNSET,
    ) -> bool:
        """
        Update selected fields of one of the user's instances.

        Nullable fields use a sentinel default so that None means "clear".
        Returns True if a row was updated.
        """
        fields: list[str] = []
        params: list[Any] = []

        if status is not None:
            fields.append("status = ?")
            params.append(status.value)

        if deferred_to is not _UNSET:
            fields.append("deferred_to = ?")
            params.append(self._dt_to_str(deferred_to))

        if completed_at is not _UNSET:
            fields.append("completed_at = ?")
            params.append(float(completed_at) if completed_at is not None else None)

        if skipped_at is not _UNSET:
            fields.append("skipped_at = ?")
            params.append(float(skipped_at) if skipped_at is not None else None)

        if assignee_override is not _UNSET:
            fields.append("assignee_override = ?")
            params.append(assignee_override)

        if not fields:
            return False

        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(int(instance_id))
        params.append(user_id)

        sql = f"UPDATE actionable_instances SET {', '.join(fields)} WHERE id = ? AND user_id = ?"

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    # ---- notes ----

    def add_note(self, *, instance_id: int, user_id: str, note: str) -> InstanceNote:
        text = (note or "").strip()
        if not text:
            raise ValueError("note text is required")

        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO instance_notes(instance_id, user_id, note, created_at) VALUES (?, ?, ?, ?)",
                (int(instance_id), user_id, text, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreError("SQLite did not return lastrowid for note insert")
            logger.debug("Note added id=%s instance=%s user=%s", rowid, instance_id, user_id)
            return InstanceNote(id=int(rowid), instance_id=int(instance_id), user_id=user_id, note=text, created_at=now)
        finally:
            conn.close()

    def list_notes(self, instance_id: int) -> list[InstanceNote]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM instance_notes
                WHERE instance_id = ?
                ORDER BY created_at ASC, id ASC
                """,
                (int(instance_id),),
            )
            return [self._row_to_note(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def delete_note(self, note_id: int, *, user_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM instance_notes WHERE id = ? AND user_id = ?", (int(note_id), user_id))
            conn.commit()
        finally:
            conn.close()

    # ---- coverage requests ----

    def add_coverage_request(self, *, instance_id: int, requested_by: str) -> CoverageRequest:
        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO coverage_requests(instance_id, requested_by, status, requested_at)
                VALUES (?, ?, 'pending', ?)
                """,
                (int(instance_id), requested_by, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreError("SQLite did not return lastrowid for coverage insert")
            logger.debug("Coverage requested id=%s instance=%s by=%s", rowid, instance_id, requested_by)
            return CoverageRequest(
                id=int(rowid),
                instance_id=int(instance_id),
                requested_by=requested_by,
                covered_by=None,
                status=CoverageStatus.PENDING,
                requested_at=now,
            )
        finally:
            conn.close()

    def list_coverage_requests(self, instance_id: int) -> list[CoverageRequest]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM coverage_requests
                WHERE instance_id = ?
                ORDER BY requested_at DESC, id DESC
                """,
                (int(instance_id),),
            )
            return [self._row_to_coverage(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def respond_to_coverage(
        self, request_id: int, *, responder: str, accept: bool, now_ts: float | None = None
    ) -> bool:
        """
        Answer a coverage request in one transaction.

        accept  -> status=accepted, covered_by=responder, instance assignee_override=responder
        decline -> status=declined, covered_by=NULL

        Returns False if the request does not exist.
        """
        if now_ts is None:
            now_ts = time.time()

        status = CoverageStatus.ACCEPTED if accept else CoverageStatus.DECLINED
        covered_by = responder if accept else None

        conn = self._get_conn()
        try:
            with conn:
                cur = conn.execute(
                    """
                    UPDATE coverage_requests
                    SET status = ?,
                        covered_by = ?,
                        responded_at = ?
                    WHERE id = ?
                    """,
                    (status.value, covered_by, float(now_ts), int(request_id)),
                )
                if cur.rowcount != 1:
                    return False

                if accept:
                    conn.execute(
                        """
                        UPDATE actionable_instances
                        SET assignee_override = ?,
                            updated_at = ?
                        WHERE id = (SELECT instance_id FROM coverage_requests WHERE id = ?)
                        """,
                        (responder, float(now_ts), int(request_id)),
                    )
            logger.info("Coverage request %s -> %s by %s", request_id, status.value, responder)
            return True
        finally:
            conn.close()
