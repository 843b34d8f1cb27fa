"""
SQLite-based approval store for single-instance deployments.

Provides persistent storage of approval requests and their history, with the
compare-and-swap status guard enforced in SQL.
"""

import asyncio
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from ...core.errors import NotFound, StoreUnavailable
from ...models.approval import ApprovalFilter, ApprovalRequest, ApprovalStatus, RecordPatch
from .approval_store_base import ApprovalStoreBase
from .approvals import apply_patch


def _ts(value: datetime) -> str:
    # Fixed-width UTC text so ORDER BY and range comparisons work lexicographically
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SQLiteApprovalStore(ApprovalStoreBase):
    """
    SQLite-backed approval store with persistent storage.

    Features:
    - Persistent storage across application restarts
    - Indexed columns for scope/status/module/requested_at queries
    - Full request (including history) kept as a JSON document
    - Conditional updates inside an IMMEDIATE transaction

    Blocking sqlite3 calls run in a worker thread via ``asyncio.to_thread``.
    """

    def __init__(self, db_path: str = "approvals.db"):
        """
        Initialize store with database path.

        Args:
            db_path: Path to SQLite database file (default: approvals.db)
        """
        self.db_path = db_path
        self._init_database()

    def _init_database(self):
        """Create approvals table if it doesn't exist"""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS approval_requests (
                id TEXT PRIMARY KEY,
                scope TEXT,
                module TEXT NOT NULL,
                priority TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                requested_at TEXT NOT NULL,
                document TEXT NOT NULL,
                CHECK (status IN ('pending', 'approved', 'rejected', 'cancelled'))
            )
        """)

        # Create indexes for common queries
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_scope_status
            ON approval_requests(scope, status)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_requested_at
            ON approval_requests(requested_at)
        """)

        conn.commit()
        conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory and manual transactions"""
        conn = sqlite3.connect(self.db_path, isolation_level=None, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    async def _run(self, operation: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            logger.error(f"SQLite {operation} failed: {e}")
            raise StoreUnavailable(operation, detail=str(e)) from e

    # ---- sync implementations (run in worker thread) ----

    def _insert_sync(self, request: ApprovalRequest) -> None:
        conn = self._get_connection()
        try:
            conn.execute("""
                INSERT INTO approval_requests (id, scope, module, priority, status, requested_at, document)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                request.id,
                request.scope,
                request.module,
                request.priority,
                request.status,
                _ts(request.requested_at),
                request.model_dump_json(),
            ))
        finally:
            conn.close()

    def _get_sync(self, approval_id: str) -> Optional[ApprovalRequest]:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT document FROM approval_requests WHERE id = ?",
                (approval_id,)
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        return ApprovalRequest.model_validate_json(row["document"])

    def _select_sync(self, where: list[str], params: list) -> list[ApprovalRequest]:
        sql = "SELECT document FROM approval_requests"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY requested_at DESC"

        conn = self._get_connection()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()

        return [ApprovalRequest.model_validate_json(row["document"]) for row in rows]

    def _conditional_update_sync(
        self,
        approval_id: str,
        expected_status: str,
        patch: RecordPatch
    ) -> Optional[ApprovalRequest]:
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT status, document FROM approval_requests WHERE id = ?",
                (approval_id,)
            ).fetchone()

            if row is None:
                conn.execute("ROLLBACK")
                raise NotFound(approval_id)
            if row["status"] != expected_status:
                conn.execute("ROLLBACK")
                return None

            updated = apply_patch(ApprovalRequest.model_validate_json(row["document"]), patch)
            cursor = conn.execute("""
                UPDATE approval_requests
                SET status = ?,
                    document = ?
                WHERE id = ? AND status = ?
            """, (updated.status, updated.model_dump_json(), approval_id, expected_status))

            if cursor.rowcount == 0:
                conn.execute("ROLLBACK")
                return None

            conn.execute("COMMIT")
            return updated
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    # ---- ApprovalStoreBase ----

    async def insert(self, request: ApprovalRequest) -> ApprovalRequest:
        """Persist a newly submitted request"""
        await self._run("insert", self._insert_sync, request)
        return request.model_copy(deep=True)

    async def get(self, approval_id: str) -> Optional[ApprovalRequest]:
        """Get a request by ID"""
        return await self._run("get", self._get_sync, approval_id)

    async def query(
        self,
        scope: Optional[str],
        filters: Optional[ApprovalFilter] = None,
        requested_after: Optional[datetime] = None
    ) -> list[ApprovalRequest]:
        """
        Query requests by scope, status, module and creation time.

        Args:
            scope: Facility id, or None for all
            filters: Only status and module are pushed down into SQL
            requested_after: Strict lower bound on requested_at

        Returns:
            Matching requests, newest first
        """
        where, params = [], []
        if scope is not None:
            where.append("scope = ?")
            params.append(scope)
        if filters and filters.status:
            where.append("status = ?")
            params.append(filters.status)
        if filters and filters.module:
            where.append("module = ?")
            params.append(filters.module)
        if requested_after is not None:
            where.append("requested_at > ?")
            params.append(_ts(requested_after))
        return await self._run("query", self._select_sync, where, params)

    async def query_all(self, scope: Optional[str]) -> list[ApprovalRequest]:
        """List every request in the scope (ordered by request time, newest first)"""
        if scope is None:
            return await self._run("query_all", self._select_sync, [], [])
        return await self._run("query_all", self._select_sync, ["scope = ?"], [scope])

    async def conditional_update(
        self,
        approval_id: str,
        expected_status: ApprovalStatus,
        patch: RecordPatch
    ) -> Optional[ApprovalRequest]:
        """Apply patch only if the stored status still equals expected_status"""
        return await self._run(
            "conditional_update",
            self._conditional_update_sync,
            approval_id,
            expected_status,
            patch
        )


def default_db_path() -> str:
    """Resolve APPROVALS_DB_PATH relative to the repository root"""
    from ...core.config import settings

    path = Path(settings.approvals_db_path)
    if not path.is_absolute():
        path = Path(__file__).parent.parent.parent.parent / path
    return str(path)
