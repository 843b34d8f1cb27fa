"""
In-memory approval store (for demo purposes and tests).
In production, use a database (SQLite, SQL Server, PostgreSQL, ...)
"""
import asyncio
from datetime import datetime
from typing import Dict, Optional

from ...core.errors import NotFound
from ...models.approval import ApprovalFilter, ApprovalRequest, ApprovalStatus, RecordPatch
from .approval_store_base import ApprovalStoreBase


def apply_patch(request: ApprovalRequest, patch: RecordPatch) -> ApprovalRequest:
    """Return a copy of ``request`` with ``patch`` applied. History is only ever extended."""
    updated = request.model_copy(deep=True)
    if patch.status is not None:
        updated.status = patch.status
    if patch.current_approver is not None:
        updated.current_approver = patch.current_approver.model_copy()
    updated.history.extend(entry.model_copy(deep=True) for entry in patch.append_history)
    return updated


def newest_first(requests: list[ApprovalRequest]) -> list[ApprovalRequest]:
    return sorted(requests, key=lambda r: r.requested_at, reverse=True)


class InMemoryApprovalStore(ApprovalStoreBase):
    def __init__(self):
        self._records: Dict[str, ApprovalRequest] = {}
        self._lock = asyncio.Lock()

    async def insert(self, request: ApprovalRequest) -> ApprovalRequest:
        """Store a new request"""
        async with self._lock:
            self._records[request.id] = request.model_copy(deep=True)
        return request.model_copy(deep=True)

    async def get(self, approval_id: str) -> Optional[ApprovalRequest]:
        """Get a request by ID"""
        record = self._records.get(approval_id)
        return record.model_copy(deep=True) if record else None

    async def query(
        self,
        scope: Optional[str],
        filters: Optional[ApprovalFilter] = None,
        requested_after: Optional[datetime] = None
    ) -> list[ApprovalRequest]:
        """Scope, status, module and created-since filtering"""
        results = []
        for record in self._in_scope(scope):
            if filters and filters.status and record.status != filters.status:
                continue
            if filters and filters.module and record.module != filters.module:
                continue
            if requested_after and record.requested_at <= requested_after:
                continue
            results.append(record.model_copy(deep=True))
        return newest_first(results)

    async def query_all(self, scope: Optional[str]) -> list[ApprovalRequest]:
        """List every request in scope"""
        return newest_first([r.model_copy(deep=True) for r in self._in_scope(scope)])

    async def conditional_update(
        self,
        approval_id: str,
        expected_status: ApprovalStatus,
        patch: RecordPatch
    ) -> Optional[ApprovalRequest]:
        """Compare-and-swap on status"""
        async with self._lock:
            current = self._records.get(approval_id)
            if current is None:
                raise NotFound(approval_id)
            if current.status != expected_status:
                return None
            updated = apply_patch(current, patch)
            self._records[approval_id] = updated
        return updated.model_copy(deep=True)

    def _in_scope(self, scope: Optional[str]) -> list[ApprovalRequest]:
        # Snapshot so concurrent inserts don't change the dict mid-iteration
        records = list(self._records.values())
        if scope is None:
            return records
        return [r for r in records if r.scope == scope]


# Global instance (in production, use dependency injection)
approval_store = InMemoryApprovalStore()
