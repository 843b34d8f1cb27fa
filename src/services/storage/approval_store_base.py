"""
Abstract base class for approval record stores.

Defines the interface that all approval stores must implement,
enabling dependency injection and easy swapping of storage backends.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ...models.approval import ApprovalFilter, ApprovalRequest, ApprovalStatus, RecordPatch


class ApprovalStoreBase(ABC):
    """
    Abstract base class for approval request storage.

    Implementations can use:
    - In-memory storage (for testing/demo)
    - SQLite (for single-instance deployments)
    - SQL Server / PostgreSQL (for production)

    Every method is a coroutine. Implementations return copies, so a caller
    never observes a half-applied update, and wrap backend failures in
    ``StoreUnavailable``.
    """

    @abstractmethod
    async def insert(self, request: ApprovalRequest) -> ApprovalRequest:
        """
        Persist a newly submitted request.

        Args:
            request: Fully built request (id, status, initial history)

        Returns:
            The stored request
        """
        pass

    @abstractmethod
    async def get(self, approval_id: str) -> Optional[ApprovalRequest]:
        """
        Get a request by ID.

        Returns:
            The request, or None if not found
        """
        pass

    @abstractmethod
    async def query(
        self,
        scope: Optional[str],
        filters: Optional[ApprovalFilter] = None,
        requested_after: Optional[datetime] = None
    ) -> list[ApprovalRequest]:
        """
        Coarse filtered read.

        Backends must honour ``status``, ``module`` and ``requested_after``
        (strictly greater than). Other filter fields may be ignored; the query
        facade applies the full filter in memory.

        Args:
            scope: Facility/tenant id, or None for every scope

        Returns:
            Matching requests, newest first
        """
        pass

    @abstractmethod
    async def query_all(self, scope: Optional[str]) -> list[ApprovalRequest]:
        """
        Unfiltered read of a scope's full population in one consistent pass.

        Returns:
            Every request in the scope, newest first
        """
        pass

    @abstractmethod
    async def conditional_update(
        self,
        approval_id: str,
        expected_status: ApprovalStatus,
        patch: RecordPatch
    ) -> Optional[ApprovalRequest]:
        """
        Atomically apply ``patch`` if the stored status equals ``expected_status``.

        History entries in the patch are appended, never replacing existing ones.

        Returns:
            The updated request, or None when the status guard failed

        Raises:
            NotFound: approval_id does not exist
        """
        pass
