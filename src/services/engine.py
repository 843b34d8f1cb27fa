"""
Approval engine facade.

Single entry point for UI and business layers. Scope is always an explicit
argument; nothing here holds a "currently selected facility".
"""
from datetime import datetime
from typing import Callable, Iterable, Optional

from ..models.approval import (
    ActorRef,
    ApprovalDraft,
    ApprovalFilter,
    ApprovalRequest,
    ApprovalStats,
    ApproverRef,
    BulkResult,
    utcnow,
)
from ..core.errors import NotFound
from .approval_rules import ModuleApprovalRules
from .bulk import BulkTransitionCoordinator
from .events.event_publisher import EventPublisher
from .notifier import ChangeNotifier, NewApprovalsCallback
from .query import ApprovalQueryFacade
from .state_machine import ApprovalStateMachine
from .stats import StatsAggregator
from .storage.approval_store_base import ApprovalStoreBase


class ApprovalEngine:
    def __init__(
        self,
        store: ApprovalStoreBase,
        base_currency: str = None,
        rules: ModuleApprovalRules = None,
        publisher: Optional[EventPublisher] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self._clock = clock
        self.state_machine = ApprovalStateMachine(
            store, base_currency=base_currency, rules=rules, publisher=publisher, clock=clock
        )
        self.bulk = BulkTransitionCoordinator(self.state_machine)
        self.queries = ApprovalQueryFacade(store)
        self.stats = StatsAggregator(store)

    @property
    def base_currency(self) -> str:
        return self.state_machine.base_currency

    async def submit(self, draft: ApprovalDraft, actor: ActorRef) -> ApprovalRequest:
        return await self.state_machine.submit(draft, actor)

    async def get(self, approval_id: str) -> ApprovalRequest:
        request = await self.store.get(approval_id)
        if request is None:
            raise NotFound(approval_id)
        return request

    async def approve(self, approval_id: str, actor: ActorRef, comment: Optional[str] = None) -> ApprovalRequest:
        return await self.state_machine.approve(approval_id, actor, comment)

    async def reject(self, approval_id: str, actor: ActorRef, comment: str) -> ApprovalRequest:
        return await self.state_machine.reject(approval_id, actor, comment)

    async def cancel(self, approval_id: str, actor: ActorRef) -> ApprovalRequest:
        return await self.state_machine.cancel(approval_id, actor)

    async def comment(self, approval_id: str, actor: ActorRef, text: str) -> ApprovalRequest:
        return await self.state_machine.comment(approval_id, actor, text)

    async def reassign(
        self,
        approval_id: str,
        actor: ActorRef,
        new_approver: ApproverRef,
        comment: Optional[str] = None
    ) -> ApprovalRequest:
        return await self.state_machine.reassign(approval_id, actor, new_approver, comment)

    async def bulk_approve(
        self,
        ids: Iterable[str],
        actor: ActorRef,
        comment: Optional[str] = None
    ) -> BulkResult:
        return await self.bulk.bulk_approve(ids, actor, comment)

    async def bulk_reject(self, ids: Iterable[str], actor: ActorRef, comment: str) -> BulkResult:
        return await self.bulk.bulk_reject(ids, actor, comment)

    async def query(
        self,
        scope: Optional[str] = None,
        filters: Optional[ApprovalFilter] = None
    ) -> list[ApprovalRequest]:
        return await self.queries.query(scope, filters)

    async def compute_stats(self, scope: Optional[str] = None) -> ApprovalStats:
        return await self.stats.compute_stats(scope)

    async def subscribe_to_new_approvals(
        self,
        callback: NewApprovalsCallback,
        interval_seconds: Optional[float] = None,
        scope: Optional[str] = None
    ) -> ChangeNotifier:
        """
        Start polling for new pending requests.

        Must be awaited inside a running event loop. The returned subscription
        is cancelled with ``await subscription.cancel()``.
        """
        notifier = ChangeNotifier(
            self.store, callback, interval_seconds=interval_seconds, scope=scope, clock=self._clock
        )
        return await notifier.start()


def build_store(backend: str = None) -> ApprovalStoreBase:
    """Pick the storage backend configured by APPROVAL_STORE_BACKEND."""
    from ..core.config import settings
    from .storage import approval_store

    backend = (backend or settings.approval_store_backend).lower()
    if backend == "sqlite":
        from .storage.approvals_sqlite import SQLiteApprovalStore, default_db_path
        return SQLiteApprovalStore(default_db_path())
    if backend == "memory":
        return approval_store
    raise ValueError(f"Unknown approval store backend: {backend}")


def build_engine(store: ApprovalStoreBase = None) -> ApprovalEngine:
    from .events.event_publisher import get_event_publisher

    return ApprovalEngine(store or build_store(), publisher=get_event_publisher())
