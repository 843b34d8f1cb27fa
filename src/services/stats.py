from typing import Optional

from ..models.approval import ApprovalStats
from .storage.approval_store_base import ApprovalStoreBase


class StatsAggregator:
    """
    Headline counts for a scope.

    Always derived from one unfiltered read of the whole population, never
    from whatever subset a list view is showing. Nothing is cached: callers
    recompute after a mutation.
    """

    def __init__(self, store: ApprovalStoreBase):
        self._store = store

    async def compute_stats(self, scope: Optional[str] = None) -> ApprovalStats:
        stats = ApprovalStats()
        for request in await self._store.query_all(scope):
            if request.status == "pending":
                stats.pending += 1
                if request.priority == "urgent":
                    stats.urgent += 1
            elif request.status == "approved":
                stats.approved += 1
            elif request.status == "rejected":
                stats.rejected += 1
        return stats
