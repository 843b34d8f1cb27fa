"""
Read side for approval list views.

The store does the coarse work (scope, status, module); everything else in
the filter is applied here, in memory, as a conjunction of the criteria that
were actually provided.
"""
from decimal import Decimal
from typing import Optional

from ..models.approval import ApprovalFilter, ApprovalRequest
from .storage.approval_store_base import ApprovalStoreBase

ZERO = Decimal("0")


def matches(request: ApprovalRequest, filters: ApprovalFilter) -> bool:
    """True when ``request`` satisfies every criterion set on ``filters``."""
    if filters.module and request.module != filters.module:
        return False
    if filters.status and request.status != filters.status:
        return False
    if filters.priority and request.priority != filters.priority:
        return False

    if filters.search_text:
        needle = filters.search_text.lower()
        haystacks = (request.title, request.description, request.requested_by.name)
        if not any(needle in (h or "").lower() for h in haystacks):
            return False

    if filters.date_from and request.requested_at < filters.date_from:
        return False
    if filters.date_to and request.requested_at > filters.date_to:
        return False

    # Requests without a monetary value compare as zero
    amount = request.amount_in_base_currency if request.amount_in_base_currency is not None else ZERO
    if filters.min_amount is not None and amount < filters.min_amount:
        return False
    if filters.max_amount is not None and amount > filters.max_amount:
        return False

    return True


class ApprovalQueryFacade:
    def __init__(self, store: ApprovalStoreBase):
        self._store = store

    async def query(
        self,
        scope: Optional[str] = None,
        filters: Optional[ApprovalFilter] = None
    ) -> list[ApprovalRequest]:
        """Return matching requests, newest first. No side effects."""
        filters = filters or ApprovalFilter()
        candidates = await self._store.query(scope, filters)
        return [r for r in candidates if matches(r, filters)]
