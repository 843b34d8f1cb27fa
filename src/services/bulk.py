"""
Bulk approve/reject.

Each id goes through the state machine on its own. A failure on one item
(already actioned by someone else, deleted, store hiccup) lands in the
``failed`` partition and the remaining items are still processed. Items
already committed are never rolled back.
"""
from typing import Iterable, Optional

from loguru import logger

from ..core.errors import ApprovalError, ValidationError
from ..models.approval import ActorRef, BulkFailure, BulkResult
from .state_machine import ApprovalStateMachine


class BulkTransitionCoordinator:
    def __init__(self, state_machine: ApprovalStateMachine):
        self._machine = state_machine

    async def bulk_approve(
        self,
        ids: Iterable[str],
        actor: ActorRef,
        comment: Optional[str] = None
    ) -> BulkResult:
        """Approve every id in order; the same comment is attached to each."""
        result = BulkResult()
        for approval_id in ids:
            try:
                await self._machine.approve(approval_id, actor, comment)
            except ApprovalError as e:
                self._record_failure(result, approval_id, e)
            else:
                result.succeeded.append(approval_id)

        self._log("approve", result, actor)
        return result

    async def bulk_reject(self, ids: Iterable[str], actor: ActorRef, comment: str) -> BulkResult:
        """
        Reject every id in order with one shared comment.

        Raises:
            ValidationError: blank comment. Raised before any item is touched,
                since it would fail every item identically.
        """
        if comment is None or not comment.strip():
            raise ValidationError("A rejection comment is required", field="comment")

        result = BulkResult()
        for approval_id in ids:
            try:
                await self._machine.reject(approval_id, actor, comment)
            except ApprovalError as e:
                self._record_failure(result, approval_id, e)
            else:
                result.succeeded.append(approval_id)

        self._log("reject", result, actor)
        return result

    @staticmethod
    def _record_failure(result: BulkResult, approval_id: str, error: ApprovalError) -> None:
        result.failed.append(
            BulkFailure(id=approval_id, reason=error.code.value, message=error.message)
        )

    @staticmethod
    def _log(operation: str, result: BulkResult, actor: ActorRef) -> None:
        logger.info(
            f"Bulk {operation}: {result.processed} of {result.total} processed",
            actor_id=actor.id,
            succeeded=result.succeeded,
            failed=[f.id for f in result.failed]
        )
