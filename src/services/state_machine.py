"""
Approval request lifecycle.

    pending --approve--> approved
    pending --reject---> rejected
    pending --cancel---> cancelled

All three outcomes are terminal. Every transition is a single
compare-and-swap against the store, so two approvers racing on the same
pending request cannot both win: the loser gets ``AlreadyProcessed``.
"""
import asyncio
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from ..core.errors import AlreadyProcessed, NotFound, ValidationError
from ..models.approval import (
    ActorRef,
    ApprovalDraft,
    ApprovalHistoryEntry,
    ApprovalRequest,
    ApproverRef,
    RecordPatch,
    utcnow,
)
from .approval_rules import ModuleApprovalRules, create_approval_rules
from .currency import normalize_amount
from .events.event_publisher import ApprovalDecidedEvent, EventPublisher
from .storage.approval_store_base import ApprovalStoreBase


def _clean(comment: Optional[str]) -> Optional[str]:
    if comment is None:
        return None
    comment = comment.strip()
    return comment or None


class ApprovalStateMachine:
    def __init__(
        self,
        store: ApprovalStoreBase,
        base_currency: str = None,
        rules: ModuleApprovalRules = None,
        publisher: Optional[EventPublisher] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        if base_currency is None:
            from ..core.config import settings
            base_currency = settings.base_currency

        self._store = store
        self._rules = rules or create_approval_rules()
        self._publisher = publisher
        self._clock = clock
        self.base_currency = base_currency.upper()

    async def submit(self, draft: ApprovalDraft, actor: ActorRef) -> ApprovalRequest:
        """
        Create a pending request with its single ``submitted`` history entry.

        The base-currency amount is derived here, once, from the rate the
        caller supplied. It is never recomputed afterwards.

        Raises:
            ValidationError: malformed amount/currency/rate combination
        """
        if not draft.title.strip():
            raise ValidationError("title is required", field="title")

        money = normalize_amount(draft.amount, draft.currency, draft.exchange_rate, self.base_currency)
        decision = self._rules.evaluate(draft, money.amount_in_base_currency if money else None)
        now = self._clock()

        request = ApprovalRequest(
            scope=draft.scope,
            module=draft.module,
            type=draft.type,
            priority=decision.priority,
            title=draft.title,
            description=draft.description,
            metadata=dict(draft.metadata),
            amount=money.amount if money else None,
            currency=money.currency if money else None,
            exchange_rate=money.exchange_rate if money else None,
            amount_in_base_currency=money.amount_in_base_currency if money else None,
            requested_by=actor,
            current_approver=draft.current_approver,
            requested_at=now,
            deadline=draft.deadline,
            status="pending",
            history=[ApprovalHistoryEntry(action="submitted", actor=actor, timestamp=now)],
            related_entity_id=draft.related_entity_id,
            attachments=list(draft.attachments),
        )

        stored = await self._store.insert(request)
        logger.info(
            "Approval request submitted",
            approval_id=stored.id,
            module=stored.module,
            type=stored.type,
            priority=stored.priority,
            scope=stored.scope
        )
        return stored

    async def approve(
        self,
        approval_id: str,
        actor: ActorRef,
        comment: Optional[str] = None
    ) -> ApprovalRequest:
        entry = ApprovalHistoryEntry(
            action="approved", actor=actor, timestamp=self._clock(), comment=_clean(comment)
        )
        return await self._transition(
            approval_id, RecordPatch(status="approved", append_history=[entry]), actor
        )

    async def reject(self, approval_id: str, actor: ActorRef, comment: str) -> ApprovalRequest:
        """Reject a pending request. A non-blank comment is mandatory."""
        text = _clean(comment)
        if text is None:
            raise ValidationError("A rejection comment is required", field="comment")

        entry = ApprovalHistoryEntry(
            action="rejected", actor=actor, timestamp=self._clock(), comment=text
        )
        return await self._transition(
            approval_id, RecordPatch(status="rejected", append_history=[entry]), actor
        )

    async def cancel(self, approval_id: str, actor: ActorRef) -> ApprovalRequest:
        """Withdraw a pending request. Status-only: no history entry is written."""
        return await self._transition(approval_id, RecordPatch(status="cancelled"), actor)

    async def comment(self, approval_id: str, actor: ActorRef, text: str) -> ApprovalRequest:
        """Append a ``commented`` entry to a pending request without changing its status."""
        body = _clean(text)
        if body is None:
            raise ValidationError("Comment text is required", field="comment")

        entry = ApprovalHistoryEntry(
            action="commented", actor=actor, timestamp=self._clock(), comment=body
        )
        return await self._transition(approval_id, RecordPatch(append_history=[entry]), actor)

    async def reassign(
        self,
        approval_id: str,
        actor: ActorRef,
        new_approver: ApproverRef,
        comment: Optional[str] = None
    ) -> ApprovalRequest:
        """Hand a pending request to another approver."""
        entry = ApprovalHistoryEntry(
            action="reassigned",
            actor=actor,
            timestamp=self._clock(),
            comment=_clean(comment),
            metadata={"approver_id": new_approver.id, "approver_name": new_approver.name},
        )
        return await self._transition(
            approval_id,
            RecordPatch(append_history=[entry], current_approver=new_approver),
            actor
        )

    async def _transition(
        self,
        approval_id: str,
        patch: RecordPatch,
        actor: ActorRef
    ) -> ApprovalRequest:
        current = await self._store.get(approval_id)
        if current is None:
            raise NotFound(approval_id)
        if current.status != "pending":
            raise AlreadyProcessed(approval_id, current.status)

        updated = await self._store.conditional_update(approval_id, "pending", patch)
        if updated is None:
            # Lost the race between our read and the guarded write
            latest = await self._store.get(approval_id)
            status = latest.status if latest else None
            logger.warning(
                "Concurrent decision detected",
                approval_id=approval_id,
                actor_id=actor.id,
                status=status
            )
            raise AlreadyProcessed(approval_id, status)

        action = patch.append_history[0].action if patch.append_history else patch.status
        logger.info(
            "Approval request updated",
            approval_id=approval_id,
            action=action,
            status=updated.status,
            actor_id=actor.id
        )
        if updated.is_terminal:
            await self._publish(updated, actor)
        return updated

    async def _publish(self, request: ApprovalRequest, actor: ActorRef) -> None:
        if self._publisher is None:
            return
        event = ApprovalDecidedEvent.from_request(request, actor)
        try:
            # Service Bus send is blocking network I/O
            await asyncio.to_thread(self._publisher.publish_approval_decided, event)
        except Exception as e:
            # The decision is committed; a lost event must not fail it
            logger.warning(f"Failed to publish approval event for {request.id}: {e}")
