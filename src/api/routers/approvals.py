from fastapi import APIRouter, Depends, status

from ...models.approval import (
    ActorRef,
    ApprovalDraft,
    ApprovalFilter,
    ApprovalRequest,
    ApprovalStats,
    BulkResult,
)
from ...services.engine import ApprovalEngine
from ..deps import (
    ApprovalListResponse,
    BulkApproveBody,
    BulkRejectBody,
    CommentBody,
    DecisionBody,
    ReassignBody,
    RejectBody,
    get_current_actor,
    get_engine,
    get_filters,
)

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.post("", response_model=ApprovalRequest, status_code=status.HTTP_201_CREATED)
async def submit_approval(
    draft: ApprovalDraft,
    actor: ActorRef = Depends(get_current_actor),
    engine: ApprovalEngine = Depends(get_engine),
):
    """
    Submit a business action for approval.

    Monetary drafts carry amount, currency and (for foreign currencies) the
    exchange rate obtained from the FX source. The base-currency amount is
    computed once here and stored with the rate.

    Example request:
    {
        "scope": "facility-ist",
        "module": "finance",
        "type": "budget_transfer",
        "title": "Q3 budget transfer",
        "amount": "500",
        "currency": "USD",
        "exchange_rate": "32"
    }
    """
    return await engine.submit(draft, actor)


@router.get("", response_model=ApprovalListResponse)
async def list_approvals(
    scope: str | None = None,
    filters: ApprovalFilter = Depends(get_filters),
    engine: ApprovalEngine = Depends(get_engine),
):
    """List approval requests matching every provided filter, newest first"""
    approvals = await engine.query(scope, filters)
    return ApprovalListResponse(total=len(approvals), approvals=approvals)


@router.get("/stats", response_model=ApprovalStats)
async def approval_stats(scope: str | None = None, engine: ApprovalEngine = Depends(get_engine)):
    """
    Headline counts for the whole scope.

    Ignores list filters on purpose: these are population totals, not a
    count of what the list is currently showing.
    """
    return await engine.compute_stats(scope)


@router.post("/bulk/approve", response_model=BulkResult)
async def bulk_approve(
    body: BulkApproveBody,
    actor: ActorRef = Depends(get_current_actor),
    engine: ApprovalEngine = Depends(get_engine),
):
    """Approve several requests; items already actioned elsewhere come back in `failed`"""
    return await engine.bulk_approve(body.ids, actor, body.comment)


@router.post("/bulk/reject", response_model=BulkResult)
async def bulk_reject(
    body: BulkRejectBody,
    actor: ActorRef = Depends(get_current_actor),
    engine: ApprovalEngine = Depends(get_engine),
):
    """Reject several requests with one shared comment"""
    return await engine.bulk_reject(body.ids, actor, body.comment)


@router.get("/{approval_id}", response_model=ApprovalRequest)
async def get_approval(approval_id: str, engine: ApprovalEngine = Depends(get_engine)):
    return await engine.get(approval_id)


@router.post("/{approval_id}/approve", response_model=ApprovalRequest)
async def approve(
    approval_id: str,
    body: DecisionBody | None = None,
    actor: ActorRef = Depends(get_current_actor),
    engine: ApprovalEngine = Depends(get_engine),
):
    return await engine.approve(approval_id, actor, body.comment if body else None)


@router.post("/{approval_id}/reject", response_model=ApprovalRequest)
async def reject(
    approval_id: str,
    body: RejectBody,
    actor: ActorRef = Depends(get_current_actor),
    engine: ApprovalEngine = Depends(get_engine),
):
    return await engine.reject(approval_id, actor, body.comment)


@router.post("/{approval_id}/cancel", response_model=ApprovalRequest)
async def cancel(
    approval_id: str,
    actor: ActorRef = Depends(get_current_actor),
    engine: ApprovalEngine = Depends(get_engine),
):
    """Withdraw a pending request (the originating business action was withdrawn)"""
    return await engine.cancel(approval_id, actor)


@router.post("/{approval_id}/comment", response_model=ApprovalRequest)
async def add_comment(
    approval_id: str,
    body: CommentBody,
    actor: ActorRef = Depends(get_current_actor),
    engine: ApprovalEngine = Depends(get_engine),
):
    return await engine.comment(approval_id, actor, body.comment)


@router.post("/{approval_id}/reassign", response_model=ApprovalRequest)
async def reassign(
    approval_id: str,
    body: ReassignBody,
    actor: ActorRef = Depends(get_current_actor),
    engine: ApprovalEngine = Depends(get_engine),
):
    return await engine.reassign(approval_id, actor, body.approver, body.comment)
