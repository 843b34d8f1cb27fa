from datetime import datetime
from decimal import Decimal

from fastapi import Header, Query
from pydantic import BaseModel, Field

from ..models.approval import (
    ActorRef,
    ApprovalFilter,
    ApprovalModule,
    ApprovalPriority,
    ApprovalRequest,
    ApprovalStatus,
    ApproverRef,
)
from ..services.engine import ApprovalEngine, build_engine

_engine: ApprovalEngine | None = None


def get_engine() -> ApprovalEngine:
    """Process-wide engine (in tests, override with app.dependency_overrides)"""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def get_current_actor(
    x_actor_id: str = Header(..., description="Already-authenticated actor id"),
    x_actor_name: str | None = Header(default=None),
) -> ActorRef:
    # Authentication happens upstream; we only read the resolved identity
    return ActorRef(id=x_actor_id, name=x_actor_name or x_actor_id)


def get_filters(
    module: ApprovalModule | None = None,
    status: ApprovalStatus | None = None,
    priority: ApprovalPriority | None = None,
    search: str | None = Query(default=None, description="Matches title, description, requester name"),
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
) -> ApprovalFilter:
    return ApprovalFilter(
        module=module,
        status=status,
        priority=priority,
        search_text=search,
        date_from=date_from,
        date_to=date_to,
        min_amount=min_amount,
        max_amount=max_amount,
    )


class DecisionBody(BaseModel):
    comment: str | None = None


class RejectBody(BaseModel):
    comment: str = ""  # blank is rejected by the engine, not by request parsing


class CommentBody(BaseModel):
    comment: str


class ReassignBody(BaseModel):
    approver: ApproverRef
    comment: str | None = None


class BulkApproveBody(BaseModel):
    ids: list[str] = Field(min_length=1)
    comment: str | None = None


class BulkRejectBody(BaseModel):
    ids: list[str] = Field(min_length=1)
    comment: str = ""


class ApprovalListResponse(BaseModel):
    total: int
    approvals: list[ApprovalRequest]
