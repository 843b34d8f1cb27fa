import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field, computed_field, field_validator

ApprovalStatus = Literal["pending", "approved", "rejected", "cancelled"]
ApprovalPriority = Literal["urgent", "high", "medium", "low"]
ApprovalModule = Literal["finance", "hr", "projects", "qurban"]
HistoryAction = Literal["submitted", "approved", "rejected", "commented", "reassigned"]

TERMINAL_STATUSES = frozenset({"approved", "rejected", "cancelled"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so comparisons never mix naive and aware values."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class ActorRef(BaseModel):
    id: str
    name: str


class ApproverRef(ActorRef):
    role: str | None = None


class Attachment(BaseModel):
    id: str
    name: str
    url: str
    type: str | None = None


class ApprovalHistoryEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    action: HistoryAction
    actor: ActorRef
    timestamp: datetime = Field(default_factory=utcnow)
    comment: str | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamps(cls, value):
        return ensure_utc(value)


class ApprovalDraft(BaseModel):
    """What a business-action creator submits. The engine fills in the rest."""
    scope: str | None = None
    module: ApprovalModule
    type: str
    priority: ApprovalPriority | None = None  # None = module rules decide
    title: str
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    amount: Decimal | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None  # source -> base, supplied by the FX collaborator
    current_approver: ApproverRef | None = None
    deadline: datetime | None = None
    related_entity_id: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)

    @field_validator("deadline")
    @classmethod
    def normalize_timestamps(cls, value):
        return ensure_utc(value)


class ApprovalRequest(BaseModel):
    id: str = Field(default_factory=new_id)
    scope: str | None = None
    module: ApprovalModule
    type: str
    priority: ApprovalPriority = "medium"
    title: str
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Monetary fields are all present or all absent
    amount: Decimal | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    amount_in_base_currency: Decimal | None = None

    requested_by: ActorRef
    current_approver: ApproverRef | None = None
    requested_at: datetime = Field(default_factory=utcnow)
    deadline: datetime | None = None
    status: ApprovalStatus = "pending"
    history: list[ApprovalHistoryEntry] = Field(default_factory=list)
    related_entity_id: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)

    @field_validator("requested_at", "deadline")
    @classmethod
    def normalize_timestamps(cls, value):
        return ensure_utc(value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ApprovalStats(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    urgent: int = 0


class ApprovalFilter(BaseModel):
    """Conjunctive list filter. Every criterion is optional."""
    module: ApprovalModule | None = None
    status: ApprovalStatus | None = None
    priority: ApprovalPriority | None = None
    search_text: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None

    @field_validator("date_from", "date_to")
    @classmethod
    def normalize_timestamps(cls, value):
        return ensure_utc(value)


class RecordPatch(BaseModel):
    """Changes applied atomically by ``conditional_update``. History is append-only."""
    status: ApprovalStatus | None = None
    append_history: list[ApprovalHistoryEntry] = Field(default_factory=list)
    current_approver: ApproverRef | None = None


class BulkFailure(BaseModel):
    id: str
    reason: str
    message: str | None = None


class BulkResult(BaseModel):
    succeeded: list[str] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)

    @computed_field
    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @computed_field
    @property
    def processed(self) -> int:
        return len(self.succeeded)
