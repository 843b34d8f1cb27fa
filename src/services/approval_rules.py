"""
Module-specific business rules applied when a request is submitted.

Rules decide the initial priority of a request. They never look inside
``metadata`` and never influence which transitions are legal.
"""

from decimal import Decimal
from typing import Dict, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, Field

from ..models.approval import ApprovalDraft, ApprovalPriority


# (module, type) -> priority used when the submitter does not set one.
# Mirrors how the back-office ranks its approval sources.
DEFAULT_PRIORITIES: Dict[Tuple[str, str], ApprovalPriority] = {
    ("finance", "budget"): "high",
    ("finance", "budget_transfer"): "high",
    ("finance", "transaction"): "medium",
    ("finance", "vendor_registration"): "medium",
    ("finance", "customer_registration"): "medium",
    ("qurban", "campaign"): "medium",
}

FALLBACK_PRIORITY: ApprovalPriority = "medium"


class PriorityDecision(BaseModel):
    """Result of a priority decision with explanation"""
    priority: ApprovalPriority
    reason: str
    checks: Dict[str, bool] = Field(default_factory=dict)


class ApprovalRulesConfig(BaseModel):
    """Configuration for approval rules (loaded from environment)"""
    high_value_threshold: Decimal = Decimal("0")  # 0 disables escalation
    default_priorities: Dict[Tuple[str, str], ApprovalPriority] = Field(
        default_factory=lambda: dict(DEFAULT_PRIORITIES)
    )


class ModuleApprovalRules:
    """
    Encapsulates the fixed per-module rules layered on top of the state machine.

    Precedence:
    1. Priority set explicitly on the draft
    2. Per (module, type) default, escalated to "high" when the base-currency
       amount reaches ``high_value_threshold``
    """

    def __init__(self, config: ApprovalRulesConfig = None):
        self.config = config or ApprovalRulesConfig()

    def evaluate(
        self,
        draft: ApprovalDraft,
        amount_in_base_currency: Optional[Decimal] = None
    ) -> PriorityDecision:
        checks = {}

        if draft.priority is not None:
            checks["explicit_priority"] = True
            return PriorityDecision(
                priority=draft.priority,
                reason="Priority set by submitter",
                checks=checks
            )
        checks["explicit_priority"] = False

        key = (draft.module, draft.type.strip().lower())
        priority = self.config.default_priorities.get(key, FALLBACK_PRIORITY)
        checks["module_default"] = key in self.config.default_priorities
        reason = f"Default for {draft.module}/{draft.type}"

        threshold = self.config.high_value_threshold
        high_value = (
            threshold > 0
            and amount_in_base_currency is not None
            and amount_in_base_currency >= threshold
        )
        checks["high_value"] = high_value
        if high_value and priority in ("medium", "low"):
            priority = "high"
            reason = f"Amount {amount_in_base_currency} reaches high-value threshold {threshold}"

        logger.debug(
            "Approval priority decision",
            module=draft.module,
            type=draft.type,
            priority=priority,
            checks=checks
        )

        return PriorityDecision(priority=priority, reason=reason, checks=checks)


def create_approval_rules(high_value_threshold: float = None) -> ModuleApprovalRules:
    """
    Factory function to create approval rules with optional overrides.

    Uses environment variables as defaults, can be overridden per call.
    """
    from ..core.config import settings

    threshold = (
        high_value_threshold
        if high_value_threshold is not None
        else getattr(settings, "approval_high_value_threshold", 0.0)
    )
    config = ApprovalRulesConfig(high_value_threshold=Decimal(str(threshold)))
    return ModuleApprovalRules(config)
