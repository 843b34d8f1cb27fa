import json
import httpx
from loguru import logger
from ..core.config import settings
from ..models.approval import ApprovalRequest

# Lightweight "new approvals" alert: post an Adaptive Card to a Teams Incoming Webhook.
# Used as a ChangeNotifier callback; it only signals, it never decides anything.

ADAPTIVE_CARD_TEMPLATE = {
    "type": "message",
    "attachments": [{
        "contentType": "application/vnd.microsoft.card.adaptive",
        "content": {
            "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
            "type": "AdaptiveCard",
            "version": "1.4",
            "body": [
                {"type": "TextBlock", "weight": "Bolder", "size": "Medium", "text": "New Approval Request"},
                {"type": "FactSet", "facts": []}
            ],
            "actions": [
                {"type": "Action.OpenUrl", "title": "Open approvals", "url": "https://example.com/approvals"}
            ]
        }
    }]
}

MAX_LISTED = 5


def _fact_value(request: ApprovalRequest) -> str:
    value = f"{request.module} / {request.priority}"
    if request.amount_in_base_currency is not None:
        value += f" / {request.amount_in_base_currency} {settings.base_currency}"
    return value


def build_new_approvals_card(approvals: list[ApprovalRequest]) -> dict:
    card = json.loads(json.dumps(ADAPTIVE_CARD_TEMPLATE))
    content = card["attachments"][0]["content"]

    if len(approvals) > 1:
        content["body"][0]["text"] = f"{len(approvals)} New Approval Requests"

    facts = content["body"][1]["facts"]
    for request in approvals[:MAX_LISTED]:
        facts.append({"title": request.title, "value": _fact_value(request)})
    if len(approvals) > MAX_LISTED:
        facts.append({"title": "...", "value": f"{len(approvals) - MAX_LISTED} more"})

    # Use configured API base URL (supports both local and deployed environments)
    content["actions"][0]["url"] = f"{settings.api_base_url}/approvals?status=pending"
    return card


async def post_new_approvals_card(approvals: list[ApprovalRequest]) -> dict:
    if not settings.teams_webhook_url:
        return {"status": "skipped", "reason": "TEAMS_WEBHOOK_URL not set"}
    if not approvals:
        return {"status": "skipped", "reason": "no approvals"}

    card = build_new_approvals_card(approvals)

    async with httpx.AsyncClient(timeout=10) as client:
        r = await client.post(settings.teams_webhook_url, json=card)
        logger.info("Posted new approvals card", count=len(approvals), http_status=r.status_code)
        return {"status": "sent", "http_status": r.status_code}
