"""
Azure Service Bus event publishing for approval decisions.

Enables downstream systems to react to approval outcomes:
- Finance systems can post approved transactions and budget transfers
- Audit systems can mirror every decision
- Notification systems can alert requesters
"""

import json
from dataclasses import dataclass, asdict
from datetime import datetime, UTC
from typing import Optional

from loguru import logger

from ...models.approval import ActorRef, ApprovalRequest


@dataclass
class ApprovalDecidedEvent:
    """
    Event published when a request reaches a terminal status.

    Carries enough for consumers to act without reading the approval store.
    """

    approval_id: str
    module: str
    type: str
    status: str
    actor_id: str
    actor_name: str
    scope: Optional[str] = None
    related_entity_id: Optional[str] = None
    comment: Optional[str] = None
    amount_in_base_currency: Optional[str] = None  # Decimal as text, no float drift
    event_type: str = "ApprovalDecided"
    timestamp: Optional[str] = None

    def __post_init__(self):
        """Set timestamp if not provided"""
        if self.timestamp is None:
            self.timestamp = datetime.now(UTC).isoformat()

    @classmethod
    def from_request(cls, request: ApprovalRequest, actor: ActorRef) -> "ApprovalDecidedEvent":
        last = request.history[-1] if request.history else None
        comment = last.comment if last and last.action == request.status else None
        return cls(
            approval_id=request.id,
            module=request.module,
            type=request.type,
            status=request.status,
            actor_id=actor.id,
            actor_name=actor.name,
            scope=request.scope,
            related_entity_id=request.related_entity_id,
            comment=comment,
            amount_in_base_currency=(
                str(request.amount_in_base_currency)
                if request.amount_in_base_currency is not None else None
            ),
        )

    def to_dict(self) -> dict:
        """
        Convert event to dictionary for JSON serialization.

        Returns:
            Dictionary representation suitable for Service Bus message body
        """
        return asdict(self)

    def to_json(self) -> str:
        """
        Convert event to JSON string.

        Returns:
            JSON string representation
        """
        return json.dumps(self.to_dict())


class EventPublisher:
    """
    Publishes events to Azure Service Bus (Queue or Topic).

    Usage:
        # Production with Service Bus Queue
        from azure.servicebus import ServiceBusClient
        client = ServiceBusClient.from_connection_string(conn_str)
        sender = client.get_queue_sender(queue_name="approval-events")
        publisher = EventPublisher(service_bus_sender=sender)

        # Disabled mode (no Service Bus configured)
        publisher = EventPublisher(service_bus_sender=None)
    """

    def __init__(
        self,
        service_bus_sender: Optional[object] = None,
        entity_name: str = "approval-events"
    ):
        """
        Initialize event publisher.

        Args:
            service_bus_sender: Azure Service Bus sender (ServiceBusSender) or None to disable
            entity_name: Service Bus queue or topic name (default: approval-events)
        """
        self.service_bus_sender = service_bus_sender
        self.entity_name = entity_name

    @property
    def enabled(self) -> bool:
        return self.service_bus_sender is not None

    def publish_approval_decided(self, event: ApprovalDecidedEvent) -> None:
        """
        Publish an approval decided event to Service Bus.

        Args:
            event: ApprovalDecidedEvent to publish

        Note:
            If service_bus_sender is None, this is a no-op (disabled mode).
            Useful for local development or when Service Bus is not configured.
        """
        if self.service_bus_sender is None:
            return

        from azure.servicebus import ServiceBusMessage

        message = ServiceBusMessage(event.to_json(), content_type="application/json")
        self.service_bus_sender.send_messages(message)
        logger.debug("Published approval event", approval_id=event.approval_id, status=event.status)


def create_event_publisher(
    connection_string: Optional[str] = None,
    entity_name: Optional[str] = None
) -> EventPublisher:
    """
    Build a publisher from settings (or explicit overrides).

    Returns a disabled publisher when no connection string is configured.
    """
    from ...core.config import settings

    conn_str = connection_string or settings.service_bus_connection_string
    queue = entity_name or settings.service_bus_entity_name
    if not conn_str:
        return EventPublisher(service_bus_sender=None, entity_name=queue)

    from azure.servicebus import ServiceBusClient

    client = ServiceBusClient.from_connection_string(conn_str)
    return EventPublisher(service_bus_sender=client.get_queue_sender(queue_name=queue), entity_name=queue)


_default_publisher: Optional[EventPublisher] = None


def get_event_publisher() -> EventPublisher:
    """
    Get the default event publisher instance.

    Returns:
        EventPublisher instance (disabled if Service Bus not configured)
    """
    global _default_publisher
    if _default_publisher is None:
        _default_publisher = create_event_publisher()
    return _default_publisher
