from .event_publisher import ApprovalDecidedEvent, EventPublisher, get_event_publisher

__all__ = ["ApprovalDecidedEvent", "EventPublisher", "get_event_publisher"]
