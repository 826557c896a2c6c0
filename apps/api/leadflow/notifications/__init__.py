from leadflow.notifications.dispatcher import NotificationDispatcher
from leadflow.notifications.periodic import PeriodicTask
from leadflow.notifications.session import NotificationSession, SessionRegistry, session_registry
from leadflow.notifications.sink import (
    EventBusNotificationSink,
    LoggingNotificationSink,
    NotificationPayload,
    NotificationSink,
    build_payload,
)

__all__ = [
    "EventBusNotificationSink",
    "LoggingNotificationSink",
    "NotificationDispatcher",
    "NotificationPayload",
    "NotificationSession",
    "NotificationSink",
    "PeriodicTask",
    "SessionRegistry",
    "build_payload",
    "session_registry",
]
