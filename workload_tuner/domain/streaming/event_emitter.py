from typing import Dict, List, Callable, Awaitable, Union
import structlog

from .events import BaseEvent, EventType

logger = structlog.get_logger(__name__)

EventHandler = Callable[[BaseEvent], Awaitable[None]]


class EventEmitter:
    """Fans orchestration events out to registered async handlers.

    Handlers observe; they never feed back into the orchestration loop, so a
    failing handler is logged and skipped.
    """

    def __init__(self):
        self.event_handlers: Dict[EventType, List[EventHandler]] = {}

    def register_event_handler(self, event_type: Union[EventType, str], handler: EventHandler):
        """Register a handler for one event type"""

        event_type = EventType(event_type)
        if event_type not in self.event_handlers:
            self.event_handlers[event_type] = []
        self.event_handlers[event_type].append(handler)

    def unregister_event_handler(self, event_type: Union[EventType, str], handler: EventHandler):
        handlers = self.event_handlers.get(EventType(event_type), [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: BaseEvent):
        """Deliver an event to every handler registered for its type"""

        for handler in list(self.event_handlers.get(event.type, [])):
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Error in event handler",
                    event_type=event.type.value,
                    error=str(e)
                )
