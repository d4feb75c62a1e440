"""
Message Bus

Routes commands from the HTTP layer and management commands to the
reservation use cases, and committed domain events to their subscribers.
Handlers are registered once, from the owning app's AppConfig.ready().
"""

from typing import Any, Callable, Dict, List, Type
import logging

from shared.domain.base import DomainEvent
from shared.domain.exceptions import DomainError

logger = logging.getLogger(__name__)


class MessageBus:
    """
    Commands: exactly one handler each, the result is returned to the caller
    Events: any number of subscribers, failures are isolated per subscriber
    """

    def __init__(self):
        self._command_handlers: Dict[Type, Callable[[Any], Any]] = {}
        self._event_handlers: Dict[Type[DomainEvent], List[Callable[[DomainEvent], None]]] = {}

    def register_command_handler(self, command_type: Type, handler: Callable[[Any], Any]):
        if command_type in self._command_handlers:
            raise ValueError(f"{command_type.__name__} already has a handler")
        self._command_handlers[command_type] = handler
        logger.debug(f"Registered command handler for {command_type.__name__}")

    def has_command_handler(self, command_type: Type) -> bool:
        return command_type in self._command_handlers

    def register_event_handler(self, event_type: Type[DomainEvent], handler: Callable[[DomainEvent], None]):
        """Subscribe ``handler``; subscribing the same callable twice is a no-op"""
        subscribers = self._event_handlers.setdefault(event_type, [])
        if handler not in subscribers:
            subscribers.append(handler)
            logger.debug(f"Subscribed {handler.__name__} to {event_type.__name__}")

    def handle_command(self, command: Any) -> Any:
        """
        Run the handler for ``command`` and return its result

        Domain errors are expected outcomes and propagate unchanged; the API
        exception handler turns them into responses.
        """
        command_name = type(command).__name__
        handler = self._command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"No handler registered for command {command_name}")

        try:
            return handler(command)
        except DomainError as e:
            logger.info(f"{command_name} rejected: {e.code}: {e.message}")
            raise
        except Exception as e:
            logger.error(f"Error handling {command_name}: {e}", exc_info=True)
            raise

    def publish_events(self, events: List[DomainEvent]):
        """Deliver each event to every subscriber of its exact type"""
        for event in events:
            event_name = type(event).__name__
            for handler in self._event_handlers.get(type(event), []):
                try:
                    handler(event)
                except Exception as e:
                    # A failing subscriber must not starve the others.
                    logger.error(
                        f"Subscriber {handler.__name__} failed on {event_name} {event.event_id}: {e}",
                        exc_info=True,
                    )


message_bus = MessageBus()
