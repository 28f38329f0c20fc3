"""Cart event channel for external listeners."""
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from storefront.logging import get_logger
from .models import CartEvent, CartEventType

logger = get_logger(__name__)

CartListener = Callable[[CartEvent], Union[None, Awaitable[None]]]


class CartEventBus:
    """
    Fan out CartEvents to subscribers.

    Listeners may be sync or async. A failing listener is logged and does not
    stop the others or the cart operation that emitted the event.
    """

    def __init__(self):
        self._listeners: List[CartListener] = []

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self) -> None:
        self._listeners.clear()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def emit(
        self, event_type: CartEventType, data: Optional[Dict[str, Any]] = None
    ) -> CartEvent:
        event = CartEvent(type=event_type, data=data or {})
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Cart listener failed for {event_type.value}")
        return event
