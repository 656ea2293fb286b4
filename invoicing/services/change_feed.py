"""
In-process live-update channel for invoice changes.

The repository publishes one event per committed write; subscribers are
keyed by user id and only ever see that user's invoices. Events are
delivered synchronously, in publication order, on the event loop thread.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, List, Union

import structlog

from invoicing.schemas.invoice import InvoiceResponse

logger = structlog.get_logger()


@dataclass(frozen=True)
class Inserted:
    invoice: InvoiceResponse
    kind: ClassVar[str] = "inserted"


@dataclass(frozen=True)
class Updated:
    invoice: InvoiceResponse
    kind: ClassVar[str] = "updated"


@dataclass(frozen=True)
class Deleted:
    invoice: InvoiceResponse
    kind: ClassVar[str] = "deleted"


InvoiceEvent = Union[Inserted, Updated, Deleted]
EventHandler = Callable[[InvoiceEvent], None]


class Subscription:
    """Handle returned by ``ChangeFeed.subscribe``; call ``unsubscribe`` to stop delivery."""

    def __init__(self, feed: "ChangeFeed", user_id: str, handler: EventHandler):
        self._feed = feed
        self.user_id = user_id
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self)
            self.active = False


class ChangeFeed:
    def __init__(self):
        self._subscribers: Dict[str, List[Subscription]] = defaultdict(list)

    def subscribe(self, user_id: str, handler: EventHandler) -> Subscription:
        sub = Subscription(self, str(user_id), handler)
        self._subscribers[sub.user_id].append(sub)
        logger.debug("change_feed_subscribed", user_id=sub.user_id)
        return sub

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.user_id, [])
        if sub in subs:
            subs.remove(sub)
        if not subs:
            self._subscribers.pop(sub.user_id, None)
        logger.debug("change_feed_unsubscribed", user_id=sub.user_id)

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(str(user_id), []))

    def publish(self, user_id: str, event: InvoiceEvent) -> None:
        # Copy: a handler may unsubscribe while we iterate.
        for sub in list(self._subscribers.get(str(user_id), [])):
            try:
                sub.handler(event)
            except Exception as e:
                logger.error(
                    "change_feed_handler_failed",
                    user_id=str(user_id),
                    event_kind=event.kind,
                    error=str(e),
                )


change_feed = ChangeFeed()
