"""In-memory store for content items.

Only the orchestration layer mutates items, and only through the actions
below. Each action is published to subscribers as a dict with a "type" key
("set_items", "update_status", "set_content", "attach_content"), which the
API layer uses to expose progress.
"""

from collections.abc import Callable, Iterable
from typing import Any

from article_pipeline.core.logging import get_logger
from article_pipeline.schemas.content import ContentItem, GeneratedContent, ItemStatus

logger = get_logger(__name__)

Listener = Callable[[dict[str, Any]], None]


class ItemNotFoundError(KeyError):
    """Raised when an action targets an unknown item id."""


class ItemsStore:
    """Content items keyed by id, in insertion order."""

    def __init__(self, items: Iterable[ContentItem] = ()) -> None:
        self._items: dict[str, ContentItem] = {item.id: item for item in items}
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _publish(self, action: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(action)
            except Exception as e:
                logger.warning(
                    "Items store listener failed",
                    extra={"action": action.get("type"), "error": str(e)},
                )

    def get(self, item_id: str) -> ContentItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise ItemNotFoundError(item_id) from None

    def all(self) -> list[ContentItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def set_items(self, items: Iterable[ContentItem]) -> None:
        """Replace every item; new items start idle with "Not Started"."""
        self._items = {}
        for item in items:
            item.status = ItemStatus.IDLE
            item.status_text = item.status_text or "Not Started"
            item.generated_content = None
            self._items[item.id] = item
        self._publish({"type": "set_items", "count": len(self._items)})

    def update_status(self, item_id: str, status: ItemStatus, status_text: str) -> None:
        item = self.get(item_id)
        item.status = status
        item.status_text = status_text
        self._publish(
            {
                "type": "update_status",
                "id": item_id,
                "status": status.value,
                "status_text": status_text,
            }
        )

    def set_content(self, item_id: str, content: GeneratedContent) -> None:
        """Attach finished content and mark the item done."""
        item = self.get(item_id)
        item.generated_content = content
        item.status = ItemStatus.DONE
        item.status_text = "Completed"
        self._publish({"type": "set_content", "id": item_id, "status": item.status.value})

    def attach_content(self, item_id: str, content: GeneratedContent) -> None:
        """Attach content without changing status (content kept for review)."""
        self.get(item_id).generated_content = content
        self._publish({"type": "attach_content", "id": item_id})
