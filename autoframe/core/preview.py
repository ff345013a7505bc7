"""Bounded buffer of recently generated images.

Generated images land here (most recent first) for clients to fetch; it is
the server-side stand-in for inserting them into the canvas.
"""

import logging
import uuid
from collections import deque

from autoframe.schemas import AttemptResult, PreviewItem

logger = logging.getLogger(__name__)


class PreviewBuffer:
    """Most-recent-first list of generated images, capped at ``limit``."""

    def __init__(self, limit: int = 12) -> None:
        self.limit = limit
        self._items: deque[PreviewItem] = deque(maxlen=limit)

    def add(self, result: AttemptResult) -> PreviewItem:
        item = PreviewItem(
            id=uuid.uuid4().hex,
            mime_type=result.mime_type,
            data=result.data,
            provider_used=result.provider_used,
        )
        self._items.appendleft(item)
        logger.debug(f"Preview added {item.id} ({len(self._items)}/{self.limit})")
        return item

    def remove(self, item_id: str) -> bool:
        """Delete an item. Returns False if it was not there."""
        for item in self._items:
            if item.id == item_id:
                self._items.remove(item)
                return True
        return False

    def items(self) -> list[PreviewItem]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
