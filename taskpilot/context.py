"""
TaskPilot Context - Prior-context items a request can refer to

Items (uploaded file text, earlier answers, notes) are stored under opaque
references such as ``ctx_1a2b3c4d``. The orchestrator resolves references
through any object implementing ContextProviderProtocol; ContextManager is
the in-memory implementation, keyed by user.
"""

import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "ctx_"
DEFAULT_WINDOW = 10


def new_reference() -> str:
    return f"{REFERENCE_PREFIX}{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class ContextItem:
    """One stored piece of context."""
    reference: str
    type: str
    label: str
    content: str
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def render(self) -> str:
        return f"[{self.type}: {self.label}]\n{self.content}"

    def to_dict(self) -> Dict[str, str]:
        return {
            "reference": self.reference,
            "type": self.type,
            "label": self.label,
            "content": self.content,
            "added_at": self.added_at.isoformat(),
        }


class ContextManager:
    """
    In-memory context store, one isolated namespace per user.

    A reference added by one user never resolves for another.

    Example:
        contexts = ContextManager()
        item = contexts.add("Q3 revenue was 4.2M", type="text", label="notes", user_id="u1")
        contexts.resolve(item.reference, user_id="u1")  # -> "Q3 revenue was 4.2M"
        contexts.resolve(item.reference, user_id="u2")  # -> None
    """

    def __init__(self) -> None:
        self._users: Dict[str, "OrderedDict[str, ContextItem]"] = {}

    def __len__(self) -> int:
        return sum(len(items) for items in self._users.values())

    def _items(self, user_id: str) -> "OrderedDict[str, ContextItem]":
        return self._users.get(user_id) or OrderedDict()

    def add(
        self, content: str, type: str = "text", label: str = "", user_id: str = "default"
    ) -> ContextItem:
        items = self._users.setdefault(user_id, OrderedDict())
        reference = new_reference()
        while reference in items:
            reference = new_reference()
        item = ContextItem(reference=reference, type=type, label=label or reference, content=content)
        items[reference] = item
        logger.debug(
            f"[ContextManager] Added {reference} for user={user_id} ({type}, {len(content)} chars)"
        )
        return item

    def get(self, reference: str, user_id: str = "default") -> Optional[ContextItem]:
        return self._items(user_id).get(reference)

    def resolve(self, reference: str, user_id: str = "default") -> Optional[str]:
        item = self.get(reference, user_id)
        return item.content if item is not None else None

    def remove(self, reference: str, user_id: str = "default") -> bool:
        items = self._users.get(user_id)
        if items is None or items.pop(reference, None) is None:
            return False
        if not items:
            del self._users[user_id]
        return True

    def window(self, limit: int = DEFAULT_WINDOW, user_id: str = "default") -> List[ContextItem]:
        """Most recent *limit* items of *user_id*, oldest first."""
        if limit <= 0:
            return []
        return list(self._items(user_id).values())[-limit:]

    def clear(self, user_id: Optional[str] = None) -> None:
        """Drop one user's items, or every user's when *user_id* is None."""
        if user_id is None:
            self._users.clear()
        else:
            self._users.pop(user_id, None)
