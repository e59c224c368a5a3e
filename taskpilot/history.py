"""
TaskPilot History - Execution history sinks

Backends:
- InMemoryHistorySink: bounded in-process list for development/testing
- JsonlHistorySink: append-only JSON lines file

Both implement HistorySinkProtocol. The orchestrator logs and swallows sink
failures so persistence never fails a response.
"""

import asyncio
import json
import logging
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


def build_record(
    user_id: str,
    conversation_id: Optional[str],
    request: str,
    execution_path: Dict[str, Any],
    response: str,
) -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "user_id": user_id,
        "conversation_id": conversation_id,
        "request": request,
        "execution_path": execution_path,
        "response": response,
    }


class InMemoryHistorySink:
    """Keeps the most recent ``limit`` records in memory."""

    def __init__(self, limit: Optional[int] = 1000):
        self._records: deque = deque(maxlen=limit)

    async def save(
        self,
        user_id: str,
        conversation_id: Optional[str],
        request: str,
        execution_path: Dict[str, Any],
        response: str,
    ) -> None:
        self._records.append(build_record(user_id, conversation_id, request, execution_path, response))

    def records(
        self,
        user_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return [
            r for r in self._records
            if (user_id is None or r["user_id"] == user_id)
            and (conversation_id is None or r["conversation_id"] == conversation_id)
        ]


class JsonlHistorySink:
    """
    Appends one JSON object per line to ``path``.

    Writes go through a thread so the event loop is not blocked; a lock keeps
    lines from interleaving.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def save(
        self,
        user_id: str,
        conversation_id: Optional[str],
        request: str,
        execution_path: Dict[str, Any],
        response: str,
    ) -> None:
        line = json.dumps(
            build_record(user_id, conversation_id, request, execution_path, response),
            ensure_ascii=False,
            default=str,
        )
        async with self._lock:
            await asyncio.to_thread(self._append, line)

    def _append(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    def read_all(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]
