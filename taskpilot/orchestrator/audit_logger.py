"""
Structured audit logging for orchestration decisions.

Produces JSON log entries via Python's standard logging module under
the ``taskpilot.audit`` logger name. Each entry includes a timestamp,
event_type, request_id, and event-specific fields.

Usage::

    audit = AuditLogger(request_id="3f2a...")
    audit.log_plan_built(plan)
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_audit_logger = logging.getLogger("taskpilot.audit")


class AuditLogger:
    """Structured audit logger for key orchestration decisions."""

    def __init__(self, request_id: Optional[str] = None, user_id: Optional[str] = None) -> None:
        self._request_id = request_id or ""
        self._user_id = user_id or ""

    def _emit(self, event_type: str, fields: Dict[str, Any]) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "request_id": self._request_id,
            "user_id": self._user_id,
        }
        entry.update(fields)
        _audit_logger.info(json.dumps(entry, default=str))

    def log_analysis(self, task_count: int, suggested_tools: list, used_fallback: bool) -> None:
        """Log the analyzer outcome."""
        self._emit("analysis", {
            "task_count": task_count,
            "suggested_tools": suggested_tools,
            "used_fallback": used_fallback,
        })

    def log_plan_built(self, plan: Any) -> None:
        """Log the resolved plan (step types, models, tools)."""
        self._emit("plan_built", {
            "step_count": len(plan.steps),
            "primary_model": f"{plan.primary_model.provider_id}/{plan.primary_model.identifier}",
            "steps": [
                {
                    "index": s.index,
                    "type": s.task.type.value,
                    "priority": s.task.priority,
                    "model": f"{s.assigned_model.provider_id}/{s.assigned_model.identifier}",
                    "tools": [t.name for t in s.assigned_tools],
                }
                for s in plan.steps
            ],
        })

    def log_step(self, step_index: int, success: bool, duration_ms: int,
                 error: Optional[str] = None) -> None:
        """Log a step model call result."""
        fields: Dict[str, Any] = {
            "step_index": step_index,
            "success": success,
            "duration_ms": duration_ms,
        }
        if error is not None:
            fields["error"] = error
        self._emit("step_execution", fields)

    def log_tool_execution(self, tool_name: str, step_index: int, success: bool,
                           duration_ms: int, error: Optional[str] = None) -> None:
        """Log a tool execution result."""
        fields: Dict[str, Any] = {
            "tool_name": tool_name,
            "step_index": step_index,
            "success": success,
            "duration_ms": duration_ms,
        }
        if error is not None:
            fields["error"] = error
        self._emit("tool_execution", fields)

    def log_synthesis(self, model: Optional[str], used_fallback: bool) -> None:
        self._emit("synthesis", {"model": model, "used_fallback": used_fallback})

    def log_request_finished(self, status: str, duration_ms: int,
                             error_type: Optional[str] = None) -> None:
        self._emit("request_finished", {
            "status": status,
            "duration_ms": duration_ms,
            "error_type": error_type,
        })
