"""Pydantic request/response models for the TaskPilot API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AgentExecuteRequest(BaseModel):
    request: str = Field(min_length=1)
    conversation_id: Optional[str] = None
    user_id: str = "default"
    context: Optional[List[str]] = None  # context references (ctx_...)
    timeout: Optional[float] = Field(default=None, gt=0)


class AgentExecuteResponse(BaseModel):
    request_id: str
    response: str
    execution_path: Dict[str, Any]
    model_used: Optional[str] = None
    status: str
    reasoning: List[str] = []
    error: Optional[str] = None
    error_type: Optional[str] = None
    created_at: str


class ContextAddRequest(BaseModel):
    content: str
    type: str = "text"
    label: str = ""
    user_id: str = "default"


class ContextAddResponse(BaseModel):
    reference: str
    type: str
    label: str
