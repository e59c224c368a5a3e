"""Agent execution, capability, history, and health routes."""

from typing import Optional

from fastapi import APIRouter, Depends

from ...app import TaskPilot
from ..app import get_pilot, verify_api_key
from ..models import AgentExecuteRequest, AgentExecuteResponse

router = APIRouter()


@router.post("/agent/execute", response_model=AgentExecuteResponse, dependencies=[Depends(verify_api_key)])
async def execute(req: AgentExecuteRequest, pilot: TaskPilot = Depends(get_pilot)):
    result = await pilot.process_request(
        req.request,
        req.conversation_id,
        req.context,
        user_id=req.user_id,
        timeout=req.timeout,
    )
    return AgentExecuteResponse(**result.to_dict())


@router.get("/capabilities", dependencies=[Depends(verify_api_key)])
async def capabilities(pilot: TaskPilot = Depends(get_pilot)):
    """Registered models and tools."""
    return pilot.capabilities()


@router.get("/agent/history", dependencies=[Depends(verify_api_key)])
async def history(
    user_id: Optional[str] = None, limit: int = 20, pilot: TaskPilot = Depends(get_pilot)
):
    """Recent requests handled by this process."""
    return pilot.orchestrator.get_execution_history(user_id=user_id, limit=limit)


@router.get("/health")
async def health():
    return {"status": "ok"}
