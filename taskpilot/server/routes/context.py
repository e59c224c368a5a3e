"""Context item routes. Items are scoped to the ``user_id`` that added them."""

from fastapi import APIRouter, Depends, HTTPException

from ...app import TaskPilot
from ..app import get_pilot, verify_api_key
from ..models import ContextAddRequest, ContextAddResponse

router = APIRouter()


@router.post("/context", response_model=ContextAddResponse, dependencies=[Depends(verify_api_key)])
async def add_context(req: ContextAddRequest, pilot: TaskPilot = Depends(get_pilot)):
    """Store a context item; pass the returned reference in ``context`` later."""
    item = pilot.contexts.add(req.content, type=req.type, label=req.label, user_id=req.user_id)
    return ContextAddResponse(reference=item.reference, type=item.type, label=item.label)


@router.get("/context/{reference}", dependencies=[Depends(verify_api_key)])
async def get_context(
    reference: str, user_id: str = "default", pilot: TaskPilot = Depends(get_pilot)
):
    item = pilot.contexts.get(reference, user_id=user_id)
    if item is None:
        raise HTTPException(404, f"Unknown context reference: {reference}")
    return item.to_dict()


@router.delete("/context/{reference}", dependencies=[Depends(verify_api_key)])
async def delete_context(
    reference: str, user_id: str = "default", pilot: TaskPilot = Depends(get_pilot)
):
    if not pilot.contexts.remove(reference, user_id=user_id):
        raise HTTPException(404, f"Unknown context reference: {reference}")
    return {"status": "ok"}
