"""Route registration for the TaskPilot API."""

from fastapi import FastAPI

from .agent import router as agent_router
from .context import router as context_router


def register_routes(app: FastAPI):
    app.include_router(agent_router)
    app.include_router(context_router)
