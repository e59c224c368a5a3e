"""FastAPI application factory for the TaskPilot API.

``create_api`` keeps the ServerSettings and the TaskPilot instance on
``api.state``. Routes reach the pilot through the ``get_pilot`` dependency,
which loads it from the configured YAML file on first use.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader

from ..app import TaskPilot

logger = logging.getLogger(__name__)

_DEFAULT_ORIGINS = "http://localhost:3000,http://localhost:5173"

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


@dataclass
class ServerSettings:
    """Server-level knobs, read from ``TASKPILOT_*`` environment variables."""
    config_path: str = "config.yaml"
    api_key: Optional[str] = None
    allowed_origins: List[str] = field(default_factory=lambda: _DEFAULT_ORIGINS.split(","))

    @classmethod
    def from_env(cls) -> "ServerSettings":
        origins = os.getenv("TASKPILOT_ALLOWED_ORIGINS", _DEFAULT_ORIGINS)
        return cls(
            config_path=os.getenv("TASKPILOT_CONFIG", "config.yaml"),
            api_key=os.getenv("TASKPILOT_API_KEY") or None,
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


def _load_pilot(settings: ServerSettings) -> Optional[TaskPilot]:
    if not os.path.exists(settings.config_path):
        logger.warning(f"[Server] Config not found: {settings.config_path}")
        return None
    try:
        pilot = TaskPilot(settings.config_path)
    except Exception as e:
        logger.error(f"[Server] Failed to load {settings.config_path}: {e}")
        return None
    logger.info(f"[Server] TaskPilot loaded from {settings.config_path}")
    return pilot


def get_pilot(request: Request) -> TaskPilot:
    """Dependency returning the app's TaskPilot; 503 while unconfigured."""
    state = request.app.state
    if state.pilot is None:
        state.pilot = _load_pilot(state.settings)
    if state.pilot is None:
        raise HTTPException(
            503, f"Not configured. Provide a config file at {state.settings.config_path}."
        )
    return state.pilot


async def verify_api_key(
    request: Request,
    header_key: Optional[str] = Security(_api_key_header),
) -> Optional[str]:
    """Accept ``X-API-Key: <key>`` or ``Authorization: Bearer <key>``.

    Every request passes when no API key is configured.
    """
    expected = request.app.state.settings.api_key
    if expected is None:
        return None

    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    for candidate in (header_key, token if scheme.lower() == "bearer" else None):
        if candidate and candidate == expected:
            return candidate
    raise HTTPException(401, "Invalid or missing API key")


def create_api(
    settings: Optional[ServerSettings] = None, pilot: Optional[TaskPilot] = None
) -> FastAPI:
    """Build the FastAPI app. *pilot* skips loading from the config file."""
    settings = settings or ServerSettings.from_env()
    api = FastAPI(title="TaskPilot", version="0.1.0")
    api.state.settings = settings
    api.state.pilot = pilot

    api.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @api.on_event("shutdown")
    async def _close_pilot() -> None:
        if api.state.pilot is not None:
            await api.state.pilot.shutdown()

    if settings.api_key is None:
        logger.warning("[Server] TASKPILOT_API_KEY is not set; API endpoints are unauthenticated")

    from .routes import register_routes
    register_routes(api)
    return api


api = create_api()
