"""TaskPilot REST API server (FastAPI)."""
