"""Routers module - FastAPI route handlers"""

from . import assist, config, patches, workspace

__all__ = ["assist", "config", "patches", "workspace"]
