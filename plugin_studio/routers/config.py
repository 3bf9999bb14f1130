"""Configuration API endpoints"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import get_config_manager
from ..services.config_manager import ConfigManager

router = APIRouter()


class ConfigUpdateRequest(BaseModel):
    """Request to update configuration"""

    openai: dict | None = None
    settings: dict | None = None


class ConfigResponse(BaseModel):
    """Configuration response"""

    openai: dict
    settings: dict


def mask_key(key: str) -> str:
    """Mask API keys for display"""
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


def _masked(config: dict[str, Any]) -> ConfigResponse:
    openai = config.get("openai", {}).copy()
    openai["apiKey"] = mask_key(openai.get("apiKey", ""))
    return ConfigResponse(openai=openai, settings=config.get("settings", {}))


@router.get("", response_model=ConfigResponse)
async def get_config(config_manager: ConfigManager = Depends(get_config_manager)) -> ConfigResponse:
    """Get current configuration"""
    return _masked(config_manager.get_config())


@router.put("", response_model=ConfigResponse)
async def update_config(
    request: ConfigUpdateRequest, config_manager: ConfigManager = Depends(get_config_manager)
) -> ConfigResponse:
    """Update configuration"""
    updates: dict[str, Any] = {}

    # Update only provided fields
    if request.openai:
        openai = dict(request.openai)
        # Don't overwrite the stored key with its masked form
        if "*" in (openai.get("apiKey") or ""):
            openai.pop("apiKey")
        updates["openai"] = openai
    if request.settings:
        updates["settings"] = request.settings

    config_manager.save_config(updates)
    return _masked(config_manager.get_config())


@router.delete("/key")
async def clear_api_key(config_manager: ConfigManager = Depends(get_config_manager)) -> dict[str, Any]:
    """Forget the stored API key"""
    config_manager.clear_api_key()
    return {"success": True, "message": "API key cleared"}
