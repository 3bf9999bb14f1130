"""FastAPI dependencies resolving the per-process services from app state"""

from __future__ import annotations

from fastapi import Request

from .services.assistant import PluginAssistant
from .services.config_manager import ConfigManager
from .services.llm_service import LLMService
from .services.workspace_store import WorkspaceStore


def get_config_manager(request: Request) -> ConfigManager:
    return request.app.state.config_manager


def get_workspace_store(request: Request) -> WorkspaceStore:
    return request.app.state.workspace_store


def get_llm_service(request: Request) -> LLMService:
    return request.app.state.llm_service


def get_assistant(request: Request) -> PluginAssistant:
    return request.app.state.assistant
