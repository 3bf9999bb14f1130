"""Services module - Business logic layer"""

from .assistant import PluginAssistant
from .backoff import RetryPolicy, with_backoff
from .config_manager import ConfigManager
from .diff_parser import hunk_to_blocks, looks_like_diff, parse_unified_diff
from .llm_service import LLMService
from .patcher import apply_unified_diff, build_changelog_entry, estimate_impact, requires_confirmation
from .workspace_store import WorkspaceStore

__all__ = [
    "PluginAssistant",
    "RetryPolicy",
    "with_backoff",
    "ConfigManager",
    "hunk_to_blocks",
    "looks_like_diff",
    "parse_unified_diff",
    "LLMService",
    "apply_unified_diff",
    "build_changelog_entry",
    "estimate_impact",
    "requires_confirmation",
    "WorkspaceStore",
]
