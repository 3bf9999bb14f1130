"""Patch API endpoints - impact, gated apply, validation and changelog"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_config_manager, get_workspace_store
from ..models.assist import ApplyRequest, ApplyResponse, Finding, ImpactRequest, ValidateRequest
from ..models.patch import ChangelogEntry, ImpactReport
from ..services.config_manager import ConfigManager
from ..services.diff_parser import extract_diff_text
from ..services.patcher import (
    apply_unified_diff,
    build_changelog_entry,
    estimate_impact,
    manual_merge_message,
    requires_confirmation,
)
from ..services.validators import run_validators
from ..services.workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/impact", response_model=ImpactReport)
async def get_impact(request: ImpactRequest) -> ImpactReport:
    """Preview how much of the buffer a diff touches"""
    return estimate_impact(request.code, extract_diff_text(request.diff))


@router.post("/apply", response_model=ApplyResponse)
async def apply_patch(
    request: ApplyRequest,
    config_manager: ConfigManager = Depends(get_config_manager),
    store: WorkspaceStore = Depends(get_workspace_store),
) -> ApplyResponse:
    """Apply (or dry-run) a diff; large changes need confirm=true"""
    if not request.diff.strip():
        raise HTTPException(status_code=400, detail="No patch to apply.")

    diff = extract_diff_text(request.diff)
    impact = estimate_impact(request.code, diff)
    settings = config_manager.get_settings()
    needs_confirmation = requires_confirmation(
        impact,
        touched_threshold=float(settings.get("touchedThreshold", 20)),
        deleted_threshold=float(settings.get("deletedThreshold", 10)),
    )
    if not request.dry_run and needs_confirmation and not request.confirm:
        raise HTTPException(
            status_code=409,
            detail=(
                f"This patch touches {impact.touched_pct:.1f}% of lines and deletes "
                f"{impact.deleted_pct:.1f}%. Apply anyway?"
            ),
        )

    outcome = apply_unified_diff(request.code, diff, dry_run=request.dry_run)
    if not request.dry_run and outcome.changed:
        entry = build_changelog_entry(request.title, diff, impact)
        store.add_changelog(entry.model_dump())
        store.set_autosave(outcome.result)
        logger.info("[Patches] %s: %s", entry.title, entry.summary)

    return ApplyResponse(
        outcome=outcome,
        impact=impact,
        message=manual_merge_message(outcome, request.dry_run),
    )


@router.post("/validate", response_model=list[Finding])
async def validate_code(
    request: ValidateRequest, config_manager: ConfigManager = Depends(get_config_manager)
) -> list[Finding]:
    """Run the heuristic plugin checks"""
    framework = request.framework or config_manager.get_settings().get("framework", "oxide")
    return run_validators(request.code, framework)


@router.get("/changelog", response_model=list[ChangelogEntry])
async def get_changelog(store: WorkspaceStore = Depends(get_workspace_store)) -> list[ChangelogEntry]:
    """Applied patches, newest first"""
    return [ChangelogEntry(**entry) for entry in store.get_changelog()]
