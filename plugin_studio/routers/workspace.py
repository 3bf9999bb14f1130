"""Workspace API endpoints - autosave, snapshots and output history"""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_workspace_store
from ..models.assist import AutosaveBody, HistoryEntry, Snapshot, SnapshotRequest
from ..services.workspace_store import WorkspaceStore

router = APIRouter()


@router.get("/autosave", response_model=AutosaveBody)
async def get_autosave(store: WorkspaceStore = Depends(get_workspace_store)) -> AutosaveBody:
    return AutosaveBody(text=store.get_autosave())


@router.put("/autosave", response_model=AutosaveBody)
async def set_autosave(body: AutosaveBody, store: WorkspaceStore = Depends(get_workspace_store)) -> AutosaveBody:
    store.set_autosave(body.text)
    return body


@router.get("/snapshots", response_model=list[Snapshot])
async def list_snapshots(store: WorkspaceStore = Depends(get_workspace_store)) -> list[Snapshot]:
    """Saved snapshots, newest first"""
    return [Snapshot(**s) for s in store.get_snapshots()]


@router.post("/snapshots", response_model=Snapshot)
async def save_snapshot(
    request: SnapshotRequest, store: WorkspaceStore = Depends(get_workspace_store)
) -> Snapshot:
    snapshot = Snapshot(ts=int(time.time() * 1000), content=request.content, note=request.note.strip())
    store.add_snapshot(snapshot.model_dump())
    return snapshot


@router.delete("/snapshots/{ts}")
async def delete_snapshot(ts: int, store: WorkspaceStore = Depends(get_workspace_store)) -> dict:
    if not store.delete_snapshot(ts):
        raise HTTPException(status_code=404, detail="Snapshot not found")
    return {"success": True}


@router.get("/history", response_model=list[HistoryEntry])
async def get_history(store: WorkspaceStore = Depends(get_workspace_store)) -> list[HistoryEntry]:
    """Model answers, newest first"""
    return [HistoryEntry(**h) for h in store.get_history()]
