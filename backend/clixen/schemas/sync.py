"""Sync and cleanup result schemas."""

from pydantic import BaseModel
from typing import List


class SyncResult(BaseModel):
    status: str
    workflows_processed: int
    successful_syncs: int
    failed_syncs: int
    executions_updated: int
    duration_ms: int
    errors: List[str] = []


class CleanupResult(BaseModel):
    deleted: int
    failed: int
    errors: List[str] = []
    candidates: int = 0
