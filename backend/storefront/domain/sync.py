"""
Offline Sync Domain Models

Mutations made while the dashboard is offline are queued and replayed
against the API when connectivity returns.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

SyncOperationType = Literal["create", "update", "delete"]
SyncStatus = Literal["pending", "syncing", "completed", "failed", "conflict"]
SyncEntityType = Literal["product", "collection", "order"]
ConflictStrategy = Literal["client_wins", "server_wins"]


class SyncQueueItem(BaseModel):
    id: str
    type: SyncOperationType
    entity_type: str
    entity_id: str
    entity_name: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    retry_count: int = 0
    max_retries: int = 3
    status: SyncStatus = "pending"
    # deletes (0) run before creates/updates (1)
    priority: int = 1
    server_version: Optional[str] = None
    error: Optional[str] = None
    last_attempt_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries


class SyncOperationIn(BaseModel):
    """A queued operation sent by a client for server-side replay"""
    id: str
    type: SyncOperationType
    entity_type: SyncEntityType
    entity_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    server_version: Optional[str] = None


class SyncReplayRequest(BaseModel):
    operations: List[SyncOperationIn] = Field(default_factory=list)
    strategy: ConflictStrategy = "server_wins"


class SyncReplayItemResult(BaseModel):
    id: str
    status: SyncStatus
    entity_id: Optional[str] = None
    error: Optional[str] = None
    server_version: Optional[str] = None
