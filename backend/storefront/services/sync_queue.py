"""
Offline Sync Queue

Client side: SyncQueue collects mutations made while offline, persists
them to a JSON file and replays them through an async handler when the
connection comes back.

Server side: SyncReplayService applies a batch of queued operations for a
tenant, detecting edits made on the server since the client last saw the
entity.
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from storefront.core.config import settings
from storefront.core.errors import AppError
from storefront.domain.collection import CollectionCreate, CollectionUpdate
from storefront.domain.product import ProductCreate, ProductUpdate
from storefront.domain.sync import (
    ConflictStrategy, SyncOperationIn, SyncQueueItem, SyncReplayItemResult, SyncStatus,
)
from storefront.repositories.collection_repository import CollectionRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

SyncHandler = Callable[[SyncQueueItem], Awaitable[Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncConflictError(Exception):
    """Raised by a sync handler when the server copy changed underneath the client"""


class SyncQueue:
    def __init__(self, items: Optional[List[SyncQueueItem]] = None, max_retries: Optional[int] = None):
        self.items: List[SyncQueueItem] = list(items or [])
        self.max_retries = max_retries or settings.SYNC_MAX_RETRIES
        self.is_processing = False
        self.current_item_id: Optional[str] = None
        self.progress = 0
        self.last_sync_at: Optional[datetime] = None

    def _get(self, item_id: str) -> Optional[SyncQueueItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def add_operation(
        self,
        op_type: str,
        entity_type: str,
        entity_id: str,
        payload: Optional[Dict[str, Any]] = None,
        entity_name: Optional[str] = None,
        server_version: Optional[str] = None
    ) -> str:
        item = SyncQueueItem(
            id=f"sync_{uuid.uuid4().hex[:12]}",
            type=op_type,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            payload=payload or {},
            created_at=_utcnow(),
            max_retries=self.max_retries,
            priority=0 if op_type == "delete" else 1,
            server_version=server_version,
        )
        self.items.append(item)
        return item.id

    def remove_operation(self, item_id: str):
        self.items = [item for item in self.items if item.id != item_id]

    def update_status(self, item_id: str, status: SyncStatus, error: Optional[str] = None):
        item = self._get(item_id)
        if item is None:
            return

        now = _utcnow()
        item.status = status
        item.error = error
        item.last_attempt_at = now
        if status == "completed":
            item.completed_at = now
        if status == "failed":
            item.retry_count += 1

    async def process_queue(self, handler: SyncHandler, on_progress: Optional[Callable[[int], None]] = None) -> int:
        """
        Run every pending or failed item that still has retries left

        Items run in priority order (deletes first), then by creation time.
        A second call while a run is in progress returns immediately.

        Returns:
            Number of items attempted
        """
        if self.is_processing:
            return 0

        runnable = sorted(
            (item for item in self.items if item.status in ("pending", "failed") and item.can_retry),
            key=lambda item: (item.priority, item.created_at),
        )
        if not runnable:
            return 0

        self.is_processing = True
        self.progress = 0
        total = len(runnable)

        try:
            for processed, item in enumerate(runnable, 1):
                self.current_item_id = item.id
                self.update_status(item.id, "syncing")

                try:
                    await handler(item)
                    self.update_status(item.id, "completed")
                except SyncConflictError as e:
                    self.update_status(item.id, "conflict", str(e) or "Conflict detected")
                except Exception as e:
                    logger.warning(f"Sync of {item.entity_type} {item.entity_id} failed: {e}")
                    self.update_status(item.id, "failed", str(e) or "Unknown error")

                self.progress = round(processed / total * 100)
                if on_progress:
                    on_progress(self.progress)
        finally:
            self.is_processing = False
            self.current_item_id = None

        self.progress = 100
        self.last_sync_at = _utcnow()
        return total

    def retry_operation(self, item_id: str):
        item = self._get(item_id)
        if item is not None:
            item.status = "pending"
            item.error = None

    def retry_all_failed(self) -> int:
        count = 0
        for item in self.items:
            if item.status == "failed" and item.can_retry:
                item.status = "pending"
                item.error = None
                count += 1
        return count

    def clear_completed(self):
        self.items = [item for item in self.items if item.status != "completed"]

    def clear_all(self):
        self.items = []

    def resolve_conflict(self, item_id: str, resolution: str, merged: Optional[Dict[str, Any]] = None):
        """Requeue a conflicting item, with the merged payload when given"""
        item = self._get(item_id)
        if item is None:
            return
        logger.info(f"Resolving sync conflict {item_id} with '{resolution}'")
        item.status = "pending"
        item.error = None
        if merged:
            item.payload = merged

    @property
    def pending_items(self) -> List[SyncQueueItem]:
        return [item for item in self.items if item.status in ("pending", "syncing")]

    @property
    def failed_items(self) -> List[SyncQueueItem]:
        return [item for item in self.items if item.status == "failed"]

    @property
    def completed_items(self) -> List[SyncQueueItem]:
        return [item for item in self.items if item.status == "completed"]

    @property
    def conflict_items(self) -> List[SyncQueueItem]:
        return [item for item in self.items if item.status == "conflict"]

    @property
    def pending_count(self) -> int:
        return len(self.pending_items)

    @property
    def failed_count(self) -> int:
        return len(self.failed_items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.model_dump(mode="json") for item in self.items],
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
        }

    def save(self, path: Union[str, Path]):
        Path(path).write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Union[str, Path], max_retries: Optional[int] = None) -> "SyncQueue":
        """Queue from a file written by save(); a missing file gives an empty queue"""
        path = Path(path)
        if not path.exists():
            return cls(max_retries=max_retries)

        data = json.loads(path.read_text(encoding="utf-8"))
        queue = cls(
            items=[SyncQueueItem.model_validate(item) for item in data.get("items", [])],
            max_retries=max_retries,
        )
        if data.get("last_sync_at"):
            queue.last_sync_at = datetime.fromisoformat(data["last_sync_at"])
        return queue


# ============================================================================
# SERVER-SIDE REPLAY
# ============================================================================

def _parse_version(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_stale(server_version: Optional[str], current_updated_at: Optional[datetime]) -> bool:
    """True when the entity changed on the server after the client read it"""
    if not server_version or current_updated_at is None:
        return False
    client_seen = _parse_version(server_version)
    current = _parse_version(current_updated_at)
    if client_seen is None or current is None:
        return str(server_version) != str(current_updated_at)
    return current != client_seen


class SyncReplayService:
    def __init__(
        self,
        products: Optional[ProductRepository] = None,
        collections: Optional[CollectionRepository] = None,
        orders: Optional[OrderRepository] = None
    ):
        self.products = products or ProductRepository()
        self.collections = collections or CollectionRepository()
        self.orders = orders or OrderRepository()

    def replay(
        self,
        tenant_id: str,
        operations: List[SyncOperationIn],
        strategy: ConflictStrategy = "server_wins",
        user_id: Optional[str] = None
    ) -> List[SyncReplayItemResult]:
        """Apply queued operations in priority order; each gets its own result"""
        ordered = sorted(operations, key=lambda op: 0 if op.type == "delete" else 1)
        results = []

        for op in ordered:
            try:
                results.append(self._apply(tenant_id, op, strategy, user_id))
            except (AppError, PydanticValidationError, ValueError) as e:
                message = getattr(e, "message", None) or str(e)
                results.append(SyncReplayItemResult(id=op.id, status="failed", entity_id=op.entity_id, error=message))
            except Exception as e:
                logger.error(f"Sync replay of {op.entity_type} {op.entity_id} failed: {e}")
                results.append(SyncReplayItemResult(id=op.id, status="failed", entity_id=op.entity_id, error=str(e)))

        return results

    def _current(self, tenant_id: str, op: SyncOperationIn):
        if op.entity_type == "product":
            return self.products.find_by_id(tenant_id, op.entity_id)
        if op.entity_type == "collection":
            return self.collections.find_by_id(tenant_id, op.entity_id)
        return self.orders.find_by_id(tenant_id, op.entity_id)

    def _apply(
        self,
        tenant_id: str,
        op: SyncOperationIn,
        strategy: ConflictStrategy,
        user_id: Optional[str]
    ) -> SyncReplayItemResult:
        if op.type == "create":
            entity = self._create(tenant_id, op)
            return SyncReplayItemResult(
                id=op.id, status="completed", entity_id=entity.id,
                server_version=entity.updated_at.isoformat() if entity.updated_at else None,
            )

        current = self._current(tenant_id, op)
        if current is None:
            if op.type == "delete":
                return SyncReplayItemResult(id=op.id, status="completed", entity_id=op.entity_id)
            return SyncReplayItemResult(
                id=op.id, status="failed", entity_id=op.entity_id,
                error=f"{op.entity_type.capitalize()} not found",
            )

        if strategy == "server_wins" and is_stale(op.server_version, current.updated_at):
            return SyncReplayItemResult(
                id=op.id, status="conflict", entity_id=op.entity_id,
                error="Entity was modified on the server",
                server_version=current.updated_at.isoformat() if current.updated_at else None,
            )

        if op.type == "delete":
            self._delete(tenant_id, op)
            return SyncReplayItemResult(id=op.id, status="completed", entity_id=op.entity_id)

        updated = self._update(tenant_id, op, user_id)
        return SyncReplayItemResult(
            id=op.id, status="completed", entity_id=op.entity_id,
            server_version=updated.updated_at.isoformat() if updated and updated.updated_at else None,
        )

    def _create(self, tenant_id: str, op: SyncOperationIn):
        if op.entity_type == "product":
            return self.products.create(tenant_id, ProductCreate(**op.payload))
        if op.entity_type == "collection":
            return self.collections.create(tenant_id, CollectionCreate(**op.payload))
        raise ValueError("Orders cannot be created through sync")

    def _update(self, tenant_id: str, op: SyncOperationIn, user_id: Optional[str]):
        if op.entity_type == "product":
            return self.products.update(tenant_id, op.entity_id, ProductUpdate(**op.payload))
        if op.entity_type == "collection":
            return self.collections.update(tenant_id, op.entity_id, CollectionUpdate(**op.payload))

        payload = dict(op.payload)
        status = payload.pop("status", None)
        order = None
        if payload:
            order = self.orders.update(tenant_id, op.entity_id, payload)
        if status:
            order = self.orders.update_status(
                tenant_id, op.entity_id, status, note="Synced from offline queue", changed_by=user_id
            )
        return order

    def _delete(self, tenant_id: str, op: SyncOperationIn):
        if op.entity_type == "product":
            self.products.delete(tenant_id, op.entity_id)
        elif op.entity_type == "collection":
            self.collections.delete(tenant_id, op.entity_id)
        else:
            self.orders.delete(tenant_id, op.entity_id)
