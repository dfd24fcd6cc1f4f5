"""
Sync API Endpoints
Replays mutations the dashboard queued while offline
"""
from fastapi import APIRouter, Depends, HTTPException

from storefront.core.auth import TokenUser, require_staff
from storefront.core.errors import AppError
from storefront.domain.sync import SyncReplayRequest
from storefront.services.sync_queue import SyncReplayService

router = APIRouter()


@router.post("/replay")
async def replay_operations(data: SyncReplayRequest, user: TokenUser = Depends(require_staff)):
    """
    Apply queued product, collection and order operations

    Deletes run first. With strategy=server_wins an operation whose
    server_version is older than the stored record comes back as a
    conflict instead of being applied.
    """
    try:
        service = SyncReplayService()
        results = service.replay(user.tenant_id, data.operations, strategy=data.strategy, user_id=user.id)

        summary = {"completed": 0, "failed": 0, "conflict": 0}
        for result in results:
            if result.status in summary:
                summary[result.status] += 1

        return {
            "status": "success",
            "count": len(results),
            "summary": summary,
            "data": [r.model_dump(mode="json") for r in results]
        }

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error replaying sync operations: {str(e)}")
