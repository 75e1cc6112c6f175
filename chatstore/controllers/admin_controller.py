"""Admin endpoints for local maintenance."""

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from ..services.chat_service import ChatService, get_chat_service
from ..utils.error_handler import ChatError

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.delete("/data")
async def clear_data_endpoint(
    user_id: str,
    service: ChatService = Depends(get_chat_service),
) -> dict[str, object]:
    """Delete every stored chat and message (local storage only)."""
    try:
        removed = await service.clear_data(user_id)
        return {"status": "ok", "chats_deleted": removed}
    except ChatError:
        raise
    except Exception as exc:  # pragma: no cover - defensive logging
        logger.exception("Failed to clear chat data")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clear chat data",
        ) from exc
