"""Controllers for chat and message endpoints.

Thin wrappers around :class:`ChatService`.  The acting user is passed
as the ``user_id`` query parameter.  Domain errors raised by the
service are turned into JSON responses by the exception handler
registered in ``main.py``.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from loguru import logger

from ..models.chat import Chat
from ..models.chat_message import ChatMessage
from ..models.requests import (
    CreateChatRequest,
    CreateMessageRequest,
    UpdateChatRequest,
    UpdateMessageRequest,
)
from ..services.chat_service import ChatService, get_chat_service
from ..utils.error_handler import ChatError

router = APIRouter(prefix="/chats", tags=["Chat"])


def _internal_error(action: str, exc: Exception) -> HTTPException:
    logger.exception("Unhandled exception while trying to {}", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.post("", response_model=Chat, status_code=status.HTTP_201_CREATED)
async def create_chat_endpoint(
    request: CreateChatRequest,
    user_id: str,
    service: ChatService = Depends(get_chat_service),
) -> Chat:
    """Create a chat owned by ``user_id``."""
    try:
        return await service.create_chat(user_id, request.name)
    except ChatError:
        raise
    except Exception as exc:
        raise _internal_error("create chat", exc) from exc


@router.get("", response_model=list[Chat])
async def list_chats_endpoint(
    user_id: str,
    service: ChatService = Depends(get_chat_service),
) -> list[Chat]:
    """List a user's chats, most recently active first."""
    try:
        return await service.get_all_chats_for_user(user_id)
    except ChatError:
        raise
    except Exception as exc:
        raise _internal_error("list chats", exc) from exc


@router.get("/{chat_id}", response_model=Chat)
async def get_chat_endpoint(
    chat_id: str,
    user_id: str,
    service: ChatService = Depends(get_chat_service),
) -> Chat:
    try:
        chat = await service.get_chat_for_user(chat_id, user_id)
    except ChatError:
        raise
    except Exception as exc:
        raise _internal_error("get chat", exc) from exc
    if chat is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    return chat


@router.patch("/{chat_id}", response_model=Chat)
async def rename_chat_endpoint(
    chat_id: str,
    request: UpdateChatRequest,
    user_id: str,
    service: ChatService = Depends(get_chat_service),
) -> Chat:
    try:
        return await service.update_chat_name(chat_id, user_id, request.name)
    except ChatError:
        raise
    except Exception as exc:
        raise _internal_error("rename chat", exc) from exc


@router.delete("/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat_endpoint(
    chat_id: str,
    user_id: str,
    service: ChatService = Depends(get_chat_service),
) -> Response:
    """Delete a chat together with all of its messages."""
    try:
        deleted = await service.delete_chat(chat_id, user_id)
    except ChatError:
        raise
    except Exception as exc:
        raise _internal_error("delete chat", exc) from exc
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{chat_id}/messages", response_model=list[ChatMessage])
async def list_messages_endpoint(
    chat_id: str,
    user_id: str,
    service: ChatService = Depends(get_chat_service),
) -> list[ChatMessage]:
    """Return a chat's messages oldest first; empty when the chat is not visible."""
    try:
        return await service.get_messages_for_chat(chat_id, user_id)
    except ChatError:
        raise
    except Exception as exc:
        raise _internal_error("list messages", exc) from exc


@router.post("/{chat_id}/messages", response_model=ChatMessage, status_code=status.HTTP_201_CREATED)
async def create_message_endpoint(
    chat_id: str,
    request: CreateMessageRequest,
    user_id: str,
    service: ChatService = Depends(get_chat_service),
) -> ChatMessage:
    try:
        return await service.create_message(
            chat_id,
            user_id,
            request.content,
            request.role,
            reasoning_content=request.reasoning_content,
        )
    except ChatError:
        raise
    except Exception as exc:
        raise _internal_error("create message", exc) from exc


@router.patch("/{chat_id}/messages/{message_id}", response_model=ChatMessage)
async def update_message_endpoint(
    chat_id: str,
    message_id: str,
    request: UpdateMessageRequest,
    user_id: str,
    service: ChatService = Depends(get_chat_service),
) -> ChatMessage:
    try:
        return await service.update_message(
            chat_id,
            message_id,
            user_id,
            request.content,
            reasoning_content=request.reasoning_content,
        )
    except ChatError:
        raise
    except Exception as exc:
        raise _internal_error("update message", exc) from exc


@router.delete("/{chat_id}/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message_endpoint(
    chat_id: str,
    message_id: str,
    user_id: str,
    service: ChatService = Depends(get_chat_service),
) -> Response:
    try:
        await service.delete_message(chat_id, message_id, user_id)
    except ChatError:
        raise
    except Exception as exc:
        raise _internal_error("delete message", exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
