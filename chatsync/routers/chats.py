import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from chatsync.core.config import get_settings
from chatsync.database.connection import mongo_db_dependency
from chatsync.repositories.chat_repository import ChatRepository
from chatsync.repositories.message_repository import MessageRepository
from chatsync.schemas.chat import DeleteChatResult, Identity, SessionState
from chatsync.services.chat_deleter import ChatDeleter
from chatsync.services.chat_projector import ChatProjector
from chatsync.services.sync_session import SyncSession
from chatsync.utils.errors import ChatNotFoundError, DeleteError
from chatsync.utils.realtime_bus import get_bus, notify


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chats", tags=["chats"])


def get_chat_deleter(db = Depends(mongo_db_dependency)) -> ChatDeleter:
    return ChatDeleter(ChatRepository(db), MessageRepository(db), concurrency=get_settings().delete_concurrency)


def get_sync_session(db = Depends(mongo_db_dependency)) -> SyncSession:
    chat_repo = ChatRepository(db)
    return SyncSession(chat_repo, ChatProjector(chat_repo, get_settings().unknown_user_name))


@router.delete("/{chat_id}", response_model=DeleteChatResult)
async def delete_chat(
    chat_id: str,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
    deleter: ChatDeleter = Depends(get_chat_deleter),
    bus = Depends(get_bus),
):
    try:
        deleted = await deleter.delete_chat_with_messages(chat_id)
    except ChatNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except DeleteError as exc:
        logger.exception("Chat delete failed")
        await notify(bus, user_id, "error", "Chat could not be deleted", chat_id=chat_id)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    await notify(bus, user_id, "success", "Chat deleted", chat_id=chat_id)
    return DeleteChatResult(chat_id=chat_id, deleted_messages=deleted)


@router.websocket("/ws")
async def chats_socket(websocket: WebSocket, session: SyncSession = Depends(get_sync_session)):
    # Client frames: {"type": "identity", "userId", "displayName", "image"} | {"type": "stop"}
    # Server frames: {"type": "state", "chats", "isLoading", "error"}
    await websocket.accept()

    async def push_state(state: SessionState) -> None:
        await websocket.send_json({"type": "state", **state.model_dump(mode="json", by_alias=True)})

    session.add_listener(push_state)
    async with session:
        try:
            while True:
                msg: Dict[str, Any] = await websocket.receive_json()
                kind = msg.get("type") if isinstance(msg, dict) else None
                if kind == "identity":
                    try:
                        identity = Identity.model_validate(msg)
                    except ValidationError:
                        await websocket.send_json({"type": "error", "error": "Invalid identity payload"})
                        continue
                    await session.start(identity)
                elif kind == "stop":
                    await session.stop()
                else:
                    await websocket.send_json({"type": "error", "error": "Unknown message type"})
        except WebSocketDisconnect:
            session.remove_listener(push_state)
