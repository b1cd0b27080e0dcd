import asyncio
import logging
import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, List, Optional

from chatsync.models.chat import ChatDocument, ChatSnapshot
from chatsync.repositories.base import ChatStore
from chatsync.schemas.chat import ChatPreview, Identity
from chatsync.utils.errors import ProjectionError, RepairWriteError


logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _updated_at(value: Any) -> int:
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value and math.isfinite(value):
        return int(value)
    return _now_ms()


def _chat_id(chat: Any) -> str:
    chat_id = chat.get("_id") if isinstance(chat, Mapping) else None
    if chat_id is None or chat_id == "":
        raise ProjectionError("Chat document without an id")
    return str(chat_id)


def _participants_info(chat: ChatDocument) -> List[Any]:
    info = chat.get("participantsInfo")
    return list(info) if isinstance(info, list) else []


def _find(participants_info: List[Any], predicate) -> Optional[Mapping]:
    for entry in participants_info:
        if isinstance(entry, Mapping) and predicate(entry.get("id")):
            return entry
    return None


class ChatProjector:
    """Turns a snapshot of chat documents into display-ready previews.

    Projection also keeps the viewer's own avatar in ``participantsInfo`` up to
    date: when the stored image differs from the identity's, the entry is
    rewritten. The target value only depends on the identity, so concurrent
    repairs from several sessions converge.
    """

    def __init__(self, chat_store: ChatStore, unknown_user_name: str = "unknown") -> None:
        self._chat_store = chat_store
        self._unknown_user_name = unknown_user_name

    async def project(self, snapshot: ChatSnapshot, identity: Identity) -> List[ChatPreview]:
        previews = await asyncio.gather(*(self._project_chat_safely(chat, identity) for chat in snapshot))
        return [preview for preview in previews if preview is not None]

    async def _project_chat_safely(self, chat: ChatDocument, identity: Identity) -> Optional[ChatPreview]:
        # one broken document never takes the rest of the snapshot down
        try:
            chat_id = _chat_id(chat)
        except ProjectionError as exc:
            logger.warning("Skipping chat document: %s", exc)
            return None
        try:
            return await self._project_chat(chat_id, chat, identity)
        except Exception:
            logger.exception("Chat %s could not be projected; using placeholder preview", chat_id)
            return ChatPreview(
                chat_id=chat_id,
                other_user_name=self._unknown_user_name,
                updated_at=_now_ms(),
            )

    async def _project_chat(self, chat_id: str, chat: ChatDocument, identity: Identity) -> ChatPreview:
        participants_info = _participants_info(chat)
        my_info = _find(participants_info, lambda pid: pid == identity.user_id)
        other_info = _find(participants_info, lambda pid: pid != identity.user_id)

        if my_info is not None and identity.image and my_info.get("image") != identity.image:
            try:
                await self._repair_image(chat_id, participants_info, identity)
            except RepairWriteError as exc:
                logger.warning("Image repair skipped for chat %s: %s", chat_id, exc)

        other_name = other_info.get("name") if other_info is not None else None
        other_image = other_info.get("image") if other_info is not None else None
        last_message = chat.get("lastMessage")
        return ChatPreview(
            chat_id=chat_id,
            other_user_name=other_name if isinstance(other_name, str) and other_name else self._unknown_user_name,
            other_user_image=other_image if isinstance(other_image, str) and other_image else None,
            last_message=last_message if isinstance(last_message, str) else "",
            updated_at=_updated_at(chat.get("updatedAt")),
        )

    async def _repair_image(self, chat_id: str, participants_info: List[Any], identity: Identity) -> None:
        repaired = [
            {**entry, "image": identity.image}
            if isinstance(entry, Mapping) and entry.get("id") == identity.user_id
            else entry
            for entry in participants_info
        ]
        logger.info("Updating image of %s in chat %s", identity.user_id, chat_id)
        try:
            await self._chat_store.update_participants_info(chat_id, repaired)
        except Exception as exc:
            raise RepairWriteError(str(exc)) from exc
