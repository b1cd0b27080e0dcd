import asyncio
import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from chatsync.models.chat import ChatDocument, ChatSnapshot, ParticipantInfo
from chatsync.repositories.base import (
    ErrorCallback,
    SnapshotCallback,
    Subscription,
    to_object_id,
)
from chatsync.utils.errors import SubscriptionError


logger = logging.getLogger(__name__)

_WATCHED_OPERATIONS = ["insert", "update", "replace", "delete"]


class ChatRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["chats"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participants", ASCENDING)])
        await self.collection.create_index([("updatedAt", DESCENDING)])

    async def list_for_user(self, user_id: str) -> ChatSnapshot:
        query = {"participants": {"$in": [user_id]}}
        cursor = self.collection.find(query).sort("updatedAt", DESCENDING)
        items = await cursor.to_list(length=None)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return tuple(items)

    async def get(self, chat_id: str) -> Optional[ChatDocument]:
        chat = await self.collection.find_one({"_id": to_object_id(chat_id)})
        if chat:
            chat["_id"] = str(chat["_id"])
        return chat

    async def update_participants_info(self, chat_id: str, participants_info: List[ParticipantInfo]) -> None:
        await self.collection.update_one(
            {"_id": to_object_id(chat_id)},
            {"$set": {"participantsInfo": participants_info}},
        )

    async def delete(self, chat_id: str) -> bool:
        result = await self.collection.delete_one({"_id": to_object_id(chat_id)})
        return bool(result.deleted_count)

    async def subscribe_for_user(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        task = asyncio.create_task(self._pump(user_id, on_snapshot, on_error))
        return Subscription(task)

    async def _pump(self, user_id: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> None:
        # Change events only tell us "something moved"; every event is answered
        # with a full re-query so consumers always get a complete snapshot.
        pipeline: List[Dict[str, Any]] = [{"$match": {"operationType": {"$in": _WATCHED_OPERATIONS}}}]
        try:
            # open the stream before the first query so no change slips in between
            async with self.collection.watch(pipeline) as stream:
                await on_snapshot(await self.list_for_user(user_id))
                async for _change in stream:
                    await on_snapshot(await self.list_for_user(user_id))
            # invalidated (collection dropped/renamed) or closed by the server
            logger.warning("Chat change stream for %s closed", user_id)
            await on_error(SubscriptionError("Chat change stream closed"))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Chat subscription for %s failed: %s", user_id, exc)
            await on_error(SubscriptionError(f"Chat subscription failed: {exc}"))
