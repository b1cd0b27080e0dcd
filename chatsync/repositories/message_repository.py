from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from chatsync.repositories.base import to_object_id


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("chat_id", ASCENDING)])

    async def list_ids_for_chat(self, chat_id: str) -> List[str]:
        cursor = self.collection.find({"chat_id": chat_id}, {"_id": 1})
        items = await cursor.to_list(length=None)
        return [str(it["_id"]) for it in items]

    async def delete(self, message_id: str) -> bool:
        result = await self.collection.delete_one({"_id": to_object_id(message_id)})
        return bool(result.deleted_count)
