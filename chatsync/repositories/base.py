"""Storage ports used by the sync and delete services.

The services only depend on these protocols; ``ChatRepository`` and
``MessageRepository`` implement them on MongoDB, tests use in-memory fakes.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Protocol

from bson import ObjectId

from chatsync.models.chat import ChatDocument, ChatSnapshot, ParticipantInfo
from chatsync.utils.errors import SubscriptionError


SnapshotCallback = Callable[[ChatSnapshot], Awaitable[None]]
ErrorCallback = Callable[[SubscriptionError], Awaitable[None]]


class Subscription:
    """Cancellable handle around the task pumping snapshots of one live query."""

    def __init__(self, task: "asyncio.Task[None]") -> None:
        self._task = task
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled and not self._task.done()

    async def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._task.done():
            return
        self._task.cancel()
        if self._task is asyncio.current_task():
            # cancelled from one of its own callbacks; it unwinds at the next await
            return
        await asyncio.wait([self._task])


class ChatStore(Protocol):

    async def get(self, chat_id: str) -> Optional[ChatDocument]:
        ...

    async def update_participants_info(self, chat_id: str, participants_info: List[ParticipantInfo]) -> None:
        """Replace the whole participantsInfo array, nothing else."""
        ...

    async def delete(self, chat_id: str) -> bool:
        ...

    async def subscribe_for_user(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Emit the chats of ``user_id`` (updatedAt desc) now and after every change.

        ``on_error`` is called at most once; the subscription is dead afterwards.
        """
        ...


class MessageStore(Protocol):

    async def list_ids_for_chat(self, chat_id: str) -> List[str]:
        ...

    async def delete(self, message_id: str) -> bool:
        ...


def to_object_id(raw_id: str):
    # ids written by clients are plain strings, ids from insert_one are ObjectIds
    return ObjectId(raw_id) if ObjectId.is_valid(raw_id) else raw_id
