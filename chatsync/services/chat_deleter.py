import asyncio
import logging
from typing import Set

from chatsync.repositories.base import ChatStore, MessageStore
from chatsync.utils.errors import ChatNotFoundError, DeleteError


logger = logging.getLogger(__name__)


class ChatDeleter:
    """Removes a chat and every message in it.

    Messages go first; the chat document is only deleted once every message
    deletion succeeded. Nothing is rolled back on failure.
    """

    def __init__(self, chat_store: ChatStore, message_store: MessageStore, concurrency: int = 16) -> None:
        self._chat_store = chat_store
        self._message_store = message_store
        self._concurrency = concurrency
        self._running: Set["asyncio.Task[int]"] = set()

    async def delete_chat_with_messages(self, chat_id: str) -> int:
        # once started the deletion runs to completion even if the caller goes away
        task = asyncio.ensure_future(self._delete(chat_id))
        self._running.add(task)
        task.add_done_callback(self._finished)
        return await asyncio.shield(task)

    def _finished(self, task: "asyncio.Task[int]") -> None:
        self._running.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Chat deletion ended with %s: %s", type(exc).__name__, exc)

    async def _delete(self, chat_id: str) -> int:
        chat = await self._chat_store.get(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)

        message_ids = await self._message_store.list_ids_for_chat(chat_id)
        semaphore = asyncio.Semaphore(self._concurrency)

        async def delete_message(message_id: str) -> None:
            async with semaphore:
                await self._message_store.delete(message_id)

        results = await asyncio.gather(
            *(delete_message(message_id) for message_id in message_ids),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            logger.error(
                "Deleted %d of %d messages of chat %s; keeping chat document",
                len(message_ids) - len(failures), len(message_ids), chat_id,
            )
            raise DeleteError(
                chat_id,
                f"Failed to delete {len(failures)} of {len(message_ids)} messages of chat {chat_id}",
                failed=len(failures),
                total=len(message_ids),
            ) from failures[0]

        try:
            await self._chat_store.delete(chat_id)
        except Exception as exc:
            logger.error("Messages of chat %s deleted but the chat document was not: %s", chat_id, exc)
            raise DeleteError(chat_id, f"Failed to delete chat {chat_id}: {exc}", total=len(message_ids)) from exc

        logger.info("Deleted chat %s with %d messages", chat_id, len(message_ids))
        return len(message_ids)
