from typing import Optional


class ChatSyncError(Exception):
    pass


class SubscriptionError(ChatSyncError):
    """Live query could not be established or broke; terminal for that subscription."""


class ProjectionError(ChatSyncError):
    pass


class RepairWriteError(ChatSyncError):
    pass


class DeleteError(ChatSyncError):

    def __init__(self, chat_id: str, message: str, failed: int = 0, total: int = 0) -> None:
        super().__init__(message)
        self.chat_id = chat_id
        self.failed = failed
        self.total = total


class ChatNotFoundError(DeleteError):

    def __init__(self, chat_id: str, message: Optional[str] = None) -> None:
        super().__init__(chat_id, message or f"Chat {chat_id} not found")
