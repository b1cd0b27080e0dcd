from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    display_name: Optional[str] = Field(None, alias="displayName")
    image: Optional[str] = None


class ChatPreview(BaseModel):

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    chat_id: str = Field(alias="chatId")
    other_user_name: str = Field(alias="otherUserName")
    other_user_image: Optional[str] = Field(None, alias="otherUserImage")
    last_message: str = Field("", alias="lastMessage")
    updated_at: int = Field(alias="updatedAt")


class SessionState(BaseModel):

    model_config = ConfigDict(populate_by_name=True)

    chats: List[ChatPreview] = Field(default_factory=list)
    is_loading: bool = Field(False, alias="isLoading")
    error: Optional[str] = None


class DeleteChatResult(BaseModel):

    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(alias="chatId")
    deleted_messages: int = Field(alias="deletedMessages")
