"""Pytest fixtures for chat sync tests."""

import pytest

from chatsync.schemas.chat import Identity
from tests.fakes.fake_document_store import FakeChatStore, FakeMessageStore


@pytest.fixture
def chat_docs() -> list:
    return [
        {
            "_id": "chat-ab",
            "participants": ["A", "B"],
            "participantsInfo": [
                {"id": "A", "name": "Alice"},
                {"id": "B", "name": "Bob", "image": "old.png"},
            ],
            "updatedAt": 100,
        },
        {
            "_id": "chat-bc",
            "participants": ["B", "C"],
            "participantsInfo": [
                {"id": "B", "name": "Bob", "image": "new.png"},
                {"id": "C", "name": "Carol", "image": "carol.png"},
            ],
            "lastMessage": "see you",
            "updatedAt": 300,
        },
        {
            "_id": "chat-ac",
            "participants": ["A", "C"],
            "participantsInfo": [
                {"id": "A", "name": "Alice"},
                {"id": "C", "name": "Carol"},
            ],
            "lastMessage": "hi",
            "updatedAt": 200,
        },
    ]


@pytest.fixture
def chat_store(chat_docs) -> FakeChatStore:
    return FakeChatStore(chat_docs)


@pytest.fixture
def message_store() -> FakeMessageStore:
    return FakeMessageStore({"m1": "chat-ab", "m2": "chat-ab", "m3": "chat-ab", "m4": "chat-bc"})


@pytest.fixture
def bob() -> Identity:
    return Identity(user_id="B", display_name="Bob", image="new.png")
