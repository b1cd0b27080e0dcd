"""Unit tests for ChatProjector."""

from unittest.mock import patch

import pytest

from chatsync.schemas.chat import Identity
from chatsync.services import chat_projector
from chatsync.services.chat_projector import ChatProjector


class TestProjection:

    @pytest.mark.asyncio
    async def test_scenario_other_user_resolved_and_image_repaired(self, chat_store, bob):
        projector = ChatProjector(chat_store)
        snapshot = (chat_store.chats["chat-ab"],)

        previews = await projector.project(snapshot, bob)

        assert len(previews) == 1
        preview = previews[0]
        assert preview.chat_id == "chat-ab"
        assert preview.other_user_name == "Alice"
        assert preview.other_user_image is None
        assert preview.last_message == ""
        assert preview.updated_at == 100

        updates = chat_store.updates()
        assert len(updates) == 1
        chat_id, info = updates[0].args
        assert chat_id == "chat-ab"
        assert info == [
            {"id": "A", "name": "Alice"},
            {"id": "B", "name": "Bob", "image": "new.png"},
        ]

    @pytest.mark.asyncio
    async def test_keeps_snapshot_order_and_length(self, chat_store, bob):
        projector = ChatProjector(chat_store)
        snapshot = chat_store.snapshot_for("B")

        previews = await projector.project(snapshot, bob)

        assert [p.chat_id for p in previews] == ["chat-bc", "chat-ab"]
        assert [p.updated_at for p in previews] == [300, 100]
        assert previews[0].other_user_name == "Carol"
        assert previews[0].other_user_image == "carol.png"
        assert previews[0].last_message == "see you"

    @pytest.mark.asyncio
    async def test_empty_snapshot(self, chat_store, bob):
        assert await ChatProjector(chat_store).project((), bob) == []


class TestSelfHealing:

    @pytest.mark.asyncio
    async def test_matching_image_issues_no_write(self, chat_store, bob):
        projector = ChatProjector(chat_store)

        await projector.project((chat_store.chats["chat-bc"],), bob)

        assert chat_store.updates() == []

    @pytest.mark.asyncio
    async def test_second_pass_after_repair_is_idempotent(self, chat_store, bob):
        projector = ChatProjector(chat_store)

        await projector.project(chat_store.snapshot_for("B"), bob)
        await projector.project(chat_store.snapshot_for("B"), bob)

        assert len(chat_store.updates()) == 1

    @pytest.mark.asyncio
    async def test_identity_without_image_never_writes(self, chat_store):
        projector = ChatProjector(chat_store)

        await projector.project(chat_store.snapshot_for("B"), Identity(user_id="B"))

        assert chat_store.updates() == []

    @pytest.mark.asyncio
    async def test_repair_leaves_other_entries_and_fields_untouched(self, chat_store):
        chat = {
            "_id": "group",
            "participants": ["A", "B", "C"],
            "participantsInfo": [
                {"id": "A", "name": "Alice", "image": "a.png", "role": "owner"},
                {"id": "B", "name": "Bob", "role": "member"},
                {"id": "C", "name": "Carol", "image": "c.png"},
            ],
            "updatedAt": 10,
        }
        projector = ChatProjector(chat_store)

        await projector.project((chat,), Identity(user_id="B", image="b.png"))

        (_, info), = [u.args for u in chat_store.updates()]
        assert info[0] == {"id": "A", "name": "Alice", "image": "a.png", "role": "owner"}
        assert info[1] == {"id": "B", "name": "Bob", "role": "member", "image": "b.png"}
        assert info[2] == {"id": "C", "name": "Carol", "image": "c.png"}
        # the input document is not mutated
        assert "image" not in chat["participantsInfo"][1]

    @pytest.mark.asyncio
    async def test_failed_repair_does_not_fail_projection(self, chat_store, bob):
        chat_store.fail_updates = True
        projector = ChatProjector(chat_store)

        previews = await projector.project(chat_store.snapshot_for("B"), bob)

        assert [p.chat_id for p in previews] == ["chat-bc", "chat-ab"]
        assert len(chat_store.updates()) == 1

    @pytest.mark.asyncio
    async def test_user_without_own_entry_gets_no_write(self, chat_store):
        chat = {
            "_id": "x",
            "participants": ["A", "B"],
            "participantsInfo": [{"id": "A", "name": "Alice"}],
            "updatedAt": 1,
        }

        previews = await ChatProjector(chat_store).project((chat,), Identity(user_id="B", image="b.png"))

        assert previews[0].other_user_name == "Alice"
        assert chat_store.updates() == []


class TestFallbacks:

    @pytest.mark.asyncio
    async def test_only_own_entry_yields_unknown(self, chat_store):
        chat = {
            "_id": "solo",
            "participants": ["B"],
            "participantsInfo": [{"id": "B", "name": "Bob"}],
            "updatedAt": 5,
        }

        (preview,) = await ChatProjector(chat_store).project((chat,), Identity(user_id="B"))

        assert preview.other_user_name == "unknown"
        assert preview.other_user_image is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("info", [None, "garbage", {"id": "A"}, [None, 3, "A"]])
    async def test_malformed_participants_info(self, chat_store, info):
        chat = {"_id": "bad", "participants": ["A", "B"], "updatedAt": 7}
        if info is not None:
            chat["participantsInfo"] = info

        (preview,) = await ChatProjector(chat_store).project((chat,), Identity(user_id="B", image="b.png"))

        assert preview.other_user_name == "unknown"
        assert preview.other_user_image is None
        assert chat_store.updates() == []

    @pytest.mark.asyncio
    async def test_custom_sentinel(self, chat_store):
        chat = {"_id": "c", "participants": ["B"], "participantsInfo": [], "updatedAt": 5}

        (preview,) = await ChatProjector(chat_store, unknown_user_name="Bilinmeyen").project(
            (chat,), Identity(user_id="B")
        )

        assert preview.other_user_name == "Bilinmeyen"

    @pytest.mark.asyncio
    async def test_missing_updated_at_falls_back_to_now(self, chat_store):
        chat = {"_id": "c", "participants": ["A", "B"], "participantsInfo": [{"id": "A", "name": "Alice"}]}

        with patch("chatsync.services.chat_projector._now_ms", return_value=123456):
            (preview,) = await ChatProjector(chat_store).project((chat,), Identity(user_id="B"))

        assert preview.updated_at == 123456
        assert preview.last_message == ""

    @pytest.mark.asyncio
    async def test_empty_name_falls_back(self, chat_store):
        chat = {"_id": "c", "participantsInfo": [{"id": "A", "name": ""}], "updatedAt": 1}

        (preview,) = await ChatProjector(chat_store).project((chat,), Identity(user_id="B"))

        assert preview.other_user_name == "unknown"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_value", [float("nan"), float("inf"), float("-inf")])
    async def test_non_finite_updated_at_falls_back_to_now(self, chat_store, bad_value):
        chat = {"_id": "c", "participantsInfo": [{"id": "A", "name": "Alice"}], "updatedAt": bad_value}

        with patch("chatsync.services.chat_projector._now_ms", return_value=42):
            (preview,) = await ChatProjector(chat_store).project((chat,), Identity(user_id="B"))

        assert preview.updated_at == 42
        assert preview.other_user_name == "Alice"

    @pytest.mark.asyncio
    async def test_non_finite_updated_at_keeps_every_chat(self, chat_store, bob):
        chat_store.chats["chat-ab"]["updatedAt"] = float("nan")

        previews = await ChatProjector(chat_store).project(chat_store.snapshot_for("B"), bob)

        assert sorted(p.chat_id for p in previews) == ["chat-ab", "chat-bc"]

    @pytest.mark.asyncio
    async def test_document_without_id_is_skipped(self, chat_store, bob):
        snapshot = ({"participants": ["B"]},) + chat_store.snapshot_for("B")

        previews = await ChatProjector(chat_store).project(snapshot, bob)

        assert [p.chat_id for p in previews] == ["chat-bc", "chat-ab"]

    @pytest.mark.asyncio
    async def test_unexpected_failure_yields_placeholder(self, chat_store, bob):
        real_updated_at = chat_projector._updated_at

        def flaky_updated_at(value):
            if value == 100:
                raise ValueError("bad timestamp")
            return real_updated_at(value)

        with patch("chatsync.services.chat_projector._updated_at", side_effect=flaky_updated_at):
            previews = await ChatProjector(chat_store).project(chat_store.snapshot_for("B"), bob)

        assert [p.chat_id for p in previews] == ["chat-bc", "chat-ab"]
        assert previews[0].other_user_name == "Carol"
        assert previews[1].other_user_name == "unknown"
        assert previews[1].last_message == ""
