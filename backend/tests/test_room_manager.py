"""Tests for the in-memory room registry."""
import asyncio
import re

import pytest

from chatrelay.core.errors import NotFoundError
from chatrelay.models.models import Message
from chatrelay.services.room_manager import RoomManager


def make_message(content="hi", sender_id="alice"):
    return Message(id="abcd1234", content=content, sender="Alice", senderId=sender_id)


class TestCreateRoom:
    @pytest.mark.asyncio
    async def test_create_room_owner_is_sole_member(self, room_manager):
        code = await room_manager.create_room("alice")
        room = room_manager.get_room(code)

        assert room is not None
        assert room.members == {"alice"}
        assert room.messages == ()

    @pytest.mark.asyncio
    async def test_room_code_is_upper_hex(self, room_manager):
        code = await room_manager.create_room("alice")
        assert re.fullmatch(r"[0-9A-F]{10}", code)

    @pytest.mark.asyncio
    async def test_code_bytes_configurable(self):
        mgr = RoomManager(code_bytes=8)
        code = await mgr.create_room("alice")
        assert len(code) == 16

    @pytest.mark.asyncio
    async def test_codes_are_fresh(self, room_manager):
        codes = set()
        for _ in range(100):
            existing = set(room_manager.rooms)
            code = await room_manager.create_room("alice")
            assert code not in existing
            codes.add(code)
        assert len(codes) == 100
        assert len(room_manager) == 100

    def test_get_unknown_room(self, room_manager):
        assert room_manager.get_room("NOPE") is None


class TestMembership:
    @pytest.mark.asyncio
    async def test_add_member_returns_count(self, room_manager):
        code = await room_manager.create_room("alice")
        assert await room_manager.add_member(code, "bob") == 2

    @pytest.mark.asyncio
    async def test_add_member_idempotent(self, room_manager):
        code = await room_manager.create_room("alice")
        await room_manager.add_member(code, "bob")
        assert await room_manager.add_member(code, "bob") == 2
        assert room_manager.get_room(code).members == {"alice", "bob"}

    @pytest.mark.asyncio
    async def test_add_member_touches_activity(self, room_manager):
        code = await room_manager.create_room("alice")
        room = room_manager.get_room(code)
        before = room.last_active
        await room_manager.add_member(code, "alice")
        assert room.last_active >= before

    @pytest.mark.asyncio
    async def test_remove_absent_member_is_noop(self, room_manager):
        code = await room_manager.create_room("alice")
        assert await room_manager.remove_member(code, "bob") == 1

    @pytest.mark.asyncio
    async def test_empty_room_is_kept(self, room_manager):
        code = await room_manager.create_room("alice")
        await room_manager.append_message(code, make_message())
        assert await room_manager.remove_member(code, "alice") == 0

        room = room_manager.get_room(code)
        assert room is not None
        assert len(room.messages) == 1

    @pytest.mark.asyncio
    async def test_unknown_room_raises(self, room_manager):
        with pytest.raises(NotFoundError):
            await room_manager.add_member("NOPE", "bob")
        with pytest.raises(NotFoundError):
            await room_manager.remove_member("NOPE", "bob")
        with pytest.raises(NotFoundError):
            await room_manager.append_message("NOPE", make_message())

    @pytest.mark.asyncio
    async def test_members_view_is_read_only(self, room_manager):
        code = await room_manager.create_room("alice")
        members = room_manager.get_room(code).members
        assert isinstance(members, frozenset)


class TestRenameMember:
    @pytest.mark.asyncio
    async def test_rename_replaces_entry(self, room_manager):
        code = await room_manager.create_room("alice")
        await room_manager.add_member(code, "bob")

        assert await room_manager.rename_member(code, "bob", "robert") == 2
        assert room_manager.get_room(code).members == {"alice", "robert"}

    @pytest.mark.asyncio
    async def test_rename_onto_existing_member_merges(self, room_manager):
        code = await room_manager.create_room("alice")
        await room_manager.add_member(code, "bob")

        assert await room_manager.rename_member(code, "bob", "alice") == 1

    @pytest.mark.asyncio
    async def test_rename_unknown_room_raises(self, room_manager):
        with pytest.raises(NotFoundError):
            await room_manager.rename_member("NOPE", "bob", "robert")


class TestMessages:
    @pytest.mark.asyncio
    async def test_append_keeps_order(self, room_manager):
        code = await room_manager.create_room("alice")
        for i in range(5):
            await room_manager.append_message(code, make_message(content=f"m{i}"))

        contents = [m.content for m in room_manager.get_room(code).messages]
        assert contents == ["m0", "m1", "m2", "m3", "m4"]

    @pytest.mark.asyncio
    async def test_append_returns_message(self, room_manager):
        code = await room_manager.create_room("alice")
        message = make_message()
        assert await room_manager.append_message(code, message) is message


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_joins_are_not_lost(self, room_manager):
        code = await room_manager.create_room("owner")
        await asyncio.gather(*(room_manager.add_member(code, f"user-{i}") for i in range(50)))
        assert room_manager.get_room(code).member_count == 51

    @pytest.mark.asyncio
    async def test_concurrent_appends_are_not_lost(self, room_manager):
        code = await room_manager.create_room("owner")
        await asyncio.gather(
            *(room_manager.append_message(code, make_message(content=str(i))) for i in range(50))
        )
        assert len(room_manager.get_room(code).messages) == 50

    @pytest.mark.asyncio
    async def test_rooms_do_not_block_each_other(self, room_manager):
        busy = await room_manager.create_room("alice")
        other = await room_manager.create_room("bob")

        async with room_manager.get_room(busy).lock:
            count = await asyncio.wait_for(room_manager.add_member(other, "carol"), timeout=1)
        assert count == 2

    @pytest.mark.asyncio
    async def test_same_room_waits_for_lock(self, room_manager):
        code = await room_manager.create_room("alice")
        room = room_manager.get_room(code)

        await room.lock.acquire()
        pending = asyncio.ensure_future(room_manager.add_member(code, "bob"))
        await asyncio.sleep(0)
        assert not pending.done()
        assert room.member_count == 1

        room.lock.release()
        assert await pending == 2
