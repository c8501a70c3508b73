"""Unit tests for MetadataRepository on a temporary SQLite database."""

import asyncio

import pytest
import pytest_check as check

from src.db.repository import MetadataRepository
from src.errors import BadRequestError, NotFoundError


async def add_notes(repository: MetadataRepository, filename: str = "notes.txt"):
    return await repository.add_file(
        filename=filename,
        filesize=11,
        external_document_id=f"doc-{filename}",
        mime_type="text/plain",
    )


class TestFiles:
    """Tests for file records."""

    async def test_add_and_get_file(self, repository: MetadataRepository) -> None:
        record = await add_notes(repository)

        fetched = await repository.get_file(record.id)

        check.equal(fetched.filename, "notes.txt")
        check.equal(fetched.filesize, 11)
        check.equal(fetched.external_document_id, "doc-notes.txt")
        check.equal(fetched.mime_type, "text/plain")
        check.is_not_none(fetched.uploaded_at)

    async def test_get_missing_file_raises(self, repository: MetadataRepository) -> None:
        with pytest.raises(NotFoundError):
            await repository.get_file("missing")

    async def test_get_file_by_name(self, repository: MetadataRepository) -> None:
        await add_notes(repository)

        check.is_not_none(await repository.get_file_by_name("notes.txt"))
        check.is_none(await repository.get_file_by_name("other.txt"))

    async def test_duplicate_filename_is_bad_request(
        self,
        repository: MetadataRepository,
    ) -> None:
        await add_notes(repository)

        with pytest.raises(BadRequestError, match="already exists"):
            await add_notes(repository)

        check.equal(await repository.count_files(), 1)

    async def test_list_files_newest_first(self, repository: MetadataRepository) -> None:
        await add_notes(repository, "first.txt")
        await asyncio.sleep(0.01)
        await add_notes(repository, "second.txt")

        names = [r.filename for r in await repository.list_files()]

        assert names == ["second.txt", "first.txt"]

    async def test_count_and_delete(self, repository: MetadataRepository) -> None:
        record = await add_notes(repository)
        await add_notes(repository, "more.md")
        check.equal(await repository.count_files(), 2)

        await repository.delete_file(record.id)

        check.equal(await repository.count_files(), 1)

    async def test_update_external_id(self, repository: MetadataRepository) -> None:
        record = await add_notes(repository)

        await repository.update_external_id(record.id, "doc-new")

        assert (await repository.get_file(record.id)).external_document_id == "doc-new"

    async def test_update_external_id_of_missing_file(
        self,
        repository: MetadataRepository,
    ) -> None:
        with pytest.raises(NotFoundError):
            await repository.update_external_id("missing", "doc-new")


class TestConversations:
    """Tests for conversations and their messages."""

    async def test_create_with_generated_id(self, repository: MetadataRepository) -> None:
        conversation = await repository.create_conversation(title="Trip plan")

        check.equal(len(conversation.id), 36)
        check.equal(conversation.title, "Trip plan")

    async def test_create_with_client_id(self, repository: MetadataRepository) -> None:
        await repository.create_conversation(title="Hi", conversation_id="conv-1")

        fetched = await repository.get_conversation("conv-1")

        assert fetched.title == "Hi"

    async def test_get_missing_conversation(self, repository: MetadataRepository) -> None:
        with pytest.raises(NotFoundError):
            await repository.get_conversation("nope")

    async def test_messages_in_chronological_order(
        self,
        repository: MetadataRepository,
    ) -> None:
        await repository.create_conversation(title="Order", conversation_id="conv-1")
        await repository.add_message("conv-1", "user", "first")
        await repository.add_message("conv-1", "assistant", "second")
        await repository.add_message("conv-1", "user", "third")

        messages = await repository.list_messages("conv-1")

        check.equal([m.message for m in messages], ["first", "second", "third"])
        check.equal([m.role for m in messages], ["user", "assistant", "user"])

    async def test_new_message_moves_conversation_to_top(
        self,
        repository: MetadataRepository,
    ) -> None:
        await repository.create_conversation(title="Old", conversation_id="old")
        await asyncio.sleep(0.01)
        await repository.create_conversation(title="New", conversation_id="new")
        await asyncio.sleep(0.01)

        await repository.add_message("old", "user", "bump")

        ids = [c.id for c in await repository.list_conversations()]
        assert ids == ["old", "new"]

    async def test_delete_conversation_removes_messages(
        self,
        repository: MetadataRepository,
    ) -> None:
        await repository.create_conversation(title="Gone", conversation_id="conv-1")
        await repository.add_message("conv-1", "user", "hello")

        await repository.delete_conversation("conv-1")

        check.equal(await repository.list_messages("conv-1"), [])
        with pytest.raises(NotFoundError):
            await repository.get_conversation("conv-1")

    async def test_delete_missing_conversation(self, repository: MetadataRepository) -> None:
        with pytest.raises(NotFoundError):
            await repository.delete_conversation("nope")

    async def test_delete_all_conversations(self, repository: MetadataRepository) -> None:
        for conversation_id in ("a", "b"):
            await repository.create_conversation(title="x", conversation_id=conversation_id)
            await repository.add_message(conversation_id, "user", "hi")

        await repository.delete_all_conversations()

        check.equal(await repository.list_conversations(), [])
        check.equal(await repository.list_messages("a"), [])

    async def test_delete_all_on_empty_store(self, repository: MetadataRepository) -> None:
        await repository.delete_all_conversations()

        assert await repository.list_conversations() == []
