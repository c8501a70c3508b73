"""Metadata repository: CRUD over files, conversations and messages.

Each operation opens its own short session, so a streamed chat response
can persist the assistant turn after the request handler has returned.
No transaction spans the document store and this repository.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import ChatMessage, Conversation, FileRecord, utcnow
from src.errors import BadRequestError, NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


class MetadataRepository:
    """Repository over the ``files``, ``conversations`` and ``chat_history`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        """Yield a session; database errors become PersistenceError."""
        async with self._sessions() as db:
            try:
                yield db
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Database error while trying to {action}: {e}")
                raise PersistenceError(f"Failed to {action}") from e

    # === Files ===

    async def add_file(
        self,
        filename: str,
        filesize: int,
        external_document_id: str,
        mime_type: str,
    ) -> FileRecord:
        async with self._session("insert file record") as db:
            record = FileRecord(
                filename=filename,
                filesize=filesize,
                external_document_id=external_document_id,
                mime_type=mime_type,
            )
            db.add(record)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise BadRequestError(f"A file named {filename} already exists") from e
            await db.refresh(record)

        logger.info(f"File recorded | file_id={record.id} | filename={filename}")
        return record

    async def list_files(self) -> list[FileRecord]:
        """All file records, most recently uploaded first."""
        async with self._session("list files") as db:
            result = await db.execute(
                select(FileRecord).order_by(FileRecord.uploaded_at.desc())
            )
            return list(result.scalars().all())

    async def get_file(self, file_id: str) -> FileRecord:
        async with self._session("fetch file") as db:
            record = await db.get(FileRecord, file_id)
        if record is None:
            raise NotFoundError("File", file_id)
        return record

    async def get_file_by_name(self, filename: str) -> FileRecord | None:
        async with self._session("fetch file by name") as db:
            result = await db.execute(
                select(FileRecord).where(FileRecord.filename == filename)
            )
            return result.scalar_one_or_none()

    async def count_files(self) -> int:
        async with self._session("count files") as db:
            result = await db.execute(select(func.count()).select_from(FileRecord))
            return result.scalar_one()

    async def update_external_id(self, file_id: str, external_document_id: str) -> None:
        async with self._session("update external document id") as db:
            result = await db.execute(
                update(FileRecord)
                .where(FileRecord.id == file_id)
                .values(external_document_id=external_document_id)
            )
            await db.commit()
        if result.rowcount == 0:
            raise NotFoundError("File", file_id)

    async def delete_file(self, file_id: str) -> None:
        async with self._session("delete file record") as db:
            await db.execute(delete(FileRecord).where(FileRecord.id == file_id))
            await db.commit()
        logger.info(f"File record deleted | file_id={file_id}")

    # === Conversations ===

    async def create_conversation(
        self,
        title: str,
        conversation_id: str | None = None,
    ) -> Conversation:
        async with self._session("create conversation") as db:
            conversation = Conversation(title=title)
            if conversation_id:
                conversation.id = conversation_id
            db.add(conversation)
            await db.commit()
            await db.refresh(conversation)

        logger.info(f"New conversation created | conversation_id={conversation.id}")
        return conversation

    async def list_conversations(self) -> list[Conversation]:
        """All conversations, most recently updated first."""
        async with self._session("list conversations") as db:
            result = await db.execute(
                select(Conversation).order_by(Conversation.updated_at.desc())
            )
            return list(result.scalars().all())

    async def get_conversation(self, conversation_id: str) -> Conversation:
        async with self._session("fetch conversation") as db:
            conversation = await db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete one conversation and its messages.

        Raises:
            NotFoundError: If the conversation does not exist.
        """
        async with self._session("delete conversation") as db:
            # Messages first; the store may not enforce ON DELETE CASCADE
            await db.execute(
                delete(ChatMessage).where(ChatMessage.conversation_id == conversation_id)
            )
            result = await db.execute(
                delete(Conversation).where(Conversation.id == conversation_id)
            )
            if result.rowcount == 0:
                await db.rollback()
                raise NotFoundError("Conversation", conversation_id)
            await db.commit()

        logger.info(f"Conversation deleted | conversation_id={conversation_id}")

    async def delete_all_conversations(self) -> None:
        async with self._session("delete all conversations") as db:
            await db.execute(delete(ChatMessage))
            await db.execute(delete(Conversation))
            await db.commit()

        logger.info("All conversations deleted")

    # === Messages ===

    async def add_message(self, conversation_id: str, role: str, message: str) -> ChatMessage:
        """Append a message and touch the conversation's updated_at."""
        async with self._session("insert message") as db:
            row = ChatMessage(conversation_id=conversation_id, role=role, message=message)
            db.add(row)
            await db.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values(updated_at=utcnow())
            )
            await db.commit()
            await db.refresh(row)

        logger.info(
            f"Message persisted | conversation_id={conversation_id} | role={role}"
        )
        return row

    async def list_messages(self, conversation_id: str) -> list[ChatMessage]:
        """Messages of a conversation in chronological order."""
        async with self._session("list messages") as db:
            result = await db.execute(
                select(ChatMessage)
                .where(ChatMessage.conversation_id == conversation_id)
                .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
            )
            return list(result.scalars().all())
