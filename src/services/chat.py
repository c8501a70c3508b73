"""Chat orchestrator: persist the user turn, stream the answer, persist it.

The first fragment is awaited before anything is sent, so provider errors
that happen up front still reach the client as a JSON error. Once text has
been relayed, a failure just ends the stream.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing

from src.agent.chat_agent import GenerativeService
from src.db.repository import MetadataRepository
from src.errors import BadRequestError, NotFoundError, PersistenceError
from src.store.holder import StoreHolder

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50
DEFAULT_TITLE = "New conversation"
ASSISTANT_SAVE_ATTEMPTS = 2


def make_title(text: str | None, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Derive a conversation title from free text, truncated to max_length."""
    title = " ".join((text or "").split())
    return title[:max_length] or DEFAULT_TITLE


class ChatOrchestrator:
    """Runs one chat turn against the generative service."""

    def __init__(
        self,
        repository: MetadataRepository,
        agent: GenerativeService,
        store: StoreHolder,
    ) -> None:
        self._repository = repository
        self._agent = agent
        self._store = store

    async def handle_chat(
        self,
        conversation_id: str | None,
        user_text: str | None,
    ) -> AsyncGenerator[str]:
        """Start a chat turn and return the answer stream.

        Args:
            conversation_id: Owning conversation; created if unknown.
            user_text: The user's message.

        Returns:
            Async iterator of answer fragments. Exhausting it persists the
            assistant turn.

        Raises:
            BadRequestError: If the conversation id or message is empty.
            ServiceError: If generation fails before the first fragment.
        """
        conversation_id = (conversation_id or "").strip()
        user_text = (user_text or "").strip()
        if not conversation_id:
            raise BadRequestError("conversationId is required")
        if not user_text:
            raise BadRequestError("message is required")

        await self._record_user_turn(conversation_id, user_text)

        store_name = await self._retrieval_scope()
        logger.info(
            f"Generating response | conversation_id={conversation_id} "
            f"| retrieval={'on' if store_name else 'off'}"
        )

        fragments = self._agent.stream_response(user_text, store_name=store_name)
        try:
            first = await anext(fragments)
        except StopAsyncIteration:
            first = None
        except BaseException:
            await fragments.aclose()
            raise

        return self._relay(conversation_id, first, fragments)

    async def _record_user_turn(self, conversation_id: str, user_text: str) -> None:
        try:
            try:
                await self._repository.get_conversation(conversation_id)
            except NotFoundError:
                await self._repository.create_conversation(
                    title=make_title(user_text),
                    conversation_id=conversation_id,
                )
            await self._repository.add_message(conversation_id, "user", user_text)
        except PersistenceError as e:
            logger.error(f"User message not saved, continuing: {e}")

    async def _retrieval_scope(self) -> str | None:
        """Store to search, or None when there is no store or no document."""
        handle = self._store.handle
        if handle is None:
            return None

        try:
            file_count = await self._repository.count_files()
        except PersistenceError as e:
            logger.error(f"Could not count files, answering without retrieval: {e}")
            return None

        return handle.name if file_count > 0 else None

    async def _relay(
        self,
        conversation_id: str,
        first: str | None,
        fragments: AsyncGenerator[str],
    ) -> AsyncGenerator[str]:
        parts: list[str] = []
        async with aclosing(fragments):
            try:
                if first is not None:
                    parts.append(first)
                    yield first
                async for fragment in fragments:
                    parts.append(fragment)
                    yield fragment
            except Exception as e:
                logger.error(
                    f"Stream aborted after {len(parts)} fragments "
                    f"| conversation_id={conversation_id}: {e}"
                )
                return

        await self._record_assistant_turn(conversation_id, "".join(parts))

    async def _record_assistant_turn(self, conversation_id: str, answer: str) -> None:
        for attempt in range(1, ASSISTANT_SAVE_ATTEMPTS + 1):
            try:
                await self._repository.add_message(conversation_id, "assistant", answer)
                return
            except PersistenceError as e:
                logger.warning(
                    f"Assistant message not saved (attempt {attempt}) "
                    f"| conversation_id={conversation_id}: {e}"
                )

        logger.error(
            f"Assistant message lost after {ASSISTANT_SAVE_ATTEMPTS} attempts "
            f"| conversation_id={conversation_id}"
        )
