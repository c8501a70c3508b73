"""Document store adapter over OpenAI vector stores.

The managed service does all indexing, embedding and retrieval. This module
only wraps its create/import/remove/list operations and exposes the import
as a poll-until-done contract.

Import is two network steps: the raw bytes are uploaded as a file object,
then the file is attached to the vector store, which starts an asynchronous
indexing job. A crash between the two leaves an uploaded file object that
no local record points to.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Protocol

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel

from src.config import AgentConfig, get_agent_config
from src.errors import (
    OperationCancelledError,
    ServiceError,
    ServiceErrorKind,
    classify_error,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MAX_ATTEMPTS = 150

_TERMINAL_FAILURES = ("failed", "cancelled")

CancelCheck = Callable[[], Awaitable[bool]]


class StoreHandle(BaseModel):
    """Reference to a document store in the managed service.

    Attributes:
        name: Service-side identifier of the store.
        display_name: Human readable store name.
    """

    name: str
    display_name: str | None = None


class ImportHandle(BaseModel):
    """In-flight import of one document into a store.

    Attributes:
        store_name: Store the document is being imported into.
        document_id: Service-side identifier of the uploaded document.
        status: Last observed import status.
    """

    store_name: str
    document_id: str
    status: str = "in_progress"

    @property
    def done(self) -> bool:
        return self.status != "in_progress"


class DocumentStore(Protocol):
    """Operations the upload pipeline and chat rely on."""

    async def create_store(self, display_name: str) -> StoreHandle: ...

    async def open_store(self, store_id: str) -> StoreHandle: ...

    async def import_document(
        self,
        store: StoreHandle,
        local_path: Path,
        display_name: str,
        mime_type: str,
    ) -> ImportHandle: ...

    async def await_completion(
        self,
        operation: ImportHandle,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        is_cancelled: CancelCheck | None = None,
    ) -> str: ...

    async def remove_document(self, store: StoreHandle, document_id: str) -> None: ...

    async def list_documents(self, store: StoreHandle) -> list[str]: ...


class OpenAIDocumentStore:
    """DocumentStore backed by OpenAI vector stores and the Files API."""

    def __init__(
        self,
        config: AgentConfig | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            config: Optional credentials. Loads from environment if not provided.
            client: Preconfigured client, mainly for tests.
        """
        if client is None:
            config = config or get_agent_config()
            client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.request_timeout,
            )
        self._client = client

    async def create_store(self, display_name: str) -> StoreHandle:
        try:
            store = await self._client.vector_stores.create(name=display_name)
        except Exception as e:
            raise classify_error(e) from e

        logger.info(f"Document store created: {store.id} ({display_name})")
        return StoreHandle(name=store.id, display_name=store.name or display_name)

    async def open_store(self, store_id: str) -> StoreHandle:
        try:
            store = await self._client.vector_stores.retrieve(store_id)
        except Exception as e:
            raise classify_error(e) from e

        logger.info(f"Document store reopened: {store.id}")
        return StoreHandle(name=store.id, display_name=store.name)

    async def import_document(
        self,
        store: StoreHandle,
        local_path: Path,
        display_name: str,
        mime_type: str,
    ) -> ImportHandle:
        """Upload a local file and start importing it into the store.

        Args:
            store: Target document store.
            local_path: File to upload. Its name is what the service sees.
            display_name: Original document name, kept as a file attribute.
            mime_type: MIME type of the document.

        Returns:
            ImportHandle that is usually not yet done.

        Raises:
            ServiceError: If the upload or the import request fails.
        """
        try:
            uploaded = await self._client.files.create(
                file=local_path,
                purpose="assistants",
            )
            logger.info(f"File uploaded: {uploaded.id}, importing to store {store.name}...")

            attached = await self._client.vector_stores.files.create(
                vector_store_id=store.name,
                file_id=uploaded.id,
                attributes={"display_name": display_name, "mime_type": mime_type},
            )
        except Exception as e:
            raise classify_error(e) from e

        return ImportHandle(
            store_name=store.name,
            document_id=attached.id,
            status=attached.status,
        )

    async def await_completion(
        self,
        operation: ImportHandle,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        is_cancelled: CancelCheck | None = None,
    ) -> str:
        """Poll an import until it reaches a terminal status.

        Args:
            operation: Handle returned by import_document.
            poll_interval: Seconds to sleep between polls.
            max_attempts: Polls before giving up.
            is_cancelled: Async callback; a True result stops polling.

        Returns:
            The external document id.

        Raises:
            ServiceError: If polling fails, the import fails, or attempts run out.
            OperationCancelledError: If is_cancelled reported True.
        """
        status = operation.status
        attempts = 0

        while status == "in_progress":
            if attempts >= max_attempts:
                raise ServiceError(
                    ServiceErrorKind.UNAVAILABLE,
                    f"Import of {operation.document_id} not done after {attempts} polls",
                )
            if is_cancelled is not None and await is_cancelled():
                raise OperationCancelledError(
                    f"Import of {operation.document_id} abandoned by client"
                )

            logger.debug(f"Processing {operation.document_id}...")
            await asyncio.sleep(poll_interval)
            attempts += 1

            try:
                current = await self._client.vector_stores.files.retrieve(
                    operation.document_id,
                    vector_store_id=operation.store_name,
                )
            except Exception as e:
                raise classify_error(e) from e

            status = current.status
            if status in _TERMINAL_FAILURES:
                reason = current.last_error.message if current.last_error else status
                raise ServiceError(
                    ServiceErrorKind.UNKNOWN,
                    f"Import of {operation.document_id} {status}: {reason}",
                )

        if status in _TERMINAL_FAILURES:
            raise ServiceError(
                ServiceErrorKind.UNKNOWN,
                f"Import of {operation.document_id} {status}",
            )

        return operation.document_id

    async def remove_document(self, store: StoreHandle, document_id: str) -> None:
        """Detach a document from the store and delete the uploaded file.

        Parts that are already gone count as removed, so records left over
        from an earlier store handle can still be deleted.
        """
        try:
            try:
                await self._client.vector_stores.files.delete(
                    document_id,
                    vector_store_id=store.name,
                )
            except openai.NotFoundError:
                logger.warning(f"Document {document_id} not in store {store.name}")

            try:
                await self._client.files.delete(document_id)
            except openai.NotFoundError:
                logger.warning(f"Uploaded file {document_id} already deleted")
        except Exception as e:
            raise classify_error(e) from e

        logger.info(f"Removed document {document_id} from store {store.name}")

    async def list_documents(self, store: StoreHandle) -> list[str]:
        try:
            return [f.id async for f in self._client.vector_stores.files.list(
                vector_store_id=store.name,
            )]
        except Exception as e:
            raise classify_error(e) from e
