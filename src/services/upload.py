"""Upload pipeline: validate, stage, import into the document store, record.

Per upload: received -> validated -> staged -> imported -> recorded -> done.

Validation runs before anything touches the disk or the network. Once a
file is staged it is kept even when the import or the insert fails, so
the upload can be retried or recovered by hand.
"""

import asyncio
import logging
import shutil
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from pydantic import BaseModel

from src.config import SUPPORTED_EXTENSIONS, AppConfig
from src.db.repository import MetadataRepository
from src.errors import (
    BadRequestError,
    NotFoundError,
    OperationCancelledError,
    PersistenceError,
    ServiceError,
    UnsupportedTypeError,
    UploadFailedError,
)
from src.store.adapter import CancelCheck, StoreHandle
from src.store.holder import StoreHolder

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".csv": "text/csv",
    ".md": "text/markdown",
}
DEFAULT_MIME_TYPE = "text/plain"


class UploadResult(BaseModel):
    """Outcome of a settled upload.

    Attributes:
        file_id: Id of the new file record.
        filename: Decoded display name.
        filesize: Size in bytes.
        total_files: Number of file records after the insert.
    """

    file_id: str
    filename: str
    filesize: int
    total_files: int


class DeleteResult(BaseModel):
    filename: str
    total_files: int


def fix_filename_encoding(filename: str) -> str:
    """Re-decode a filename whose UTF-8 bytes were read as Latin-1.

    Names that are not such mojibake are returned unchanged.
    """
    try:
        return filename.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return filename


def clean_filename(filename: str) -> str:
    """Decode the name and drop any client-side directory part."""
    name = fix_filename_encoding(filename)
    return name.replace("\\", "/").rsplit("/", 1)[-1].strip()


def is_document_file(filename: str) -> bool:
    return Path(filename).suffix.lower() in SUPPORTED_EXTENSIONS


def mime_type_for(filename: str) -> str:
    return MIME_TYPES.get(Path(filename).suffix.lower(), DEFAULT_MIME_TYPE)


class UploadPipeline:
    """Moves uploaded documents into the document store and the repository."""

    def __init__(
        self,
        repository: MetadataRepository,
        store: StoreHolder,
        config: AppConfig,
    ) -> None:
        self._repository = repository
        self._store = store
        self._config = config
        self._name_locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @property
    def upload_dir(self) -> Path:
        return self._config.upload_dir

    async def upload(
        self,
        filename: str | None,
        content: bytes | None,
        is_cancelled: CancelCheck | None = None,
    ) -> UploadResult:
        """Run one upload to its settled outcome.

        Args:
            filename: Name sent by the client.
            content: Raw document bytes.
            is_cancelled: Async callback reporting a client disconnect.

        Returns:
            UploadResult for the recorded file.

        Raises:
            BadRequestError: Missing file, or a file with that name exists.
            UnsupportedTypeError: Extension not in the allow-list.
            UploadFailedError: Store import or recording failed after staging.
            OperationCancelledError: The client disconnected during the import.
        """
        if not filename or content is None:
            raise BadRequestError("No file uploaded")

        display_name = clean_filename(filename)
        if not display_name:
            raise BadRequestError("No file uploaded")

        if not is_document_file(display_name):
            allowed = ", ".join(SUPPORTED_EXTENSIONS)
            raise UnsupportedTypeError(f"Only document files are allowed ({allowed})")

        async with self._reserve_name(display_name):
            return await self._stage_import_record(display_name, content, is_cancelled)

    @asynccontextmanager
    async def _reserve_name(self, display_name: str) -> AsyncIterator[None]:
        """Serialize uploads that share a display name."""
        lock, users = self._name_locks.get(display_name, (asyncio.Lock(), 0))
        self._name_locks[display_name] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._name_locks[display_name]
            if users == 1:
                del self._name_locks[display_name]
            else:
                self._name_locks[display_name] = (lock, users - 1)

    async def _stage_import_record(
        self,
        display_name: str,
        content: bytes,
        is_cancelled: CancelCheck | None,
    ) -> UploadResult:
        if await self._repository.get_file_by_name(display_name) is not None:
            raise BadRequestError(f"A file named {display_name} already exists")

        mime_type = mime_type_for(display_name)

        try:
            staged_path = self._stage(display_name, content)
        except OSError as e:
            logger.error(f"Failed to stage {display_name}: {e}")
            raise UploadFailedError(display_name, e) from e

        logger.info(f"Uploading {display_name} to document store...")

        try:
            store = await self._store.ensure()
            external_id = await self._import(
                store, staged_path, display_name, mime_type, is_cancelled
            )
            record = await self._repository.add_file(
                filename=display_name,
                filesize=len(content),
                external_document_id=external_id,
                mime_type=mime_type,
            )
            total_files = await self._repository.count_files()
        except OperationCancelledError:
            logger.warning(f"Upload of {display_name} abandoned by client, staged copy kept")
            raise
        except (ServiceError, PersistenceError, OSError) as e:
            logger.error(f"Upload failed for {display_name}, staged copy kept: {e}")
            raise UploadFailedError(display_name, e) from e

        logger.info(f"✓ File uploaded: {display_name} ({len(content)} bytes)")
        return UploadResult(
            file_id=record.id,
            filename=display_name,
            filesize=len(content),
            total_files=total_files,
        )

    def _stage(self, display_name: str, content: bytes) -> Path:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        staged_path = self.upload_dir / display_name
        staged_path.write_bytes(content)
        return staged_path

    async def _import(
        self,
        store: StoreHandle,
        source: Path,
        display_name: str,
        mime_type: str,
        is_cancelled: CancelCheck | None = None,
    ) -> str:
        """Import a staged file through a temporary ASCII-named copy.

        The copy keeps non-ASCII names out of the upload request and is
        removed on every exit path.
        """
        temp_path = source.parent / f"temp_{uuid.uuid4().hex}{source.suffix.lower()}"
        adapter = self._store.adapter

        try:
            shutil.copyfile(source, temp_path)
            logger.info(f"Created temp file: {temp_path.name} for upload")

            operation = await adapter.import_document(
                store, temp_path, display_name, mime_type
            )
            return await adapter.await_completion(
                operation,
                poll_interval=self._config.poll_interval,
                max_attempts=self._config.poll_max_attempts,
                is_cancelled=is_cancelled,
            )
        finally:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Failed to delete temp file {temp_path}: {e}")

    async def delete_file(self, file_id: str) -> DeleteResult:
        """Remove a document from the store, then its record and local copy.

        Raises:
            NotFoundError: If no such file record exists.
            ServiceError: If the store removal fails; the record is kept.
        """
        record = await self._repository.get_file(file_id)

        store = await self._store.ensure()
        await self._store.adapter.remove_document(store, record.external_document_id)

        await self._repository.delete_file(record.id)

        staged_path = self.upload_dir / record.filename
        try:
            staged_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove local copy {staged_path}: {e}")

        total_files = await self._repository.count_files()
        logger.info(f"File deleted: {record.filename} | remaining={total_files}")
        return DeleteResult(filename=record.filename, total_files=total_files)

    async def reimport_existing(self) -> int:
        """Import staged documents that the current store does not hold.

        A new store handle starts empty after a restart. Records whose local
        copy still exists are imported again and get the new document id.

        Returns:
            Number of documents imported.
        """
        store = self._store.handle
        if store is None:
            logger.warning("Document store unavailable, skipping re-import")
            return 0

        logger.info(f"Scanning {self.upload_dir} for existing files...")
        try:
            present = set(await self._store.adapter.list_documents(store))
            records = await self._repository.list_files()
        except (ServiceError, PersistenceError) as e:
            logger.error(f"Re-import aborted: {e}")
            return 0

        loaded = 0
        for record in records:
            if record.external_document_id in present:
                continue

            staged_path = self.upload_dir / record.filename
            if not staged_path.is_file():
                logger.warning(f"Local copy missing, skipping: {record.filename}")
                continue

            try:
                external_id = await self._import(
                    store, staged_path, record.filename, record.mime_type
                )
                await self._repository.update_external_id(record.id, external_id)
            except (ServiceError, PersistenceError, NotFoundError, OSError) as e:
                logger.error(f"Failed to load {record.filename}: {e}")
                continue

            loaded += 1
            logger.info(f"✓ Loaded: {record.filename}")

        logger.info(f"Total files re-imported: {loaded}")
        return loaded
