"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - app_config: AppConfig pointing at a temporary SQLite file and upload dir
    - fake_store: In-memory document store adapter
    - fake_agent: Generative service yielding fixed fragments
    - services: Fully wired AppServices with an initialized store
    - repository: The services' MetadataRepository
    - async_client: HTTPX client for API testing

External services are replaced by fakes; the database is real SQLite.
"""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app
from src.api.dependencies import AppServices, build_services
from src.config import AppConfig
from src.db.database import init_db
from src.db.repository import MetadataRepository
from src.store.adapter import ImportHandle, StoreHandle


class FakeDocumentStore:
    """In-memory DocumentStore that records every call.

    Set one of the ``fail_*`` attributes to an exception to make the
    matching operation raise it.
    """

    def __init__(self) -> None:
        self.documents: set[str] = set()
        self.imports: list[dict] = []
        self.removed: list[str] = []
        self.created: list[str] = []
        self.opened: list[str] = []
        self.fail_create: Exception | None = None
        self.fail_import: Exception | None = None
        self.fail_completion: Exception | None = None
        self.fail_remove: Exception | None = None
        self.completion_delay = 0.0
        self._counter = 0

    async def create_store(self, display_name: str) -> StoreHandle:
        if self.fail_create is not None:
            raise self.fail_create
        self.created.append(display_name)
        return StoreHandle(name="vs_test", display_name=display_name)

    async def open_store(self, store_id: str) -> StoreHandle:
        if self.fail_create is not None:
            raise self.fail_create
        self.opened.append(store_id)
        return StoreHandle(name=store_id, display_name="reopened")

    async def import_document(
        self,
        store: StoreHandle,
        local_path: Path,
        display_name: str,
        mime_type: str,
    ) -> ImportHandle:
        self.imports.append({
            "store": store.name,
            "path_name": local_path.name,
            "path_existed": local_path.exists(),
            "content": local_path.read_bytes() if local_path.exists() else None,
            "display_name": display_name,
            "mime_type": mime_type,
        })
        if self.fail_import is not None:
            raise self.fail_import
        self._counter += 1
        return ImportHandle(store_name=store.name, document_id=f"file-{self._counter}")

    async def await_completion(
        self,
        operation: ImportHandle,
        poll_interval: float = 0.0,
        max_attempts: int = 1,
        is_cancelled=None,
    ) -> str:
        if self.completion_delay:
            await asyncio.sleep(self.completion_delay)
        if self.fail_completion is not None:
            raise self.fail_completion
        self.documents.add(operation.document_id)
        return operation.document_id

    async def remove_document(self, store: StoreHandle, document_id: str) -> None:
        if self.fail_remove is not None:
            raise self.fail_remove
        self.removed.append(document_id)
        self.documents.discard(document_id)

    async def list_documents(self, store: StoreHandle) -> list[str]:
        return sorted(self.documents)


class FakeAgent:
    """GenerativeService yielding fixed fragments.

    When ``error`` is set it is raised in place of the fragment at index
    ``fail_at``; ``fail_at=0`` fails before anything is produced.
    ``closed`` is set once the generator has been finalized.
    """

    def __init__(self, fragments: tuple[str, ...] = ("Hello", ", ", "world")) -> None:
        self.fragments = fragments
        self.error: Exception | None = None
        self.fail_at = 0
        self.calls: list[tuple[str, str | None]] = []
        self.closed = False

    async def stream_response(self, message: str, store_name: str | None = None):
        self.calls.append((message, store_name))
        try:
            for index, fragment in enumerate(self.fragments):
                if self.error is not None and index == self.fail_at:
                    raise self.error
                yield fragment
        finally:
            self.closed = True


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Return configuration isolated to the test's temporary directory."""
    return AppConfig(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'data' / 'test.db'}",
        upload_dir=tmp_path / "uploads",
        store_display_name="test-store",
        store_id=None,
        poll_interval=0.01,
        poll_max_attempts=3,
        error_locale="en",
        reimport_on_startup=False,
    )


@pytest.fixture
def fake_store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def fake_agent() -> FakeAgent:
    return FakeAgent()


@pytest.fixture
async def services(
    app_config: AppConfig,
    fake_store: FakeDocumentStore,
    fake_agent: FakeAgent,
) -> AsyncGenerator[AppServices]:
    """Wire the real repository and workflows around the fakes.

    Yields:
        AppServices with tables created and the store initialized.
    """
    built = build_services(app_config, adapter=fake_store, agent=fake_agent)
    await init_db(built.engine)
    await built.store.initialize()
    yield built
    await built.engine.dispose()


@pytest.fixture
def repository(services: AppServices) -> MetadataRepository:
    return services.repository


@pytest.fixture
async def async_client(services: AppServices) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    ASGITransport does not run the lifespan, so the prepared services are
    handed to the app directly.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=create_app(services))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
