"""Process-wide document store handle.

One handle is shared by every request. It is opened (or created) at
startup and injected through ``app.state`` instead of living in a module
global, so tests can hand in a fake adapter.

Initialization policy:
    - startup failure is logged and leaves the handle unset; chat then runs
      without retrieval
    - uploads call ``ensure()``, which retries initialization once per call
      while the handle is unset
    - there is no background refresh
"""

import logging

from src.errors import ServiceError
from src.store.adapter import DocumentStore, StoreHandle

logger = logging.getLogger(__name__)


class StoreHolder:
    """Holds the shared StoreHandle and the adapter that created it."""

    def __init__(
        self,
        adapter: DocumentStore,
        display_name: str,
        store_id: str | None = None,
    ) -> None:
        self.adapter = adapter
        self._display_name = display_name
        self._store_id = store_id
        self._handle: StoreHandle | None = None
        self.last_error: ServiceError | None = None

    @property
    def handle(self) -> StoreHandle | None:
        return self._handle

    @property
    def available(self) -> bool:
        return self._handle is not None

    async def initialize(self) -> StoreHandle | None:
        """Open the configured store, or create a new one.

        Returns:
            The handle, or None if the service could not be reached.
        """
        logger.info("Initializing document store...")
        try:
            if self._store_id:
                self._handle = await self.adapter.open_store(self._store_id)
            else:
                self._handle = await self.adapter.create_store(self._display_name)
        except ServiceError as e:
            self.last_error = e
            logger.error(
                f"Failed to initialize document store ({e.kind.value}): {e}. "
                "Chat continues without retrieval."
            )
            return None

        self.last_error = None
        logger.info(f"Document store ready: {self._handle.name}")
        return self._handle

    async def ensure(self) -> StoreHandle:
        """Return the handle, retrying initialization once if it is unset.

        Raises:
            ServiceError: If the store is still unavailable.
        """
        if self._handle is not None:
            return self._handle

        handle = await self.initialize()
        if handle is None:
            assert self.last_error is not None
            raise self.last_error
        return handle
