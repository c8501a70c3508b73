"""Document store adapter for the managed file search service.

Responsibilities:
    - Store creation, reopening and listing
    - Document upload plus asynchronous import with bounded polling
    - Document removal
    - Holding the process-wide store handle

Every failure leaves this package as a tagged ServiceError.
"""

from src.store.adapter import (
    DocumentStore,
    ImportHandle,
    OpenAIDocumentStore,
    StoreHandle,
)
from src.store.holder import StoreHolder

__all__ = [
    "DocumentStore",
    "ImportHandle",
    "OpenAIDocumentStore",
    "StoreHandle",
    "StoreHolder",
]
