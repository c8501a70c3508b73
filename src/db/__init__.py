"""Relational persistence for chat metadata.

Tables:
    - files: uploaded document metadata and the store's document id
    - conversations: chat sessions
    - chat_history: messages of each conversation

Binary document content is never stored here.
"""

from src.db.database import create_engine, create_session_factory, init_db
from src.db.models import Base, ChatMessage, Conversation, FileRecord
from src.db.repository import MetadataRepository

__all__ = [
    "Base",
    "ChatMessage",
    "Conversation",
    "FileRecord",
    "MetadataRepository",
    "create_engine",
    "create_session_factory",
    "init_db",
]
