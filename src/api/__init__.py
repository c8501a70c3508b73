"""FastAPI endpoints for the document chat service.

HTTP and streaming routes with async request handling. Chat answers are
streamed as chunked plain text.

Endpoints:
    - GET /health: Service health and document store status
    - POST /api/upload: Document upload into the file search store
    - GET /api/files, DELETE /api/files/{id}: Uploaded file management
    - POST /api/chat: Streamed chat answer
    - /api/conversations: Conversation history management
"""

from src.api.app import app, create_app

__all__ = ["app", "create_app"]
