"""Integration tests for components working together as a system.

Real FastAPI app, real SQLite database, real upload directory; only the
document store and the generative service are replaced by fakes.

Coverage:
    - Upload, listing and deletion of documents
    - Streamed chat answers and their persistence
    - Conversation management endpoints
    - Error responses and their JSON shape
"""
