"""NiceGUI interface - thin presentation layer over the HTTP API.

Responsibilities:
    - Chat message display with streamed answers
    - Document upload and deletion
    - Conversation history navigation

Contains no business logic. Delegates all operations to the API.
"""
