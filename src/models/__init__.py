"""Pydantic models for API requests and responses.

Provides type safety, validation, and automatic OpenAPI documentation.
Field names are snake_case in Python; responses keep the camelCase keys
the browser client reads (``fileName``, ``totalFiles`` ...).
"""

from src.models.schemas import (
    ERROR_RESPONSES,
    ChatRequest,
    ConversationCreateRequest,
    ConversationCreateResponse,
    ConversationDetailResponse,
    ConversationInfo,
    ConversationListResponse,
    DeleteFileResponse,
    ErrorResponse,
    FileInfo,
    FileListResponse,
    HealthResponse,
    MessageInfo,
    SuccessResponse,
    UploadResponse,
)

__all__ = [
    "ERROR_RESPONSES",
    "ChatRequest",
    "ConversationCreateRequest",
    "ConversationCreateResponse",
    "ConversationDetailResponse",
    "ConversationInfo",
    "ConversationListResponse",
    "DeleteFileResponse",
    "ErrorResponse",
    "FileInfo",
    "FileListResponse",
    "HealthResponse",
    "MessageInfo",
    "SuccessResponse",
    "UploadResponse",
]
