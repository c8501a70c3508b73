from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ChatRequest(BaseModel):
    """Request payload for the chat endpoint.

    Attributes:
        message: User's question or prompt.
        conversation_id: Conversation the turn belongs to.
    """

    message: str | None = None
    conversation_id: str | None = Field(
        None,
        validation_alias=AliasChoices("conversationId", "conversation_id"),
    )

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str | None) -> str | None:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class ErrorResponse(BaseModel):
    error: str


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Missing or invalid input"},
    404: {"model": ErrorResponse, "description": "Entity not found"},
    500: {
        "model": ErrorResponse,
        "description": "Document store, AI service or database failure",
    },
}


class SuccessResponse(BaseModel):
    success: bool = True


class UploadResponse(BaseModel):
    """Response after an upload has been imported and recorded.

    Attributes:
        success: Whether the upload was successful.
        file_name: Decoded name of the uploaded file.
        total_files: Number of uploaded files after this one.
        file_id: Id of the new file record.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    file_name: str = Field(alias="fileName")
    total_files: int = Field(alias="totalFiles")
    file_id: str = Field(alias="fileId")


class FileInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    file_name: str = Field(alias="fileName")
    file_size: int = Field(alias="fileSize")
    uploaded_at: datetime = Field(alias="uploadedAt")


class FileListResponse(BaseModel):
    """Uploaded files and the active document store.

    Attributes:
        count: Number of uploaded files.
        files: File metadata, newest first.
        store_name: Document store in use, None when unavailable.
    """

    model_config = ConfigDict(populate_by_name=True)

    count: int
    files: list[FileInfo]
    store_name: str | None = Field(alias="storeName")


class DeleteFileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    file_name: str = Field(alias="fileName")
    total_files: int = Field(alias="totalFiles")


class ConversationCreateRequest(BaseModel):
    title: str | None = None


class ConversationCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    conversation_id: str = Field(alias="conversationId")


class ConversationInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    created_at: datetime
    updated_at: datetime


class ConversationListResponse(BaseModel):
    conversations: list[ConversationInfo]


class MessageInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: str
    message: str
    created_at: datetime


class ConversationDetailResponse(BaseModel):
    """A conversation with its messages in chronological order."""

    conversation: ConversationInfo
    messages: list[MessageInfo]


class HealthResponse(BaseModel):
    """Service health; ``degraded`` means chat runs without retrieval."""

    status: str
    service: str
    store: str | None = None
