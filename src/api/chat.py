"""Chat streaming and conversation endpoints.

The chat answer is streamed as chunked ``text/plain``. Errors raised before
the first fragment become a JSON ``{"error": ...}`` response; after that the
stream simply ends.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from src.api.dependencies import get_chat_orchestrator, get_repository
from src.db.repository import MetadataRepository
from src.models.schemas import (
    ERROR_RESPONSES,
    ChatRequest,
    ConversationCreateRequest,
    ConversationCreateResponse,
    ConversationDetailResponse,
    ConversationInfo,
    ConversationListResponse,
    MessageInfo,
    SuccessResponse,
)
from src.services.chat import ChatOrchestrator, make_title

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"], responses=ERROR_RESPONSES)


@router.post("/chat")
async def chat(
    request: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
) -> StreamingResponse:
    """Answer a message, streaming text fragments as they are generated.

    Retrieval over uploaded documents is used when any exist.

    Raises:
        400: Missing message or conversationId.
        500: Generative service failed before the answer started.
    """
    stream = await orchestrator.handle_chat(request.conversation_id, request.message)
    return StreamingResponse(stream, media_type="text/plain; charset=utf-8")


@router.post("/conversations", response_model=ConversationCreateResponse)
async def create_conversation(
    request: ConversationCreateRequest | None = None,
    repository: MetadataRepository = Depends(get_repository),
) -> ConversationCreateResponse:
    title = make_title(request.title if request else None)
    conversation = await repository.create_conversation(title=title)
    return ConversationCreateResponse(success=True, conversation_id=conversation.id)


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    repository: MetadataRepository = Depends(get_repository),
) -> ConversationListResponse:
    """List conversations, most recently updated first."""
    conversations = await repository.list_conversations()
    return ConversationListResponse(
        conversations=[ConversationInfo.model_validate(c) for c in conversations]
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: str,
    repository: MetadataRepository = Depends(get_repository),
) -> ConversationDetailResponse:
    conversation = await repository.get_conversation(conversation_id)
    messages = await repository.list_messages(conversation_id)
    return ConversationDetailResponse(
        conversation=ConversationInfo.model_validate(conversation),
        messages=[MessageInfo.model_validate(m) for m in messages],
    )


@router.delete("/conversations/{conversation_id}", response_model=SuccessResponse)
async def delete_conversation(
    conversation_id: str,
    repository: MetadataRepository = Depends(get_repository),
) -> SuccessResponse:
    await repository.delete_conversation(conversation_id)
    return SuccessResponse(success=True)


@router.delete("/conversations", response_model=SuccessResponse)
async def delete_all_conversations(
    repository: MetadataRepository = Depends(get_repository),
) -> SuccessResponse:
    """Delete every conversation together with its messages."""
    await repository.delete_all_conversations()
    return SuccessResponse(success=True)
