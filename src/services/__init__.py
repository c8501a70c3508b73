"""Request-level workflows on top of the store, agent and repository.

    - upload: validate, stage, import and record documents
    - chat: persist turns around a streamed generative answer
"""

from src.services.chat import ChatOrchestrator, make_title
from src.services.upload import DeleteResult, UploadPipeline, UploadResult

__all__ = [
    "ChatOrchestrator",
    "DeleteResult",
    "UploadPipeline",
    "UploadResult",
    "make_title",
]
