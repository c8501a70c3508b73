"""Document Chat - upload documents, ask questions, get streamed answers.

Combines FastAPI for chunked HTTP streaming, Agno for the generative agent,
OpenAI vector stores for managed file search, SQLAlchemy for chat metadata,
and NiceGUI for the browser interface.

Components:
    - api: HTTP endpoints and streaming responses
    - agent: generative model orchestration with optional file search
    - store: document store adapter over the managed retrieval service
    - db: metadata repository for files, conversations and messages
    - services: upload pipeline and chat orchestrator
    - ui: Web interface for chat interactions
    - models: Request/response schemas
"""

__version__ = "0.1.0"
